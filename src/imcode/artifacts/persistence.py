"""Save and restore the current project through a key-value store."""

from __future__ import annotations

import json
import logging
import re
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Mapping, Protocol

from imcode.config import DEFAULT_CONFIG
from imcode.errors import PersistenceError, ProjectFormatError
from imcode.fs.atomic import atomic_write_json
from imcode.logging import log_event

from .store import FileEntry, ProjectEnvelope, dedupe_entries

_LOGGER = logging.getLogger(__name__)
_UNSAFE_KEY_CHARS = re.compile(r"[^0-9A-Za-z._-]+")

SOURCE_PROJECT = "project"
SOURCE_FILES = "files"


class KeyValueStore(Protocol):
    def get(self, key: str) -> Any:
        ...

    def set(self, key: str, value: Any) -> None:
        ...

    def delete(self, key: str) -> None:
        ...


class MemoryKeyValueStore:
    def __init__(self) -> None:
        self.data: dict[str, str] = {}

    def get(self, key: str) -> Any:
        raw = self.data.get(key)
        return None if raw is None else json.loads(raw)

    def set(self, key: str, value: Any) -> None:
        self.data[key] = json.dumps(value, ensure_ascii=False)

    def delete(self, key: str) -> None:
        self.data.pop(key, None)


class JsonFileKeyValueStore:
    """One JSON document per key under ``directory``."""

    def __init__(self, directory: Path) -> None:
        self.directory = directory

    def _path(self, key: str) -> Path:
        safe = _UNSAFE_KEY_CHARS.sub("_", key).strip("._") or "default"
        return self.directory / f"{safe}.json"

    def get(self, key: str) -> Any:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise PersistenceError(f"Failed to read {path}: {exc}") from exc

    def set(self, key: str, value: Any) -> None:
        try:
            atomic_write_json(self._path(key), value)
        except (OSError, TypeError, ValueError) as exc:
            raise PersistenceError(f"Failed to write {key}: {exc}") from exc

    def delete(self, key: str) -> None:
        try:
            self._path(key).unlink(missing_ok=True)
        except OSError as exc:
            raise PersistenceError(f"Failed to delete {key}: {exc}") from exc


@dataclass(frozen=True)
class PersistedState:
    project: ProjectEnvelope
    selected_id: str | None
    source: str


class ProjectPersistence:
    """Two-tier project storage: the full envelope plus a bare file-list backup.

    ``save`` writes the file list first and the envelope last, so a crash in
    between still leaves something ``load`` can recover.
    """

    def __init__(
        self,
        kv: KeyValueStore,
        keys: Mapping[str, str] | None = None,
        *,
        data_dir: Path | None = None,
    ) -> None:
        self.kv = kv
        self.data_dir = data_dir
        self.kv = kv
        self.keys = {**DEFAULT_CONFIG["persistence"]["keys"], **dict(keys or {})}

    def save(self, project: ProjectEnvelope, selected_id: str | None = None) -> bool:
        try:
            self.kv.set(self.keys["files"], [entry.to_dict() for entry in project.files])
            self.kv.set(self.keys["selected"], selected_id)
            self.kv.set(self.keys["project"], project.to_dict())
        except Exception as exc:  # noqa: BLE001
            _LOGGER.error("Failed to save project %s: %s", project.id, exc, exc_info=True)
            log_event(
                {"event": "project_save_failed", "level": "ERROR", "project_id": project.id, "error": str(exc)},
                data_dir=self.data_dir,
            )
            return False
        _LOGGER.debug("Saved project %s (%d files)", project.id, len(project.files))
        return True

    def load(self) -> PersistedState | None:
        selected_id = self._read(self.keys["selected"])
        if not isinstance(selected_id, str):
            selected_id = None

        payload = self._read(self.keys["project"])
        if payload is not None:
            try:
                return PersistedState(ProjectEnvelope.from_dict(payload), selected_id, SOURCE_PROJECT)
            except ProjectFormatError as exc:
                _LOGGER.warning("Stored project is malformed, trying file list: %s", exc)

        files = self._read(self.keys["files"])
        if isinstance(files, list):
            try:
                entries = dedupe_entries(FileEntry.from_dict(item) for item in files)
            except ProjectFormatError as exc:
                _LOGGER.warning("Stored file list is malformed: %s", exc)
                return None
            project = ProjectEnvelope.create("Recovered project")
            project.files = entries
            log_event(
                {"event": "project_recovered", "project_id": project.id, "files": len(entries)}, data_dir=self.data_dir
            )
            return PersistedState(project, selected_id, SOURCE_FILES)
        return None

    def clear(self) -> None:
        for key in ("project", "files", "selected"):
            try:
                self.kv.delete(self.keys[key])
            except Exception as exc:  # noqa: BLE001
                _LOGGER.error("Failed to clear %s: %s", self.keys[key], exc, exc_info=True)

    def save_chat(self, messages: list[dict[str, Any]]) -> bool:
        try:
            self.kv.set(self.keys["chat"], messages)
        except Exception as exc:  # noqa: BLE001
            _LOGGER.error("Failed to save chat history: %s", exc, exc_info=True)
            return False
        return True

    def load_chat(self) -> list[dict[str, Any]]:
        payload = self._read(self.keys["chat"])
        if not isinstance(payload, list):
            return []
        return [item for item in payload if isinstance(item, dict)]

    def _read(self, key: str) -> Any:
        try:
            return self.kv.get(key)
        except Exception as exc:  # noqa: BLE001
            _LOGGER.error("Failed to read %s: %s", key, exc, exc_info=True)
            return None


class TimerHandle(Protocol):
    def start(self) -> None:
        ...

    def cancel(self) -> None:
        ...


TimerFactory = Callable[[float, Callable[[], None]], TimerHandle]


def _thread_timer(delay_s: float, callback: Callable[[], None]) -> TimerHandle:
    timer = threading.Timer(delay_s, callback)
    timer.daemon = True
    return timer


class DebouncedFlusher:
    """Run ``flush`` once after ``delay_s`` of quiet; each ``schedule`` restarts the wait."""

    def __init__(self, delay_s: float, flush: Callable[[], None], timer_factory: TimerFactory | None = None) -> None:
        self.delay_s = delay_s
        self._flush = flush
        self._timer_factory = timer_factory or _thread_timer
        self._lock = threading.Lock()
        self._timer: TimerHandle | None = None
        self._generation = 0

    @property
    def pending(self) -> bool:
        with self._lock:
            return self._timer is not None

    def schedule(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._generation += 1
            generation = self._generation
            self._timer = self._timer_factory(self.delay_s, lambda: self._fire(generation))
            self._timer.start()

    def cancel(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._timer = None
            self._generation += 1

    def flush_now(self) -> None:
        self.cancel()
        self._run()

    def _fire(self, generation: int) -> None:
        with self._lock:
            if generation != self._generation:
                return
            self._timer = None
        self._run()

    def _run(self) -> None:
        try:
            self._flush()
        except Exception as exc:  # noqa: BLE001
            _LOGGER.error("Debounced flush failed: %s", exc, exc_info=True)
