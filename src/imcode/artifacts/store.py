"""In-memory project tree of generated files.

All mutations go through :class:`ArtifactStore`; every successful one bumps the
project's ``updated_at`` and notifies listeners (the workspace uses this to
schedule a debounced persistence flush).
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Callable, Iterable, Mapping

from imcode.config import artifact_settings, configured_data_dir
from imcode.errors import ProjectFormatError
from imcode.logging import log_event

from .classifier import KINDS, KIND_OTHER, classify, resolve_kind
from .merge import MERGE_MODES, MODE_REPLACE, UPDATE_MODES, merge_contents
from .registry import FileRegistry
from .validators import validate_content

_LOGGER = logging.getLogger(__name__)

STATUS_CREATED = "created"
STATUS_UPDATED = "updated"
STATUS_MERGED = "merged"
STATUS_DELETED = "deleted"
STATUS_RENAMED = "renamed"
STATUS_SKIPPED = "skipped"
STATUS_NOT_FOUND = "not_found"

Listener = Callable[["ArtifactStore"], None]


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def new_id(prefix: str = "") -> str:
    return f"{prefix}{uuid.uuid4().hex}"


@dataclass(frozen=True)
class FileEntry:
    id: str
    path: str
    content: str
    kind: str = KIND_OTHER
    created_at: str = ""
    updated_at: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "path": self.path,
            "content": self.content,
            "kind": self.kind,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> FileEntry:
        if not isinstance(payload, Mapping):
            raise ProjectFormatError("file entry must be an object")
        path = str(payload.get("path") or payload.get("name") or "").strip()
        if not path:
            raise ProjectFormatError("file entry is missing a path")
        kind = str(payload.get("kind") or "")
        if kind not in KINDS:
            kind = resolve_kind(kind or None, path)[0]
        return cls(
            id=str(payload.get("id") or new_id()),
            path=path,
            content=str(payload.get("content") or ""),
            kind=kind,
            created_at=str(payload.get("created_at") or ""),
            updated_at=str(payload.get("updated_at") or ""),
        )


@dataclass
class ProjectEnvelope:
    id: str
    name: str
    files: list[FileEntry] = field(default_factory=list)
    created_at: str = ""
    updated_at: str = ""

    @classmethod
    def create(cls, name: str) -> ProjectEnvelope:
        now = _now_iso()
        return cls(id=new_id("project_"), name=name, files=[], created_at=now, updated_at=now)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "files": [entry.to_dict() for entry in self.files],
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> ProjectEnvelope:
        """Build an envelope, dropping files whose path repeats an earlier one."""

        if not isinstance(payload, Mapping):
            raise ProjectFormatError("project payload must be an object")
        raw_files = payload.get("files") or []
        if not isinstance(raw_files, list):
            raise ProjectFormatError("project files must be a list")
        return cls(
            id=str(payload.get("id") or new_id("project_")),
            name=str(payload.get("name") or "Untitled project"),
            files=dedupe_entries(FileEntry.from_dict(item) for item in raw_files),
            created_at=str(payload.get("createdAt") or payload.get("created_at") or _now_iso()),
            updated_at=str(payload.get("updatedAt") or payload.get("updated_at") or _now_iso()),
        )


def dedupe_entries(entries: Iterable[FileEntry]) -> list[FileEntry]:
    kept: list[FileEntry] = []
    seen_paths: set[str] = set()
    seen_ids: set[str] = set()
    for entry in entries:
        if entry.path.lower() in seen_paths or entry.id in seen_ids:
            _LOGGER.warning("Dropping duplicate file entry %s", entry.path)
            continue
        seen_paths.add(entry.path.lower())
        seen_ids.add(entry.id)
        kept.append(entry)
    return kept


@dataclass(frozen=True)
class StoreResult:
    status: str
    entry: FileEntry | None = None
    reason: str = ""
    duplicate_prevented: bool = False

    @property
    def changed(self) -> bool:
        return self.status not in {STATUS_SKIPPED, STATUS_NOT_FOUND}

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status,
            "path": self.entry.path if self.entry else None,
            "id": self.entry.id if self.entry else None,
            "reason": self.reason,
            "duplicate_prevented": self.duplicate_prevented,
        }


class ArtifactStore:
    def __init__(
        self,
        config: Mapping[str, Any] | None = None,
        *,
        project: ProjectEnvelope | None = None,
        listeners: Iterable[Listener] = (),
    ) -> None:
        settings = artifact_settings(config)
        self.min_content_length = int(settings["min_content_length"])
        self.default_update_mode = str(settings["update_mode"])
        self.data_dir = configured_data_dir(config)
        self._project = project or ProjectEnvelope.create("Untitled project")
        self._entries: list[FileEntry] = dedupe_entries(self._project.files)
        self._project.files = list(self._entries)
        self._selected_id: str | None = self._entries[0].id if self._entries else None
        self._listeners: list[Listener] = list(listeners)
        self.registry = FileRegistry(lambda: self._entries)

    @property
    def entries(self) -> tuple[FileEntry, ...]:
        return tuple(self._entries)

    @property
    def selected_id(self) -> str | None:
        return self._selected_id

    @property
    def selected(self) -> FileEntry | None:
        return self.registry.get(self._selected_id) if self._selected_id else None

    @property
    def project(self) -> ProjectEnvelope:
        return self._project

    def add_listener(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def get(self, entry_id: str) -> FileEntry | None:
        return self.registry.get(entry_id)

    def snapshot(self) -> ProjectEnvelope:
        """Return a detached copy of the current project."""

        return replace(self._project, files=list(self._entries))

    def select(self, entry_id: str | None) -> bool:
        if entry_id is None:
            self._selected_id = None
            return True
        if self.registry.get(entry_id) is None:
            return False
        self._selected_id = entry_id
        return True

    # -- mutations -------------------------------------------------------

    def create(self, path_hint: str | None, content: str, kind: str | None = None, mode: str | None = None) -> StoreResult:
        """Create a file, or update the existing one with the same identity."""

        resolved_kind, _ = resolve_kind(kind, path_hint)
        reason = validate_content(content, resolved_kind, self.min_content_length)
        if reason:
            return self._skip(path_hint, reason)

        existing = self.registry.find_existing(path_hint)
        if existing is not None:
            update_mode = mode or self.default_update_mode
            if update_mode == MODE_REPLACE:
                result = self.replace_content(existing.id, content)
            else:
                result = self.merge_content(existing.id, content, update_mode)
            if result.changed:
                self._log_event(
                    {
                        "event": "artifact_duplicate_prevented",
                        "project_id": self._project.id,
                        "path": existing.path,
                        "mode": update_mode,
                    }
                )
                return replace(result, duplicate_prevented=True)
            return result

        path = self.registry.resolve_unique(classify(path_hint, content, kind or resolved_kind))
        now = _now_iso()
        entry = FileEntry(id=new_id(), path=path, content=content, kind=resolved_kind, created_at=now, updated_at=now)
        self._entries.append(entry)
        self._selected_id = entry.id
        self._touch("artifact_created", entry)
        return StoreResult(status=STATUS_CREATED, entry=entry)

    def replace_content(self, entry_id: str, content: str) -> StoreResult:
        index = self._index_of(entry_id)
        if index is None:
            return self._not_found(entry_id)
        current = self._entries[index]
        reason = validate_content(content, current.kind, self.min_content_length)
        if reason:
            return self._skip(current.path, reason)
        updated = replace(current, content=content, updated_at=_now_iso())
        self._entries[index] = updated
        self._touch("artifact_replaced", updated)
        return StoreResult(status=STATUS_UPDATED, entry=updated)

    def merge_content(self, entry_id: str, content: str, mode: str) -> StoreResult:
        if mode not in UPDATE_MODES:
            return self._skip(entry_id, f"unsupported update mode {mode}")
        if mode not in MERGE_MODES:
            return self.replace_content(entry_id, content)
        index = self._index_of(entry_id)
        if index is None:
            return self._not_found(entry_id)
        current = self._entries[index]
        reason = validate_content(content, current.kind, self.min_content_length)
        if reason:
            return self._skip(current.path, reason)
        merged = merge_contents(current.content, content, mode, current.kind)
        updated = replace(current, content=merged, updated_at=_now_iso())
        self._entries[index] = updated
        self._touch("artifact_merged", updated, mode=mode)
        return StoreResult(status=STATUS_MERGED, entry=updated)

    def rename(self, entry_id: str, new_path: str) -> StoreResult:
        index = self._index_of(entry_id)
        if index is None:
            return self._not_found(entry_id)
        target = new_path.strip().strip("/")
        if not target:
            return self._skip(new_path, "empty path")
        current = self._entries[index]
        path = self.registry.resolve_unique(target, ignore_id=entry_id)
        updated = replace(current, path=path, updated_at=_now_iso())
        self._entries[index] = updated
        self._touch("artifact_renamed", updated, previous_path=current.path)
        return StoreResult(status=STATUS_RENAMED, entry=updated)

    def delete(self, entry_id: str) -> StoreResult:
        index = self._index_of(entry_id)
        if index is None:
            return self._not_found(entry_id)
        removed = self._entries.pop(index)
        if self._selected_id == entry_id:
            self._selected_id = None
        self._touch("artifact_deleted", removed)
        return StoreResult(status=STATUS_DELETED, entry=removed)

    def new_project(self, name: str) -> ProjectEnvelope:
        self._project = ProjectEnvelope.create(name)
        self._entries = []
        self._selected_id = None
        self._log_event({"event": "project_created", "project_id": self._project.id, "name": name})
        return self._project

    def load_project(self, project: ProjectEnvelope, selected_id: str | None = None) -> ProjectEnvelope:
        self._entries = dedupe_entries(project.files)
        self._project = replace(project, files=list(self._entries))
        if selected_id and self.registry.get(selected_id) is not None:
            self._selected_id = selected_id
        else:
            self._selected_id = self._entries[0].id if self._entries else None
        self._log_event({"event": "project_loaded", "project_id": self._project.id, "files": len(self._entries)})
        return self._project

    # -- internals -------------------------------------------------------

    def _index_of(self, entry_id: str) -> int | None:
        for index, entry in enumerate(self._entries):
            if entry.id == entry_id:
                return index
        return None

    def _touch(self, event: str, entry: FileEntry, **extra: Any) -> None:
        self._project.files = list(self._entries)
        self._project.updated_at = _now_iso()
        self._log_event({"event": event, "project_id": self._project.id, "path": entry.path, "file_id": entry.id, **extra})
        self._notify()

    def _log_event(self, event: dict[str, Any]) -> None:
        log_event(event, data_dir=self.data_dir)

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception as exc:  # noqa: BLE001
                _LOGGER.error("Store listener failed: %s", exc, exc_info=True)

    def _skip(self, path: str | None, reason: str) -> StoreResult:
        _LOGGER.info("Skipped content for %s: %s", path or "(unnamed)", reason)
        self._log_event({"event": "artifact_skipped", "project_id": self._project.id, "path": path, "reason": reason})
        return StoreResult(status=STATUS_SKIPPED, reason=reason)

    def _not_found(self, entry_id: str) -> StoreResult:
        _LOGGER.info("No file with id %s", entry_id)
        return StoreResult(status=STATUS_NOT_FOUND, reason=f"unknown file id {entry_id}")
