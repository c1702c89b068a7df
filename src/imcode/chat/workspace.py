"""One chat round-trip: message → model → code blocks → project tree."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Mapping

from imcode.artifacts.classifier import suggest_file_name
from imcode.artifacts.commands import EditCommand, interpret_message
from imcode.artifacts.extractor import extract_code_blocks
from imcode.artifacts.merge import MODE_REPLACE, restates_file
from imcode.artifacts.persistence import (
    DebouncedFlusher,
    JsonFileKeyValueStore,
    KeyValueStore,
    ProjectPersistence,
    TimerFactory,
)
from imcode.artifacts.store import (
    STATUS_CREATED,
    STATUS_MERGED,
    STATUS_SKIPPED,
    STATUS_UPDATED,
    ArtifactStore,
    FileEntry,
    ProjectEnvelope,
    StoreResult,
)
from imcode.config import DEFAULT_CONFIG, configured_data_dir, deep_merge, get_config_value, resolve_data_dir
from imcode.errors import Failure, model_failure, request_in_flight
from imcode.logging import log_event
from imcode.models import ModelClient, ProviderModelClient, build_provider

from .history import ChatHistory

_LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class Notice:
    level: str
    code: str
    message: str
    details: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"level": self.level, "code": self.code, "message": self.message, "details": dict(self.details)}


@dataclass
class ChatTurnResult:
    ok: bool
    reply: str = ""
    prose: str = ""
    notices: list[Notice] = field(default_factory=list)
    results: list[StoreResult] = field(default_factory=list)
    command: EditCommand | None = None
    failure: Failure | None = None

    def notice_codes(self) -> list[str]:
        return [notice.code for notice in self.notices]

    def count(self, *statuses: str) -> int:
        return sum(1 for result in self.results if result.status in statuses)


class ChatWorkspace:
    """Wire the store, the model collaborator and persistence together."""

    def __init__(
        self,
        store: ArtifactStore,
        persistence: ProjectPersistence,
        model_client: ModelClient,
        *,
        config: Mapping[str, Any] | None = None,
        history: ChatHistory | None = None,
        timer_factory: TimerFactory | None = None,
    ) -> None:
        self.config = deep_merge(DEFAULT_CONFIG, config or {})
        self.store = store
        self.persistence = persistence
        self.model_client = model_client
        self.history = history or ChatHistory(max_messages=int(self._setting("chat.max_history")))
        self.context_turns = int(self._setting("chat.context_turns"))
        self.default_language = str(self._setting("artifacts.default_language"))
        self.flusher = DebouncedFlusher(float(self._setting("persistence.debounce_s")), self._flush_project, timer_factory)
        self.chat_flusher = DebouncedFlusher(
            float(self._setting("chat.history_debounce_s")), self._flush_chat, timer_factory
        )
        self._in_flight = threading.Lock()
        self.store.add_listener(lambda _store: self.flusher.schedule())

    @classmethod
    def open(
        cls,
        config: Mapping[str, Any] | None = None,
        *,
        model_client: ModelClient | None = None,
        kv: KeyValueStore | None = None,
        timer_factory: TimerFactory | None = None,
    ) -> ChatWorkspace:
        """Restore the last saved project (if any) and build a workspace around it."""

        effective = deep_merge(DEFAULT_CONFIG, config or {})
        data_dir = configured_data_dir(effective) or resolve_data_dir()
        effective["imcode"]["data_dir"] = str(data_dir)
        persistence = ProjectPersistence(
            kv or JsonFileKeyValueStore(data_dir / "storage"),
            keys=effective["persistence"]["keys"],
            data_dir=data_dir,
        )
        state = persistence.load()
        store = ArtifactStore(effective)
        if state is not None:
            store.load_project(state.project, state.selected_id)
            _LOGGER.info("Restored project %s from %s", state.project.id, state.source)
        history = ChatHistory(persistence.load_chat(), max_messages=int(effective["chat"]["max_history"]))
        return cls(
            store,
            persistence,
            model_client or build_model_client(effective),
            config=effective,
            history=history,
            timer_factory=timer_factory,
        )

    # -- chat ------------------------------------------------------------

    def handle_message(self, message: str) -> ChatTurnResult:
        text = (message or "").strip()
        if not text:
            return ChatTurnResult(ok=False, failure=Failure(code="empty_message", message="Message is empty."))
        if not self._in_flight.acquire(blocking=False):
            failure = request_in_flight()
            log_event(
                {"event": "chat_request_rejected", "project_id": self.store.project.id, "reason": failure.code},
                data_dir=self.store.data_dir,
            )
            return ChatTurnResult(ok=False, failure=failure)
        try:
            return self._handle(text)
        finally:
            self._in_flight.release()

    def _handle(self, message: str) -> ChatTurnResult:
        command = interpret_message(message, self.store.registry)
        notices = [
            Notice("warning", "unresolved_reference", f"No file matches @{name}; continuing without it.", {"name": name})
            for name in command.unresolved_references
        ]
        if command.failure is not None:
            log_event(
                {
                    "event": "edit_target_not_found",
                    "level": "WARNING",
                    "project_id": self.store.project.id,
                    "target": command.target_name,
                },
                data_dir=self.store.data_dir,
            )
            notices.append(Notice("error", command.failure.code, command.failure.message, command.failure.details))
            return ChatTurnResult(ok=False, notices=notices, command=command, failure=command.failure)

        request = self.build_request(message, command)
        try:
            response = self.model_client.complete(request)
            reply = response.get("response") if isinstance(response, Mapping) else None
            if not isinstance(reply, str):
                raise ValueError("model response is missing a 'response' string")
        except Exception as exc:  # noqa: BLE001
            _LOGGER.error("Model call failed: %s", exc, exc_info=True)
            failure = model_failure(exc)
            notices.append(Notice("error", failure.code, failure.message, failure.details))
            return ChatTurnResult(ok=False, notices=notices, command=command, failure=failure)

        self.history.add("user", message)
        self.history.add("assistant", reply)
        self.chat_flusher.schedule()

        prose, results, apply_notices = self.apply_reply(reply, command)
        return ChatTurnResult(
            ok=True,
            reply=reply,
            prose=prose,
            notices=notices + apply_notices,
            results=results,
            command=command,
        )

    def build_request(self, message: str, command: EditCommand) -> dict[str, Any]:
        focus = command.context_files()
        focus_ids = {entry.id for entry in focus}
        ordered = focus + [entry for entry in self.store.entries if entry.id not in focus_ids]
        return {
            "message": message,
            "context": self.history.context(self.context_turns),
            "files": [{"name": entry.path, "content": entry.content} for entry in ordered],
            "focus": [entry.path for entry in focus],
        }

    def apply_reply(self, reply: str, command: EditCommand | None = None) -> tuple[str, list[StoreResult], list[Notice]]:
        """Apply every code block in ``reply`` to the store.

        With an edit target the first block updates that file: a whole file
        replaces it and a fragment is combined using the message's update
        mode. Every other block goes through ``create``, which turns an
        existing path into an update.
        """

        extraction = extract_code_blocks(reply, self.default_language)
        target = command.edit_target if command else None
        results: list[StoreResult] = []
        notices: list[Notice] = []

        for block in extraction.blocks:
            if target is not None and block.index == 0:
                mode = command.merge_mode
                if mode != MODE_REPLACE and restates_file(target.content, block.body, target.kind):
                    mode = MODE_REPLACE
                result = self.store.merge_content(target.id, block.body, mode)
                if result.changed:
                    self.store.select(target.id)
            else:
                path_hint = block.file_path or suggest_file_name(block.body, block.language)
                result = self.store.create(path_hint, block.body, block.language)
            results.append(result)

            if result.duplicate_prevented and result.entry is not None:
                notices.append(
                    Notice(
                        "info",
                        "duplicate_prevented",
                        f"{result.entry.path} already existed and was updated instead.",
                        {"path": result.entry.path},
                    )
                )
            elif result.status == STATUS_SKIPPED:
                notices.append(Notice("info", "content_skipped", f"Skipped a code block: {result.reason}", {"index": block.index}))

        created = sum(1 for result in results if result.status == STATUS_CREATED)
        updated = sum(1 for result in results if result.status in {STATUS_UPDATED, STATUS_MERGED})
        if created or updated:
            notices.append(
                Notice(
                    "info",
                    "project_created",
                    f"Project updated (files: {created}, updated: {updated}).",
                    {"files": created, "updated": updated, "total": len(self.store.entries)},
                )
            )
        return extraction.prose, results, notices

    # -- project lifecycle -------------------------------------------------

    def new_project(self, name: str) -> ProjectEnvelope:
        self.flusher.cancel()
        self.chat_flusher.cancel()
        self.persistence.clear()
        project = self.store.new_project(name)
        self.history.clear()
        self.flusher.schedule()
        self.chat_flusher.schedule()
        return project

    def load_project(self, project: ProjectEnvelope) -> ProjectEnvelope:
        loaded = self.store.load_project(project)
        self.flusher.schedule()
        return loaded

    def delete_file(self, query: str) -> StoreResult | None:
        entry = self.resolve(query)
        return self.store.delete(entry.id) if entry else None

    def resolve(self, query: str) -> FileEntry | None:
        return self.store.registry.find(query)

    def flush(self) -> None:
        """Write pending project and chat state immediately."""

        for flusher in (self.flusher, self.chat_flusher):
            if flusher.pending:
                flusher.flush_now()

    def close(self) -> None:
        self.flush()

    # -- internals ---------------------------------------------------------

    def _flush_project(self) -> None:
        self.persistence.save(self.store.snapshot(), self.store.selected_id)

    def _flush_chat(self) -> None:
        self.persistence.save_chat(self.history.messages)

    def _setting(self, key_path: str) -> Any:
        return get_config_value(self.config, key_path)


def build_model_client(config: Mapping[str, Any]) -> ModelClient:
    provider_name = str(config.get("imcode", {}).get("provider") or "openai")
    provider_cfg = dict((config.get("providers") or {}).get(provider_name) or {})
    if not provider_cfg:
        raise ValueError(f"Unknown provider: {provider_name}")
    return ProviderModelClient(build_provider(provider_cfg), model=provider_cfg.get("model"))
