"""Chat transcript used as model context."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Iterable

ROLES = {"user", "assistant"}


def _now_iso() -> str:
    return datetime.now().astimezone().isoformat(timespec="seconds")


class ChatHistory:
    def __init__(self, messages: Iterable[dict[str, Any]] = (), max_messages: int = 200) -> None:
        self.max_messages = max_messages
        self._messages: list[dict[str, Any]] = []
        for message in messages:
            role = message.get("role")
            content = message.get("content")
            if role in ROLES and isinstance(content, str):
                self._messages.append({"role": role, "content": content, "ts": str(message.get("ts") or "")})
        self._trim()

    @property
    def messages(self) -> list[dict[str, Any]]:
        return [dict(message) for message in self._messages]

    def add(self, role: str, content: str, **extra: Any) -> dict[str, Any]:
        if role not in ROLES:
            raise ValueError(f"Unknown chat role: {role}")
        message = {"role": role, "content": content, "ts": _now_iso(), **extra}
        self._messages.append(message)
        self._trim()
        return message

    def context(self, limit: int) -> list[dict[str, str]]:
        """Return the last ``limit`` turns as ``{role, content}`` pairs."""

        if limit <= 0:
            return []
        return [{"role": item["role"], "content": item["content"]} for item in self._messages[-limit:]]

    def clear(self) -> None:
        self._messages = []

    def __len__(self) -> int:
        return len(self._messages)

    def _trim(self) -> None:
        if len(self._messages) > self.max_messages:
            self._messages = self._messages[-self.max_messages :]
