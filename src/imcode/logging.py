"""JSONL event log for artifact lifecycle events."""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Any

from .config import resolve_data_dir
from .fs.atomic import append_jsonl

_LOGGER = logging.getLogger("imcode.events")


def log_event(event: dict[str, Any], data_dir: Path | None = None) -> None:
    """Append ``event`` to ``<data_dir>/logs/events.log``.

    ``data_dir`` defaults to ``IMCODE_HOME`` (or ``~/.imcode``); pass the
    configured directory so events land beside the project storage.

    The event is mirrored to the ``imcode.events`` logger. Write failures are
    reported there and never raised, so callers on the store path are not
    interrupted by a broken log directory.
    """

    payload = _build_payload(event)
    level = logging.getLevelName(str(payload["level"]))
    _LOGGER.log(level if isinstance(level, int) else logging.INFO, "%s", payload.get("event"))
    try:
        append_jsonl(_log_path("events.log", data_dir), payload)
    except OSError as exc:
        _LOGGER.warning("Failed to write event log: %s", exc)


def _build_payload(source: dict[str, Any]) -> dict[str, Any]:
    payload = dict(source)
    payload.setdefault("ts", _now_iso())
    payload.setdefault("level", "INFO")
    payload.setdefault("project_id", None)
    return payload


def _log_path(filename: str, data_dir: Path | None = None) -> Path:
    return (data_dir or resolve_data_dir()) / "logs" / filename


def _now_iso() -> str:
    return datetime.now().astimezone().isoformat(timespec="seconds")
