"""Error definitions and tagged failures for the artifact layer."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


class ImcodeError(RuntimeError):
    """Base class for ImCode errors."""


class ProjectFormatError(ImcodeError):
    """Raised when an imported or persisted project payload is malformed."""


class PersistenceError(ImcodeError):
    """Raised by key-value stores when a read or write fails."""


@dataclass(frozen=True)
class Failure:
    """A user-facing failure returned instead of raised."""

    code: str
    message: str
    details: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message, "details": dict(self.details)}


def target_not_found(name: str, known_paths: list[str]) -> Failure:
    listing = ", ".join(known_paths) if known_paths else "(no files yet)"
    return Failure(
        code="file_not_found",
        message=f"File '{name}' not found. Known files: {listing}",
        details={"name": name, "known_paths": list(known_paths)},
    )


def request_in_flight() -> Failure:
    return Failure(
        code="request_in_flight",
        message="A request for this project is still running; wait for it to finish.",
    )


def model_failure(error: Exception) -> Failure:
    return Failure(code="model_error", message=f"Model request failed: {error}", details={"error": str(error)})
