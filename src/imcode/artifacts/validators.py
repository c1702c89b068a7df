"""Content checks applied before a code block may become a file."""

from __future__ import annotations

from typing import Any

from .classifier import KIND_CONTRACT

DEFAULT_MIN_CONTENT_LENGTH = 20

REQUIRED_KEYWORDS: dict[str, tuple[str, ...]] = {
    KIND_CONTRACT: ("module", "script", "fun ", "struct "),
}


def run_validators(content: str, kind: str, min_length: int = DEFAULT_MIN_CONTENT_LENGTH) -> list[dict[str, Any]]:
    """Return one check record per rule, in the order they ran."""

    checks: list[dict[str, Any]] = []
    body = (content or "").strip()
    if len(body) < min_length:
        checks.append(
            {
                "check": "min_length",
                "status": "invalid",
                "message": f"content has {len(body)} characters, need at least {min_length}",
            }
        )
        return checks
    checks.append({"check": "min_length", "status": "valid", "message": "ok"})

    keywords = REQUIRED_KEYWORDS.get(kind)
    if not keywords:
        return checks
    lowered = body.lower()
    if any(keyword in lowered for keyword in keywords):
        checks.append({"check": "keywords", "status": "valid", "message": "ok"})
    else:
        checks.append(
            {
                "check": "keywords",
                "status": "invalid",
                "message": f"{kind} content needs one of: {', '.join(k.strip() for k in keywords)}",
            }
        )
    return checks


def first_failure(checks: list[dict[str, Any]]) -> str | None:
    for check in checks:
        if check.get("status") == "invalid":
            return str(check.get("message") or check.get("check"))
    return None


def validate_content(content: str, kind: str, min_length: int = DEFAULT_MIN_CONTENT_LENGTH) -> str | None:
    """Return the reason ``content`` is rejected, or ``None`` when it passes."""

    return first_failure(run_validators(content, kind, min_length))
