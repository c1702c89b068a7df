"""Find edit targets and ``@file`` references in a user's chat message."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from imcode.errors import Failure, target_not_found

from .merge import MODE_APPEND, MODE_MERGE, MODE_PREPEND, MODE_REPLACE

if TYPE_CHECKING:
    from .registry import FileRegistry
    from .store import FileEntry

EDIT_VERBS = ("edit", "modify", "update", "change", "fix", "repair", "adjust", "extend", "refactor")

_VERBS = "|".join(EDIT_VERBS)
_NAME_WITH_EXT = r"@?([\w./-]*\w\.[A-Za-z0-9]+)"

# First match wins.
EDIT_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(rf"\b(?:{_VERBS})\s+(?:the\s+)?(?:file\s+)?[`'\"]?{_NAME_WITH_EXT}", re.IGNORECASE),
    re.compile(rf"\b(?:{_VERBS})\s+(?:the\s+)?(?:file|contract|script|module)\s+[`'\"]?@?([\w./-]*\w)", re.IGNORECASE),
    re.compile(rf"\b(?:{_VERBS})\s+(?:[\w-]+\s+){{0,4}}?(?:in|of|inside)\s+[`'\"]?{_NAME_WITH_EXT}", re.IGNORECASE),
)

# A bare word after "the contract" only names a file when it looks like one.
_NAME_SHAPE = re.compile(r"[./_\d]|[A-Z]")
_NOT_NAMES = frozenset(
    (
        "a", "again", "an", "and", "as", "at", "because", "by", "for", "from", "in", "into", "it", "its",
        "now", "of", "on", "please", "so", "that", "the", "this", "to", "using", "when", "with",
    )
)

REFERENCE_PATTERN = re.compile(r"(?<![\w@])@([\w./-]*\w)")

_APPEND_HINTS = re.compile(r"\b(?:append|at the end|to the end|at the bottom)\b", re.IGNORECASE)
_PREPEND_HINTS = re.compile(r"\b(?:prepend|at the (?:top|beginning|start))\b", re.IGNORECASE)
_MERGE_HINTS = re.compile(r"\b(?:add|adds|adding|include|extend|merge|insert|implement)\b", re.IGNORECASE)


@dataclass(frozen=True)
class EditCommand:
    edit_target: FileEntry | None = None
    target_name: str | None = None
    references: tuple[FileEntry, ...] = ()
    unresolved_references: tuple[str, ...] = ()
    merge_mode: str = MODE_REPLACE
    known_paths: tuple[str, ...] = ()
    failure: Failure | None = None

    @property
    def ok(self) -> bool:
        return self.failure is None

    def context_files(self) -> list[FileEntry]:
        """Edit target first, then references, without repeats."""

        files: list[FileEntry] = []
        seen: set[str] = set()
        for entry in ([self.edit_target] if self.edit_target else []) + list(self.references):
            if entry.id not in seen:
                seen.add(entry.id)
                files.append(entry)
        return files


def looks_like_name(word: str) -> bool:
    return bool(_NAME_SHAPE.search(word)) and word.lower() not in _NOT_NAMES


def find_edit_target_name(message: str) -> str | None:
    for pattern in EDIT_PATTERNS:
        for matched in pattern.finditer(message):
            name = matched.group(1).rstrip(".")
            if looks_like_name(name):
                return name
    return None


def find_reference_names(message: str) -> list[str]:
    return [name.rstrip(".") for name in REFERENCE_PATTERN.findall(message)]


def infer_merge_mode(message: str) -> str:
    if _APPEND_HINTS.search(message):
        return MODE_APPEND
    if _PREPEND_HINTS.search(message):
        return MODE_PREPEND
    if _MERGE_HINTS.search(message):
        return MODE_MERGE
    return MODE_REPLACE


def interpret_message(message: str, registry: FileRegistry) -> EditCommand:
    text = message or ""
    known_paths = tuple(registry.paths())

    references: list[FileEntry] = []
    unresolved: list[str] = []
    for name in find_reference_names(text):
        entry = registry.find(name)
        if entry is None:
            if name not in unresolved:
                unresolved.append(name)
        elif all(existing.id != entry.id for existing in references):
            references.append(entry)

    target_name = find_edit_target_name(text)
    target = registry.find(target_name) if target_name else None
    failure = target_not_found(target_name, list(known_paths)) if target_name and target is None else None

    return EditCommand(
        edit_target=target,
        target_name=target_name,
        references=tuple(references),
        unresolved_references=tuple(unresolved),
        merge_mode=infer_merge_mode(text) if target else MODE_REPLACE,
        known_paths=known_paths,
        failure=failure,
    )
