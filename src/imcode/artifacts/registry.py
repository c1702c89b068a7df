"""Path identity, uniqueness and fuzzy lookup over the store's entries."""

from __future__ import annotations

import re
from pathlib import PurePosixPath
from typing import TYPE_CHECKING, Callable, Sequence

if TYPE_CHECKING:
    from .store import FileEntry

_NON_ALNUM = re.compile(r"[^0-9a-z]+")


def _normalize(value: str) -> str:
    return _NON_ALNUM.sub("", value.lower())


def _basename(path: str) -> str:
    return path.rsplit("/", 1)[-1]


def _stem(path: str) -> str:
    return PurePosixPath(_basename(path)).stem


def split_extension(path: str) -> tuple[str, str]:
    """Split ``dir/name.ext`` into ``("dir/name", ".ext")`` on the last segment only."""

    head, sep, name = path.rpartition("/")
    dot = name.rfind(".")
    if dot <= 0:
        return path, ""
    return f"{head}{sep}{name[:dot]}", name[dot:]


def _exact(entry: FileEntry, query: str) -> bool:
    return entry.path == query


def _casefold(entry: FileEntry, query: str) -> bool:
    return entry.path.lower() == query.lower()


def _suffix(entry: FileEntry, query: str) -> bool:
    return entry.path.endswith(query)


def _substring(entry: FileEntry, query: str) -> bool:
    return query.lower() in entry.path.lower()


def _basename_without_extension(entry: FileEntry, query: str) -> bool:
    return _stem(entry.path).lower() == _stem(query).lower()


def _normalized(entry: FileEntry, query: str) -> bool:
    needle = _normalize(query)
    if not needle:
        return False
    return needle in {_normalize(entry.path), _normalize(_basename(entry.path)), _normalize(_stem(entry.path))}


FIND_STRATEGIES: tuple[tuple[str, Callable[["FileEntry", str], bool]], ...] = (
    ("exact", _exact),
    ("case_insensitive", _casefold),
    ("suffix", _suffix),
    ("substring", _substring),
    ("basename", _basename_without_extension),
    ("normalized", _normalized),
)


class FileRegistry:
    """Resolve names against the ordered entries supplied by the store."""

    def __init__(self, entries_provider: Callable[[], Sequence[FileEntry]]) -> None:
        self._entries = entries_provider

    def paths(self) -> list[str]:
        return [entry.path for entry in self._entries()]

    def get(self, entry_id: str) -> FileEntry | None:
        return next((entry for entry in self._entries() if entry.id == entry_id), None)

    def resolve_unique(self, path: str, *, ignore_id: str | None = None) -> str:
        """Return ``path`` or the first free ``name_N.ext`` variant, N starting at 2."""

        taken = {entry.path.lower() for entry in self._entries() if entry.id != ignore_id}
        if path.lower() not in taken:
            return path
        base, extension = split_extension(path)
        counter = 2
        while True:
            candidate = f"{base}_{counter}{extension}"
            if candidate.lower() not in taken:
                return candidate
            counter += 1

    def match(self, query: str) -> tuple[str, FileEntry] | None:
        """Return ``(strategy, entry)`` for the first strategy with any match."""

        needle = (query or "").strip().lstrip("@")
        if not needle:
            return None
        entries = list(self._entries())
        for name, predicate in FIND_STRATEGIES:
            for entry in entries:
                if predicate(entry, needle):
                    return name, entry
        return None

    def find(self, query: str) -> FileEntry | None:
        matched = self.match(query)
        return matched[1] if matched else None

    def strategy_for(self, query: str) -> str | None:
        matched = self.match(query)
        return matched[0] if matched else None

    def find_existing(self, path: str | None) -> FileEntry | None:
        """Identity lookup used before creating a file.

        Matches the same path case-insensitively, or a shorter name that equals
        whole trailing segments of an entry (``Token.move`` finds
        ``contracts/tokens/Token.move`` but never ``FungibleToken.move``).
        """

        needle = (path or "").strip().strip("/").lower()
        if not needle:
            return None
        entries = list(self._entries())
        for entry in entries:
            if entry.path.lower() == needle:
                return entry
        for entry in entries:
            if entry.path.lower().endswith(f"/{needle}"):
                return entry
        return None
