"""Extract fenced code blocks from model replies."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterator

DEFAULT_LANGUAGE = "move"

_FENCE = "```"
_FILE_TOKEN_KEYS = ("file", "filename", "path")
_HEADER_PATTERN = re.compile(
    r"^\s*(?:<!--|//|#|--)\s*(?:file|filename|path)\s*:\s*([^\s>]+)",
    re.IGNORECASE,
)
_BLANK_RUNS = re.compile(r"\n{3,}")


@dataclass(frozen=True)
class CodeBlock:
    """One fenced region of a reply."""

    language: str
    body: str
    index: int
    file_path: str | None = None


@dataclass(frozen=True)
class Extraction:
    blocks: tuple[CodeBlock, ...]
    prose: str


def _clean_declared_path(value: str) -> str | None:
    file_path = value.strip().strip("`")
    if not file_path or any(char in file_path for char in {'"', "'"}):
        return None
    return file_path


def _parse_info_string(info: str, default_language: str) -> tuple[str, str | None]:
    language = ""
    file_path: str | None = None
    for token in info.split():
        key, sep, value = token.partition("=")
        if sep:
            if key.lower() in _FILE_TOKEN_KEYS and file_path is None:
                file_path = _clean_declared_path(value)
            continue
        if not language:
            language = token.lower()
    return language or default_language, file_path


def _declared_path_from_header(body: str) -> str | None:
    lines = body.splitlines()
    if not lines:
        return None
    matched = _HEADER_PATTERN.match(lines[0])
    if not matched:
        return None
    return _clean_declared_path(matched.group(1))


def _is_opener(stripped: str) -> bool:
    return stripped.startswith(_FENCE) and not stripped.startswith("````")


def _scan(text: str, default_language: str) -> Iterator[tuple[int, int, CodeBlock]]:
    """Yield ``(start_line, end_line, block)`` for every well-formed fence."""

    lines = text.splitlines(keepends=True)
    index = 0
    line_no = 0
    while line_no < len(lines):
        stripped = lines[line_no].strip()
        if not _is_opener(stripped):
            line_no += 1
            continue

        start = line_no
        info = stripped[len(_FENCE):].strip()
        cursor = start + 1
        close_at: int | None = None
        restart_at: int | None = None
        while cursor < len(lines):
            inner = lines[cursor].strip()
            if inner == _FENCE:
                close_at = cursor
                break
            if _is_opener(inner) and inner[len(_FENCE):].strip():
                # a tagged opener inside an open block: the outer fence is malformed
                restart_at = cursor
                break
            cursor += 1

        if close_at is None:
            if restart_at is None:
                return
            line_no = restart_at
            continue

        body = "".join(lines[start + 1 : close_at])
        language, file_path = _parse_info_string(info, default_language)
        if file_path is None:
            file_path = _declared_path_from_header(body)
        yield start, close_at, CodeBlock(language=language, body=body, index=index, file_path=file_path)
        index += 1
        line_no = close_at + 1


def iter_code_blocks(text: str, default_language: str = DEFAULT_LANGUAGE) -> Iterator[CodeBlock]:
    """Lazily yield code blocks in order; the iterator is single-pass."""

    for _, _, block in _scan(text or "", default_language):
        yield block


def extract_code_blocks(text: str, default_language: str = DEFAULT_LANGUAGE) -> Extraction:
    """Return every code block plus the reply with those regions removed."""

    source = text or ""
    lines = source.splitlines(keepends=True)
    blocks: list[CodeBlock] = []
    removed: set[int] = set()
    for start, end, block in _scan(source, default_language):
        blocks.append(block)
        removed.update(range(start, end + 1))

    prose = "".join(line for number, line in enumerate(lines) if number not in removed)
    prose = _BLANK_RUNS.sub("\n\n", prose).strip()
    return Extraction(blocks=tuple(blocks), prose=prose)
