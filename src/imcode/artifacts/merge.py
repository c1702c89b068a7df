"""Content update strategies: replace, append, prepend and import-aware merge.

``merge`` is textual and line-granular. It knows which lines are imports for a
given file kind and nothing else; it does not parse the code.
"""

from __future__ import annotations

import re
from typing import Callable

MODE_REPLACE = "replace"
MODE_APPEND = "append"
MODE_PREPEND = "prepend"
MODE_MERGE = "merge"

MERGE_MODES = (MODE_APPEND, MODE_PREPEND, MODE_MERGE)
UPDATE_MODES = (MODE_REPLACE, *MERGE_MODES)

ImportPredicate = Callable[[str], bool]

_MOVE_IMPORT = re.compile(r"^use\s+[\w:{}, ]+;?$")
_SCRIPT_IMPORT = re.compile(r"^(?:import\s.+|import\(.+\);?|(?:const|let|var)\s+.+=\s*require\(.+\);?|require\(.+\);?)$")
_PYTHON_IMPORT = re.compile(r"^(?:import\s+[\w., ]+|from\s+[\w.]+\s+import\s+.+)$")


def is_move_import(line: str) -> bool:
    return bool(_MOVE_IMPORT.match(line.strip()))


def is_script_import(line: str) -> bool:
    return bool(_SCRIPT_IMPORT.match(line.strip()))


def is_python_import(line: str) -> bool:
    return bool(_PYTHON_IMPORT.match(line.strip()))


def is_any_import(line: str) -> bool:
    return is_move_import(line) or is_script_import(line) or is_python_import(line)


IMPORT_PREDICATES: dict[str, ImportPredicate] = {
    "contract": is_move_import,
    "script": is_script_import,
}


def register_import_predicate(kind: str, predicate: ImportPredicate) -> None:
    IMPORT_PREDICATES[kind] = predicate


def import_predicate_for(kind: str | None) -> ImportPredicate:
    return IMPORT_PREDICATES.get(kind or "", is_any_import)


def _trim_blank_edges(lines: list[str]) -> list[str]:
    start = 0
    end = len(lines)
    while start < end and not lines[start].strip():
        start += 1
    while end > start and not lines[end - 1].strip():
        end -= 1
    return lines[start:end]


def split_imports(content: str, predicate: ImportPredicate) -> tuple[list[str], list[str]]:
    imports: list[str] = []
    rest: list[str] = []
    for line in content.splitlines():
        (imports if predicate(line) else rest).append(line)
    return imports, _trim_blank_edges(rest)


def merge_imports(old_content: str, new_content: str, kind: str | None = None) -> str:
    predicate = import_predicate_for(kind)
    old_imports, old_rest = split_imports(old_content, predicate)
    new_imports, new_rest = split_imports(new_content, predicate)

    merged: list[str] = []
    seen: set[str] = set()
    for line in [*old_imports, *new_imports]:
        key = line.strip()
        if key in seen:
            continue
        seen.add(key)
        merged.append(key)

    sections = ["\n".join(merged), "\n".join(old_rest), "\n".join(new_rest)]
    return "\n\n".join(section for section in sections if section) + "\n"


def merge_contents(old_content: str, new_content: str, mode: str, kind: str | None = None) -> str:
    if mode == MODE_REPLACE:
        return new_content
    if mode == MODE_APPEND:
        return f"{old_content.rstrip()}\n\n{new_content.lstrip()}"
    if mode == MODE_PREPEND:
        return f"{new_content.rstrip()}\n\n{old_content.lstrip()}"
    if mode == MODE_MERGE:
        return merge_imports(old_content, new_content, kind)
    raise ValueError(f"Unsupported update mode: {mode}")


def restates_file(old_content: str, new_content: str, kind: str | None = None) -> bool:
    """Return True when ``new_content`` repeats the first non-import line of ``old_content``.

    A reply carrying the whole updated file repeats its header
    (``module a::Token {``); a fragment does not. Only fragments are merged.
    """

    _, old_rest = split_imports(old_content, import_predicate_for(kind))
    if not old_rest:
        return False
    header = old_rest[0].strip()
    return any(line.strip() == header for line in new_content.splitlines())
