"""Project export helpers: folder tree listing, ZIP archive and JSON transfer."""

from __future__ import annotations

import json
import zipfile
from pathlib import Path
from typing import Iterable

from imcode.errors import ProjectFormatError

from .store import ProjectEnvelope, new_id

IMPORTED_SUFFIX = " (Imported)"


def render_tree(paths: Iterable[str], root_name: str | None = None) -> str:
    """Render virtual paths as an indented folder listing, folders first."""

    tree: dict[str, dict] = {}
    for path in paths:
        cursor = tree
        for part in [segment for segment in path.split("/") if segment]:
            cursor = cursor.setdefault(part, {})

    lines: list[str] = []
    if root_name:
        lines.append(f"{root_name}/")
    base_level = 1 if root_name else 0

    def walk(node: dict[str, dict], level: int) -> None:
        folders = sorted((name for name, child in node.items() if child), key=str.lower)
        files = sorted((name for name, child in node.items() if not child), key=str.lower)
        for name in folders:
            lines.append(f"{'  ' * level}{name}/")
            walk(node[name], level + 1)
        for name in files:
            lines.append(f"{'  ' * level}{name}")

    walk(tree, base_level)
    return "\n".join(lines)


def export_zip(project: ProjectEnvelope, target: Path) -> Path:
    target.parent.mkdir(parents=True, exist_ok=True)
    with zipfile.ZipFile(target, "w", compression=zipfile.ZIP_DEFLATED) as archive:
        for entry in project.files:
            archive.writestr(entry.path, entry.content)
    return target


def export_project_json(project: ProjectEnvelope) -> str:
    return json.dumps(project.to_dict(), ensure_ascii=False, indent=2)


def import_project_json(text: str) -> ProjectEnvelope:
    """Parse an exported project; the copy gets a new id and an ``(Imported)`` name."""

    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ProjectFormatError(f"Project file is not valid JSON: {exc}") from exc
    if not isinstance(payload, dict) or not str(payload.get("name") or "").strip():
        raise ProjectFormatError("Project file must be an object with a name")
    project = ProjectEnvelope.from_dict(payload)
    project.id = new_id("project_")
    project.name = f"{project.name}{IMPORTED_SUFFIX}"
    return project


def export_filename(project: ProjectEnvelope, suffix: str = "_project.json") -> str:
    return "_".join(project.name.split()) + suffix
