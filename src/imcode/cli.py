"""Command line interface for ImCode."""

from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import Any

import yaml

from .artifacts.export import export_filename, export_project_json, export_zip, import_project_json, render_tree
from .chat.workspace import ChatTurnResult, ChatWorkspace
from .config import ConfigLoader, get_config_value
from .logging_utils import setup_logger

_LOGGER = logging.getLogger("imcode")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="imcode", description="Turn chat-generated code into a project tree")
    parser.add_argument("--data-dir", default=None, help="ImCode data directory (default ~/.imcode)")
    parser.add_argument("--provider", default=None, help="Provider name from the config (default: imcode.provider)")

    subparsers = parser.add_subparsers(dest="command")

    chat_parser = subparsers.add_parser("chat", help="Send one message to the model and apply its code")
    chat_parser.add_argument("message", help="Chat message")
    chat_parser.add_argument("--show-reply", action="store_true", help="Print the prose part of the reply")

    files_parser = subparsers.add_parser("files", help="Inspect and edit project files")
    files_sub = files_parser.add_subparsers(dest="files_command")
    files_sub.add_parser("list", help="List files")
    files_show = files_sub.add_parser("show", help="Print one file")
    files_show.add_argument("name", help="Path or name of the file")
    files_delete = files_sub.add_parser("delete", help="Delete a file")
    files_delete.add_argument("name", help="Path or name of the file")
    files_rename = files_sub.add_parser("rename", help="Move a file to a new path")
    files_rename.add_argument("name", help="Path or name of the file")
    files_rename.add_argument("new_path", help="New virtual path")

    project_parser = subparsers.add_parser("project", help="Project management")
    project_sub = project_parser.add_subparsers(dest="project_command")
    project_new = project_sub.add_parser("new", help="Start a new empty project")
    project_new.add_argument("name", help="Project name")
    project_sub.add_parser("show", help="Show the current project")
    project_sub.add_parser("tree", help="Print the folder structure")
    project_export = project_sub.add_parser("export", help="Export the project")
    project_export.add_argument("--zip", dest="zip_path", help="Write a ZIP archive to this path")
    project_export.add_argument("--json", dest="json_path", help="Write the project JSON to this path")
    project_import = project_sub.add_parser("import", help="Load a project JSON export")
    project_import.add_argument("path", help="Project JSON file")

    config_parser = subparsers.add_parser("config", help="Configuration")
    config_sub = config_parser.add_subparsers(dest="config_command")
    config_get = config_sub.add_parser("get", help="Read a config value")
    config_get.add_argument("key", help="Dotted key, e.g. artifacts.min_content_length")
    config_set = config_sub.add_parser("set", help="Write a value to the global config")
    config_set.add_argument("key", help="Dotted key")
    config_set.add_argument("value", help="Value (parsed as YAML)")
    config_sub.add_parser("show", help="Show the merged config")

    return parser


def _print_result(result: ChatTurnResult) -> None:
    for notice in result.notices:
        print(f"[{notice.level}] {notice.message}")
    for item in result.results:
        if item.entry is not None:
            print(f"{item.status}: {item.entry.path}")


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 0

    if args.data_dir:
        os.environ["IMCODE_HOME"] = str(Path(args.data_dir).expanduser())
    loader = ConfigLoader()
    setup_logger("imcode", loader.data_dir / "logs")

    try:
        if args.command == "config":
            return _handle_config(loader, args)
        overrides: dict[str, Any] = {"imcode": {"provider": args.provider}} if args.provider else {}
        workspace = ChatWorkspace.open(loader.resolve(overrides).effective)
        try:
            if args.command == "chat":
                return _handle_chat(workspace, args)
            if args.command == "files":
                return _handle_files(workspace, args)
            if args.command == "project":
                return _handle_project(workspace, args)
        finally:
            workspace.close()
    except Exception as exc:  # noqa: BLE001
        _LOGGER.error("Command failed: %s", exc, exc_info=True)
        print("An error occurred; see logs/imcode.log for details.", file=sys.stderr)
        return 1
    parser.print_help()
    return 0


def _handle_chat(workspace: ChatWorkspace, args: argparse.Namespace) -> int:
    result = workspace.handle_message(args.message)
    if args.show_reply and result.prose:
        print(result.prose)
        print()
    _print_result(result)
    if result.failure is not None and result.failure.code != "file_not_found":
        print(result.failure.message, file=sys.stderr)
    return 0 if result.ok else 2


def _handle_files(workspace: ChatWorkspace, args: argparse.Namespace) -> int:
    if args.files_command == "list":
        selected = workspace.store.selected_id
        for entry in workspace.store.entries:
            marker = "*" if entry.id == selected else " "
            print(f"{marker} {entry.path}  ({entry.kind}, {len(entry.content)} chars)")
        return 0
    entry = workspace.resolve(args.name)
    if entry is None:
        print(f"File '{args.name}' not found.", file=sys.stderr)
        return 2
    if args.files_command == "show":
        print(entry.content)
        return 0
    if args.files_command == "delete":
        workspace.store.delete(entry.id)
        print(f"Deleted {entry.path}")
        return 0
    if args.files_command == "rename":
        result = workspace.store.rename(entry.id, args.new_path)
        print(f"{entry.path} -> {result.entry.path if result.entry else entry.path}")
        return 0 if result.changed else 2
    raise ValueError("Specify a files command")


def _handle_project(workspace: ChatWorkspace, args: argparse.Namespace) -> int:
    project = workspace.store.project
    if args.project_command == "new":
        created = workspace.new_project(args.name)
        print(f"Created project {created.name} ({created.id})")
        return 0
    if args.project_command == "show":
        print(f"Project: {project.name}")
        print(f"ID: {project.id}")
        print(f"Files: {len(workspace.store.entries)}")
        print(f"Created: {project.created_at}")
        print(f"Updated: {project.updated_at}")
        return 0
    if args.project_command == "tree":
        print(render_tree((entry.path for entry in workspace.store.entries), root_name=project.name))
        return 0
    if args.project_command == "export":
        snapshot = workspace.store.snapshot()
        if not args.zip_path and not args.json_path:
            args.json_path = export_filename(snapshot)
        if args.zip_path:
            print(f"Wrote {export_zip(snapshot, Path(args.zip_path).expanduser())}")
        if args.json_path:
            target = Path(args.json_path).expanduser()
            target.write_text(export_project_json(snapshot), encoding="utf-8")
            print(f"Wrote {target}")
        return 0
    if args.project_command == "import":
        imported = import_project_json(Path(args.path).expanduser().read_text(encoding="utf-8"))
        workspace.load_project(imported)
        print(f"Imported {imported.name} ({len(imported.files)} files)")
        return 0
    raise ValueError("Specify a project command")


def _handle_config(loader: ConfigLoader, args: argparse.Namespace) -> int:
    if args.config_command == "get":
        print(get_config_value(loader.resolve().effective, args.key))
        return 0
    if args.config_command == "set":
        try:
            parsed_value = yaml.safe_load(args.value)
        except yaml.YAMLError as exc:
            raise ValueError("Invalid config value") from exc
        loader.set_global_value(args.key, parsed_value)
        print("Config updated")
        return 0
    if args.config_command == "show":
        print(yaml.safe_dump(loader.resolve().effective, allow_unicode=True, sort_keys=False))
        return 0
    raise ValueError("Specify a config command")


if __name__ == "__main__":
    sys.exit(main())
