"""Turn model replies into a persistent virtual project tree."""

from .classifier import classify, resolve_kind, suggest_file_name
from .commands import EditCommand, infer_merge_mode, interpret_message
from .export import export_project_json, export_zip, import_project_json, render_tree
from .extractor import CodeBlock, Extraction, extract_code_blocks, iter_code_blocks
from .merge import merge_contents, register_import_predicate
from .persistence import (
    DebouncedFlusher,
    JsonFileKeyValueStore,
    MemoryKeyValueStore,
    PersistedState,
    ProjectPersistence,
)
from .registry import FileRegistry
from .store import ArtifactStore, FileEntry, ProjectEnvelope, StoreResult
from .validators import run_validators, validate_content

__all__ = [
    "ArtifactStore",
    "CodeBlock",
    "DebouncedFlusher",
    "EditCommand",
    "Extraction",
    "FileEntry",
    "FileRegistry",
    "JsonFileKeyValueStore",
    "MemoryKeyValueStore",
    "PersistedState",
    "ProjectEnvelope",
    "ProjectPersistence",
    "StoreResult",
    "classify",
    "export_project_json",
    "export_zip",
    "extract_code_blocks",
    "import_project_json",
    "infer_merge_mode",
    "interpret_message",
    "iter_code_blocks",
    "merge_contents",
    "register_import_predicate",
    "render_tree",
    "resolve_kind",
    "run_validators",
    "suggest_file_name",
    "validate_content",
]
