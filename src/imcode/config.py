"""Configuration helpers for ImCode."""

from __future__ import annotations

import os
from copy import deepcopy
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

import yaml

from .fs.atomic import atomic_write_text

DEFAULT_CONFIG: dict[str, Any] = {
    "imcode": {
        "data_dir": None,
        "provider": "openai",
    },
    "artifacts": {
        "min_content_length": 20,
        "default_language": "move",
        "update_mode": "replace",
    },
    "persistence": {
        "debounce_s": 1.0,
        "keys": {
            "project": "imcode.current_project",
            "files": "imcode.files",
            "selected": "imcode.selected_file",
            "chat": "imcode.chat_history",
        },
    },
    "chat": {
        "context_turns": 4,
        "history_debounce_s": 2.0,
        "max_history": 200,
    },
    "providers": {
        "openai": {
            "type": "openai_compatible",
            "base_url": "https://api.openai.com/v1",
            "model": "gpt-4o-mini",
            "api_key_env": "OPENAI_API_KEY",
            "temperature": 0.7,
            "max_tokens": 3000,
            "timeout_s": 60,
        },
        "mock": {
            "type": "mock",
            "model": "mock-model",
            "response": "",
        },
    },
}


def deep_merge(base: dict[str, Any], updates: Mapping[str, Any]) -> dict[str, Any]:
    merged = deepcopy(base)
    for key, value in updates.items():
        if isinstance(value, Mapping) and isinstance(merged.get(key), dict):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def read_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    try:
        return yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except (OSError, yaml.YAMLError) as exc:
        raise RuntimeError(f"Failed to read config file: {path}") from exc


def write_yaml(path: Path, data: dict[str, Any]) -> None:
    try:
        atomic_write_text(path, yaml.safe_dump(data, allow_unicode=True, sort_keys=False))
    except OSError as exc:
        raise RuntimeError(f"Failed to write config file: {path}") from exc


def set_config_value(config: dict[str, Any], key_path: str, value: Any) -> dict[str, Any]:
    parts = key_path.split(".")
    cursor = config
    for part in parts[:-1]:
        cursor = cursor.setdefault(part, {})
    cursor[parts[-1]] = value
    return config


def get_config_value(config: Mapping[str, Any], key_path: str) -> Any:
    cursor: Any = config
    for part in key_path.split("."):
        if not isinstance(cursor, Mapping) or part not in cursor:
            raise KeyError(f"Unknown config key: {key_path}")
        cursor = cursor[part]
    return cursor


def _assign_sources(value: Any, source: str) -> Any:
    if isinstance(value, dict):
        return {key: _assign_sources(val, source) for key, val in value.items()}
    return source


def _merge_with_sources(
    base: dict[str, Any],
    sources: dict[str, Any],
    updates: Mapping[str, Any],
    source: str,
) -> None:
    for key, value in updates.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict) and isinstance(sources.get(key), dict):
            _merge_with_sources(base[key], sources[key], value, source)
        else:
            base[key] = deepcopy(value)
            sources[key] = _assign_sources(value, source)


@dataclass
class ConfigResolution:
    effective: dict[str, Any]
    sources: dict[str, Any]

    def get(self, key_path: str, default: Any = None) -> Any:
        try:
            return get_config_value(self.effective, key_path)
        except KeyError:
            return default


class ConfigLoader:
    """Layer defaults, the global ``config.yaml`` and CLI overrides."""

    def __init__(self, data_dir: Path | None = None) -> None:
        self.data_dir = data_dir or resolve_data_dir()

    def load_global(self) -> dict[str, Any]:
        return read_yaml(self.global_config_path())

    def resolve(self, cli_overrides: Mapping[str, Any] | None = None) -> ConfigResolution:
        effective = deepcopy(DEFAULT_CONFIG)
        sources = _assign_sources(DEFAULT_CONFIG, "default")

        _merge_with_sources(effective, sources, self.load_global(), "global")
        if cli_overrides:
            _merge_with_sources(effective, sources, cli_overrides, "cli")
        effective["imcode"]["data_dir"] = str(self.data_dir)

        return ConfigResolution(effective=effective, sources=sources)

    def set_global_value(self, key_path: str, value: Any) -> dict[str, Any]:
        config = self.load_global()
        set_config_value(config, key_path, value)
        write_yaml(self.global_config_path(), config)
        return config

    def global_config_path(self) -> Path:
        return self.data_dir / "config.yaml"


def resolve_data_dir() -> Path:
    env_path = os.environ.get("IMCODE_HOME")
    if env_path:
        return Path(env_path).expanduser()
    return Path("~/.imcode").expanduser()


def configured_data_dir(config: Mapping[str, Any] | None) -> Path | None:
    """Return ``imcode.data_dir`` from ``config``, or ``None`` when it is unset."""

    section = (config or {}).get("imcode") if isinstance(config, Mapping) else None
    value = (section or {}).get("data_dir")
    return Path(str(value)).expanduser() if value else None


def artifact_settings(config: Mapping[str, Any] | None) -> dict[str, Any]:
    """Return the ``artifacts`` section merged over its defaults."""

    section = (config or {}).get("artifacts") if isinstance(config, Mapping) else None
    return deep_merge(DEFAULT_CONFIG["artifacts"], section or {})
