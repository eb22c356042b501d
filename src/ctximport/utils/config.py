"""Global configuration and per-source settings resolution.

Settings for a source come from three layers, later ones winning:
the global config file, environment variables, explicit overrides.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Mapping

CONFIG_FILE = "config.json"

# Dotted key -> expected type; anything else is rejected by `config set`
VALID_KEYS: dict[str, type] = {
    "jira.base_url": str,
    "jira.username": str,
    "jira.api_token": str,
    "jira.max_results": int,
    "jira.timeout": float,
    "git.repo_url": str,
    "git.default_branch": str,
    "git.token": str,
    "git.timeout": float,
    "file.max_file_size": int,
    "text.max_length": int,
    "text.chunk_size": int,
    "email.max_messages": int,
    "email.process_threads": bool,
    "email.include_attachments": bool,
}

SECRET_KEYS = {"jira.api_token", "git.token"}

ENV_VARS: dict[str, dict[str, str]] = {
    "jira": {
        "JIRA_BASE_URL": "base_url",
        "JIRA_USERNAME": "username",
        "JIRA_API_TOKEN": "api_token",
    },
    "git": {
        "REPO_URL": "repo_url",
        "DEFAULT_BRANCH": "default_branch",
        "GITHUB_TOKEN": "token",
    },
}


def global_config_dir() -> Path:
    config = Path.home() / ".config" / "context-import"
    config.mkdir(parents=True, exist_ok=True)
    return config


def load_global_config() -> dict:
    path = global_config_dir() / CONFIG_FILE
    if path.exists():
        return json.loads(path.read_text())
    return {}


def save_global_config(config: dict) -> None:
    path = global_config_dir() / CONFIG_FILE
    path.write_text(json.dumps(config, indent=2))


def parse_value(key: str, raw: str) -> Any:
    """Convert a CLI string to the type registered for ``key``. Raises ValueError."""
    kind = VALID_KEYS[key]
    if kind is bool:
        lowered = raw.strip().lower()
        if lowered in ("true", "1", "yes", "on"):
            return True
        if lowered in ("false", "0", "no", "off"):
            return False
        raise ValueError(f"expected true or false, got {raw!r}")
    return kind(raw)


def get_key(config: Mapping[str, Any], key: str) -> Any:
    section, _, name = key.partition(".")
    return (config.get(section) or {}).get(name)


def set_key(config: dict, key: str, value: Any) -> dict:
    section, _, name = key.partition(".")
    config.setdefault(section, {})[name] = value
    return config


def flatten(config: Mapping[str, Any]) -> dict[str, Any]:
    """``{"jira": {"base_url": x}}`` -> ``{"jira.base_url": x}``."""
    flat = {}
    for section, values in config.items():
        if isinstance(values, dict):
            for name, value in values.items():
                flat[f"{section}.{name}"] = value
        else:
            flat[section] = values
    return flat


def resolve_source_settings(
    source: str,
    overrides: Mapping[str, Any] | None = None,
    env: Mapping[str, str] | None = None,
) -> dict[str, Any]:
    """Merge config file, environment and explicit overrides for ``source``.

    Overrides whose value is None are ignored so unset CLI options do not
    mask lower layers.
    """
    env = os.environ if env is None else env
    settings = dict(load_global_config().get(source) or {})
    for var, name in ENV_VARS.get(source, {}).items():
        if env.get(var):
            settings[name] = env[var]
    for name, value in (overrides or {}).items():
        if value is not None:
            settings[name] = value
    return settings
