"""Config subcommands: get, set, list for global context-import settings."""

from __future__ import annotations

from typing import Optional

import typer

from ctximport.cli._shared import FORMAT_OPTION
from ctximport.utils.config import (
    SECRET_KEYS,
    VALID_KEYS,
    flatten,
    get_key,
    load_global_config,
    parse_value,
    save_global_config,
    set_key,
)
from ctximport.utils.output import error, info, output, success

config_app = typer.Typer(no_args_is_help=True)


def _check_key(key: str) -> None:
    if key not in VALID_KEYS:
        error(f"Unknown key: {key}. Valid keys: {', '.join(sorted(VALID_KEYS))}")
        raise typer.Exit(1)


def _display(key: str, value: object) -> object:
    if key in SECRET_KEYS and value:
        return "********"
    return value


@config_app.command("get")
def config_get(
    key: str = typer.Argument(..., help="Dotted key, e.g. jira.base_url"),
    fmt: Optional[str] = FORMAT_OPTION,
) -> None:
    """Get a configuration value."""
    _check_key(key)
    value = get_key(load_global_config(), key)
    if fmt == "json":
        output({"key": key, "value": _display(key, value)}, fmt="json")
    elif value is None:
        info(f"{key}: (not set)")
    else:
        info(f"{key}: {_display(key, value)}")


@config_app.command("set")
def config_set(
    key: str = typer.Argument(..., help="Dotted key, e.g. jira.base_url"),
    value: str = typer.Argument(..., help="Value to set"),
    fmt: Optional[str] = FORMAT_OPTION,
) -> None:
    """Set a configuration value."""
    _check_key(key)
    try:
        parsed = parse_value(key, value)
    except ValueError as e:
        error(f"Invalid value for {key}: {e}")
        raise typer.Exit(1)

    config = set_key(load_global_config(), key, parsed)
    save_global_config(config)

    if fmt == "json":
        output({"key": key, "value": _display(key, parsed)}, fmt="json")
    else:
        success(f"{key} = {_display(key, parsed)}")


@config_app.command("list")
def config_list(
    fmt: Optional[str] = FORMAT_OPTION,
) -> None:
    """List all configuration values."""
    flat = {k: _display(k, v) for k, v in flatten(load_global_config()).items()}
    if fmt == "json":
        output(flat, fmt="json")
    elif flat:
        for k, v in sorted(flat.items()):
            info(f"{k}: {v}")
    else:
        info("No configuration set")
