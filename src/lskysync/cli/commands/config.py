"""Configuration management CLI commands.

- config list: Show current effective configuration
- config path: Show configuration file lookup order
- config get: Get a configuration value
- config set: Set a configuration value
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import click
from pydantic import BaseModel, ValidationError
from rich.syntax import Syntax

from lskysync.cli import ui
from lskysync.cli.console import get_console
from lskysync.config import ConfigManager, LskySyncConfig

# Never echoed back in full
SECRET_KEYS = ("server.password", "server.token")


def _manager(ctx: click.Context) -> ConfigManager:
    """The root command's manager if present, else a fresh one."""
    obj = ctx.find_object(dict) or {}
    manager = obj.get("manager")
    if manager is None:
        manager = ConfigManager()
        manager.load()
    return manager


def _mask(value: Any) -> Any:
    if isinstance(value, str) and value and not value.startswith("env:"):
        return value[:4] + "****" if len(value) > 8 else "****"
    return value


def _masked_dump(cfg: LskySyncConfig) -> dict[str, Any]:
    data = cfg.model_dump(mode="json")
    for key in SECRET_KEYS:
        section, field = key.split(".")
        data[section][field] = _mask(data[section][field])
    return data


def _parse_value(value: str) -> Any:
    """Parse a command-line value: JSON literal, else plain string."""
    if value.lower() in ("true", "false"):
        return value.lower() == "true"
    if value.lower() in ("null", "none"):
        return None
    try:
        return json.loads(value)
    except json.JSONDecodeError:
        return value


@click.group()
def config() -> None:
    """Configuration management commands."""


@config.command("list")
@click.pass_context
def config_list(ctx: click.Context) -> None:
    """Show current effective configuration."""
    manager = _manager(ctx)
    config_json = json.dumps(_masked_dump(manager.config), indent=2, ensure_ascii=False)
    get_console().print(Syntax(config_json, "json", theme="monokai", line_numbers=False))


@config.command("path")
@click.pass_context
def config_path_cmd(ctx: click.Context) -> None:
    """Show configuration file lookup order."""
    manager = _manager(ctx)
    console = get_console()
    ui.title("Configuration sources")

    loaded = manager.config_path.resolve() if manager.config_path else None
    local_config = Path.cwd() / ConfigManager.CONFIG_FILENAME
    user_config = ConfigManager.DEFAULT_USER_CONFIG_DIR / "config.json"

    rows = [
        ("--config / LSKYSYNC_CONFIG", "highest"),
        (f"./{ConfigManager.CONFIG_FILENAME}", local_config),
        ("~/.lskysync/config.json", user_config),
        ("defaults", "lowest"),
    ]
    width = max(len(label) for label, _ in rows)
    for i, (label, source) in enumerate(rows, start=1):
        if isinstance(source, Path):
            note = "[green]loaded[/]" if loaded and source.resolve() == loaded else ""
        else:
            note = f"[dim]{source}[/]"
        console.print(f"  {i}. {label.ljust(width)} [dim]{ui.MARK_LINE}[/] {note}")
    console.print()

    if manager.config_path:
        ui.success(f"Currently using: {manager.config_path}")
    else:
        ui.warning("Using default configuration (no config file found)")


@config.command("get")
@click.argument("key")
@click.pass_context
def config_get(ctx: click.Context, key: str) -> None:
    """Get a configuration value."""
    manager = _manager(ctx)
    value = manager.get(key)
    if value is None:
        ui.warning(f"Key not found or unset: {key}")
        raise SystemExit(1)

    if isinstance(value, BaseModel):
        value = value.model_dump(mode="json")
    if key in SECRET_KEYS:
        value = _mask(value)

    if isinstance(value, (dict, list)):
        output = json.dumps(value, indent=2, ensure_ascii=False)
        get_console().print(Syntax(output, "json", theme="monokai", line_numbers=False))
    else:
        get_console().print(str(value))


@config.command("set")
@click.argument("key")
@click.argument("value")
@click.pass_context
def config_set(ctx: click.Context, key: str, value: str) -> None:
    """Set a configuration value (saved to the loaded config file)."""
    manager = _manager(ctx)
    parsed_value = _parse_value(value)
    old_config = manager.config.model_copy(deep=True)

    try:
        manager.set(key, parsed_value)
    except KeyError:
        ui.error(f"Unknown configuration key: {key}")
        raise SystemExit(1)

    # Attribute assignment is not validated; validate the whole model instead
    try:
        LskySyncConfig.model_validate(manager.config.model_dump())
    except ValidationError as ve:
        manager._config = old_config
        ui.error(f"Invalid value for '{key}'")
        for err in ve.errors():
            loc = ".".join(str(x) for x in err["loc"])
            ui.info(f"{loc}: {err['msg']}")
        raise SystemExit(1)

    path = manager.save()
    shown = _mask(parsed_value) if key in SECRET_KEYS else parsed_value
    ui.success(f"Set {key} = {shown} ({path})")


__all__ = ["config"]
