"""Configuration management for lskysync."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator

from lskysync.constants import (
    CONFIG_FILENAME,
    DEFAULT_ATTACHMENTS_FOLDER,
    DEFAULT_CAPITALIZED_ATTACHMENTS_FOLDER,
    DEFAULT_CLEANUP_PREVIEW_LIMIT,
    DEFAULT_DELETE_DELAY,
    DEFAULT_HTTP_TIMEOUT,
    DEFAULT_JSON_INDENT,
    DEFAULT_LIST_PAGE_DELAY,
    DEFAULT_LOG_DIR,
    DEFAULT_LOG_LEVEL,
    DEFAULT_LOG_RETENTION,
    DEFAULT_LOG_ROTATION,
    DEFAULT_RESOLVER_STRATEGIES,
    DEFAULT_SERVER_URL,
    DEFAULT_STRATEGY_ID,
    DEFAULT_VAULT_DIR,
)

ResolverStrategy = Literal[
    "primary",
    "strip_attachments",
    "as_is",
    "attachments_prefix",
    "note_folder",
    "capitalized_attachments",
    "same_name_folder",
]


class EnvVarNotFoundError(ValueError):
    """Raised when an environment variable referenced by env: syntax is not found."""

    def __init__(self, var_name: str) -> None:
        self.var_name = var_name
        super().__init__(f"Environment variable not found: {var_name}")


def resolve_env_value(value: str, strict: bool = True) -> str | None:
    """Resolve env:VAR_NAME syntax to actual environment variable value.

    Args:
        value: The value to resolve. If starts with "env:", looks up environment variable.
        strict: If True, raises EnvVarNotFoundError when variable not found.
                If False, returns None when variable not found.

    Returns:
        The resolved value, or None if env var not found and strict=False.

    Raises:
        EnvVarNotFoundError: If strict=True and environment variable not found.
    """
    if isinstance(value, str) and value.startswith("env:"):
        env_var = value[4:]
        env_value = os.environ.get(env_var)
        if env_value is None:
            if strict:
                raise EnvVarNotFoundError(env_var)
            return None
        return env_value
    return value


class ServerConfig(BaseModel):
    """Image host connection and credentials.

    The client updates ``token`` in place after authenticating; callers
    persist it so later sessions reuse it.
    """

    url: str = DEFAULT_SERVER_URL
    email: str = ""
    password: str = ""  # Supports env: syntax
    token: str | None = None
    strategy_id: int = DEFAULT_STRATEGY_ID
    timeout: float = Field(default=DEFAULT_HTTP_TIMEOUT, gt=0)

    @field_validator("url", "email")
    @classmethod
    def _strip(cls, value: str) -> str:
        return value.strip()

    @property
    def base_url(self) -> str:
        """Server URL without trailing slash, used to build endpoint URLs."""
        return self.url.rstrip("/")

    def get_resolved_password(self, strict: bool = True) -> str | None:
        """Get the password with env: syntax resolved.

        Raises:
            EnvVarNotFoundError: If strict=True and environment variable not found.
        """
        return resolve_env_value(self.password, strict=strict)


class VaultConfig(BaseModel):
    """Note collection location."""

    dir: str = DEFAULT_VAULT_DIR
    skip_hidden: bool = True  # Ignore .obsidian, .trash, .git


class ResolverConfig(BaseModel):
    """Local path resolution policy."""

    strategies: list[ResolverStrategy] = Field(
        default_factory=lambda: list(DEFAULT_RESOLVER_STRATEGIES)
    )
    attachments_folder: str = DEFAULT_ATTACHMENTS_FOLDER
    capitalized_attachments_folder: str = DEFAULT_CAPITALIZED_ATTACHMENTS_FOLDER


class PacingConfig(BaseModel):
    """Delays between sequential requests to the image host."""

    list_page_delay: float = Field(default=DEFAULT_LIST_PAGE_DELAY, ge=0)
    delete_delay: float = Field(default=DEFAULT_DELETE_DELAY, ge=0)


class CleanupConfig(BaseModel):
    """Unused image cleanup configuration."""

    preview_limit: int = Field(default=DEFAULT_CLEANUP_PREVIEW_LIMIT, ge=0)
    confirm_start: bool = False  # Ask before scanning, not only before deleting


class LogConfig(BaseModel):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = DEFAULT_LOG_LEVEL
    dir: str | None = DEFAULT_LOG_DIR
    rotation: str = DEFAULT_LOG_ROTATION
    retention: str = DEFAULT_LOG_RETENTION


class LskySyncConfig(BaseModel):
    """Main configuration model."""

    server: ServerConfig = Field(default_factory=ServerConfig)
    vault: VaultConfig = Field(default_factory=VaultConfig)
    resolver: ResolverConfig = Field(default_factory=ResolverConfig)
    pacing: PacingConfig = Field(default_factory=PacingConfig)
    cleanup: CleanupConfig = Field(default_factory=CleanupConfig)
    log: LogConfig = Field(default_factory=LogConfig)


def _set_nested_value(data: dict[str, Any], key_path: str, value: Any) -> None:
    """Set a nested value in a dict using dot-separated key path.

    Creates intermediate dicts if they don't exist.
    """
    parts = key_path.split(".")
    current = data
    for part in parts[:-1]:
        if part not in current or not isinstance(current[part], dict):
            current[part] = {}
        current = current[part]
    current[parts[-1]] = value


class ConfigManager:
    """Configuration manager for loading and saving configs."""

    CONFIG_FILENAME = CONFIG_FILENAME
    DEFAULT_USER_CONFIG_DIR = Path.home() / ".lskysync"

    def __init__(self) -> None:
        self._config: LskySyncConfig | None = None
        self._config_path: Path | None = None
        self._raw_data: dict[str, Any] = {}  # Preserve original JSON structure
        self._modified_keys: set[str] = set()  # Track modified key paths

    @property
    def config(self) -> LskySyncConfig:
        """Get current configuration, loading if necessary."""
        if self._config is None:
            self._config = self.load()
        return self._config

    @property
    def config_path(self) -> Path | None:
        """Get the path of the loaded configuration file."""
        return self._config_path

    def load(
        self,
        config_path: Path | str | None = None,
        env_override: bool = True,
    ) -> LskySyncConfig:
        """
        Load configuration from file with fallback chain.

        Priority (highest to lowest):
        1. Explicit config_path parameter
        2. LSKYSYNC_CONFIG environment variable
        3. ./lskysync.json (current directory)
        4. ~/.lskysync/config.json (user directory)
        5. Default values
        """
        config_data: dict[str, Any] = {}

        resolved_path = self._resolve_config_path(config_path, env_override)

        if resolved_path and resolved_path.exists():
            config_data = self._load_json(resolved_path)
            self._config_path = resolved_path

        self._raw_data = json.loads(json.dumps(config_data))
        self._modified_keys.clear()

        self._config = LskySyncConfig.model_validate(config_data)
        return self._config

    def _resolve_config_path(
        self,
        config_path: Path | str | None,
        env_override: bool,
    ) -> Path | None:
        """Resolve configuration file path based on priority."""
        if config_path:
            return Path(config_path)

        if env_override:
            env_path = os.environ.get("LSKYSYNC_CONFIG")
            if env_path:
                return Path(env_path)

        cwd_config = Path.cwd() / self.CONFIG_FILENAME
        if cwd_config.exists():
            return cwd_config

        user_config = self.DEFAULT_USER_CONFIG_DIR / "config.json"
        if user_config.exists():
            return user_config

        return None

    def _load_json(self, path: Path) -> dict[str, Any]:
        """Load JSON configuration file."""
        with open(path, encoding="utf-8") as f:
            return json.load(f)

    def save(self, path: Path | str | None = None, full_dump: bool = False) -> Path:
        """Save current configuration to file.

        Args:
            path: Optional path to save to. If None, uses loaded config path.
            full_dump: If True, dumps entire config including defaults.
                       If False (default), only updates modified keys in original JSON.
        """
        if self._config is None:
            self._config = LskySyncConfig()

        save_path = Path(path) if path else self._config_path
        if save_path is None:
            save_path = self.DEFAULT_USER_CONFIG_DIR / "config.json"
        elif save_path.is_dir():
            save_path = save_path / self.CONFIG_FILENAME

        save_path.parent.mkdir(parents=True, exist_ok=True)

        if full_dump:
            output_data = self._config.model_dump(mode="json")
        else:
            output_data = json.loads(json.dumps(self._raw_data))
            for key in sorted(self._modified_keys):
                value = self.get(key)
                if isinstance(value, BaseModel):
                    value = value.model_dump(mode="json")
                _set_nested_value(output_data, key, value)

        with open(save_path, "w", encoding="utf-8") as f:
            json.dump(output_data, f, indent=DEFAULT_JSON_INDENT, ensure_ascii=False)
            f.write("\n")

        self._config_path = save_path
        self._raw_data = output_data
        self._modified_keys.clear()
        return save_path

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get a configuration value by dot-separated key path.

        Example: manager.get("server.url")
        """
        parts = key.split(".")
        value: Any = self.config

        for part in parts:
            if isinstance(value, BaseModel):
                value = getattr(value, part, None)
            elif isinstance(value, dict):
                value = value.get(part)
            else:
                return default

            if value is None:
                return default

        return value

    def set(self, key: str, value: Any) -> None:
        """
        Set a configuration value by dot-separated key path.

        Example: manager.set("server.token", "abc")

        Raises:
            KeyError: If the key path does not name a configuration field
        """
        parts = key.split(".")
        parent: Any = self.config
        for part in parts[:-1]:
            if isinstance(parent, BaseModel) and part in type(parent).model_fields:
                parent = getattr(parent, part)
            elif isinstance(parent, dict) and part in parent:
                parent = parent[part]
            else:
                raise KeyError(key)

        final_key = parts[-1]
        if isinstance(parent, BaseModel):
            if final_key not in type(parent).model_fields:
                raise KeyError(key)
            setattr(parent, final_key, value)
        elif isinstance(parent, dict):
            parent[final_key] = value
        else:
            raise KeyError(key)

        self._modified_keys.add(key)
