"""Traverse configuration with Pydantic Settings.

Precedence, highest first: ``TRAVERSE_*`` environment variables, the JSON
config file, built-in defaults.
"""

from __future__ import annotations

import json
import logging
import os
import sys
from functools import lru_cache
from pathlib import Path
from typing import Any, Literal

from pydantic import Field, field_validator
from pydantic.fields import FieldInfo
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

logger = logging.getLogger("traverse-mcp")

APP_NAME = "traverse"
CONFIG_FILE_NAME = "config.json"


def _macos_app_support() -> Path:
    return Path.home() / "Library" / "Application Support" / APP_NAME


def get_config_dir() -> Path:
    """Directory holding ``config.json``."""
    if sys.platform == "darwin":
        return _macos_app_support()
    xdg = os.environ.get("XDG_CONFIG_HOME") or str(Path.home() / ".config")
    return Path(xdg) / APP_NAME


def get_default_data_dir() -> Path:
    """Directory holding the SQLite database when none is configured."""
    if sys.platform == "darwin":
        return _macos_app_support()
    xdg = os.environ.get("XDG_DATA_HOME") or str(Path.home() / ".local" / "share")
    return Path(xdg) / APP_NAME


class JsonConfigFileSource(PydanticBaseSettingsSource):
    """Settings source reading the user's ``config.json``.

    The file uses camelCase keys; they are mapped onto field names here.
    A missing or unreadable file contributes nothing.
    """

    _KEYS = {
        "shareServerUrl": "share_url",
        "port": "port",
        "mode": "mode",
        "host": "host",
        "dataDir": "data_dir",
        "logLevel": "log_level",
    }

    def __init__(self, settings_cls: type[BaseSettings], path: Path) -> None:
        super().__init__(settings_cls)
        self.path = path
        self._data = self._read()

    def _read(self) -> dict[str, Any]:
        if not self.path.is_file():
            return {}
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning("Ignoring unreadable config file %s: %s", self.path, exc)
            return {}
        if not isinstance(raw, dict):
            logger.warning("Ignoring config file %s: top level is not an object", self.path)
            return {}
        return {self._KEYS[k]: v for k, v in raw.items() if k in self._KEYS}

    def get_field_value(self, field: FieldInfo, field_name: str) -> tuple[Any, str, bool]:
        return self._data.get(field_name), field_name, False

    def __call__(self) -> dict[str, Any]:
        return dict(self._data)


class TraverseSettings(BaseSettings):
    """Process-wide settings."""

    model_config = SettingsConfigDict(env_prefix="TRAVERSE_", extra="ignore")

    share_url: str = Field(
        default="https://traverse.dunkirk.sh",
        description="Base URL of the hosted share server",
    )
    port: int = Field(default=4173, ge=1, le=65535, description="Diagram server port")
    mode: Literal["local", "server"] = Field(
        default="local",
        description="'local' runs the MCP tool server, 'server' runs a hosted share instance",
    )
    host: str = Field(default="127.0.0.1", description="Interface the diagram server binds")
    data_dir: Path | None = Field(default=None, description="Directory for traverse.db")
    log_level: str = Field(default="INFO", description="Logging level")

    @field_validator("share_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level '{v}'")
        return level

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,
            env_settings,
            JsonConfigFileSource(settings_cls, get_config_dir() / CONFIG_FILE_NAME),
        )

    @property
    def is_server_mode(self) -> bool:
        return self.mode == "server"

    @property
    def resolved_data_dir(self) -> Path:
        return self.data_dir if self.data_dir is not None else get_default_data_dir()

    @property
    def local_base_url(self) -> str:
        return f"http://localhost:{self.port}"

    @property
    def public_base_url(self) -> str:
        """Base of the URLs handed out for created diagrams."""
        return self.share_url if self.is_server_mode else self.local_base_url


@lru_cache
def get_settings() -> TraverseSettings:
    """Get cached settings instance."""
    return TraverseSettings()
