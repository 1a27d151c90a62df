"""Configuration loading and validation for the behaviour toolkit."""

from __future__ import annotations

from copy import deepcopy
import logging
import os
from pathlib import Path
import re
from typing import Any

from platformdirs import user_config_path
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
)

from .exceptions import ConfigValidationError

import tomllib  # stdlib since Python 3.11 (project requires >=3.11)

LOGGER = logging.getLogger(__name__)

CONFIG_DIR = user_config_path("behaviourkit")
CONFIG_PATH = CONFIG_DIR / "config.toml"

PREFIX_PATTERN = re.compile(r"^[A-Za-z][A-Za-z0-9-]*$")
MODULE_PREFIX_PATTERN = re.compile(r"^([A-Za-z_][A-Za-z0-9_]*\.)*$")
VALID_LOG_LEVELS = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}


class MarkersConfig(BaseModel):
    """Marker token and options attribute naming."""

    prefix: str = "jsb"
    options_attribute: str = "data"

    @field_validator("prefix", mode="before")
    @classmethod
    def _validate_prefix(cls, value: Any) -> str:
        if not isinstance(value, str):
            raise ValueError("prefix must be a string.")
        normalized = value.strip().rstrip("_")
        if not PREFIX_PATTERN.match(normalized):
            raise ValueError(
                "prefix must start with a letter and contain only letters, digits or dashes."
            )
        return normalized

    @field_validator("options_attribute", mode="before")
    @classmethod
    def _validate_options_attribute(cls, value: Any) -> str:
        if not isinstance(value, str):
            raise ValueError("options_attribute must be a string.")
        normalized = value.strip().lower()
        if not normalized:
            raise ValueError("options_attribute must not be empty.")
        return normalized


class LoaderConfig(BaseModel):
    """Deferred handler loading through importlib."""

    enabled: bool = False
    package_prefix: str = ""
    export: str = Field(default="default", min_length=1)

    @field_validator("package_prefix", mode="before")
    @classmethod
    def _validate_package_prefix(cls, value: Any) -> str:
        if value is None:
            return ""
        if not isinstance(value, str):
            raise ValueError("package_prefix must be a string.")
        normalized = value.strip()
        if normalized and not normalized.endswith("."):
            normalized += "."
        if not MODULE_PREFIX_PATTERN.match(normalized):
            raise ValueError("package_prefix must be a dotted module path.")
        return normalized

    @field_validator("export", mode="before")
    @classmethod
    def _validate_export(cls, value: Any) -> str:
        if not isinstance(value, str) or not value.strip().isidentifier():
            raise ValueError("export must be a valid attribute name.")
        return value.strip()


class LoggingConfig(BaseModel):
    """Logging behavior and output destinations."""

    level: str = "INFO"
    structured: bool = True
    log_to_file: bool = False
    log_file_path: str = "~/.local/state/behaviourkit/behaviourkit.log"

    @field_validator("level", mode="before")
    @classmethod
    def _validate_level(cls, value: Any) -> str:
        if not isinstance(value, str):
            raise ValueError("Logging level must be a string.")
        normalized = value.strip().upper()
        if normalized not in VALID_LOG_LEVELS:
            raise ValueError(f"Unsupported log level {normalized!r}.")
        return normalized

    @field_validator("log_file_path", mode="before")
    @classmethod
    def _validate_log_file_path(cls, value: Any) -> str:
        if not isinstance(value, str):
            raise ValueError("log_file_path must be a string.")
        normalized = value.strip()
        if not normalized:
            raise ValueError("log_file_path must not be empty.")
        return normalized


class Config(BaseModel):
    """Root configuration model for all sections."""

    model_config = ConfigDict(populate_by_name=True)
    markers: MarkersConfig = MarkersConfig()
    loader: LoaderConfig = LoaderConfig()
    logging: LoggingConfig = LoggingConfig()


DEFAULT_CONFIG: dict[str, dict[str, Any]] = Config().model_dump(by_alias=True)


def ensure_config_dir(config_dir: Path | None = None) -> Path:
    """Ensure that the config directory exists and return its path."""
    directory = config_dir or CONFIG_DIR
    try:
        directory.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        LOGGER.warning("Unable to create config directory %s: %s", directory, exc)
    return directory


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge override values onto base values."""
    merged: dict[str, Any] = deepcopy(base)
    for key, value in override.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _enforce_private_permissions(path: Path) -> None:
    """Best-effort enforcement of private file permissions on POSIX systems."""
    if os.name != "posix" or not path.exists():
        return
    try:
        path.chmod(0o600)
    except OSError as exc:
        LOGGER.warning("Unable to enforce 0600 permissions for %s: %s", path, exc)


def _safe_default_config() -> dict[str, dict[str, Any]]:
    """Return a deep copy of validated default config data."""
    return deepcopy(DEFAULT_CONFIG)


def _validate_config(raw: dict[str, Any]) -> dict[str, dict[str, Any]]:
    """Validate merged config and fallback to safe defaults when possible."""
    try:
        config = Config.model_validate(raw)
        return config.model_dump(by_alias=True)
    except ValidationError as exc:
        LOGGER.warning("Configuration validation failed, using safe defaults: %s", exc)
        return _safe_default_config()
    except Exception as exc:  # noqa: BLE001 - unexpected model construction failure.
        raise ConfigValidationError(f"Unable to validate configuration: {exc}") from exc


def load_config(config_path: Path | None = None) -> dict[str, dict[str, Any]]:
    """
    Load configuration from TOML, merge with defaults, and validate.

    The optional ``config_path`` argument is intended for tests and tooling.
    """
    target_path = config_path or CONFIG_PATH

    raw_data: dict[str, Any] = {}
    if target_path.exists():
        _enforce_private_permissions(target_path)
        try:
            raw_data = tomllib.loads(target_path.read_text(encoding="utf-8"))
        except (
            Exception
        ) as exc:  # noqa: BLE001 - we must not crash on invalid user config.
            LOGGER.warning("Failed to parse config at %s: %s", target_path, exc)
            raw_data = {}

    merged = (
        _deep_merge(DEFAULT_CONFIG, raw_data)
        if isinstance(raw_data, dict)
        else _safe_default_config()
    )
    return _validate_config(merged)
