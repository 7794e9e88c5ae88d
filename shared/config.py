"""
Shared configuration management for the subscription conversion gateway.
"""

import os
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml
from pydantic import Field, ValidationError as PydanticValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from shared.errors import ConfigurationError


DEFAULT_CONFIG_FILE = "config.yaml"
CONFIG_FILE_ENV = "CONVERT_CONFIG_FILE"


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")

    # Bind address
    host: str = "0.0.0.0"
    port: int = 8008


class ConverterConfig(BaseConfig):
    """Settings for the conversion gateway.

    Field names map to the environment variables (and upper-case YAML keys)
    ``TOKEN``, ``CLASH_SUB_FMT``, ``CLASH_SUB_URLS``, ``CACHE_HOURS`` and so on.
    ``CLASH_SUB_URLS`` is a JSON object when read from the environment.
    """

    token: str = ""
    clash_sub_fmt: str = ""
    clash_sub_urls: Dict[str, str] = Field(default_factory=dict)

    # Cache
    cache_hours: float = 22
    cache_backend: str = "memory"
    cache_file: str = "cache.json"
    cache_sweep_interval_seconds: float = 7200

    # Upstream conversion service
    upstream_timeout_seconds: float = 30.0
    upstream_user_agent: str = "ClashforWindows/0.19.23"

    @field_validator("cache_backend")
    @classmethod
    def _check_backend(cls, value: str) -> str:
        backend = value.strip().lower()
        if backend not in ("memory", "file"):
            raise ValueError("cache_backend must be 'memory' or 'file'")
        return backend

    @property
    def cache_ttl_seconds(self) -> float:
        return self.cache_hours * 3600

    def validate_required(self) -> "ConverterConfig":
        """Raise ConfigurationError when a mandatory setting is missing."""
        missing = []
        if not self.token:
            missing.append("TOKEN")
        if not self.clash_sub_fmt:
            missing.append("CLASH_SUB_FMT")
        if not self.clash_sub_urls:
            missing.append("CLASH_SUB_URLS")
        if missing:
            raise ConfigurationError(
                "Missing required settings",
                details={"missing": missing},
            )
        return self


def _read_yaml(path: Path) -> Dict[str, Any]:
    try:
        with path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigurationError(
            "Unable to read configuration file",
            details={"path": str(path), "error": str(exc)},
        ) from exc

    if not isinstance(data, dict):
        raise ConfigurationError(
            "Configuration file must contain a mapping",
            details={"path": str(path)},
        )
    return {str(key).lower(): value for key, value in data.items()}


def load_config(path: Optional[Union[str, Path]] = None, **overrides: Any) -> ConverterConfig:
    """Build and validate the gateway configuration.

    Values from the YAML file (``path``, ``$CONVERT_CONFIG_FILE`` or
    ``./config.yaml`` when present) are passed as init arguments, so explicit
    ``overrides`` win over the file, and the file wins over the environment.
    """
    if path is None:
        path = os.getenv(CONFIG_FILE_ENV)
        if path is None and Path(DEFAULT_CONFIG_FILE).is_file():
            path = DEFAULT_CONFIG_FILE

    values: Dict[str, Any] = {}
    if path is not None:
        values.update(_read_yaml(Path(path)))
    values.update(overrides)

    try:
        config = ConverterConfig(**values)
    except PydanticValidationError as exc:
        raise ConfigurationError(
            "Invalid configuration",
            details={"errors": exc.errors(include_url=False)},
        ) from exc
    return config.validate_required()
