"""Settings — YAML configuration for a registry/factory deployment."""

from __future__ import annotations

import copy
import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from blueprint_factory.chain.address import require_address
from blueprint_factory.core.errors import ConfigError, FactoryError

log = logging.getLogger(__name__)

_DEFAULT_SETTINGS: dict[str, Any] = {
    "admin": "0x00000000000000000000000000000000000000ad",
    "paused": False,
    "registry_address": "0x0000000000000000000000000000000000001001",
    "factory_address": "0x0000000000000000000000000000000000001002",
    "max_code_size": 24576,
    "events": {
        "endpoint": None,
    },
}


def _deep_merge(base: dict[str, Any], overrides: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge *overrides* into a deep copy of *base*."""
    result = copy.deepcopy(base)
    for key, val in overrides.items():
        if key in result and isinstance(result[key], dict) and isinstance(val, dict):
            result[key] = _deep_merge(result[key], val)
        else:
            result[key] = copy.deepcopy(val)
    return result


class EventSettings(BaseModel):
    endpoint: str | None = None


class Settings(BaseModel):
    """Validated deployment settings."""

    admin: str
    paused: bool = False
    registry_address: str
    factory_address: str
    max_code_size: int = Field(default=24576, gt=0)
    events: EventSettings = Field(default_factory=EventSettings)

    @field_validator("admin", "registry_address", "factory_address", mode="before")
    @classmethod
    def _checksum(cls, value: object) -> str:
        # Unquoted 0x… scalars arrive from YAML as ints.
        if isinstance(value, int) and not isinstance(value, bool) and 0 <= value < 2**160:
            value = value.to_bytes(20, "big")
        try:
            return require_address(value)
        except FactoryError as exc:
            raise ValueError(str(exc)) from exc


def load_settings(path: str | Path | None = None, **overrides: Any) -> Settings:
    """Load settings from a YAML file (if given) merged over the defaults.

    Keyword *overrides* are section-level values merged last.
    """
    data = copy.deepcopy(_DEFAULT_SETTINGS)
    if path is not None:
        path = Path(path)
        if not path.is_file():
            raise ConfigError(f"Settings file not found: {path}")
        try:
            with open(path) as f:
                loaded = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ConfigError(f"Cannot parse settings file {path}: {exc}") from exc
        if not isinstance(loaded, dict):
            raise ConfigError(f"Settings file {path} must contain a mapping")
        data = _deep_merge(data, loaded)
        log.info("Loaded settings from %s", path)

    data = _deep_merge(data, overrides)
    try:
        return Settings.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid settings: {exc}") from exc
