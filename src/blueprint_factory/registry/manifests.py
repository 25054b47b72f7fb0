"""Blueprint manifests — YAML descriptions of blueprints to register.

A manifest file looks like::

    blueprint:
      name: erc20
      version: 1.0.0
      description: Fungible token
      category: token
      tags: [erc20, fungible]
      content_hash: "0x9c…"
      locator: ipfs://bafy…
      init_schema: "(string name, string symbol, uint256 supply)"
"""

from __future__ import annotations

import logging
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from blueprint_factory.chain.address import to_hash32
from blueprint_factory.core.errors import ConfigError, FactoryError
from blueprint_factory.core.types import Category

log = logging.getLogger(__name__)


class BlueprintManifest(BaseModel):
    """Validated registration parameters for one blueprint."""

    name: str = Field(min_length=1)
    content_hash: str
    locator: str = Field(min_length=1)
    category: Category = Category.CUSTOM
    version: str = "0.1.0"
    description: str = ""
    tags: list[str] = Field(default_factory=list)
    init_schema: str = ""

    @field_validator("content_hash", mode="before")
    @classmethod
    def _canonical_hash(cls, value: object) -> str:
        # Unquoted 0x… scalars arrive from YAML as ints.
        if isinstance(value, int) and not isinstance(value, bool) and 0 <= value < 2**256:
            value = value.to_bytes(32, "big")
        try:
            return to_hash32(value, "content_hash")
        except FactoryError as exc:
            raise ValueError(str(exc)) from exc


def parse_manifest(data: dict) -> BlueprintManifest:
    """Validate a manifest dict (the ``blueprint`` section or the bare fields)."""
    section = data.get("blueprint", data) if isinstance(data, dict) else data
    try:
        return BlueprintManifest.model_validate(section)
    except ValidationError as exc:
        raise ConfigError(f"Invalid blueprint manifest: {exc}") from exc


def load_manifests(directory: str | Path) -> list[BlueprintManifest]:
    """Scan *directory* for ``*.yaml`` manifests, skipping invalid files."""
    path = Path(directory)
    if not path.is_dir():
        raise ConfigError(f"Manifest directory not found: {path}")

    manifests: list[BlueprintManifest] = []
    for file in sorted(path.glob("*.yaml")):
        try:
            with open(file) as f:
                data = yaml.safe_load(f)
            manifests.append(parse_manifest(data or {}))
            log.info("Loaded manifest %s", file.name)
        except (yaml.YAMLError, ConfigError, OSError) as exc:
            log.warning("Skipping manifest %s: %s", file.name, exc)
    return manifests
