"""Core data types for BlueprintFactory.

Records are frozen dataclasses. The registry and factory replace a record
wholesale on every mutation, so a value handed to a caller never changes
underneath it.

Hashes and salts are canonical ``0x``-prefixed lowercase hex strings;
addresses are EIP-55 checksummed strings.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Category(str, Enum):
    """Closed set of blueprint categories."""

    TOKEN = "token"
    NFT = "nft"
    MULTISIG = "multisig"
    GOVERNANCE = "governance"
    DEFI = "defi"
    GAME = "game"
    CUSTOM = "custom"


class DeploymentMethod(str, Enum):
    """How an instance was created."""

    PROXY = "proxy"
    DIRECT = "direct"
    TEMPLATE = "template"


# Blueprint id 0 means "no blueprint" (direct creation).
NO_BLUEPRINT = 0


@dataclass(frozen=True)
class Blueprint:
    """A registered, content-addressed template record."""

    id: int
    content_hash: str
    locator: str
    name: str
    author: str
    category: Category
    created_at: int
    description: str = ""
    version: str = ""
    tags: tuple[str, ...] = ()
    init_schema: str = ""
    deployment_count: int = 0
    active: bool = True


@dataclass(frozen=True)
class InstanceRecord:
    """Ledger entry for one created instance."""

    address: str
    creator: str
    blueprint_id: int
    method: DeploymentMethod
    salt: str
    code_hash: str
    created_at: int
    active: bool = True

