"""Core types, protocols, and errors for BlueprintFactory."""

from blueprint_factory.core.errors import (
    AlreadyExists,
    BlueprintInactive,
    ConfigError,
    DuplicateContent,
    EmptyField,
    FactoryError,
    InstantiationFailed,
    InvalidPayload,
    MalformedInput,
    NotAuthor,
    NotFound,
    Paused,
    Reentrancy,
    Unauthorized,
)
from blueprint_factory.core.protocols import Program
from blueprint_factory.core.types import (
    NO_BLUEPRINT,
    Blueprint,
    Category,
    DeploymentMethod,
    InstanceRecord,
)

__all__ = [
    "AlreadyExists",
    "Blueprint",
    "BlueprintInactive",
    "Category",
    "ConfigError",
    "DeploymentMethod",
    "DuplicateContent",
    "EmptyField",
    "FactoryError",
    "InstanceRecord",
    "InstantiationFailed",
    "InvalidPayload",
    "MalformedInput",
    "NO_BLUEPRINT",
    "NotAuthor",
    "NotFound",
    "Paused",
    "Program",
    "Reentrancy",
    "Unauthorized",
]
