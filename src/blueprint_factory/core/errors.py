"""Custom exception hierarchy for BlueprintFactory.

Every failure that crosses the registry/factory boundary is one of these.
Each error carries a stable ``code`` and the offending identifiers in
``details`` so callers can surface them verbatim.
"""

from __future__ import annotations

from typing import Any


class FactoryError(Exception):
    """Base exception for all registry and factory errors."""

    code = "FactoryError"

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self.details = details


class NotFound(FactoryError):
    """An id or address references a record that does not exist."""

    code = "NotFound"


class DuplicateContent(FactoryError):
    """The content hash is already registered."""

    code = "DuplicateContent"


class EmptyField(FactoryError):
    """A required string, hash or address is empty or zero."""

    code = "EmptyField"


class NotAuthor(FactoryError):
    """Caller is not the author of the blueprint."""

    code = "NotAuthor"


class Unauthorized(FactoryError):
    """Caller lacks the role required for the operation."""

    code = "Unauthorized"


class BlueprintInactive(FactoryError):
    """Mutating operation targets a deactivated blueprint."""

    code = "BlueprintInactive"


class InvalidPayload(FactoryError):
    """Empty or oversized bytecode."""

    code = "InvalidPayload"


class InstantiationFailed(FactoryError):
    """The underlying creation or its initialization call did not succeed."""

    code = "InstantiationFailed"


class AlreadyExists(FactoryError):
    """The derived address is already recorded in the ledger."""

    code = "AlreadyExists"


class Paused(FactoryError):
    """Mutating call attempted while the global pause flag is set."""

    code = "Paused"


class Reentrancy(FactoryError):
    """A guarded entry point was re-entered before it returned."""

    code = "Reentrancy"


class MalformedInput(FactoryError):
    """An address, hash or salt could not be decoded."""

    code = "MalformedInput"


class ConfigError(FactoryError):
    """Error loading or validating settings or a blueprint manifest."""

    code = "ConfigError"
