"""Shared fixtures for all test levels."""

from __future__ import annotations

from typing import Any

import pytest

from blueprint_factory.chain.address import compute_content_hash, to_address
from blueprint_factory.factory.builder import BuiltSystem, FactoryBuilder


def addr(n: int) -> str:
    """Deterministic checksummed test address."""
    return to_address(f"0x{n:040x}")


ADMIN = addr(0xAD)
ALICE = addr(0xA11CE)
BOB = addr(0xB0B)
CAROL = addr(0xCA201)
IMPL_A = addr(0x1A)
IMPL_B = addr(0x1B)

SALT_1 = "0x" + "11" * 32
SALT_2 = "0x" + "22" * 32

TOKEN_CODE = bytes.fromhex("6080604052348015600f57600080fd5b50")


class FixedClock:
    """Callable clock tests can advance by hand."""

    def __init__(self, now: int = 1_700_000_000) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: int = 1) -> None:
        self.now += seconds


# ---------------------------------------------------------------------------
# Built stack
# ---------------------------------------------------------------------------

@pytest.fixture()
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture()
def system(clock: FixedClock) -> BuiltSystem:
    """Fully wired stack with ADMIN as administrator and no publisher."""
    return FactoryBuilder().build({"admin": ADMIN}, clock=clock, connect=False)


@pytest.fixture()
def registry(system: BuiltSystem):
    return system.registry


@pytest.fixture()
def factory(system: BuiltSystem):
    return system.factory


@pytest.fixture()
def host(system: BuiltSystem):
    return system.host


# ---------------------------------------------------------------------------
# Registration helpers
# ---------------------------------------------------------------------------

def blueprint_args(n: int = 1, **overrides: Any) -> dict[str, Any]:
    """Keyword arguments for a valid, unique registration."""
    args: dict[str, Any] = {
        "name": f"blueprint-{n}",
        "description": f"Test blueprint number {n}",
        "version": "1.0.0",
        "content_hash": compute_content_hash(f"artifact-{n}".encode()),
        "locator": f"ipfs://artifact-{n}",
        "category": "token",
        "tags": ("test",),
        "init_schema": "(string,uint256)",
    }
    args.update(overrides)
    return args


@pytest.fixture()
def bound_blueprint(system: BuiltSystem) -> int:
    """A token blueprint registered by ALICE and bound to IMPL_A."""
    blueprint_id = system.registry.register_blueprint(ALICE, **blueprint_args(1))
    system.factory.bind_implementation(ADMIN, blueprint_id, IMPL_A)
    return blueprint_id
