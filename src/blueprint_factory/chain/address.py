"""Deterministic address derivation and value normalisation.

Placement follows EIP-1014 (CREATE2)::

    final_salt = keccak256(raw_salt ‖ creator)
    address    = keccak256(0xff ‖ deployer ‖ final_salt ‖ keccak256(code))[12:]

Minimal proxies use the EIP-1167 creation code with the implementation
address spliced in.  Prediction and creation both go through
``create2_address`` so they can never disagree.
"""

from __future__ import annotations

import secrets
from typing import Any

from web3 import Web3

from blueprint_factory.core.errors import EmptyField, MalformedInput

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

_PROXY_PREFIX = bytes.fromhex("3d602d80600a3d3981f3363d3d373d3d3d363d73")
_PROXY_SUFFIX = bytes.fromhex("5af43d82803e903d91602b57fd5bf3")
_PROXY_LEN = len(_PROXY_PREFIX) + 20 + len(_PROXY_SUFFIX)


def keccak(data: bytes) -> bytes:
    """Return the raw keccak-256 digest of *data*."""
    return bytes(Web3.keccak(data))


def to_bytes(value: Any, field: str) -> bytes:
    """Decode bytes or a hex string; anything else is MalformedInput."""
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    if isinstance(value, str):
        try:
            return bytes(Web3.to_bytes(hexstr=value))
        except (ValueError, TypeError) as exc:
            raise MalformedInput(
                f"{field} is not valid hex: {value!r}", field=field, value=value,
            ) from exc
    raise MalformedInput(
        f"{field} must be bytes or a hex string, got {type(value).__name__}",
        field=field,
        value=value,
    )


# ── Addresses ────────────────────────────────────────────────────────────


def to_address(value: Any, field: str = "address") -> str:
    """Return *value* as a checksummed address (zero address allowed)."""
    if isinstance(value, (bytes, bytearray)) and len(value) == 20:
        value = Web3.to_hex(bytes(value))
    if not isinstance(value, str) or not Web3.is_address(value):
        raise MalformedInput(
            f"{field} is not a valid address: {value!r}", field=field, value=value,
        )
    return Web3.to_checksum_address(value)


def require_address(value: Any, field: str = "address") -> str:
    """Like ``to_address`` but rejects the zero address with EmptyField."""
    address = to_address(value, field)
    if address == ZERO_ADDRESS:
        raise EmptyField(f"{field} must not be the zero address", field=field)
    return address


def format_address(address: str, chars: int = 4) -> str:
    """Shorten an address for display: ``0x1234...5678``."""
    return f"{address[:chars + 2]}...{address[-chars:]}"


# ── Hashes and salts ─────────────────────────────────────────────────────


def to_hash32(value: Any, field: str = "hash") -> str:
    """Normalise a 32-byte digest to canonical hex; zero is rejected."""
    raw = to_bytes(value, field)
    if not raw or not any(raw):
        raise EmptyField(f"{field} must be non-zero", field=field)
    if len(raw) != 32:
        raise MalformedInput(
            f"{field} must be 32 bytes, got {len(raw)}", field=field, length=len(raw),
        )
    return Web3.to_hex(raw)


def normalize_salt(value: Any) -> str:
    """Return a raw salt as 32-byte canonical hex.

    Accepts an int, or bytes/hex of at most 32 bytes (left-padded).
    """
    if isinstance(value, int) and not isinstance(value, bool):
        try:
            raw = value.to_bytes(32, "big")
        except OverflowError as exc:
            raise MalformedInput(
                "salt does not fit in 32 bytes", field="salt", value=value,
            ) from exc
    else:
        raw = to_bytes(value, "salt")
    if len(raw) > 32:
        raise MalformedInput(
            f"salt must be at most 32 bytes, got {len(raw)}",
            field="salt",
            length=len(raw),
        )
    return Web3.to_hex(raw.rjust(32, b"\x00"))


def generate_salt() -> str:
    """Return a random 32-byte salt."""
    return Web3.to_hex(secrets.token_bytes(32))


def compute_content_hash(payload: bytes) -> str:
    """Content-addressing key for an artifact payload."""
    return Web3.to_hex(keccak(payload))


def combine_salt(raw_salt: Any, creator: str) -> str:
    """Bind a raw salt to its creator so different creators never collide."""
    salt = to_bytes(normalize_salt(raw_salt), "salt")
    owner = to_bytes(to_address(creator, "creator"), "creator")
    return Web3.to_hex(keccak(salt + owner))


def create2_address(deployer: str, salt: Any, code_hash: Any) -> str:
    """Address of code with *code_hash* placed by *deployer* under *salt*."""
    deployer_raw = to_bytes(to_address(deployer, "deployer"), "deployer")
    salt_raw = to_bytes(normalize_salt(salt), "salt")
    hash_raw = to_bytes(to_hash32(code_hash, "code_hash"), "code_hash")
    digest = keccak(b"\xff" + deployer_raw + salt_raw + hash_raw)
    return Web3.to_checksum_address(Web3.to_hex(digest[12:]))


# ── Minimal proxies ──────────────────────────────────────────────────────


def minimal_proxy_code(implementation: str) -> bytes:
    """EIP-1167 creation code delegating every call to *implementation*."""
    target = to_bytes(require_address(implementation, "implementation"), "implementation")
    return _PROXY_PREFIX + target + _PROXY_SUFFIX


def proxy_target(code: bytes) -> str | None:
    """Return the implementation a minimal proxy delegates to, if *code* is one."""
    if (
        len(code) == _PROXY_LEN
        and code.startswith(_PROXY_PREFIX)
        and code.endswith(_PROXY_SUFFIX)
    ):
        start = len(_PROXY_PREFIX)
        return Web3.to_checksum_address(Web3.to_hex(code[start:start + 20]))
    return None
