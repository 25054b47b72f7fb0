"""DeploymentFactory — creates instances at predictable addresses.

Three creation paths share one placement formula:

    proxy     EIP-1167 minimal proxy bound to the blueprint's implementation
    direct    raw bytecode supplied by the caller, no blueprint
    template  currently the proxy path, recorded as ``template``

Every successful creation appends exactly one ledger record and, for
blueprint-based paths, bumps the blueprint's deployment count in the
registry inside the same transaction.
"""

from __future__ import annotations

import dataclasses
import logging
from typing import Any

from web3 import Web3

from blueprint_factory.chain.address import (
    combine_salt,
    create2_address,
    keccak,
    minimal_proxy_code,
    normalize_salt,
    require_address,
    to_address,
    to_bytes,
)
from blueprint_factory.chain.events import (
    IMPLEMENTATION_BOUND,
    INSTANCE_CREATED,
    INSTANCE_DEACTIVATED,
    EventLog,
)
from blueprint_factory.chain.governance import Governance
from blueprint_factory.chain.host import Host
from blueprint_factory.chain.journal import StateJournal, entrypoint
from blueprint_factory.core.errors import (
    AlreadyExists,
    BlueprintInactive,
    InstantiationFailed,
    InvalidPayload,
    MalformedInput,
    NotFound,
    Unauthorized,
)
from blueprint_factory.core.types import (
    NO_BLUEPRINT,
    Blueprint,
    DeploymentMethod,
    InstanceRecord,
)
from blueprint_factory.registry.registry import BlueprintRegistry

log = logging.getLogger(__name__)

# EIP-170 runtime code limit.
MAX_CODE_SIZE = 24_576


class DeploymentFactory:
    """Deterministic instance factory with an append-only ledger."""

    def __init__(
        self,
        address: str,
        registry: BlueprintRegistry,
        governance: Governance,
        journal: StateJournal,
        events: EventLog,
        host: Host,
        *,
        max_code_size: int = MAX_CODE_SIZE,
    ) -> None:
        self.address = require_address(address, "factory_address")
        self._registry = registry
        self._governance = governance
        self._journal = journal
        self._events = events
        self._host = host
        self._max_code_size = max_code_size
        self._entered = False

        self._implementations: dict[int, str] = {}
        self._instances: dict[str, InstanceRecord] = {}
        self._order: list[str] = []
        self._by_creator: dict[str, list[str]] = {}
        self._by_blueprint: dict[int, list[str]] = {}

    # ── Implementations ───────────────────────────────────────────────────

    @entrypoint
    def bind_implementation(self, sender: str, blueprint_id: int, implementation: Any) -> None:
        """Bind the reference implementation proxies of *blueprint_id* delegate to."""
        self._governance.require_admin(sender, "bind_implementation")
        self._require_active(blueprint_id)
        implementation = require_address(implementation, "implementation")

        previous = self._implementations.get(blueprint_id)
        self._journal.set_item(self._implementations, blueprint_id, implementation)
        self._events.emit(
            IMPLEMENTATION_BOUND,
            self.address,
            blueprint_id=blueprint_id,
            implementation=implementation,
            previous=previous,
        )
        log.info("Blueprint %d bound to implementation %s", blueprint_id, implementation)

    def implementation_of(self, blueprint_id: int) -> str:
        if blueprint_id not in self._implementations:
            raise NotFound(
                f"No implementation bound to blueprint {blueprint_id}",
                blueprint_id=blueprint_id,
            )
        return self._implementations[blueprint_id]

    # ── Creation ──────────────────────────────────────────────────────────

    @entrypoint
    def create_proxy_instance(
        self,
        sender: str,
        blueprint_id: int,
        salt: Any,
        init_payload: bytes = b"",
    ) -> str:
        """Create a minimal proxy for *blueprint_id* and return its address."""
        return self._create_proxy(sender, blueprint_id, salt, init_payload, DeploymentMethod.PROXY)

    @entrypoint
    def create_from_template(
        self,
        sender: str,
        blueprint_id: int,
        salt: Any,
        init_payload: bytes = b"",
    ) -> str:
        """Create an instance of *blueprint_id* through the template path.

        Template bytecode lives in external content storage, which this
        layer does not fetch; the instance is a minimal proxy to the bound
        implementation, recorded with method ``template``.
        """
        self._require_active(blueprint_id)
        return self._create_proxy(sender, blueprint_id, salt, init_payload, DeploymentMethod.TEMPLATE)

    @entrypoint
    def create_direct_instance(
        self,
        sender: str,
        raw_payload: bytes,
        salt: Any,
        init_payload: bytes = b"",
    ) -> str:
        """Create an instance straight from *raw_payload*; no blueprint."""
        code = to_bytes(raw_payload, "raw_payload")
        if not code:
            raise InvalidPayload("raw_payload must not be empty", field="raw_payload")
        if len(code) > self._max_code_size:
            raise InvalidPayload(
                f"raw_payload is {len(code)} bytes; limit is {self._max_code_size}",
                field="raw_payload",
                size=len(code),
                limit=self._max_code_size,
            )
        return self._create(sender, NO_BLUEPRINT, salt, code, init_payload, DeploymentMethod.DIRECT)

    def _create_proxy(
        self,
        sender: str,
        blueprint_id: int,
        salt: Any,
        init_payload: bytes,
        method: DeploymentMethod,
    ) -> str:
        self._require_active(blueprint_id)
        code = minimal_proxy_code(self.implementation_of(blueprint_id))
        return self._create(sender, blueprint_id, salt, code, init_payload, method)

    def _create(
        self,
        sender: str,
        blueprint_id: int,
        salt: Any,
        code: bytes,
        init_payload: Any,
        method: DeploymentMethod,
    ) -> str:
        raw_salt = normalize_salt(salt)
        payload = to_bytes(init_payload or b"", "init_payload")
        final_salt = combine_salt(raw_salt, sender)
        code_hash = Web3.to_hex(keccak(code))

        address = create2_address(self.address, final_salt, code_hash)
        if address in self._instances:
            raise AlreadyExists(
                f"Instance already recorded at {address}",
                address=address,
                salt=raw_salt,
                creator=sender,
            )

        self._host.deploy(self.address, final_salt, code)
        if payload:
            self._initialize(address, payload)

        record = InstanceRecord(
            address=address,
            creator=sender,
            blueprint_id=blueprint_id,
            method=method,
            salt=raw_salt,
            code_hash=code_hash,
            created_at=self._host.timestamp,
        )
        journal = self._journal
        journal.set_item(self._instances, address, record)
        journal.append(self._order, address)
        journal.add_to_index(self._by_creator, sender, address)
        if blueprint_id != NO_BLUEPRINT:
            journal.add_to_index(self._by_blueprint, blueprint_id, address)
            self._registry.record_deployment_event(self.address, blueprint_id, sender, address)

        self._events.emit(
            INSTANCE_CREATED,
            self.address,
            address=address,
            creator=sender,
            blueprint_id=blueprint_id,
            method=method.value,
            salt=raw_salt,
            code_hash=code_hash,
        )
        log.info(
            "Created %s instance %s (blueprint %d) for %s",
            method.value, address, blueprint_id, sender,
        )
        return address

    def _initialize(self, address: str, payload: bytes) -> None:
        try:
            self._host.call(self.address, address, payload)
        except Exception as exc:
            raise InstantiationFailed(
                f"Initialization of {address} failed: {exc}",
                address=address,
            ) from exc

    # ── Prediction ────────────────────────────────────────────────────────

    def predict_address(self, salt: Any, payload_hash: Any) -> str:
        """Address produced by creating code with *payload_hash* under the
        combined *salt*; nothing is created."""
        return create2_address(self.address, salt, payload_hash)

    def predict_proxy_address(self, blueprint_id: int, raw_salt: Any, creator: Any) -> str:
        code = minimal_proxy_code(self.implementation_of(blueprint_id))
        return self.predict_address(combine_salt(raw_salt, creator), keccak(code))

    def predict_direct_address(self, raw_payload: bytes, raw_salt: Any, creator: Any) -> str:
        code = to_bytes(raw_payload, "raw_payload")
        return self.predict_address(combine_salt(raw_salt, creator), keccak(code))

    # ── Instance lifecycle ────────────────────────────────────────────────

    @entrypoint
    def deactivate_instance(self, sender: str, address: Any) -> None:
        """Mark an instance inactive (creator or administrator)."""
        record = self.get_instance(address)
        if sender != record.creator and sender != self._governance.admin:
            raise Unauthorized(
                f"Only the creator {record.creator} or administrator may deactivate {record.address}",
                address=record.address,
                caller=sender,
            )
        self._journal.set_item(self._instances, record.address, dataclasses.replace(record, active=False))
        self._events.emit(INSTANCE_DEACTIVATED, self.address, address=record.address, by=sender)
        log.info("Instance %s deactivated by %s", record.address, sender)

    # ── Queries ───────────────────────────────────────────────────────────

    def get_instance(self, address: Any) -> InstanceRecord:
        address = to_address(address, "address")
        if address not in self._instances:
            raise NotFound(f"No instance recorded at {address}", address=address)
        return self._instances[address]

    def exists(self, address: Any) -> bool:
        try:
            return to_address(address) in self._instances
        except MalformedInput:
            return False

    def instances_by_creator(self, creator: Any) -> list[str]:
        return list(self._by_creator.get(to_address(creator, "creator"), []))

    def instances_by_blueprint(self, blueprint_id: int) -> list[str]:
        return list(self._by_blueprint.get(blueprint_id, []))

    def total_instances(self) -> int:
        return len(self._order)

    def list_paginated(self, offset: int, limit: int) -> tuple[list[InstanceRecord], int]:
        """Return ``(records[offset:offset+limit], total)`` in creation order."""
        if offset < 0 or limit < 0:
            raise MalformedInput(
                f"offset and limit must be non-negative (got {offset}, {limit})",
                offset=offset,
                limit=limit,
            )
        window = self._order[offset:offset + limit]
        return [self._instances[a] for a in window], len(self._order)

    # -- helpers -------------------------------------------------------------

    def _require_active(self, blueprint_id: int) -> Blueprint:
        blueprint = self._registry.get(blueprint_id)
        if not blueprint.active:
            raise BlueprintInactive(
                f"Blueprint {blueprint_id} is inactive",
                blueprint_id=blueprint_id,
            )
        return blueprint
