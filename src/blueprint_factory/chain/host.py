"""Host — in-process model of the execution environment.

Holds accounts (address → code + storage), places new code at CREATE2
addresses, and dispatches calls to Python ``Program`` callables keyed by
code hash.  A minimal proxy has no program of its own: calls to it run its
implementation's program against the proxy's own storage, the way a
delegatecall would.

Calling code that has no registered program is a successful no-op.
Calling an address that holds no code fails.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Iterator, MutableMapping

from web3 import Web3

from blueprint_factory.chain.address import (
    create2_address,
    keccak,
    proxy_target,
    require_address,
    to_address,
)
from blueprint_factory.chain.journal import StateJournal
from blueprint_factory.core.errors import InstantiationFailed, InvalidPayload, NotFound
from blueprint_factory.core.protocols import Program

log = logging.getLogger(__name__)


def wall_clock() -> int:
    return int(time.time())


class Storage(MutableMapping[str, Any]):
    """Key/value storage of one account; writes go through the journal.

    Only assignment and deletion are rolled back; in-place mutation of a
    stored value is not.
    """

    def __init__(self, journal: StateJournal) -> None:
        self._journal = journal
        self._data: dict[str, Any] = {}

    def __getitem__(self, key: str) -> Any:
        return self._data[key]

    def __setitem__(self, key: str, value: Any) -> None:
        self._journal.set_item(self._data, key, value)

    def __delitem__(self, key: str) -> None:
        self._journal.del_item(self._data, key)

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        return f"Storage({self._data!r})"


@dataclass
class Account:
    """A piece of code living at an address."""

    address: str
    code: bytes
    code_hash: str
    deployer: str
    created_at: int
    storage: Storage


@dataclass
class CallContext:
    """What a program sees while it runs."""

    host: Host
    address: str
    sender: str
    storage: Storage
    code_address: str


class Host:
    """Accounts, code placement and call dispatch."""

    def __init__(
        self,
        journal: StateJournal,
        clock: Callable[[], int] | None = None,
    ) -> None:
        self._journal = journal
        self._clock = clock or wall_clock
        self._accounts: dict[str, Account] = {}
        self._programs: dict[str, Program] = {}

    @property
    def timestamp(self) -> int:
        return self._clock()

    # -- code ----------------------------------------------------------------

    def register_program(self, code: bytes, program: Program) -> str:
        """Attach *program* to every account whose code is *code*."""
        code_hash = Web3.to_hex(keccak(code))
        self._programs[code_hash] = program
        log.debug("Registered program for code %s", code_hash)
        return code_hash

    def install(self, address: Any, code: bytes, *, deployer: Any = None) -> Account:
        """Place *code* at a fixed address (pre-deployed implementations)."""
        address = require_address(address, "address")
        if not code:
            raise InvalidPayload("Cannot install empty code", address=address)
        if address in self._accounts:
            raise InstantiationFailed(
                f"Address {address} already holds code", address=address,
            )
        account = self._new_account(address, code, deployer or address)
        log.info("Installed %d bytes of code at %s", len(code), address)
        return account

    def deploy(self, deployer: str, salt: str, code: bytes) -> Account:
        """Place *code* at its CREATE2 address for (*deployer*, *salt*)."""
        code_hash = Web3.to_hex(keccak(code))
        address = create2_address(deployer, salt, code_hash)
        if address in self._accounts:
            raise InstantiationFailed(
                f"CREATE2 collision: {address} already holds code",
                address=address,
                salt=salt,
            )
        return self._new_account(address, code, deployer)

    def _new_account(self, address: str, code: bytes, deployer: str) -> Account:
        account = Account(
            address=address,
            code=bytes(code),
            code_hash=Web3.to_hex(keccak(code)),
            deployer=to_address(deployer, "deployer"),
            created_at=self._clock(),
            storage=Storage(self._journal),
        )
        self._journal.set_item(self._accounts, address, account)
        return account

    # -- accounts ------------------------------------------------------------

    def has_code(self, address: Any) -> bool:
        return to_address(address) in self._accounts

    def get_account(self, address: Any) -> Account:
        address = to_address(address)
        if address not in self._accounts:
            raise NotFound(f"No code at {address}", address=address)
        return self._accounts[address]

    # -- calls ---------------------------------------------------------------

    def call(self, sender: str, to: str, data: bytes) -> bytes:
        """Run the program behind *to* with *data*; raises on failure."""
        account = self.get_account(to)
        code_account = account
        target = proxy_target(account.code)
        if target is not None:
            code_account = self.get_account(target)

        program = self._programs.get(code_account.code_hash)
        if program is None:
            log.debug("No program for %s, call is a no-op", code_account.address)
            return b""

        ctx = CallContext(
            host=self,
            address=account.address,
            sender=sender,
            storage=account.storage,
            code_address=code_account.address,
        )
        return program(ctx, data) or b""
