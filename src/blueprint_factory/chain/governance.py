"""Governance — the administrator identity and the global pause flag."""

from __future__ import annotations

import logging
from typing import Any

from blueprint_factory.chain.address import require_address, to_address
from blueprint_factory.chain.events import ADMIN_TRANSFERRED, PAUSED, UNPAUSED, EventLog
from blueprint_factory.chain.journal import StateJournal
from blueprint_factory.core.errors import Unauthorized

log = logging.getLogger(__name__)

_SOURCE = "governance"


class Governance:
    """Process-wide configuration shared by the registry and the factory.

    Holds one distinguished administrator and the pause flag.  Both are
    changed only through the admin-gated methods below; pausing blocks
    every mutating entry point of both components but never queries.
    """

    def __init__(
        self,
        admin: str,
        journal: StateJournal,
        events: EventLog,
        *,
        paused: bool = False,
    ) -> None:
        self._admin = require_address(admin, "admin")
        self._paused = paused
        self._journal = journal
        self._events = events

    # -- accessors -----------------------------------------------------------

    @property
    def admin(self) -> str:
        return self._admin

    @property
    def paused(self) -> bool:
        return self._paused

    def is_admin(self, address: Any) -> bool:
        return to_address(address) == self._admin

    def require_admin(self, sender: str, operation: str) -> None:
        if sender != self._admin:
            raise Unauthorized(
                f"{operation} requires the administrator; caller {sender} is not",
                operation=operation,
                caller=sender,
            )

    # -- admin toggles -------------------------------------------------------

    def pause(self, sender: Any) -> None:
        sender = to_address(sender, "sender")
        with self._journal.atomic():
            self.require_admin(sender, "pause")
            self._journal.set_attr(self, "_paused", True)
            self._events.emit(PAUSED, _SOURCE, by=sender)
        log.info("System paused by %s", sender)

    def unpause(self, sender: Any) -> None:
        sender = to_address(sender, "sender")
        with self._journal.atomic():
            self.require_admin(sender, "unpause")
            self._journal.set_attr(self, "_paused", False)
            self._events.emit(UNPAUSED, _SOURCE, by=sender)
        log.info("System unpaused by %s", sender)

    def transfer_admin(self, sender: Any, new_admin: Any) -> None:
        sender = to_address(sender, "sender")
        with self._journal.atomic():
            self.require_admin(sender, "transfer_admin")
            self._journal.set_attr(self, "_admin", require_address(new_admin, "new_admin"))
            self._events.emit(
                ADMIN_TRANSFERRED, _SOURCE, previous=sender, admin=self._admin,
            )
        log.info("Administrator transferred from %s to %s", sender, self._admin)
