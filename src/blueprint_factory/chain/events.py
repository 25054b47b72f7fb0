"""Notification events emitted on every state transition.

Events are buffered in the ``EventLog`` as part of the transaction that
produced them: a rolled-back transaction drops its events, and subscribers
only see events after the outermost transaction commits.  Off-chain
indexers can rebuild full history from the event stream alone.
"""

from __future__ import annotations

import logging
from typing import Any, Callable

from pydantic import BaseModel, ConfigDict, Field

from blueprint_factory.chain.journal import StateJournal

log = logging.getLogger(__name__)

# Event kinds
BLUEPRINT_REGISTERED = "blueprint.registered"
BLUEPRINT_UPDATED = "blueprint.updated"
BLUEPRINT_ACTIVATED = "blueprint.activated"
BLUEPRINT_DEACTIVATED = "blueprint.deactivated"
DEPLOYMENT_RECORDED = "blueprint.deployment_recorded"
INSTANCE_CREATED = "instance.created"
INSTANCE_DEACTIVATED = "instance.deactivated"
IMPLEMENTATION_BOUND = "implementation.bound"
FACTORY_BOUND = "registry.factory_bound"
PAUSED = "governance.paused"
UNPAUSED = "governance.unpaused"
ADMIN_TRANSFERRED = "governance.admin_transferred"

EVENT_KINDS = frozenset({
    BLUEPRINT_REGISTERED,
    BLUEPRINT_UPDATED,
    BLUEPRINT_ACTIVATED,
    BLUEPRINT_DEACTIVATED,
    DEPLOYMENT_RECORDED,
    INSTANCE_CREATED,
    INSTANCE_DEACTIVATED,
    IMPLEMENTATION_BOUND,
    FACTORY_BOUND,
    PAUSED,
    UNPAUSED,
    ADMIN_TRANSFERRED,
})

Subscriber = Callable[["Event"], None]


class Event(BaseModel):
    """One committed state transition."""

    model_config = ConfigDict(frozen=True)

    seq: int
    kind: str
    source: str
    timestamp: int
    args: dict[str, Any] = Field(default_factory=dict)


class EventLog:
    """Append-only, transaction-aware event buffer with subscribers."""

    def __init__(self, journal: StateJournal, clock: Callable[[], int]) -> None:
        self._journal = journal
        self._clock = clock
        self._events: list[Event] = []
        self._delivered = 0
        self._subscribers: list[Subscriber] = []
        journal.on_commit(self.flush)

    # -- emitting ------------------------------------------------------------

    def emit(self, kind: str, source: str, **args: Any) -> Event:
        if kind not in EVENT_KINDS:
            raise ValueError(f"Unknown event kind '{kind}'")
        event = Event(
            seq=len(self._events) + 1,
            kind=kind,
            source=source,
            timestamp=self._clock(),
            args=args,
        )
        self._journal.append(self._events, event)
        return event

    def subscribe(self, subscriber: Subscriber) -> None:
        self._subscribers.append(subscriber)

    def flush(self) -> None:
        """Deliver committed, not yet delivered events to subscribers."""
        pending = self._events[self._delivered:]
        self._delivered = len(self._events)
        for event in pending:
            for subscriber in self._subscribers:
                try:
                    subscriber(event)
                except Exception as exc:
                    log.warning("Event subscriber failed on %s #%d: %s", event.kind, event.seq, exc)

    # -- queries -------------------------------------------------------------

    def events(self, kind: str | None = None) -> list[Event]:
        if kind is None:
            return list(self._events)
        return [e for e in self._events if e.kind == kind]

    def __len__(self) -> int:
        return len(self._events)
