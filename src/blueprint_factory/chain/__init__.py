"""Execution layer — address derivation, host, journal, events, governance."""

from blueprint_factory.chain.events import Event, EventLog
from blueprint_factory.chain.governance import Governance
from blueprint_factory.chain.host import Account, CallContext, Host
from blueprint_factory.chain.journal import StateJournal, entrypoint
from blueprint_factory.chain.publisher import ZmqEventPublisher

__all__ = [
    "Account",
    "CallContext",
    "Event",
    "EventLog",
    "Governance",
    "Host",
    "StateJournal",
    "ZmqEventPublisher",
    "entrypoint",
]
