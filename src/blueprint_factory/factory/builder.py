"""FactoryBuilder — assembles a fully wired registry/factory stack.

Given settings, instantiates:
    StateJournal → EventLog → Governance → Host → BlueprintRegistry → DeploymentFactory

and binds the factory into the registry so deployments can be recorded.
An event publisher is attached when ``events.endpoint`` is configured.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable

from blueprint_factory.chain.events import EventLog
from blueprint_factory.chain.governance import Governance
from blueprint_factory.chain.host import Host, wall_clock
from blueprint_factory.chain.journal import StateJournal
from blueprint_factory.chain.publisher import ZmqEventPublisher
from blueprint_factory.core.errors import ConfigError, FactoryError
from blueprint_factory.core.settings import Settings, load_settings
from blueprint_factory.factory.factory import DeploymentFactory
from blueprint_factory.registry.registry import BlueprintRegistry

log = logging.getLogger(__name__)


@dataclass
class BuiltSystem:
    """All wired components returned by the builder."""

    settings: Settings
    journal: StateJournal
    events: EventLog
    governance: Governance
    host: Host
    registry: BlueprintRegistry
    factory: DeploymentFactory
    publisher: ZmqEventPublisher | None = None

    def close(self) -> None:
        if self.publisher is not None:
            self.publisher.close()


class FactoryBuilder:
    """Builds a registry/factory stack from settings."""

    def build(
        self,
        settings: Settings | dict[str, Any] | None = None,
        *,
        clock: Callable[[], int] | None = None,
        connect: bool = True,
    ) -> BuiltSystem:
        """Instantiate all components described by *settings*.

        *settings* may be a ``Settings`` object, a dict of overrides for
        the defaults, or None for the defaults.  If *connect* is False the
        event publisher is not bound even when an endpoint is configured.
        """
        try:
            return self._build(self._resolve(settings), clock or wall_clock, connect)
        except FactoryError:
            raise
        except Exception as exc:
            raise ConfigError(f"Failed to build factory stack: {exc}") from exc

    @staticmethod
    def _resolve(settings: Settings | dict[str, Any] | None) -> Settings:
        if isinstance(settings, Settings):
            return settings
        return load_settings(**(settings or {}))

    def _build(self, settings: Settings, clock: Callable[[], int], connect: bool) -> BuiltSystem:
        journal = StateJournal()
        events = EventLog(journal, clock)
        governance = Governance(settings.admin, journal, events, paused=False)
        host = Host(journal, clock)

        # Subscribe before wiring so the binding and pause events are streamed.
        publisher: ZmqEventPublisher | None = None
        if settings.events.endpoint and connect:
            publisher = ZmqEventPublisher(settings.events.endpoint)
            publisher.connect()
            events.subscribe(publisher)
        try:
            registry, factory = self._wire(settings, journal, events, governance, host, clock)
        except Exception:
            if publisher is not None:
                publisher.close()
            raise

        log.info(
            "Built factory stack: registry=%s factory=%s admin=%s",
            registry.address, factory.address, governance.admin,
        )
        return BuiltSystem(
            settings=settings,
            journal=journal,
            events=events,
            governance=governance,
            host=host,
            registry=registry,
            factory=factory,
            publisher=publisher,
        )

    @staticmethod
    def _wire(
        settings: Settings,
        journal: StateJournal,
        events: EventLog,
        governance: Governance,
        host: Host,
        clock: Callable[[], int],
    ) -> tuple[BlueprintRegistry, DeploymentFactory]:
        registry = BlueprintRegistry(
            settings.registry_address, governance, journal, events, clock,
        )
        factory = DeploymentFactory(
            settings.factory_address,
            registry,
            governance,
            journal,
            events,
            host,
            max_code_size=settings.max_code_size,
        )
        registry.set_factory(governance.admin, factory.address)

        # Pause last so wiring itself is not blocked.
        if settings.paused:
            governance.pause(governance.admin)
        return registry, factory
