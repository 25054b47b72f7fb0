"""ZeroMQ PUB publisher that streams committed events to off-chain indexers.

Each event goes out as a two-frame message: ``[kind, event-json]`` so
subscribers can filter on the kind prefix (``blueprint.``, ``instance.``).
"""

from __future__ import annotations

import logging

import zmq

from blueprint_factory.chain.events import Event
from blueprint_factory.core.errors import FactoryError

log = logging.getLogger(__name__)


class EventPublishError(FactoryError):
    """Failed to bind or write the ZeroMQ publisher socket."""

    code = "EventPublishError"


class ZmqEventPublisher:
    """Event-log subscriber that publishes on a bound PUB socket."""

    def __init__(self, endpoint: str = "tcp://127.0.0.1:5570") -> None:
        self._endpoint = endpoint
        self._ctx: zmq.Context | None = None
        self._socket: zmq.Socket | None = None
        self.published = 0

    @property
    def endpoint(self) -> str:
        return self._endpoint

    # -- lifecycle -----------------------------------------------------------

    def connect(self) -> None:
        try:
            self._ctx = zmq.Context()
            self._socket = self._ctx.socket(zmq.PUB)
            self._socket.setsockopt(zmq.LINGER, 0)
            self._socket.bind(self._endpoint)
        except zmq.ZMQError as exc:
            self.close()
            raise EventPublishError(
                f"Cannot bind event publisher at {self._endpoint}: {exc}",
                endpoint=self._endpoint,
            ) from exc
        log.info("Event publisher bound at %s", self._endpoint)

    def close(self) -> None:
        if self._socket is not None:
            self._socket.close()
            self._socket = None
        if self._ctx is not None:
            self._ctx.term()
            self._ctx = None

    # -- subscriber ----------------------------------------------------------

    def __call__(self, event: Event) -> None:
        if self._socket is None:
            raise EventPublishError("Not connected; call connect() first")
        self._socket.send_multipart([
            event.kind.encode(),
            event.model_dump_json().encode(),
        ])
        self.published += 1
