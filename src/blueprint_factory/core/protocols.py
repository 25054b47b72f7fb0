"""PEP 544 structural protocols for BlueprintFactory components."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from blueprint_factory.chain.host import CallContext


@runtime_checkable
class Program(Protocol):
    """Behaviour attached to a piece of code in the execution host.

    Raising aborts the call; the host reports it to the caller.
    """

    def __call__(self, ctx: CallContext, data: bytes) -> bytes | None:
        ...
