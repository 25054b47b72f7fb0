"""StateJournal — all-or-nothing transactions over every state owner.

Each mutating entry point runs inside ``journal.atomic()``.  Components
write through the journal (``set_item``, ``append``, ``set_attr``, ...),
which applies the change to the live object and pushes the inverse onto an
undo log.  If a block raises, the log is unwound back to where the block
started, so a failed operation leaves no partial effect anywhere (host,
registry, factory, event log) and every reference to live state stays
valid.  Nested blocks act as savepoints.  Commit hooks run once the
outermost block completes.

Outside a transaction writes are applied without being logged.
"""

from __future__ import annotations

import functools
import logging
from contextlib import contextmanager
from typing import Any, Callable, Iterator, MutableMapping, MutableSequence, TypeVar

from blueprint_factory.chain.address import to_address
from blueprint_factory.core.errors import Paused, Reentrancy

log = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])

Undo = Callable[[], None]


class StateJournal:
    """Undo log shared by all components."""

    def __init__(self) -> None:
        self._undo: list[Undo] = []
        self._commit_hooks: list[Callable[[], None]] = []
        self._depth = 0

    def on_commit(self, hook: Callable[[], None]) -> None:
        self._commit_hooks.append(hook)

    @property
    def in_transaction(self) -> bool:
        return self._depth > 0

    @property
    def pending(self) -> int:
        """Number of undo entries held by the open transaction."""
        return len(self._undo)

    @contextmanager
    def atomic(self) -> Iterator[None]:
        mark = len(self._undo)
        self._depth += 1
        try:
            yield
        except BaseException:
            self._rollback(mark)
            raise
        finally:
            self._depth -= 1
        if self._depth == 0:
            self._undo.clear()
            for hook in self._commit_hooks:
                hook()

    def _rollback(self, mark: int) -> None:
        undone = len(self._undo) - mark
        while len(self._undo) > mark:
            self._undo.pop()()
        log.debug("Transaction rolled back %d writes (depth %d)", undone, self._depth)

    # -- journaled writes ----------------------------------------------------

    def record(self, undo: Undo) -> None:
        """Push *undo* if a transaction is open."""
        if self._depth:
            self._undo.append(undo)

    def set_item(self, container: MutableMapping | MutableSequence, key: Any, value: Any) -> None:
        try:
            old = container[key]
        except KeyError:
            self.record(lambda: container.__delitem__(key))
        else:
            self.record(lambda: container.__setitem__(key, old))
        container[key] = value

    def del_item(self, container: MutableMapping, key: Any) -> None:
        old = container[key]
        del container[key]
        self.record(lambda: container.__setitem__(key, old))

    def append(self, seq: MutableSequence, value: Any) -> None:
        seq.append(value)
        self.record(seq.pop)

    def add_to_index(self, index: MutableMapping[Any, list], key: Any, value: Any) -> None:
        """Append *value* to ``index[key]``, creating the bucket if needed."""
        if key in index:
            self.append(index[key], value)
        else:
            self.set_item(index, key, [value])

    def set_attr(self, obj: Any, name: str, value: Any) -> None:
        old = getattr(obj, name)
        self.record(lambda: setattr(obj, name, old))
        setattr(obj, name, value)


def entrypoint(method: F) -> F:
    """Wrap a component method as a guarded, atomic entry point.

    The wrapped method's first argument is the caller identity.  The owning
    component must expose ``_journal``, ``_governance`` and ``_entered``.
    The guard is released before the transaction commits, so commit hooks
    may call back into the component.
    """

    @functools.wraps(method)
    def wrapper(self: Any, sender: Any, *args: Any, **kwargs: Any) -> Any:
        sender = to_address(sender, "sender")
        if self._governance.paused:
            raise Paused(
                f"{type(self).__name__}.{method.__name__} rejected: system is paused",
                operation=method.__name__,
            )
        if self._entered:
            raise Reentrancy(
                f"{type(self).__name__}.{method.__name__} re-entered",
                operation=method.__name__,
            )
        with self._journal.atomic():
            self._entered = True
            try:
                return method(self, sender, *args, **kwargs)
            finally:
                self._entered = False

    return wrapper  # type: ignore[return-value]
