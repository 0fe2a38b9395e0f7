"""Binding tables.

A binding table is an ordered mapping of identifiers to slots. It behaves
as a regular mutable mapping to its consumers: every read of a value goes
through `lookup`, which resolves deferred slots transparently and replaces
them with their outcome, so a placeholder is never observed from outside.

Bulk copies between tables transfer placeholders without resolving them,
while bulk reads of values resolve every deferred slot they meet.
"""

import logging
from collections.abc import Iterator, Mapping, MutableMapping
from threading import Lock
from typing import TYPE_CHECKING, Any

from lazybind.engine import ResolutionEngine
from lazybind.errors import BindingNotFoundError, ResolutionCycleError
from lazybind.values import Deferred, Failed, Resolved

if TYPE_CHECKING:
    from typing import Self

if TYPE_CHECKING:
    from lazybind.values import Slot

logger = logging.getLogger(__name__)


class BindingTable(MutableMapping[str, Any]):
    """Mapping of identifiers to lazily resolved values.

    Structural changes of the table are guarded by a table lock that is
    never held while a thunk runs; resolution of a deferred slot is
    guarded by the slot's own lock. A thunk may therefore look up other
    identifiers of the table it is registered into.

    Attributes:
        engine: Resolution engine used for deferred slots.
        may_contain_deferred: Advisory flag set the first time a deferred
            slot is inserted. It is never cleared.
    """

    def __init__(self, data: Mapping[str, Any] | None = None, /, *,
                 engine: ResolutionEngine | None = None,
                 **values: Any) -> None:  # noqa: ANN401
        """Initialize a table.

        Args:
            data: Optional initial bindings. Another `BindingTable` is copied
                slot by slot, keeping its placeholders deferred.
            engine: Resolution engine, a default engine if not provided.
            values: Additional initial bindings.
        """
        self.engine = engine or ResolutionEngine()
        self.may_contain_deferred = False

        self._lock = Lock()
        self._slots: dict[str, Slot] = {}

        if data is not None:
            self.update(data)
        if values:
            self.update(values)

    def __repr__(self) -> str:
        """Representation that never resolves anything."""
        with self._lock:
            keys = list(self._slots)
            pending = 0
            if self.may_contain_deferred:
                pending = sum(isinstance(slot, Deferred) for slot in self._slots.values())

        return f'{type(self).__name__}({keys!r}, deferred={pending})'

    def __getitem__(self, identifier: str) -> Any:  # noqa: ANN401
        """Look up a value, resolving it if deferred."""
        return self.lookup(identifier)

    def __setitem__(self, identifier: str, value: Any) -> None:  # noqa: ANN401
        """Bind a concrete value."""
        self.insert(identifier, Resolved(value=value))

    def __delitem__(self, identifier: str) -> None:
        """Remove a binding in any state."""
        with self._lock:
            if identifier not in self._slots:
                raise BindingNotFoundError(identifier)
            del self._slots[identifier]

    def clear(self) -> None:
        """Remove all bindings without resolving them."""
        with self._lock:
            self._slots.clear()

    def __iter__(self) -> Iterator[str]:
        """Iterate over identifiers without resolving anything."""
        with self._lock:
            keys = list(self._slots)

        return iter(keys)

    def __len__(self) -> int:
        """Number of bindings in any state."""
        return len(self._slots)

    def __contains__(self, identifier: object) -> bool:
        """Check for a binding without resolving it."""
        return identifier in self._slots

    def insert(self, identifier: str, slot: 'Slot') -> None:
        """Store a slot as is.

        Inserting never resolves anything. A deferred slot sets the
        `may_contain_deferred` flag.

        Args:
            identifier: Binding identifier.
            slot: Slot to store.

        Raises:
            TypeError: If the identifier is not a string or the slot
                is not one of the slot variants.
        """
        if not isinstance(identifier, str):
            raise TypeError(f'Can not use {identifier!r} as binding identifier')

        match slot:
            case Deferred():
                deferred = True
            case Resolved() | Failed():
                deferred = False
            case _:
                raise TypeError(f'{slot!r} is not a binding slot')

        with self._lock:
            self._slots[identifier] = slot
            if deferred:
                self.may_contain_deferred = True

    def lookup(self, identifier: str) -> Any:  # noqa: ANN401
        """Get the value bound to an identifier.

        A deferred slot is resolved synchronously by the current thread and
        replaced by its outcome before this method returns.

        Args:
            identifier: Binding identifier.

        Returns:
            The bound value. Every lookup after a successful resolution
            returns the identical object.

        Raises:
            BindingNotFoundError: If the identifier is not bound.
            DeferredResolutionError: If the deferred resolution failed,
                now or on an earlier lookup.
            ResolutionCycleError: If the slot is looked up from its own
                thunk.
            BaseException: Fatal failures of the thunk, unwrapped.
        """
        match self.slot(identifier):
            case Resolved(value=value):
                return value
            case Failed() as outcome:
                return self.engine.unwrap(outcome)
            case Deferred() as slot:
                return self._resolve(identifier, slot)
            case slot:
                raise TypeError(f'{slot!r} is not a binding slot')

    def slot(self, identifier: str) -> 'Slot':
        """Get the raw slot of an identifier without resolving it.

        Intended for diagnostics and tooling only.

        Raises:
            BindingNotFoundError: If the identifier is not bound.
        """
        try:
            return self._slots[identifier]
        except KeyError:
            raise BindingNotFoundError(identifier) from None

    def probe_is_deferred(self, identifier: str) -> bool:
        """Check whether a binding is still deferred.

        The slot is never resolved or otherwise modified by this check.

        Raises:
            BindingNotFoundError: If the identifier is not bound.
        """
        return isinstance(self.slot(identifier), Deferred)

    def copy(self) -> 'Self':
        """Copy the table without resolving any placeholder."""
        return bulk_copy(self, type(self)(engine=self.engine))

    def merge(self, other: 'BindingTable') -> None:
        """Merge slots of another table into this one.

        Placeholders are transferred deferred; existing identifiers are
        overwritten. The `may_contain_deferred` flag is propagated.
        """
        with other._lock:  # noqa: SLF001
            slots = list(other._slots.items())  # noqa: SLF001
            contains_deferred = other.may_contain_deferred

        with self._lock:
            for identifier, slot in slots:
                if isinstance(slot, Deferred):
                    slot = slot.detach()  # noqa: PLW2901
                self._slots[identifier] = slot
            if contains_deferred:
                self.may_contain_deferred = True

    def update(self, other: Any = (), /, **values: Any) -> None:  # noqa: ANN401
        """Update the table from a mapping, an iterable of pairs or keywords.

        Another `BindingTable` is merged slot by slot without resolution.
        """
        if isinstance(other, BindingTable):
            self.merge(other)
            other = ()

        super().update(other, **values)

    def resolve_all(self) -> dict[str, Any]:
        """Resolve every binding and return a plain dictionary.

        A table that never held a deferred slot is read from a single
        snapshot, without per-identifier lookups.

        Raises:
            DeferredResolutionError: On the first failed resolution.
        """
        slots: list[tuple[str, Resolved | Failed]] | None = None
        with self._lock:
            if not self.may_contain_deferred:
                slots = list(self._slots.items())  # type: ignore[arg-type]

        if slots is None:
            return dict(self.items())

        return {identifier: self.engine.unwrap(slot) for identifier, slot in slots}

    def _resolve(self, identifier: str, slot: Deferred) -> Any:  # noqa: ANN401
        """Resolve a deferred slot and store its outcome.

        Only one thread runs the thunk; others block on the slot lock and
        then read the stored outcome. If the slot was replaced or removed
        meanwhile, the lookup is repeated against the current state.
        """
        if slot.resolving:
            raise ResolutionCycleError(slot.placeholder.target)

        outcome: Resolved | Failed | None = None

        with slot.exclusive():
            if self._slots.get(identifier) is slot:
                outcome = self.engine.resolve(slot.placeholder, identifier=identifier)
                with self._lock:
                    if self._slots.get(identifier) is slot:
                        self._slots[identifier] = outcome

        if outcome is None:
            logger.debug('Binding %r was resolved concurrently', identifier)
            return self.lookup(identifier)

        return self.engine.unwrap(outcome)


def bulk_copy[T: BindingTable](source: BindingTable, dest: T) -> T:
    """Copy every slot of `source` into `dest` without resolution.

    Args:
        source: Table to copy from.
        dest: Table to copy into.

    Returns:
        The destination table.
    """
    dest.merge(source)

    return dest


def probe_is_deferred(table: BindingTable, identifier: str) -> bool:
    """Check whether a binding of a table is still deferred."""
    return table.probe_is_deferred(identifier)
