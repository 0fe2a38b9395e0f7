"""Binding slot types.

A binding table never stores values directly. Every identifier maps to a
slot, a tagged union of three variants:

- `Resolved` holds a concrete value;
- `Deferred` holds a placeholder awaiting its first lookup;
- `Failed` holds the wrapped error of a resolution that failed.

`Resolved` and `Failed` are terminal. A `Deferred` slot is replaced by one
of them in its table when it is looked up; slots are never mutated in place.
"""

from collections.abc import Iterator
from contextlib import contextmanager
from threading import Lock, get_ident
from typing import Any

from pydantic import Field, PrivateAttr

from lazybind.errors import DeferredResolutionError  # noqa: TC001
from lazybind.models import SchemaModel
from lazybind.placeholders import Placeholder  # noqa: TC001


class Resolved(SchemaModel):
    """Slot holding a concrete value."""

    value: Any = Field(
        title='Value',
        description='Bound value, stored as is without copying.',
    )


class Failed(SchemaModel):
    """Slot holding the outcome of a permanently failed resolution."""

    error: DeferredResolutionError = Field(
        title='Error',
        description='Wrapped failure re-raised on every lookup.',
    )


class Deferred(SchemaModel):
    """Slot holding a placeholder that has not been resolved yet.

    Each deferred slot owns a lock, so concurrent lookups of the same
    slot run its thunk only once. Copying a placeholder into another table
    creates a new `Deferred` slot with its own lock.
    """

    placeholder: Placeholder = Field(
        title='Placeholder',
        description='Deferred computation of the bound value.',
    )

    _lock: Lock = PrivateAttr(default_factory=Lock)
    _owner: int | None = PrivateAttr(default=None)

    @property
    def resolving(self) -> bool:
        """Whether the current thread is resolving this slot."""
        return self._owner == get_ident()

    @contextmanager
    def exclusive(self) -> Iterator[None]:
        """Hold the slot for resolution by the current thread.

        Other threads entering this context block until the holder leaves it.
        """
        with self._lock:
            self._owner = get_ident()
            try:
                yield
            finally:
                self._owner = None

    def detach(self) -> 'Deferred':
        """Create an independent slot around the same placeholder."""
        return Deferred(placeholder=self.placeholder)


#: A slot is exactly one of the three variants.
type Slot = Resolved | Deferred | Failed
