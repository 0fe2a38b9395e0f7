"""Attribute-style access to binding tables.

`BindingNamespace` lets host code read bindings as attributes, the way
module globals are read. Every attribute read is routed through
`BindingTable.lookup`, so deferred bindings resolve on first access.
"""

from typing import Any

from lazybind.errors import BindingNotFoundError
from lazybind.table import BindingTable


class BindingNamespace:
    """Namespace object backed by a binding table."""

    def __init__(self, table: BindingTable | None = None) -> None:
        """Initialize a namespace.

        Args:
            table: Backing table, a new empty table if not provided.
        """
        object.__setattr__(self, '_table', table if table is not None else BindingTable())

    def __repr__(self) -> str:
        """Namespace representation, never resolving anything."""
        return f'{type(self).__name__}({sorted(self._table)!r})'

    def __getattr__(self, name: str) -> Any:  # noqa: ANN401
        """Read a binding, resolving it if deferred."""
        try:
            return self._table.lookup(name)
        except BindingNotFoundError:
            raise AttributeError(
                f'{type(self).__name__!r} object has no attribute {name!r}',
                name=name,
                obj=self,
            ) from None

    def __setattr__(self, name: str, value: Any) -> None:  # noqa: ANN401
        """Bind a concrete value."""
        self._table[name] = value

    def __delattr__(self, name: str) -> None:
        """Remove a binding."""
        try:
            del self._table[name]
        except BindingNotFoundError:
            raise AttributeError(name) from None

    def __dir__(self) -> list[str]:
        """Binding identifiers, without resolving anything."""
        return sorted(self._table)


def namespace_table(namespace: BindingNamespace) -> BindingTable:
    """Get the table backing a namespace."""
    return object.__getattribute__(namespace, '_table')
