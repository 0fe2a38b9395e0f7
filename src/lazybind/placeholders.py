"""Deferred placeholder records.

A placeholder captures everything needed to resolve a binding later:
the target it stands for, the thunk computing the value, and the origin
of the declaration used for diagnostics. Placeholders carry no resolution
logic; the resolution engine decides what to do with their outcome.
"""

from collections.abc import Callable
from inspect import currentframe
from typing import TYPE_CHECKING, Any

from pydantic import Field

from lazybind.models import SchemaModel

if TYPE_CHECKING:
    from typing import Self

#: A thunk is a zero-argument, possibly side-effecting computation.
type Thunk = Callable[[], Any]


class Origin(SchemaModel):
    """Provenance of a deferred declaration."""

    filename: str | None = Field(
        default=None,
        title='Filename',
        description='Source file in which the binding was declared.',
    )

    line_num: int | None = Field(
        default=None,
        title='Line number',
        description='One-based line number of the declaration.',
    )

    scope: str | None = Field(
        default=None,
        title='Scope',
        description='Name of the declaring module or namespace.',
    )

    def __str__(self) -> str:
        """Short `file:line` representation."""
        location = self.filename or '<unknown>'
        if self.line_num is not None:
            location += f':{self.line_num}'

        return location

    @classmethod
    def capture(cls, stacklevel: int = 1) -> 'Self':
        """Record the location of a caller frame.

        Args:
            stacklevel: How many frames above the caller of `capture`
                to look at. `1` refers to the direct caller.

        Returns:
            Origin of the selected frame, or an empty origin when the
            interpreter does not expose frames.
        """
        frame = currentframe()
        for _ in range(stacklevel):
            if frame is None:
                break
            frame = frame.f_back

        if frame is None:
            return cls()

        try:
            return cls(
                filename=frame.f_code.co_filename,
                line_num=frame.f_lineno,
                scope=frame.f_globals.get('__name__'),
            )
        finally:
            del frame


class Placeholder(SchemaModel):
    """Stand-in for the value of a binding that is not resolved yet."""

    target: str = Field(
        title='Target',
        description=(
            'Identifier of the underlying target. Placeholders in different '
            'tables that share a target share one resolution through the '
            'resolution registry.'
        ),
    )

    thunk: Thunk = Field(
        title='Thunk',
        description='Computation producing the bound value.',
        repr=False,
    )

    origin: Origin = Field(
        default_factory=Origin,
        title='Origin',
        description='Declaration site used for error reporting.',
    )

    def invoke(self) -> Any:  # noqa: ANN401
        """Run the thunk and return whatever it produces.

        Raises:
            Any exception raised by the thunk, unchanged.
        """
        return self.thunk()
