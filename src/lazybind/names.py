"""Binding and target name primitive types.

This module defines the name patterns used to validate resolution targets
(dotted module paths) in policy documents and import declarations.
"""

from re import ASCII
from re import compile as regexp
from typing import Annotated

from pydantic import Field

#: Base pattern for a single name segment.
_NAME_PATTERN = r'[a-zA-Z_]\w*'

#: Compiled pattern for dotted resolution targets ("json", "xml.etree").
TARGET_PATTERN = regexp(
    rf'^{_NAME_PATTERN}(\.{_NAME_PATTERN})*$',
    flags=ASCII,
)


Target = Annotated[
    str, Field(
        pattern=rf'^{_NAME_PATTERN}(\.{_NAME_PATTERN})*$',
        title='Resolution target',
        description=(
            'Dotted name of the target a deferred binding resolves to, '
            'for example a module path. Names listed in an eager policy '
            'also match every target nested below them.'
        ),
        examples=[
            'json',
            'xml.etree.ElementTree',
        ],
    ),
]


def parent_targets(target: str) -> list[str]:
    """List a dotted target together with all of its parents.

    Args:
        target: Dotted target name.

    Returns:
        Names from the most specific to the top-level one,
        for example `['a.b.c', 'a.b', 'a']`.
    """
    parts = target.split('.')

    return [
        '.'.join(parts[:index])
        for index in range(len(parts), 0, -1)
    ]
