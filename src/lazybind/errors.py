"""Core exception hierarchy.

This module defines base error and warning types used across the library
to report missing bindings, failed deferred resolutions, resolution cycles
and invalid policy configuration in a structured and extensible way.

Deferred failures are usually raised far away from the declaration that
caused them, so every error may carry an origin and a YAML snippet of the
declaration to keep the underlying cause traceable.
"""

from os import linesep
from typing import TYPE_CHECKING, Any, TypedDict

from yaml import dump
from yaml.error import MarkedYAMLError

if TYPE_CHECKING:
    from typing import Self

if TYPE_CHECKING:
    from pydantic import ValidationError

if TYPE_CHECKING:
    from lazybind.placeholders import Origin, Placeholder

SNIPPET_ELLIPSIS = f' ...{linesep}'
SNIPPET_INDENT = 2

FORMAT_REPLACER = '<runtime object>'
FORMAT_FILENAME = '<unknown source>'
FORMAT_INDENT = 4

MAPPINGS = (dict,)
SCALARS = (str, bytes, int, float, bool)
SEQUENCES = (list, tuple, set)


class ErrorContext(TypedDict, total=False):
    """Container describing contextual information for error formatting.

    All fields are optional; the formatter adapts output based on
    provided values.
    """

    #: Name of the source file where the binding was declared.
    filename: str | None

    #: One-based line number in the source file.
    line_num: int | None
    #: One-based column number in the source file.
    column_num: int | None

    #: Name of the declaring module or namespace.
    scope: str | None

    #: Underlying exception that triggered formatting.
    error: BaseException | None

    #: Declaration data rendered as a snippet.
    element: Any


class ErrorFormatter:
    """Utility class for formatting binding-related errors.

    This formatter is responsible for producing human-readable
    error messages with optional origin location and YAML-based
    declaration snippets.
    """

    @classmethod
    def format(cls, message: str, context: ErrorContext | None = None) -> str:
        """Format an error message using contextual information.

        Args:
            message: Base human-readable error message.
            context: Optional error context with location and data.

        Returns:
            A fully formatted error message suitable for display.
        """
        if not context:
            return message

        message += linesep
        message += cls.get_location_string(context, indent=FORMAT_INDENT)
        message += cls.get_snippet_string(context, indent=FORMAT_INDENT * 2)

        return message

    @classmethod
    def get_location_string(cls, context: ErrorContext, *,
                            indent: str | int | None = None) -> str:
        """Format origin location information.

        Args:
            context: Error context containing location metadata.
            indent: Optional indentation (string or number of spaces).

        Returns:
            A formatted location string including filename, line,
            column and declaring scope when available.
        """
        indent = cls._ensure_indent(indent)

        filename = context.get('filename')
        if not filename:
            filename = FORMAT_FILENAME

        message = f'{indent}in "{filename}"'
        if (line_num := context.get('line_num')) is not None:
            message += f', line {line_num}'
            if (column_num := context.get('column_num')) is not None:
                message += f', column {column_num}'
        message += linesep

        if scope := context.get('scope'):
            message += f'{indent}declared in {scope}{linesep}'

        return message

    @classmethod
    def get_snippet_string(cls, context: ErrorContext, *,
                           indent: str | int | None = None) -> str:
        """Generate a formatted snippet illustrating the error context.

        Args:
            context: Error context containing declaration or YAML error data.
            indent: Optional indentation (string or number of spaces).

        Returns:
            A formatted multi-line snippet string, or an empty string
            if no snippet data is available.
        """
        indent = cls._ensure_indent(indent)

        error = context.get('error')
        if isinstance(error, MarkedYAMLError) and error.problem_mark is not None:
            snippet = error.problem_mark.get_snippet(indent=0) or ''
            return cls._make_indent(snippet, indent) + linesep

        if element := context.get('element'):
            snippet = f'{indent}{SNIPPET_ELLIPSIS}'
            snippet += cls._make_yaml(element, indent)
            snippet += linesep
            return snippet

        return ''

    @classmethod
    def _filter_unsafe(cls, value: Any) -> Any:  # noqa: ANN401
        """Recursively sanitize values for safe YAML serialization.

        Non-scalar and non-container objects are replaced with
        a placeholder to prevent dumping opaque runtime objects.

        Args:
            value: Arbitrary value to sanitize.

        Returns:
            A YAML-safe representation of the value.
        """
        if value is None or isinstance(value, SCALARS):
            return value

        if isinstance(value, MAPPINGS):
            return {
                key: cls._filter_unsafe(item)
                for key, item in value.items()
            }

        if isinstance(value, SEQUENCES):
            return [
                cls._filter_unsafe(item)
                for item in value
            ]

        return FORMAT_REPLACER

    @classmethod
    def _make_yaml(cls, value: Any, indent: str = '') -> str:  # noqa: ANN401
        """Serialize a value to a YAML-formatted string.

        Args:
            value: Arbitrary value to serialize.
            indent: Optional indentation prefix.

        Returns:
            A YAML-formatted string representation of the value.
        """
        data = dump(
            cls._filter_unsafe(value),
            indent=SNIPPET_INDENT,
            sort_keys=False,
        )

        return cls._make_indent(data, indent)

    @staticmethod
    def _make_indent(value: str, indent: str) -> str:
        """Apply indentation to a multi-line string.

        Empty or whitespace-only lines are omitted.
        """
        if not indent:
            return value

        return linesep.join(
            f'{indent}{line}'
            for line in value.splitlines()
            if line.strip()
        )

    @staticmethod
    def _ensure_indent(indent: str | int | None = None) -> str:
        """Normalize indentation input."""
        if isinstance(indent, int) and indent > 0:
            return ' ' * indent

        if isinstance(indent, str):
            return indent

        return ''


class PolicyWarning(UserWarning):
    """Warning emitted for non-fatal policy configuration issues.

    This warning is used when a policy file cannot be read or validated,
    but the error does not prevent further execution (relaxed mode).
    """


class LazyBindError(Exception, ErrorFormatter):
    """Base exception for all lazybind errors.

    All custom exceptions raised by the library inherit from this class
    to allow unified error handling by callers.
    """

    def __init__(self, message: str, *,
                 context: ErrorContext | None = None) -> None:
        """Initialize an error.

        Args:
            message: Human-readable error description.
            context: Error context containing optional origin data.
        """
        self.message = message
        self.context = context

        super().__init__(message)

    def __str__(self) -> str:
        """String represenatation."""
        return self.format(self.message, self.context)


class BindingNotFoundError(LazyBindError, KeyError):
    """Error raised on lookup of an identifier absent from a table.

    Subclasses `KeyError`, so mapping helpers such as `get()` and
    `setdefault()` keep their usual semantics.
    """

    def __init__(self, identifier: str) -> None:
        """Initialize a missing binding error.

        Args:
            identifier: Identifier that was looked up.
        """
        self.identifier = identifier

        super().__init__(f'Binding {identifier!r} is not defined')


class ResolutionCycleError(LazyBindError):
    """Error raised when a resolution re-enters itself on the same thread.

    The error is an ordinary failure: the outer resolution wraps it and
    the slot becomes permanently failed.
    """

    def __init__(self, target: str) -> None:
        """Initialize a cycle error.

        Args:
            target: Target whose resolution re-entered itself.
        """
        self.target = target

        super().__init__(f'Resolution of {target!r} depends on itself')


class DeferredResolutionError(LazyBindError):
    """Error raised when a deferred binding fails to resolve.

    The error wraps the original failure as its cause and carries the
    origin of the deferred declaration, so a failure observed at the point
    of use stays traceable to the point of declaration.

    Attributes:
        kind: Marker allowing callers to special-case deferred failures.
        cause: Original exception raised by the thunk.
        origin: Origin of the deferred declaration.
        identifier: Identifier the failing slot is bound to.
        target: Target of the failing placeholder.
    """

    kind = 'deferred-resolution'

    def __init__(self, message: str, *,  # noqa: PLR0913
                 cause: BaseException,
                 origin: 'Origin | None' = None,
                 identifier: str | None = None,
                 target: str | None = None) -> None:
        """Initialize a deferred resolution error.

        Args:
            message: Human-readable error description.
            cause: Original exception raised by the thunk.
            origin: Origin of the deferred declaration.
            identifier: Identifier the failing slot is bound to.
            target: Target of the failing placeholder.
        """
        self.cause = cause
        self.origin = origin
        self.identifier = identifier
        self.target = target

        element: dict[str, Any] = {}
        if identifier is not None:
            element['name'] = identifier
        if target is not None:
            element['target'] = target
        element['cause'] = f'{type(cause).__name__}: {cause}'

        context = ErrorContext(error=cause, element={'deferred': element})
        if origin is not None:
            context.update(
                filename=origin.filename,
                line_num=origin.line_num,
                scope=origin.scope,
            )

        super().__init__(message, context=context)

        self.__cause__ = cause

    @classmethod
    def from_placeholder(cls, placeholder: 'Placeholder', cause: BaseException, *,
                         identifier: str | None = None) -> 'Self':
        """Create an error for a failed placeholder.

        Args:
            placeholder: Placeholder whose thunk failed.
            cause: Original exception raised by the thunk.
            identifier: Identifier the placeholder is bound to.

        Returns:
            DeferredResolutionError wrapping the cause.
        """
        name = identifier if identifier is not None else placeholder.target

        return cls(
            f'Deferred resolution of {name!r} failed',
            cause=cause,
            origin=placeholder.origin,
            identifier=identifier,
            target=placeholder.target,
        )


class PolicyError(LazyBindError):
    """Error raised when an eager policy configuration is invalid."""

    @classmethod
    def from_yaml_error(cls, error: MarkedYAMLError) -> 'Self':
        """Create a policy error from a YAML parsing failure.

        Args:
            error: Exception raised by the YAML parser.

        Returns:
            PolicyError representing the YAML parsing failure.
        """
        error_context = ErrorContext(error=error)
        if (mark := error.problem_mark) is not None:
            error_context.update(
                filename=mark.name,
                line_num=mark.line + 1,
                column_num=mark.column + 1,
            )

        message = 'Invalid YAML'
        if error.problem:
            message += f'{linesep}{' ' * FORMAT_INDENT}{error.problem}'

        return cls(message, context=error_context)

    @classmethod
    def from_pydantic_error(cls, error: 'ValidationError', *,
                            data: Any = None,  # noqa: ANN401
                            filename: str | None = None) -> 'Self':
        """Create a policy error from a Pydantic validation failure.

        The first validation issue is used as the message and the failing
        document is attached as a snippet.

        Args:
            error: ValidationError raised by Pydantic.
            data: Policy document data.
            filename: Name of the policy file.

        Returns:
            PolicyError representing the validation failure.
        """
        error_context = ErrorContext(
            filename=filename,
            error=error,
            element=data if isinstance(data, dict) else None,
        )

        message = 'Invalid policy'
        for item in error.errors(include_url=False, include_input=False):
            location = '.'.join(str(part) for part in item['loc'])
            detail = item['msg']
            if location:
                detail = f'{location}: {detail}'
            message += f'{linesep}{' ' * FORMAT_INDENT}{detail}'
            break

        return cls(message, context=error_context)
