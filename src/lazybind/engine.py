"""Resolution engine.

The engine runs a placeholder's thunk and turns the outcome into a
terminal slot. It owns failure classification:

- ordinary failures are wrapped into `DeferredResolutionError` and become
  a `Failed` slot that is never retried;
- fatal failures (interpreter shutdown, interrupts, resource exhaustion)
  propagate unwrapped and leave the caller's slot deferred, so a later
  lookup may retry.

The engine itself never touches tables; the caller decides where the
returned outcome is stored.
"""

import logging
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from lazybind.errors import DeferredResolutionError
from lazybind.values import Failed, Resolved

if TYPE_CHECKING:
    from lazybind.placeholders import Placeholder

logger = logging.getLogger(__name__)

#: Host-supplied classification of failures, `True` meaning fatal.
type FailureClassifier = Callable[[BaseException], bool]

#: Exceptions treated as fatal although they derive from `Exception`.
FATAL_ERRORS: tuple[type[BaseException], ...] = (MemoryError, RecursionError)


def is_fatal(error: BaseException) -> bool:
    """Default failure classification.

    Anything that is not an `Exception` (`KeyboardInterrupt`, `SystemExit`,
    `GeneratorExit`) is fatal, as well as resource exhaustion errors.

    Args:
        error: Exception raised by a thunk.

    Returns:
        Whether the failure must propagate unwrapped.
    """
    return not isinstance(error, Exception) or isinstance(error, FATAL_ERRORS)


class ResolutionEngine:
    """Executes placeholders and classifies their failures.

    Attributes:
        classifier: Callable deciding whether a failure is fatal.
    """

    def __init__(self, classifier: FailureClassifier = is_fatal) -> None:
        """Initialize the engine.

        Args:
            classifier: Host-supplied failure classification function.
        """
        self.classifier = classifier

    def resolve(self, placeholder: 'Placeholder', *,
                identifier: str | None = None) -> Resolved | Failed:
        """Run a placeholder's thunk once.

        Args:
            placeholder: Placeholder to resolve.
            identifier: Identifier the placeholder is bound to, if any.

        Returns:
            `Resolved` with the produced value, or `Failed` with the
            wrapped ordinary failure.

        Raises:
            BaseException: Fatal failures of the thunk, unwrapped.
        """
        logger.debug('Resolving %r (target %r, declared at %s)',
                     identifier, placeholder.target, placeholder.origin)

        try:
            value = placeholder.invoke()

        except BaseException as error:
            if self.classifier(error):
                logger.debug('Fatal failure while resolving %r: %r', placeholder.target, error)
                raise

            logger.debug('Resolution of %r failed: %r', placeholder.target, error)
            return Failed(error=DeferredResolutionError.from_placeholder(
                placeholder,
                error,
                identifier=identifier,
            ))

        return Resolved(value=value)

    @staticmethod
    def unwrap(outcome: Resolved | Failed) -> Any:  # noqa: ANN401
        """Return the value of an outcome or raise its error.

        Args:
            outcome: Terminal slot produced by `resolve`.

        Returns:
            The resolved value.

        Raises:
            DeferredResolutionError: If the outcome is a failure. The same
                error instance is raised on every call.
        """
        match outcome:
            case Resolved(value=value):
                return value
            case Failed(error=error):
                raise error.with_traceback(None)
            case _:
                raise TypeError(f'{outcome!r} is not a terminal slot')
