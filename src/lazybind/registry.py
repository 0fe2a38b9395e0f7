"""Process-wide resolution registry.

Placeholders living in different tables may stand for the same target,
for example two modules lazily importing `json`. The registry makes sure
the side-effecting work behind such a target runs only once: outcomes are
cached by target name, and concurrent resolutions of one target serialize
on a per-target lock.

Successful values and ordinary failures are cached. Fatal failures are not,
so a later resolution may retry the work.
"""

import logging
from contextlib import contextmanager
from functools import partial
from threading import Lock, get_ident
from typing import TYPE_CHECKING, Any

from lazybind.engine import is_fatal
from lazybind.errors import ResolutionCycleError

if TYPE_CHECKING:
    from collections.abc import Iterator
    from types import TracebackType

if TYPE_CHECKING:
    from lazybind.engine import FailureClassifier
    from lazybind.placeholders import Thunk

logger = logging.getLogger(__name__)


class ResolutionRegistry:
    """Content-addressed cache of resolution outcomes keyed by target.

    Per-target locks live only while some thread resolves or forgets
    the target, so the lock map never outgrows the work in flight.
    """

    def __init__(self, classifier: 'FailureClassifier' = is_fatal) -> None:
        """Initialize an empty registry.

        Args:
            classifier: Failure classification deciding which failures
                must not be cached.
        """
        self.classifier = classifier

        self._guard = Lock()
        self._locks: dict[str, Lock] = {}
        self._users: dict[str, int] = {}
        self._owners: dict[str, int] = {}

        self._values: dict[str, Any] = {}
        self._errors: dict[str, tuple[BaseException, 'TracebackType | None']] = {}

    def __contains__(self, target: object) -> bool:
        """Whether an outcome is cached for the target."""
        return target in self._values or target in self._errors

    def __len__(self) -> int:
        """Number of cached outcomes."""
        return len(self._values) + len(self._errors)

    def resolve(self, target: str, work: 'Thunk') -> Any:  # noqa: ANN401
        """Resolve a target, running `work` at most once per target.

        Args:
            target: Target name used as the cache key.
            work: Side-effecting computation producing the target value.

        Returns:
            The cached or freshly computed value.

        Raises:
            ResolutionCycleError: If `work` re-enters resolution of
                the same target on the same thread.
            Any exception raised by `work`. A cached ordinary failure is
                re-raised as the same exception instance, with the
                traceback it had when it was first raised.
        """
        if self._owners.get(target) == get_ident():
            raise ResolutionCycleError(target)

        with self._serialized(target):
            if target in self._values:
                logger.debug('Registry hit for %r', target)
                return self._values[target]

            if target in self._errors:
                logger.debug('Registry replays failure for %r', target)
                error, traceback = self._errors[target]
                raise error.with_traceback(traceback)

            self._owners[target] = get_ident()
            try:
                value = work()

            except BaseException as error:
                if not self.classifier(error):
                    self._errors[target] = (error, error.__traceback__)
                raise

            finally:
                del self._owners[target]

            self._values[target] = value
            return value

    def thunk(self, target: str, work: 'Thunk') -> 'Thunk':
        """Wrap work into a thunk that goes through the registry.

        Args:
            target: Target name used as the cache key.
            work: Side-effecting computation producing the target value.

        Returns:
            A zero-argument callable suitable for a placeholder.
        """
        return partial(self.resolve, target, work)

    def forget(self, target: str) -> None:
        """Drop the cached outcome of a target, if any."""
        with self._serialized(target):
            self._values.pop(target, None)
            self._errors.pop(target, None)

    def clear(self) -> None:
        """Drop all cached outcomes."""
        with self._guard:
            self._values.clear()
            self._errors.clear()

    @contextmanager
    def _serialized(self, target: str) -> 'Iterator[None]':
        """Hold the lock of a target, dropping it once nobody uses it."""
        with self._guard:
            if (lock := self._locks.get(target)) is None:
                lock = self._locks[target] = Lock()
            self._users[target] = self._users.get(target, 0) + 1

        try:
            with lock:
                yield

        finally:
            with self._guard:
                self._users[target] -= 1
                if not self._users[target]:
                    del self._users[target]
                    del self._locks[target]


#: Registry shared by declarations that do not provide their own.
default_registry = ResolutionRegistry()
