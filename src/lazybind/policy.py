"""Eager resolution policy.

The policy is consulted at declaration time to decide whether a binding
is deferred or resolved immediately. A declaration is forced when:

- deferral is disabled altogether;
- the target, or one of its dotted parents, is listed as eager;
- any registered callback returns true for the target;
- the declaration happens inside an `eager()` scope, the equivalent of
  declarations inside error-handling blocks, where a deferred failure
  would escape the handler meant to catch it.

The active policy is selected per execution context through a context
variable and falls back to a process-wide default built from settings.
"""

import logging
from collections.abc import Callable, Iterable, Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from threading import Lock
from typing import TYPE_CHECKING, Any

from lazybind.config import LazySettings
from lazybind.names import parent_targets

if TYPE_CHECKING:
    from typing import Self

logger = logging.getLogger(__name__)

#: Callback deciding whether a target must resolve eagerly.
type TargetPredicate = Callable[[str], bool]

_EAGER_DEPTH: ContextVar[int] = ContextVar('lazybind_eager_depth', default=0)
_CURRENT_POLICY: ContextVar['EagerPolicy | None'] = ContextVar('lazybind_policy', default=None)

_default_lock = Lock()
_default_policy: 'EagerPolicy | None' = None


class EagerPolicy:
    """Mutable set of exclusions from deferred resolution.

    Attributes:
        enabled: Whether declarations may be deferred at all.
        names: Targets that always resolve eagerly, including
            every target nested below them.
        callbacks: Predicates over target names forcing eager resolution.
    """

    def __init__(self, names: Iterable[str] = (), *,
                 callbacks: Iterable[TargetPredicate] = (),
                 enabled: bool = True) -> None:
        """Initialize a policy.

        Args:
            names: Initial eager target names.
            callbacks: Initial eager predicates.
            enabled: Whether declarations may be deferred at all.
        """
        self.enabled = enabled
        self.names: set[str] = set(names)
        self.callbacks: list[TargetPredicate] = list(callbacks)

    def __repr__(self) -> str:
        """Policy representation."""
        return (
            f'{type(self).__name__}({sorted(self.names)!r}, '
            f'callbacks={len(self.callbacks)}, enabled={self.enabled})'
        )

    @classmethod
    def from_settings(cls, settings: LazySettings | None = None) -> 'Self':
        """Build a policy from settings and their optional policy file.

        Args:
            settings: Resolved settings, read from the environment
                if not provided.

        Returns:
            A new policy.

        Raises:
            PolicyError: If the policy file is invalid in strict mode.
        """
        if settings is None:
            settings = LazySettings()

        policy = cls(settings.eager, enabled=settings.enabled)

        if document := settings.load_document():
            policy.exclude(*document.eager)
            policy.enabled = policy.enabled and document.enabled

        return policy

    def exclude(self, *names: str) -> 'Self':
        """Add eager target names."""
        self.names.update(names)

        return self

    def exclude_when(self, callback: TargetPredicate) -> 'Self':
        """Add an eager predicate over target names."""
        self.callbacks.append(callback)

        return self

    def should_force(self, target: str) -> bool:
        """Decide whether a declaration of `target` resolves immediately.

        Args:
            target: Target of the declaration.

        Returns:
            True if the declaration must not be deferred.
        """
        if not self.enabled or in_eager_scope():
            return True

        if not self.names.isdisjoint(parent_targets(target)):
            return True

        return any(callback(target) for callback in self.callbacks)

    def describe(self) -> dict[str, Any]:
        """Plain description of the policy for reporting."""
        return {
            'enabled': self.enabled,
            'eager': sorted(self.names),
            'callbacks': [
                getattr(callback, '__qualname__', repr(callback))
                for callback in self.callbacks
            ],
        }


def in_eager_scope() -> bool:
    """Whether the current context is inside an `eager()` scope."""
    return _EAGER_DEPTH.get() > 0


@contextmanager
def eager() -> Iterator[None]:
    """Force every declaration in the current context to resolve immediately.

    Scopes nest and are local to the execution context (thread or task).
    """
    token = _EAGER_DEPTH.set(_EAGER_DEPTH.get() + 1)
    try:
        yield
    finally:
        _EAGER_DEPTH.reset(token)


def get_policy() -> EagerPolicy:
    """Get the policy active in the current context.

    The process-wide default is built from `LazySettings` on first use.
    """
    if (policy := _CURRENT_POLICY.get()) is not None:
        return policy

    global _default_policy  # noqa: PLW0603
    with _default_lock:
        if _default_policy is None:
            _default_policy = EagerPolicy.from_settings()
            logger.debug('Default policy initialized: %r', _default_policy)

        return _default_policy


def set_policy(policy: EagerPolicy | None) -> None:
    """Replace the process-wide default policy.

    Passing `None` makes the next `get_policy()` rebuild the default
    from settings.
    """
    global _default_policy  # noqa: PLW0603
    with _default_lock:
        _default_policy = policy


@contextmanager
def use_policy(policy: EagerPolicy) -> Iterator[EagerPolicy]:
    """Activate a policy for the current execution context."""
    token = _CURRENT_POLICY.set(policy)
    try:
        yield policy
    finally:
        _CURRENT_POLICY.reset(token)
