"""Tests configurations and fixtures."""

from typing import TYPE_CHECKING

import pytest

from lazybind.policy import EagerPolicy, set_policy
from lazybind.registry import ResolutionRegistry
from lazybind.table import BindingTable

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

if TYPE_CHECKING:
    from pytest_mock import MockerFixture, MockType


@pytest.fixture(autouse=True)
def default_policy() -> 'Iterator[EagerPolicy]':
    """Provide an isolated process-wide default policy.

    The default policy is normally built from `LAZYBIND_*` environment
    variables; tests must not depend on the environment they run in,
    so a fresh permissive policy is installed for each test and dropped
    afterwards.
    """
    policy = EagerPolicy()
    set_policy(policy)

    yield policy

    set_policy(None)


@pytest.fixture
def table() -> BindingTable:
    """Provide an empty binding table."""
    return BindingTable()


@pytest.fixture
def registry() -> ResolutionRegistry:
    """Provide an isolated resolution registry."""
    return ResolutionRegistry()


@pytest.fixture
def make_thunk(mocker: 'MockerFixture') -> 'Callable[..., MockType]':
    """Provide a factory of instrumented thunks.

    The returned factory creates mocks that either return a value or
    raise an exception when called, so tests can count invocations.
    """
    def make(value: object = None, *, raises: BaseException | None = None) -> 'MockType':
        """Create an instrumented thunk.

        Args:
            value: Value returned by the thunk.
            raises: Exception raised by the thunk instead of returning.

        Returns:
            A mock usable as a placeholder thunk.
        """
        thunk = mocker.Mock(return_value=value)
        if raises is not None:
            thunk.side_effect = raises

        return thunk

    return make
