"""Tests for binding tables."""

from typing import TYPE_CHECKING

import pytest

from lazybind.declare import declare_deferred
from lazybind.errors import BindingNotFoundError, DeferredResolutionError
from lazybind.placeholders import Placeholder
from lazybind.table import BindingTable, bulk_copy, probe_is_deferred
from lazybind.values import Deferred, Failed, Resolved

if TYPE_CHECKING:
    from collections.abc import Callable

if TYPE_CHECKING:
    from pytest_mock import MockerFixture, MockType


def test_concrete_bindings(table: BindingTable) -> None:
    """Bind and read concrete values like a regular mapping."""
    table['answer'] = 42
    table.update({'name': 'spam'}, flag=True)

    assert table['answer'] == 42
    assert table.lookup('name') == 'spam'
    assert dict(table) == {'answer': 42, 'name': 'spam', 'flag': True}
    assert list(table) == ['answer', 'name', 'flag']
    assert not table.may_contain_deferred


def test_missing_binding(table: BindingTable) -> None:
    """Lookup of an absent identifier raises a KeyError."""
    with pytest.raises(BindingNotFoundError, match=r"^Binding 'missing' is not defined$"):
        table.lookup('missing')

    with pytest.raises(KeyError):
        table['missing']

    assert table.get('missing', 'default') == 'default'


def test_non_string_identifier(table: BindingTable) -> None:
    """Only string identifiers are accepted."""
    with pytest.raises(TypeError, match=r'^Can not use 42 as binding identifier$'):
        table[42] = 'value'  # type: ignore[index]


def test_invalid_slot(table: BindingTable) -> None:
    """Only slot variants can be inserted."""
    with pytest.raises(TypeError, match=r'is not a binding slot$'):
        table.insert('spam', 42)  # type: ignore[arg-type]


def test_single_resolution(table: BindingTable,
                           make_thunk: 'Callable[..., MockType]') -> None:
    """Repeated lookups return the identical object, resolving once."""
    value = object()
    thunk = make_thunk(value)
    declare_deferred(table, 'spam', thunk)

    assert table.may_contain_deferred
    assert table.lookup('spam') is value
    assert table['spam'] is value
    assert table.lookup('spam') is value

    thunk.assert_called_once_with()
    assert isinstance(table.slot('spam'), Resolved)


def test_failed_resolution_is_not_retried(table: BindingTable,
                                          make_thunk: 'Callable[..., MockType]') -> None:
    """A failed resolution is replayed without invoking the thunk again."""
    cause = ValueError('broken')
    thunk = make_thunk(raises=cause)
    declare_deferred(table, 'bad', thunk)

    with pytest.raises(DeferredResolutionError) as first:
        table.lookup('bad')

    with pytest.raises(DeferredResolutionError) as second:
        table.lookup('bad')

    thunk.assert_called_once_with()
    assert first.value.cause is cause
    assert second.value.cause is cause
    assert second.value.__cause__ is cause
    assert second.value.kind == 'deferred-resolution'
    assert isinstance(table.slot('bad'), Failed)


def test_probe_does_not_resolve(table: BindingTable,
                                make_thunk: 'Callable[..., MockType]') -> None:
    """Probing leaves the slot deferred no matter how often it is called."""
    thunk = make_thunk(42)
    declare_deferred(table, 'spam', thunk)

    for _ in range(5):
        assert table.probe_is_deferred('spam')
        assert probe_is_deferred(table, 'spam')

    thunk.assert_not_called()

    assert table.lookup('spam') == 42
    assert not table.probe_is_deferred('spam')


def test_probe_missing_binding(table: BindingTable) -> None:
    """Probing an absent identifier raises."""
    with pytest.raises(BindingNotFoundError):
        table.probe_is_deferred('missing')


def test_membership_and_keys_do_not_resolve(table: BindingTable,
                                            make_thunk: 'Callable[..., MockType]') -> None:
    """Key iteration, length, membership and repr never resolve."""
    thunk = make_thunk(42)
    declare_deferred(table, 'spam', thunk)
    table['eggs'] = 1

    assert 'spam' in table
    assert len(table) == 2
    assert list(table.keys()) == ['spam', 'eggs']
    assert repr(table) == "BindingTable(['spam', 'eggs'], deferred=1)"

    thunk.assert_not_called()


def test_values_resolve_deferred(table: BindingTable,
                                 make_thunk: 'Callable[..., MockType]') -> None:
    """Bulk reads of values resolve every deferred slot they meet."""
    declare_deferred(table, 'spam', make_thunk(1))
    declare_deferred(table, 'eggs', make_thunk(2))
    table['ham'] = 3

    assert list(table.values()) == [1, 2, 3]
    assert not any(table.probe_is_deferred(name) for name in table)


def test_resolve_all(table: BindingTable,
                     make_thunk: 'Callable[..., MockType]') -> None:
    """Resolve every binding into a plain dictionary."""
    declare_deferred(table, 'spam', make_thunk(1))
    table['eggs'] = 2

    assert table.resolve_all() == {'spam': 1, 'eggs': 2}


def test_concrete_table_skips_lookups(table: BindingTable,
                                      make_thunk: 'Callable[..., MockType]',
                                      mocker: 'MockerFixture') -> None:
    """Tables that never held a placeholder are read without lookups."""
    table['spam'] = 1
    declare_deferred(table, 'bad', make_thunk(raises=ValueError('broken')),
                     force_immediate=True)
    lookup = mocker.spy(table, 'lookup')

    assert repr(table) == "BindingTable(['spam', 'bad'], deferred=0)"
    with pytest.raises(DeferredResolutionError):
        table.resolve_all()

    del table['bad']

    assert table.resolve_all() == {'spam': 1}
    lookup.assert_not_called()


def test_flag_enables_lookups(table: BindingTable,
                              make_thunk: 'Callable[..., MockType]',
                              mocker: 'MockerFixture') -> None:
    """Once a placeholder was inserted, bulk reads go through lookups."""
    declare_deferred(table, 'spam', make_thunk(1))
    table['eggs'] = 2
    lookup = mocker.spy(table, 'lookup')

    assert table.resolve_all() == {'spam': 1, 'eggs': 2}
    assert lookup.call_count == 2
    assert table.may_contain_deferred


def test_items_propagate_failures(table: BindingTable,
                                  make_thunk: 'Callable[..., MockType]') -> None:
    """Bulk reads surface deferred failures to the caller."""
    declare_deferred(table, 'bad', make_thunk(raises=RuntimeError('boom')))

    with pytest.raises(DeferredResolutionError, match=r"^Deferred resolution of 'bad' failed"):
        dict(table.items())


def test_bulk_copy_keeps_placeholders(table: BindingTable,
                                      make_thunk: 'Callable[..., MockType]') -> None:
    """Copying a table transfers placeholders without resolving them."""
    thunk = make_thunk(42)
    declare_deferred(table, 'spam', thunk)
    table['eggs'] = 1

    copied = bulk_copy(table, BindingTable())

    assert copied.may_contain_deferred
    assert copied.probe_is_deferred('spam')
    assert copied.slot('spam') is not table.slot('spam')
    thunk.assert_not_called()

    assert copied['spam'] == 42
    assert copied['eggs'] == 1
    assert table.probe_is_deferred('spam')


def test_copy_method(table: BindingTable,
                     make_thunk: 'Callable[..., MockType]') -> None:
    """The copy method keeps the engine and the placeholders."""
    declare_deferred(table, 'spam', make_thunk(42))

    copied = table.copy()

    assert isinstance(copied, BindingTable)
    assert copied.engine is table.engine
    assert copied.probe_is_deferred('spam')


def test_merge_overwrites_and_propagates_flag(make_thunk: 'Callable[..., MockType]') -> None:
    """Merging overwrites existing identifiers and propagates the flag."""
    source = BindingTable()
    declare_deferred(source, 'spam', make_thunk('deferred'))

    dest = BindingTable(spam='concrete', eggs=1)
    assert not dest.may_contain_deferred

    dest.update(source)

    assert dest.may_contain_deferred
    assert dest.probe_is_deferred('spam')
    assert dest['spam'] == 'deferred'
    assert dest['eggs'] == 1


def test_init_from_table(make_thunk: 'Callable[..., MockType]') -> None:
    """Creating a table from another one keeps placeholders deferred."""
    source = BindingTable()
    declare_deferred(source, 'spam', make_thunk(42))

    assert BindingTable(source).probe_is_deferred('spam')


def test_flag_is_never_cleared(table: BindingTable,
                               make_thunk: 'Callable[..., MockType]') -> None:
    """The advisory flag survives resolution and removal."""
    declare_deferred(table, 'spam', make_thunk(42))
    table.lookup('spam')
    del table['spam']

    assert table.may_contain_deferred


def test_delete_binding(table: BindingTable) -> None:
    """Deleting removes a binding, deleting twice raises."""
    table['spam'] = 1
    del table['spam']

    assert 'spam' not in table
    with pytest.raises(BindingNotFoundError):
        del table['spam']


def test_teardown_does_not_resolve(table: BindingTable,
                                   make_thunk: 'Callable[..., MockType]') -> None:
    """Clearing a table with pending placeholders never runs them."""
    thunk = make_thunk(42)
    declare_deferred(table, 'spam', thunk)

    table.clear()

    assert len(table) == 0
    thunk.assert_not_called()


def test_insert_deferred_slot(table: BindingTable,
                              make_thunk: 'Callable[..., MockType]') -> None:
    """Inserting a deferred slot directly sets the flag without resolving."""
    thunk = make_thunk(42)
    table.insert('spam', Deferred(placeholder=Placeholder(target='spam', thunk=thunk)))

    assert table.may_contain_deferred
    thunk.assert_not_called()
    assert table['spam'] == 42


def test_replaced_slot_during_resolution(table: BindingTable) -> None:
    """A slot replaced while its thunk runs keeps the new binding."""
    def thunk() -> str:
        table['spam'] = 'replaced'
        return 'original'

    declare_deferred(table, 'spam', thunk)

    assert table.lookup('spam') == 'original'
    assert table.lookup('spam') == 'replaced'


def test_thunk_reads_other_bindings(table: BindingTable) -> None:
    """A thunk may look up other bindings of its own table."""
    declare_deferred(table, 'base', lambda: 20)
    declare_deferred(table, 'derived', lambda: table['base'] + 22)

    assert table['derived'] == 42
    assert not table.probe_is_deferred('base')
