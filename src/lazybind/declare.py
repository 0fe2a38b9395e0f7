"""Registration interface for deferred bindings.

Hosts call these helpers when they execute a deferral-eligible
declaration. `declare_deferred` is the generic entry point; the import
helpers build registry-backed thunks so that every table lazily importing
the same module shares one execution of the import.
"""

import logging
import sys
from functools import partial
from importlib import import_module
from importlib.util import resolve_name
from typing import TYPE_CHECKING

from lazybind.errors import BindingNotFoundError
from lazybind.names import TARGET_PATTERN
from lazybind.placeholders import Origin, Placeholder
from lazybind.policy import get_policy
from lazybind.registry import default_registry
from lazybind.values import Deferred

if TYPE_CHECKING:
    from types import ModuleType
    from typing import Any

if TYPE_CHECKING:
    from lazybind.placeholders import Thunk
    from lazybind.policy import EagerPolicy
    from lazybind.registry import ResolutionRegistry
    from lazybind.table import BindingTable
    from lazybind.values import Slot

logger = logging.getLogger(__name__)


def declare_deferred(table: 'BindingTable', identifier: str, thunk: 'Thunk',  # noqa: PLR0913
                     origin: Origin | None = None,
                     force_immediate: bool | None = None, *,
                     target: str | None = None,
                     policy: 'EagerPolicy | None' = None) -> 'Slot':
    """Declare a binding whose value is computed on first lookup.

    The thunk is used as is: `target` only names the placeholder and is
    not a cache key. Copies of the placeholder in other tables run the
    thunk again; wrap side-effecting work with
    `ResolutionRegistry.thunk` to share one execution per target.

    Args:
        table: Table receiving the binding.
        identifier: Binding identifier.
        thunk: Computation producing the value.
        origin: Declaration site, the caller's location if not provided.
        force_immediate: Resolve now instead of deferring. When `None`,
            the policy decides.
        target: Target identifier of the placeholder, the binding
            identifier if not provided.
        policy: Policy consulted when `force_immediate` is `None`,
            the active policy if not provided.

    Returns:
        The inserted slot: `Deferred`, or `Resolved` / `Failed`
        for forced declarations.

    Raises:
        BaseException: Fatal failures of a forced thunk, unwrapped.
            Nothing is inserted in that case.
    """
    placeholder = Placeholder(
        target=target if target is not None else identifier,
        thunk=thunk,
        origin=origin if origin is not None else Origin.capture(2),
    )

    if force_immediate is None:
        force_immediate = (policy or get_policy()).should_force(placeholder.target)

    slot: Slot
    if force_immediate:
        logger.debug('Resolving %r immediately', identifier)
        slot = table.engine.resolve(placeholder, identifier=identifier)
    else:
        logger.debug('Deferring %r (target %r)', identifier, placeholder.target)
        slot = Deferred(placeholder=placeholder)

    table.insert(identifier, slot)

    return slot


def declare_import(table: 'BindingTable', module: str, *,  # noqa: PLR0913
                   name: str | None = None,
                   package: str | None = None,
                   origin: Origin | None = None,
                   force_immediate: bool | None = None,
                   registry: 'ResolutionRegistry | None' = None,
                   policy: 'EagerPolicy | None' = None) -> 'Slot':
    """Declare a lazy `import module [as name]`.

    Without `name` the top-level package is bound under its own name,
    like a plain `import a.b` statement binds `a`. Imports of sibling
    submodules still pending behind that binding are kept, so that
    `import a.b` followed by `import a.c` makes both reachable from `a`.
    With `name` the module itself is bound.

    Args:
        table: Table receiving the binding.
        module: Module name, relative names require `package`.
        name: Binding identifier for an aliased import.
        package: Anchor package for relative module names.
        origin: Declaration site, the caller's location if not provided.
        force_immediate: Resolve now instead of deferring.
        registry: Shared registry, the default registry if not provided.
        policy: Policy consulted when `force_immediate` is `None`.

    Returns:
        The inserted slot.

    Raises:
        ValueError: If the module name is not a valid dotted name.
    """
    fullname = _absolute_name(module, package)
    if registry is None:
        registry = default_registry

    work = registry.thunk(fullname, partial(import_module, fullname))
    if name is None:
        name = fullname.partition('.')[0]
        works = (*_pending_imports(table, name), work)
        thunk: Thunk = partial(_import_top_level, works, name)
    else:
        thunk = work

    return declare_deferred(
        table, name, thunk,
        origin if origin is not None else Origin.capture(2),
        force_immediate,
        target=fullname,
        policy=policy,
    )


def declare_from_import(table: 'BindingTable', module: str, attribute: str, *,  # noqa: PLR0913
                        name: str | None = None,
                        package: str | None = None,
                        origin: Origin | None = None,
                        force_immediate: bool | None = None,
                        registry: 'ResolutionRegistry | None' = None,
                        policy: 'EagerPolicy | None' = None) -> 'Slot':
    """Declare a lazy `from module import attribute [as name]`.

    The attribute is looked up on the imported module; if it is missing,
    a submodule of that name is imported instead.

    Args:
        table: Table receiving the binding.
        module: Module name, relative names require `package`.
        attribute: Name imported from the module.
        name: Binding identifier, the attribute name if not provided.
        package: Anchor package for relative module names.
        origin: Declaration site, the caller's location if not provided.
        force_immediate: Resolve now instead of deferring.
        registry: Shared registry, the default registry if not provided.
        policy: Policy consulted when `force_immediate` is `None`.

    Returns:
        The inserted slot.

    Raises:
        ValueError: If the module name is not a valid dotted name.
    """
    fullname = _absolute_name(module, package)
    if registry is None:
        registry = default_registry

    work = registry.thunk(fullname, partial(import_module, fullname))
    thunk = partial(_import_attribute, registry, work, fullname, attribute)

    return declare_deferred(
        table, name or attribute, thunk,
        origin if origin is not None else Origin.capture(2),
        force_immediate,
        target=f'{fullname}.{attribute}',
        policy=policy,
    )


def _absolute_name(module: str, package: str | None) -> str:
    """Resolve and validate a module name."""
    fullname = resolve_name(module, package) if module.startswith('.') else module
    if not TARGET_PATTERN.match(fullname):
        raise ValueError(f'Invalid module name {module!r}')

    return fullname


def _pending_imports(table: 'BindingTable', top_level: str) -> tuple['Thunk', ...]:
    """Get imports still deferred behind a top-level package binding."""
    try:
        slot = table.slot(top_level)
    except BindingNotFoundError:
        return ()

    if not isinstance(slot, Deferred):
        return ()

    thunk = slot.placeholder.thunk
    if isinstance(thunk, partial) and thunk.func is _import_top_level and thunk.args[1] == top_level:
        return thunk.args[0]

    return ()


def _import_top_level(works: tuple['Thunk', ...], top_level: str) -> 'ModuleType':
    """Import modules in declaration order and return their top-level package."""
    for work in works:
        work()

    return sys.modules[top_level]


def _import_attribute(registry: 'ResolutionRegistry', work: 'Thunk',
                      module: str, attribute: str) -> 'Any':
    """Import a module and return one of its attributes or submodules."""
    imported = work()

    try:
        return getattr(imported, attribute)
    except AttributeError:
        pass

    submodule = f'{module}.{attribute}'
    try:
        return registry.resolve(submodule, partial(import_module, submodule))
    except ModuleNotFoundError as error:
        if error.name != submodule:
            raise
        raise ImportError(
            f'cannot import name {attribute!r} from {module!r}',
            name=module,
        ) from None
