"""Deferred binding tables with transparent resolution on first lookup.

The `lazybind` package lets a host declare named bindings whose values
are computed only when first read, the mechanism behind lazy imports.

Key features:
- binding tables that resolve placeholders on any lookup path;
- exactly-once, thread-safe resolution with permanent failure caching;
- a process-wide registry sharing one resolution of a target across tables;
- an eager policy, configurable from environment and YAML files,
  forcing selected declarations to resolve immediately.
"""

from .declare import declare_deferred, declare_from_import, declare_import
from .engine import ResolutionEngine, is_fatal
from .errors import (
    BindingNotFoundError,
    DeferredResolutionError,
    LazyBindError,
    PolicyError,
    PolicyWarning,
    ResolutionCycleError,
)
from .namespace import BindingNamespace
from .placeholders import Origin, Placeholder
from .policy import EagerPolicy, eager, get_policy, set_policy, use_policy
from .registry import ResolutionRegistry, default_registry
from .table import BindingTable, bulk_copy, probe_is_deferred
from .values import Deferred, Failed, Resolved

__all__ = (
    'BindingNamespace',
    'BindingNotFoundError',
    'BindingTable',
    'Deferred',
    'DeferredResolutionError',
    'EagerPolicy',
    'Failed',
    'LazyBindError',
    'Origin',
    'Placeholder',
    'PolicyError',
    'PolicyWarning',
    'Resolved',
    'ResolutionCycleError',
    'ResolutionEngine',
    'ResolutionRegistry',
    'bulk_copy',
    'declare_deferred',
    'declare_from_import',
    'declare_import',
    'default_registry',
    'eager',
    'get_policy',
    'is_fatal',
    'probe_is_deferred',
    'set_policy',
    'use_policy',
)
