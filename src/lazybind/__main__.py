"""CLI utilities for lazybind policies and lazy import profiling.

`policy` prints the effective eager policy, `profile` declares modules as
lazy imports and measures how long each of them takes to resolve.
"""

import logging
from pathlib import Path
from time import perf_counter

from click import Path as PathParam
from click import Context, argument, echo, group, option, pass_context
from yaml import dump

from lazybind.config import LazySettings
from lazybind.declare import declare_import
from lazybind.errors import DeferredResolutionError, PolicyError
from lazybind.policy import EagerPolicy
from lazybind.registry import ResolutionRegistry
from lazybind.table import BindingTable

InputFilepath = PathParam(
    dir_okay=False,
    exists=True,
    readable=True,
    path_type=Path,
)


def _make_policy(config: Path | None) -> EagerPolicy:
    """Build the effective policy, optionally from an explicit policy file."""
    settings = LazySettings()
    if config is not None:
        settings = settings.model_copy(update={'policy_file': config})

    return EagerPolicy.from_settings(settings)


@group(help='Command-line utilities for lazybind.')
@option('-v', '--verbose', is_flag=True, help='Log declarations and resolutions.')
def cli(verbose: bool) -> None:  # noqa: FBT001
    """Root CLI group for lazybind tools."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format='%(name)s: %(message)s',
    )


@cli.command(
    name='policy',
    help='Print the effective eager policy as YAML.',
)
@option(
    '-c', '--config',
    type=InputFilepath,
    default=None,
    help='YAML policy file, overrides LAZYBIND_POLICY_FILE.',
)
@pass_context
def print_policy(ctx: Context, config: Path | None) -> None:
    """Print the effective eager policy."""
    try:
        policy = _make_policy(config)
    except PolicyError as error:
        echo(str(error), err=True)
        ctx.exit(2)

    echo(dump(policy.describe(), sort_keys=False), nl=False)


@cli.command(
    name='profile',
    help=(
        'Declare MODULES as lazy imports, report which of them are '
        'deferred under the effective policy, then resolve each of '
        'them and print the time it took.'
    ),
)
@option(
    '-c', '--config',
    type=InputFilepath,
    default=None,
    help='YAML policy file, overrides LAZYBIND_POLICY_FILE.',
)
@option('--eager', 'force', is_flag=True, help='Resolve every module at declaration.')
@argument('modules', nargs=-1, required=True)
@pass_context
def profile_imports(ctx: Context, config: Path | None,
                    force: bool, modules: tuple[str, ...]) -> None:  # noqa: FBT001
    """Profile lazy imports of modules."""
    try:
        policy = _make_policy(config)
    except PolicyError as error:
        echo(str(error), err=True)
        ctx.exit(2)

    table = BindingTable()
    registry = ResolutionRegistry()
    timings: dict[str, float] = {}

    for module in modules:
        started = perf_counter()
        try:
            declare_import(
                table, module,
                name=module,
                force_immediate=True if force else None,
                registry=registry,
                policy=policy,
            )
        except ValueError as error:
            echo(str(error), err=True)
            ctx.exit(2)
        timings[module] = perf_counter() - started

        state = 'deferred' if table.probe_is_deferred(module) else 'eager'
        echo(f'{module}: {state}')

    failed = False
    for module in modules:
        started = perf_counter()
        try:
            table.lookup(module)
        except DeferredResolutionError as error:
            echo(str(error), err=True)
            failed = True
            continue
        timings[module] += perf_counter() - started
        echo(f'{module}: {timings[module] * 1000:.2f} ms')

    if failed:
        ctx.exit(1)


if __name__ == '__main__':
    cli()
