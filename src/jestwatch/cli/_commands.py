# pyright: reportUnusedCallResult=false
"""The run, watch and config commands."""

from functools import partial
from typing import TYPE_CHECKING, Annotated

import anyio
from cyclopts import Parameter

from jestwatch.config import dump_config
from jestwatch.exceptions import WorkspaceError

from ._context import CLIContext
from ._runner import run_jest
from ._shared import ExitCode, exit_with_error

if TYPE_CHECKING:
    from cyclopts import App

    from jestwatch.config import Config


def _run(config: "Config", *, watch: bool) -> int:
    ctx = CLIContext.get_current()
    try:
        return anyio.run(
            partial(
                run_jest, config, watch=watch, console=ctx.console, logger=ctx.logger
            )
        )
    except WorkspaceError as e:
        exit_with_error(str(e), ExitCode.WORKSPACE_ERROR)
    except KeyboardInterrupt:
        return ExitCode.INTERRUPTED


def run_command(
    *,
    quiet: Annotated[
        bool, Parameter(help="Hide Jest's output and only show the summary.")
    ] = False,
) -> None:
    """Run the test suite once.

    Exits with Jest's exit code.
    """
    config = CLIContext.get_current().config
    if quiet:
        config = _without_output(config)
    raise SystemExit(_run(config, watch=False))


def watch_command(
    *,
    no_run_all_first: Annotated[
        bool,
        Parameter(
            name="--no-run-all-first",
            help="Start watch mode directly instead of running every test first.",
        ),
    ] = False,
    quiet: Annotated[
        bool, Parameter(help="Hide Jest's output and only show the summaries.")
    ] = False,
) -> None:
    """Run Jest in watch mode until interrupted.

    Unless disabled, every test is run once before watch mode starts.
    """
    config = CLIContext.get_current().config
    if no_run_all_first:
        runner = config.runner.model_copy(update={"run_all_tests_first": False})
        config = config.model_copy(update={"runner": runner})
    if quiet:
        config = _without_output(config)
    raise SystemExit(_run(config, watch=True))


def config_command() -> None:
    """Print the effective configuration as TOML."""
    ctx = CLIContext.get_current()
    ctx.console.print(dump_config(ctx.config), markup=False, highlight=False)


def _without_output(config: "Config") -> "Config":
    runner = config.runner.model_copy(update={"show_output": False})
    return config.model_copy(update={"runner": runner})


def register_commands(app: "App") -> None:
    """Register all jestwatch commands with the app."""
    app.command(run_command, name="run")
    app.command(watch_command, name="watch")
    app.command(config_command, name="config")
