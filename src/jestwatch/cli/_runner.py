"""Async entry point shared by the run and watch commands."""

from typing import TYPE_CHECKING

from jestwatch.process import ConsoleOutputSink, JestProcessManager
from jestwatch.session import JestSession

from ._shared import ExitCode

if TYPE_CHECKING:
    from rich.console import Console
    from structlog.typing import FilteringBoundLogger

    from jestwatch.config import Config


async def run_jest(
    config: "Config",
    *,
    watch: bool,
    console: "Console",
    logger: "FilteringBoundLogger | None" = None,
) -> int:
    """Run Jest once or in watch mode.

    Args:
        config: Loaded configuration.
        watch: Run in watch mode until interrupted instead of once.
        console: Console for process output.
        logger: Structured logger.

    Returns:
        The exit code for the command.
    """
    output_sink = ConsoleOutputSink(console, show_output=config.runner.show_output)
    manager = JestProcessManager(
        config.project_workspace(),
        run_all_tests_first_in_watch_mode=config.runner.run_all_tests_first,
        output_sink=output_sink,
        shutdown_timeout=config.runner.shutdown_timeout,
        logger=logger,
    )

    async with manager:
        session = JestSession(manager, logger=logger)
        if watch:
            await session.watch()
            return 0
        exit_code = await session.run()

    return ExitCode.LAUNCH_FAILED if exit_code is None else exit_code
