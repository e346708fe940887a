"""Shared CLI utilities for commands.

This module provides the exit codes and error reporting helpers used by
every command.
"""

from enum import IntEnum
from typing import TYPE_CHECKING, Never

if TYPE_CHECKING:
    from rich.console import Console

__all__ = [
    "ExitCode",
    "exit_with_error",
    "get_error_console",
]


class ExitCode(IntEnum):
    """Exit codes for jestwatch commands.

    The run command otherwise exits with Jest's own exit code.
    """

    SUCCESS = 0
    CONFIG_ERROR = 2
    WORKSPACE_ERROR = 3
    INTERNAL_ERROR = 5
    LAUNCH_FAILED = 127
    INTERRUPTED = 130


def get_error_console() -> "Console":
    """Get a Console instance configured for stderr output."""
    from rich.console import Console

    return Console(stderr=True)


def exit_with_error(
    message: str,
    code: ExitCode = ExitCode.INTERNAL_ERROR,
    *,
    console: "Console | None" = None,
) -> Never:
    """Print an error message and exit.

    Args:
        message: Error message to display.
        code: Exit code to use.
        console: Console to print to. Uses a stderr console if None.

    Raises:
        SystemExit: Always.
    """
    if console is None:
        console = get_error_console()
    console.print(f"[red]Error:[/red] {message}")
    raise SystemExit(code)
