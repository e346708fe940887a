"""The command-line interface for jestwatch."""
# ruff: noqa: TC003  # Path needed at runtime for cyclopts parameter parsing

from pathlib import Path
from typing import Annotated

from cyclopts import App, Parameter
from rich.console import Console

from jestwatch.config import LogLevel, load_config
from jestwatch.exceptions import ConfigError
from jestwatch.utils import create_logger

from ._commands import register_commands
from ._context import CLIContext
from ._shared import ExitCode, exit_with_error

APP_HELP = "Run Jest once or in watch mode and report its results."


def create_app(
    console: Console | None = None,
    error_console: Console | None = None,
    *,
    exit_on_error: bool = True,
) -> App:
    """Build the jestwatch application.

    Args:
        console: Console for command output. Uses stdout if None.
        error_console: Console for errors. Uses stderr if None.
        exit_on_error: Exit on parse errors instead of raising.

    Returns:
        The cyclopts app. Invoke it through ``app.meta`` so global options
        are applied.
    """
    if console is None:
        console = Console()
    if error_console is None:
        error_console = Console(stderr=True)
    app = App(
        name="jestwatch",
        help=APP_HELP,
        help_on_error=True,
        console=console,
        error_console=error_console,
        exit_on_error=exit_on_error,
    )

    @app.meta.default
    def _default(  # pyright: ignore[reportUnusedFunction]
        *tokens: Annotated[str, Parameter(show=False, allow_leading_hyphen=True)],
        config: Annotated[
            Path | None, Parameter(name="--config", help="Path to config file")
        ] = None,
        project_root: Annotated[
            Path | None, Parameter(name="--project-root", help="Path to project root")
        ] = None,
        log_level: Annotated[
            LogLevel | None, Parameter(name="--log-level", help="Log level")
        ] = None,
    ) -> None:
        """Run jestwatch with global options.

        Args:
            tokens: Command tokens to pass to subcommands.
            config: Explicit path to config file.
            project_root: Path to project root directory.
            log_level: Override the configured log level.
        """
        cli_overrides: dict[str, object] | None = None
        if log_level is not None:
            cli_overrides = {"logging": {"level": log_level.value}}

        try:
            loaded_config = load_config(
                config_path=config,
                project_root=project_root,
                cli_overrides=cli_overrides,
            )
        except ConfigError as e:
            exit_with_error(str(e), ExitCode.CONFIG_ERROR, console=error_console)

        log_config = loaded_config.logging
        cli_logger = create_logger(
            level=log_config.level.value,
            log_format=log_config.format.value,  # type: ignore[arg-type]
            log_file=log_config.file,
            max_bytes=log_config.max_bytes,
            backup_count=log_config.backup_count,
        )

        CLIContext.set_current(
            CLIContext(
                config=loaded_config,
                console=console,
                logger=cli_logger,
            )
        )
        try:
            app(tokens)
        finally:
            CLIContext.reset()

    register_commands(app)
    return app


app = create_app()


def main() -> None:
    """Default entrypoint for the `jestwatch` CLI."""
    app.meta()


if __name__ == "__main__":
    main()
