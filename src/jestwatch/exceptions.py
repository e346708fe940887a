"""Exception hierarchy for jestwatch.

Everything raised on purpose derives from :class:`JestwatchError`, so the
CLI can catch one type and map it to an exit code.
"""

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from pathlib import Path


class JestwatchError(Exception):
    """Root of all jestwatch errors."""


# =============================================================================
# Configuration
# =============================================================================


class ConfigError(JestwatchError):
    """A configuration source could not be turned into a Config."""


class ConfigLoadError(ConfigError):
    """A configuration file exists but is unreadable or not valid TOML.

    Attributes:
        path: File that failed to load.
        line: 1-based line of the syntax error, when known.
        column: 1-based column of the syntax error, when known.
    """

    def __init__(
        self,
        message: str,
        *,
        path: "Path | None" = None,
        line: int | None = None,
        column: int | None = None,
    ) -> None:
        super().__init__(message)
        self.path: Path | None = path
        self.line: int | None = line
        self.column: int | None = column


class ConfigValidationError(ConfigError):
    """A merged configuration value has the wrong type or range.

    Attributes:
        key: Dotted key of the offending value, e.g. ``runner.shutdown_timeout``.
        value: The rejected value.
        source: Where the merged configuration came from, if known.
    """

    def __init__(
        self,
        message: str,
        *,
        key: str,
        value: Any,  # pyright: ignore[reportAny,reportExplicitAny]
        source: str | None = None,
    ) -> None:
        super().__init__(message)
        self.key: str = key
        self.value: Any = value  # pyright: ignore[reportExplicitAny]
        self.source: str | None = source


# =============================================================================
# Processes
# =============================================================================


class ProcessError(JestwatchError):
    """Failure while preparing or supervising a Jest process."""


class WorkspaceError(ProcessError, ValueError):
    """The workspace cannot produce a usable Jest command line.

    Attributes:
        root_path: Root of the rejected workspace.
    """

    def __init__(self, message: str, *, root_path: "Path | None" = None) -> None:
        super().__init__(message)
        self.root_path: Path | None = root_path


class ManagerClosedError(ProcessError, RuntimeError):
    """A process was requested while its manager was not running."""
