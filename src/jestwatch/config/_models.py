"""Configuration models.

This module provides the Pydantic models for the sections of a
jestwatch configuration file and the Config container that ties them
together.
"""

from enum import StrEnum
from pathlib import Path
from typing import ClassVar

from pydantic import BaseModel, ConfigDict, Field

from jestwatch.process import ProjectWorkspace


class LogLevel(StrEnum):
    """Log level threshold values.

    Values are ordered from most verbose (debug) to least verbose (error).
    """

    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class LogFormat(StrEnum):
    """Log output format values."""

    JSON = "json"
    TEXT = "text"


class LoggingConfig(BaseModel):
    """Logging configuration section.

    Attributes:
        level: Log level threshold.
        format: Log output format.
        file: Path to log file (empty logs to stderr).
        max_bytes: Rotate the log file at this size. Zero disables rotation.
        backup_count: Rotated files to keep. Zero disables rotation.
    """

    model_config: ClassVar[ConfigDict] = ConfigDict(frozen=True, extra="ignore")

    level: LogLevel = LogLevel.WARNING
    format: LogFormat = LogFormat.TEXT
    file: str = ""
    max_bytes: int = Field(default=0, ge=0)
    backup_count: int = Field(default=0, ge=0)


class WorkspaceConfig(BaseModel):
    """Workspace configuration section.

    Attributes:
        root_path: Project root. Relative paths resolve against the directory
            holding the configuration file.
        path_to_jest: Command line used to invoke Jest.
        path_to_config: Jest configuration file (empty uses Jest's discovery).
    """

    model_config: ClassVar[ConfigDict] = ConfigDict(frozen=True, extra="ignore")

    root_path: str = "."
    path_to_jest: str = Field(default="npx jest", min_length=1)
    path_to_config: str = ""


class RunnerConfig(BaseModel):
    """Runner configuration section.

    Attributes:
        run_all_tests_first: Run the whole suite once before watch mode.
        shutdown_timeout: Seconds to wait after SIGTERM before SIGKILL.
        show_output: Print Jest's raw output lines.
    """

    model_config: ClassVar[ConfigDict] = ConfigDict(frozen=True, extra="ignore")

    run_all_tests_first: bool = True
    shutdown_timeout: float = Field(default=5.0, gt=0)
    show_output: bool = True


class Config(BaseModel):
    """Typed jestwatch configuration.

    Use jestwatch.config.load_config() to build one from files, the
    environment and CLI overrides.

    Attributes:
        workspace: Project the test runner is launched for.
        runner: Process orchestration settings.
        logging: Logging settings.
        base_dir: Directory relative paths resolve against.
    """

    model_config: ClassVar[ConfigDict] = ConfigDict(frozen=True, extra="ignore")

    workspace: WorkspaceConfig = Field(default_factory=WorkspaceConfig)
    runner: RunnerConfig = Field(default_factory=RunnerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    base_dir: Path = Field(default_factory=Path.cwd, exclude=True)

    def project_workspace(self) -> ProjectWorkspace:
        """Build the workspace description the test runner is launched for."""
        root_path = (self.base_dir / self.workspace.root_path).resolve()
        path_to_config: Path | None = None
        if self.workspace.path_to_config:
            path_to_config = root_path / self.workspace.path_to_config

        return ProjectWorkspace(
            root_path=root_path,
            path_to_jest=self.workspace.path_to_jest,
            path_to_config=path_to_config,
        )
