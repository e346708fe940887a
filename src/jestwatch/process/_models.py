"""Data models for the process orchestration system.

This module defines the core data types for test-runner processes:
- RunMode: One-shot or watch execution of Jest
- ProjectWorkspace: Immutable description of the project under test
- ProcessState: Lifecycle states of a single Jest process
- ProcessEventType: Types of lifecycle events
- ProcessEvent: Immutable event records
- ProcessStatus: Mutable runtime status
"""

import shlex
from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path

from jestwatch.exceptions import WorkspaceError


class RunMode(StrEnum):
    """How a Jest process runs.

    - NONE: Single pass over the test suite, terminates on its own
    - WATCH: Persistent run that re-executes on file changes until stopped
    """

    NONE = "none"
    WATCH = "watch"


class ProcessState(StrEnum):
    """Jest process lifecycle states.

    - STARTING: Process object exists, OS process is being spawned
    - RUNNING: OS process is running and streaming output
    - STOPPING: A stop was requested and termination is in progress
    - EXITED: Terminal state, reached exactly once
    """

    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"
    EXITED = "exited"


class ProcessEventType(StrEnum):
    """Types of process lifecycle events.

    - STARTED: OS process has been spawned
    - LAUNCH_FAILED: OS process could not be spawned
    - STOPPING: Termination was requested
    - EXITED: Process has terminated (for any reason)
    """

    STARTED = "started"
    LAUNCH_FAILED = "launch_failed"
    STOPPING = "stopping"
    EXITED = "exited"


@dataclass(frozen=True, slots=True)
class ProjectWorkspace:
    """Immutable description of the project Jest runs against.

    Shared between every process started for the project and never mutated.

    Attributes:
        root_path: Project root, used as the working directory.
        path_to_jest: Command line used to invoke Jest (split shell-style).
        path_to_config: Optional Jest configuration file.
    """

    root_path: Path
    path_to_jest: str = "npx jest"
    path_to_config: Path | None = None

    def jest_command(self) -> tuple[str, ...]:
        """Return the Jest executable and its leading arguments.

        Raises:
            WorkspaceError: If the Jest command is empty or cannot be parsed,
                or the command or config path contains a NUL byte.
        """
        for name, value in (
            ("Jest command", self.path_to_jest),
            ("Jest config path", str(self.path_to_config or "")),
        ):
            if "\x00" in value:
                msg = f"{name} contains a NUL byte: {value!r}"
                raise WorkspaceError(msg, root_path=self.root_path)

        try:
            parts = tuple(shlex.split(self.path_to_jest))
        except ValueError as e:
            msg = f"Invalid Jest command {self.path_to_jest!r}: {e}"
            raise WorkspaceError(msg, root_path=self.root_path) from e

        if not parts:
            msg = "Jest command is empty"
            raise WorkspaceError(msg, root_path=self.root_path)
        return parts


@dataclass(frozen=True, slots=True)
class ProcessEvent:
    """Immutable process lifecycle event.

    Attributes:
        label: Display label of the process that generated the event.
        event_type: Type of lifecycle event.
        mode: Run mode of the process.
        timestamp: ISO 8601 formatted timestamp.
        pid: Process ID if applicable.
        exit_code: Exit code if the process terminated.
        message: Optional human-readable message.
    """

    label: str
    event_type: ProcessEventType
    mode: RunMode
    timestamp: str
    pid: int | None = None
    exit_code: int | None = None
    message: str | None = None


@dataclass(slots=True)
class ProcessStatus:
    """Mutable runtime status of a Jest process.

    Attributes:
        state: Current lifecycle state.
        pid: Process ID of the running child, if any.
        exit_code: Exit code once the child has terminated. None when it
            never started or its exit status could not be observed.
        launch_error: Error message if the child could not be spawned.
        stop_requested: Whether termination was requested via stop().
        started_at: ISO 8601 timestamp of process creation.
        exited_at: ISO 8601 timestamp of the exit transition.
    """

    state: ProcessState = ProcessState.STARTING
    pid: int | None = None
    exit_code: int | None = None
    launch_error: str | None = None
    stop_requested: bool = False
    started_at: str | None = None
    exited_at: str | None = None
