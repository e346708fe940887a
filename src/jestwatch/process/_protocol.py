"""Protocol definitions for the process orchestration system.

This module defines the interfaces that decouple the orchestrator core
from the collaborators around it:
- OutputSink: Consumes raw output, lifecycle events and test results
- ProcessLauncher: Spawns the OS process for a workspace and run mode
- ExitCallback: Caller-supplied observer of process termination
"""

from typing import TYPE_CHECKING, Literal, Protocol, runtime_checkable

if TYPE_CHECKING:
    import anyio.abc

    from ._models import ProcessEvent, ProjectWorkspace, RunMode
    from ._process import JestProcess
    from ._results import TestRunSummary


@runtime_checkable
class OutputSink(Protocol):
    """Protocol for consuming Jest process output.

    The protocol is async so implementations can perform non-blocking I/O
    such as writing to files or updating a UI.
    """

    async def write_line(
        self,
        label: str,
        pid: int,
        stream: Literal["stdout", "stderr"],
        line: str,
    ) -> None:
        """Write a raw line of process output.

        Args:
            label: Display label of the process that produced the output.
            pid: Process ID of the process.
            stream: Which output stream the line came from.
            line: The output line (without trailing newline).
        """
        ...

    async def write_event(self, event: "ProcessEvent") -> None:
        """Write a process lifecycle event.

        Args:
            event: The lifecycle event to record.
        """
        ...

    async def write_results(self, label: str, summary: "TestRunSummary") -> None:
        """Write the structured results of a completed test run.

        Args:
            label: Display label of the process that ran the tests.
            summary: The parsed Jest report.
        """
        ...


@runtime_checkable
class ProcessLauncher(Protocol):
    """Protocol for spawning a test-runner OS process."""

    async def launch(
        self,
        workspace: "ProjectWorkspace",
        mode: "RunMode",
    ) -> "anyio.abc.Process":
        """Spawn the test runner for a workspace.

        Args:
            workspace: The project to run tests for.
            mode: Whether to run once or in watch mode.

        Returns:
            A handle to the running process with piped stdout and stderr.

        Raises:
            OSError: If the process cannot be spawned.
        """
        ...


class ExitCallback(Protocol):
    """Caller-supplied observer of process termination.

    Called with the exited process. On the hand-off from a priming run to
    watch mode it is called once with both the exited priming process and
    the newly created watch process.
    """

    def __call__(
        self,
        process: "JestProcess",
        watch_process: "JestProcess | None" = None,
        /,
    ) -> None: ...
