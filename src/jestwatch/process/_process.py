"""Supervisor for a single Jest process.

This module provides the JestProcess class that owns exactly one child
test-runner invocation: it spawns the process, streams its output,
recognises structured results and delivers the exit notification
exactly once.
"""

import itertools
from typing import TYPE_CHECKING, Literal, final

import anyio
import anyio.abc
import structlog
from anyio.streams.text import TextReceiveStream

from jestwatch.exceptions import WorkspaceError

from ._launcher import JestLauncher
from ._models import (
    ProcessEvent,
    ProcessEventType,
    ProcessState,
    ProcessStatus,
    ProjectWorkspace,
    RunMode,
)
from ._results import parse_results_line

if TYPE_CHECKING:
    from collections.abc import Callable, Generator, Iterable

    from structlog.typing import FilteringBoundLogger

    from ._protocol import OutputSink, ProcessLauncher
    from ._results import TestRunSummary

    ExitListener = Callable[["JestProcess"], object]

log = structlog.get_logger("jestwatch.process")

_process_ids = itertools.count(1)


def _get_timestamp() -> str:
    """Get current timestamp in ISO 8601 format."""
    import pendulum  # noqa: PLC0415

    return pendulum.now("UTC").to_iso8601_string()


@final
class JestProcess:
    """Owns one Jest invocation and its termination notification.

    The OS process is launched as soon as the object is created, as a task
    in the supplied task group. Termination is observed exactly once,
    whatever its cause (completion, stop request, crash or launch failure),
    and every registered exit listener is then called in registration
    order with this object as its argument.

    Attributes:
        workspace: The project Jest runs against. Never mutated.
        mode: Run mode, fixed at creation.
        keep_alive: Whether a manager keeps tracking this process after exit.
        label: Display label used in output and logs.
        shutdown_timeout: Seconds to wait after SIGTERM before SIGKILL.
        status: Mutable runtime status.
        last_results: Most recent structured Jest report, if any.
    """

    __slots__ = (
        "_cancel_scope",
        "_exited",
        "_launcher",
        "_listeners",
        "_logger",
        "_output_sink",
        "_process",
        "keep_alive",
        "label",
        "last_results",
        "mode",
        "shutdown_timeout",
        "status",
        "workspace",
    )

    def __init__(  # noqa: PLR0913
        self,
        workspace: ProjectWorkspace,
        task_group: "anyio.abc.TaskGroup",
        *,
        mode: RunMode = RunMode.NONE,
        keep_alive: bool = False,
        launcher: "ProcessLauncher | None" = None,
        output_sink: "OutputSink | None" = None,
        shutdown_timeout: float = 5.0,
        logger: "FilteringBoundLogger | None" = None,
    ) -> None:
        """Create the process record and schedule the launch.

        Args:
            workspace: The project to run tests for.
            task_group: Task group that hosts the process lifetime.
            mode: Whether to run once or in watch mode.
            keep_alive: Whether a manager keeps tracking the process after exit.
            launcher: Spawns the OS process. Uses JestLauncher if None.
            output_sink: Receives output, events and results. Optional.
            shutdown_timeout: Seconds to wait after SIGTERM before SIGKILL.
            logger: Structured logger. Uses the module logger if None.

        Raises:
            WorkspaceError: If workspace is not a ProjectWorkspace.
        """
        if not isinstance(workspace, ProjectWorkspace):
            msg = f"Expected a ProjectWorkspace, got {type(workspace).__name__}"
            raise WorkspaceError(msg)

        self.workspace = workspace
        self.mode = mode
        self.keep_alive = keep_alive
        self.label = f"jest-{mode.value}-{next(_process_ids)}"
        self.shutdown_timeout = shutdown_timeout
        self.status = ProcessStatus(started_at=_get_timestamp())
        self.last_results: TestRunSummary | None = None

        self._launcher: ProcessLauncher = launcher or JestLauncher()
        self._output_sink = output_sink
        self._listeners: list[ExitListener] = []
        self._exited = anyio.Event()
        self._cancel_scope = anyio.CancelScope()
        self._process: anyio.abc.Process | None = None
        self._logger = (logger or log).bind(
            process=self.label,
            mode=mode.value,
            keep_alive=keep_alive,
        )

        task_group.start_soon(self._run, name=f"jestwatch:{self.label}")

    def __repr__(self) -> str:
        return (
            f"JestProcess(label={self.label!r}, mode={self.mode.value!r}, "
            f"keep_alive={self.keep_alive}, state={self.status.state.value!r})"
        )

    @property
    def state(self) -> ProcessState:
        """Return the current lifecycle state."""
        return self.status.state

    @property
    def pid(self) -> int | None:
        """Return the process ID if running, None otherwise."""
        return self.status.pid

    @property
    def exit_code(self) -> int | None:
        """Return the exit code once the process has exited."""
        return self.status.exit_code

    @property
    def is_exited(self) -> bool:
        """Check whether the process has reached its terminal state."""
        return self.status.state == ProcessState.EXITED

    def on_exit(self, listener: "ExitListener") -> None:
        """Register a callback invoked once when the process terminates.

        Listeners are called in registration order with this process as
        their only argument.

        Args:
            listener: The callback to register.
        """
        self._listeners.append(listener)

    def stop(self) -> "StopHandle":
        """Request termination of the process.

        The request is made immediately: the process is sent SIGTERM, then
        SIGKILL if it is still running after shutdown_timeout seconds.
        Stopping an exited process is a no-op, including one whose OS
        process has already finished but whose exit is still being delivered.

        Returns:
            An awaitable that resolves once termination has been observed.
        """
        finished = self._process is not None and self._process.returncode is not None
        if not self.is_exited and not finished and not self.status.stop_requested:
            self.status.stop_requested = True
            self.status.state = ProcessState.STOPPING
            self._cancel_scope.cancel()
            self._logger.info("process_stop_requested", pid=self.status.pid)

        return StopHandle((self,))

    async def wait(self) -> int | None:
        """Wait for the process to exit.

        Returns:
            The exit code, or None if the process never ran.
        """
        if not self.is_exited:
            await self._exited.wait()
        return self.status.exit_code

    async def _emit(
        self,
        event_type: ProcessEventType,
        *,
        message: str | None = None,
        exit_code: int | None = None,
    ) -> None:
        if self._output_sink is None:
            return

        event = ProcessEvent(
            label=self.label,
            event_type=event_type,
            mode=self.mode,
            timestamp=_get_timestamp(),
            pid=self.status.pid,
            exit_code=exit_code,
            message=message,
        )
        try:
            await self._output_sink.write_event(event)
        except Exception:  # noqa: BLE001
            # Output sink errors must not prevent exit delivery
            self._logger.warning("output_sink_failed", event_type=event_type.value)

    async def _run(self) -> None:
        """Launch the process, stream its output and deliver the exit."""
        try:
            with self._cancel_scope:
                if await self._launch():
                    await self._stream_until_exit()
        finally:
            with anyio.CancelScope(shield=True):
                if self.status.stop_requested:
                    await self._emit(
                        ProcessEventType.STOPPING,
                        message="Stop requested",
                    )
                await self._terminate()
                await self._mark_exited()

    async def _launch(self) -> bool:
        """Spawn the OS process.

        Returns:
            True if the process was spawned, False if the launch failed.
        """
        try:
            self._process = await self._launcher.launch(self.workspace, self.mode)
        except Exception as e:  # noqa: BLE001
            # Any launcher failure is a terminal exit, never a task group error
            self.status.launch_error = str(e)
            self._logger.warning(
                "process_launch_failed", error=str(e), error_type=type(e).__name__
            )
            await self._emit(
                ProcessEventType.LAUNCH_FAILED,
                message=f"Failed to launch Jest: {e}",
            )
            return False

        self.status.pid = self._process.pid
        if self.status.state == ProcessState.STARTING:
            self.status.state = ProcessState.RUNNING

        self._logger.info("process_launched", pid=self.status.pid)
        await self._emit(
            ProcessEventType.STARTED,
            message=f"Started in {self.workspace.root_path}",
        )
        return True

    async def _stream_until_exit(self) -> None:
        """Stream stdout and stderr until the process exits."""
        if self._process is None:
            return

        async with anyio.create_task_group() as tg:
            if self._process.stdout is not None:
                tg.start_soon(self._stream_output, self._process.stdout, "stdout")
            if self._process.stderr is not None:
                tg.start_soon(self._stream_output, self._process.stderr, "stderr")

            self.status.exit_code = await self._process.wait()

    async def _stream_output(
        self,
        stream: "anyio.abc.ByteReceiveStream",
        stream_name: Literal["stdout", "stderr"],
    ) -> None:
        """Split a byte stream into lines and dispatch each of them.

        Args:
            stream: The process stream to read from.
            stream_name: Name of the stream ("stdout" or "stderr").
        """
        pending = ""
        try:
            async for chunk in TextReceiveStream(stream, errors="replace"):
                pending += chunk
                *lines, pending = pending.split("\n")
                for line in lines:
                    await self._handle_line(stream_name, line.rstrip("\r"))
        except (anyio.ClosedResourceError, anyio.BrokenResourceError):
            # Stream closed, which is expected on process exit
            pass

        if pending:
            await self._handle_line(stream_name, pending.rstrip("\r"))

    async def _handle_line(
        self,
        stream_name: Literal["stdout", "stderr"],
        line: str,
    ) -> None:
        if stream_name == "stdout":
            summary = parse_results_line(line)
            if summary is not None:
                self.last_results = summary
                self._logger.info(
                    "test_results",
                    success=summary.success,
                    total=summary.num_total_tests,
                    passed=summary.num_passed_tests,
                    failed=summary.num_failed_tests,
                )
                if self._output_sink is not None:
                    try:
                        await self._output_sink.write_results(self.label, summary)
                    except Exception:  # noqa: BLE001
                        self._logger.warning("output_sink_failed", stream=stream_name)
                return

        if self._output_sink is None or self.status.pid is None:
            return

        try:
            await self._output_sink.write_line(
                self.label, self.status.pid, stream_name, line
            )
        except Exception:  # noqa: BLE001
            # Output sink errors should not crash streaming
            self._logger.warning("output_sink_failed", stream=stream_name)

    async def _terminate(self) -> None:
        """Make sure the OS process is gone and its streams are closed.

        Sends SIGTERM and waits up to shutdown_timeout seconds for the
        process to exit before sending SIGKILL.
        """
        process = self._process
        if process is None:
            return

        try:
            if process.returncode is None:
                process.terminate()
                with anyio.move_on_after(self.shutdown_timeout):
                    _ = await process.wait()

                if process.returncode is None:
                    self._logger.warning(
                        "process_kill",
                        pid=process.pid,
                        timeout=self.shutdown_timeout,
                    )
                    process.kill()
                    _ = await process.wait()
        except ProcessLookupError:
            # Process already exited
            pass
        finally:
            await process.aclose()

        self.status.exit_code = process.returncode

    async def _mark_exited(self) -> None:
        """Transition to EXITED and notify listeners, exactly once."""
        if self.status.state == ProcessState.EXITED:
            return

        self.status.state = ProcessState.EXITED
        self.status.exited_at = _get_timestamp()
        self._process = None

        self._logger.info(
            "process_exited",
            pid=self.status.pid,
            exit_code=self.status.exit_code,
            stop_requested=self.status.stop_requested,
            launch_error=self.status.launch_error,
        )

        if self.status.launch_error is not None:
            message = "Launch failed"
        elif self.status.stop_requested:
            message = "Stopped by request"
        else:
            message = f"Exited with code {self.status.exit_code}"
        await self._emit(
            ProcessEventType.EXITED,
            exit_code=self.status.exit_code,
            message=message,
        )
        self.status.pid = None

        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception:  # noqa: BLE001
                self._logger.exception("exit_listener_failed")

        self._exited.set()


@final
class StopHandle:
    """Awaitable that resolves once every requested stop has been observed.

    Stops are requested when the handle is created, so dropping the handle
    without awaiting it does not cancel them.
    """

    __slots__ = ("processes",)

    def __init__(self, processes: "Iterable[JestProcess]") -> None:
        self.processes: tuple[JestProcess, ...] = tuple(processes)

    def __await__(self) -> "Generator[object, None, None]":
        return self._wait_all().__await__()

    @property
    def done(self) -> bool:
        """Check whether every process covered by the handle has exited."""
        return all(process.is_exited for process in self.processes)

    async def _wait_all(self) -> None:
        for process in self.processes:
            _ = await process.wait()
