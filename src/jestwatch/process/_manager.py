"""Manager coordinating the live Jest processes of a workspace.

This module provides the JestProcessManager class, which decides which
JestProcess to run next, tracks the processes that are currently live and
implements the watch-mode hand-off: a one-shot priming run over the whole
suite, replaced by a persistent watch process once it exits.
"""

from contextlib import AsyncExitStack
from enum import StrEnum
from typing import TYPE_CHECKING, final

import anyio
import anyio.abc
import structlog

from jestwatch.exceptions import ManagerClosedError, WorkspaceError

from ._models import ProjectWorkspace, RunMode
from ._process import JestProcess, StopHandle

if TYPE_CHECKING:
    from types import TracebackType
    from typing import Self

    from structlog.typing import FilteringBoundLogger

    from ._protocol import ExitCallback, OutputSink, ProcessLauncher

log = structlog.get_logger("jestwatch.manager")


def _ignore_exit(
    process: JestProcess,  # noqa: ARG001
    watch_process: JestProcess | None = None,  # noqa: ARG001
    /,
) -> None:
    """Exit callback used when the caller does not supply one."""


class HandoffState(StrEnum):
    """States of the watch-mode hand-off.

    - AWAITING_PRIMING_RUN: The one-shot priming run is in progress
    - WATCHING: The priming run exited and the watch process was started
    """

    AWAITING_PRIMING_RUN = "awaiting_priming_run"
    WATCHING = "watching"


@final
class WatchModeHandoff:
    """Two-stage start of a watch process behind a priming run.

    Stage 1 is a one-shot run that is never kept alive. When it exits, it
    is forgotten by the manager, the watch process is created with the
    caller's keep_alive flag and standard exit handling, and the caller's
    exit callback is invoked once with both processes so it can move its
    references from the priming run to the watch process.

    Attributes:
        state: Current hand-off state.
        priming_process: The stage-1 process, once started.
        watch_process: The stage-2 process, once the priming run has exited.
    """

    __slots__ = (
        "_exit_callback",
        "_keep_alive",
        "_logger",
        "_manager",
        "priming_process",
        "state",
        "watch_process",
    )

    def __init__(
        self,
        manager: "JestProcessManager",
        exit_callback: "ExitCallback",
        *,
        keep_alive: bool,
        logger: "FilteringBoundLogger",
    ) -> None:
        self._manager = manager
        self._logger = logger
        self._exit_callback = exit_callback
        self._keep_alive = keep_alive
        self.state = HandoffState.AWAITING_PRIMING_RUN
        self.priming_process: JestProcess | None = None
        self.watch_process: JestProcess | None = None

    def begin(self) -> JestProcess:
        """Start the priming run.

        Returns:
            The stage-1 process.
        """
        process = self._manager.create_process(RunMode.NONE, keep_alive=False)
        process.on_exit(self.on_priming_run_exit)
        self.priming_process = process
        return process

    def on_priming_run_exit(self, process: JestProcess) -> None:
        """Replace the exited priming run with the watch process."""
        if self.state is not HandoffState.AWAITING_PRIMING_RUN:
            return

        self._manager.forget(process)
        self.state = HandoffState.WATCHING
        self.watch_process = self._manager.start_tracked(
            RunMode.WATCH,
            keep_alive=self._keep_alive,
            exit_callback=self._exit_callback,
        )
        self._logger.info(
            "watch_handoff",
            priming_process=process.label,
            priming_exit_code=process.exit_code,
            watch_process=self.watch_process.label,
        )
        self._exit_callback(process, self.watch_process)


@final
class JestProcessManager:
    """Owns the live Jest processes of one workspace.

    The manager hosts every process in its own anyio task group and must be
    entered as an async context manager before processes are started.
    Leaving the context stops every process, including ones started by a
    watch hand-off that was still in flight.

    All bookkeeping runs on the event loop that drives the manager: exit
    listeners fire in the process tasks of that loop, so the live set is
    never mutated concurrently.

    Example:
        >>> async with JestProcessManager(workspace) as manager:
        ...     process = manager.start_jest_process(watch_mode=RunMode.WATCH)
    """

    __slots__ = (
        "_exit_stack",
        "_launcher",
        "_logger",
        "_output_sink",
        "_processes",
        "_task_group",
        "run_all_tests_first_in_watch_mode",
        "shutdown_timeout",
        "workspace",
    )

    def __init__(  # noqa: PLR0913
        self,
        workspace: ProjectWorkspace,
        *,
        run_all_tests_first_in_watch_mode: bool = True,
        launcher: "ProcessLauncher | None" = None,
        output_sink: "OutputSink | None" = None,
        shutdown_timeout: float = 5.0,
        logger: "FilteringBoundLogger | None" = None,
    ) -> None:
        """Initialize the manager.

        Args:
            workspace: The project every process runs against.
            run_all_tests_first_in_watch_mode: Precede watch processes with a
                one-shot run over the whole suite.
            launcher: Spawns the OS processes. Uses JestLauncher if None.
            output_sink: Receives output, events and results of every process.
            shutdown_timeout: Seconds to wait after SIGTERM before SIGKILL.
            logger: Structured logger. Uses the module logger if None.

        Raises:
            WorkspaceError: If the workspace cannot be used to launch Jest.
        """
        if not isinstance(workspace, ProjectWorkspace):
            msg = f"Expected a ProjectWorkspace, got {type(workspace).__name__}"
            raise WorkspaceError(msg)
        _ = workspace.jest_command()

        self.workspace = workspace
        self.run_all_tests_first_in_watch_mode = run_all_tests_first_in_watch_mode
        self.shutdown_timeout = shutdown_timeout
        self._launcher = launcher
        self._output_sink = output_sink
        self._logger = (logger or log).bind(workspace=str(workspace.root_path))
        self._processes: list[JestProcess] = []
        self._task_group: anyio.abc.TaskGroup | None = None
        self._exit_stack: AsyncExitStack | None = None

    async def __aenter__(self) -> "Self":
        if self._exit_stack is not None:
            msg = "JestProcessManager is already running"
            raise ManagerClosedError(msg)

        async with AsyncExitStack() as stack:
            self._task_group = await stack.enter_async_context(
                anyio.create_task_group()
            )
            self._exit_stack = stack.pop_all()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: "TracebackType | None",
    ) -> bool | None:
        await self.aclose_processes()

        exit_stack = self._exit_stack
        task_group = self._task_group
        self._exit_stack = None
        try:
            if task_group is not None:
                # Processes started by hand-offs during shutdown are cancelled
                task_group.cancel_scope.cancel()
            if exit_stack is not None:
                return await exit_stack.__aexit__(exc_type, exc_val, exc_tb)
            return None
        finally:
            self._task_group = None
            self._processes.clear()

    @property
    def number_of_processes(self) -> int:
        """Return the number of tracked processes."""
        return len(self._processes)

    @property
    def processes(self) -> tuple[JestProcess, ...]:
        """Return the tracked processes, most recently started first."""
        return tuple(self._processes)

    def start_jest_process(
        self,
        *,
        exit_callback: "ExitCallback" = _ignore_exit,
        watch_mode: RunMode = RunMode.NONE,
        keep_alive: bool = False,
    ) -> JestProcess:
        """Start a Jest process.

        In watch mode with run_all_tests_first_in_watch_mode enabled, a
        one-shot priming run is started first and returned; the watch
        process is only created when it exits, and is handed to the caller
        through exit_callback(priming_process, watch_process).

        Otherwise a single process is started with the requested mode, and
        exit_callback(process) is called when it exits, after the manager
        has stopped tracking it (unless keep_alive is set).

        Args:
            exit_callback: Observer of process termination.
            watch_mode: Run mode of the requested process.
            keep_alive: Keep tracking the process after it exits.

        Returns:
            The started process (the priming run in the two-stage case).

        Raises:
            ManagerClosedError: If the manager is not running.
        """
        if watch_mode is RunMode.WATCH and self.run_all_tests_first_in_watch_mode:
            handoff = WatchModeHandoff(
                self, exit_callback, keep_alive=keep_alive, logger=self._logger
            )
            return handoff.begin()

        return self.start_tracked(
            watch_mode,
            keep_alive=keep_alive,
            exit_callback=exit_callback,
        )

    def stop_all(self) -> StopHandle:
        """Stop every tracked process.

        The tracked set is captured and cleared immediately, and a stop is
        requested for every captured process concurrently. Processes
        started afterwards, for example by a watch hand-off in flight, are
        not covered.

        Returns:
            An awaitable that resolves once every captured process exited.
        """
        processes = self._processes
        self._processes = []
        self._logger.info("stop_all", count=len(processes))

        for process in processes:
            _ = process.stop()
        return StopHandle(processes)

    def stop_jest_process(self, process: JestProcess) -> StopHandle:
        """Stop a single process.

        The process is removed from the tracked set if present and its
        stop is requested even if the manager was not tracking it.

        Args:
            process: The process to stop.

        Returns:
            An awaitable that resolves once the process exited.
        """
        self.forget(process)
        return process.stop()

    async def aclose_processes(self) -> None:
        """Stop every tracked process and wait for them, even if cancelled."""
        with anyio.CancelScope(shield=True):
            await self.stop_all()

    def create_process(self, mode: RunMode, *, keep_alive: bool) -> JestProcess:
        """Create and track a process without any exit handling.

        Raises:
            ManagerClosedError: If the manager is not running.
        """
        if self._task_group is None:
            msg = "JestProcessManager must be entered before starting processes"
            raise ManagerClosedError(msg)

        process = JestProcess(
            self.workspace,
            self._task_group,
            mode=mode,
            keep_alive=keep_alive,
            launcher=self._launcher,
            output_sink=self._output_sink,
            shutdown_timeout=self.shutdown_timeout,
            logger=self._logger,
        )
        self._processes.insert(0, process)
        return process

    def start_tracked(
        self,
        mode: RunMode,
        *,
        keep_alive: bool,
        exit_callback: "ExitCallback",
    ) -> JestProcess:
        """Create a process with the standard exit handling.

        On exit the process is forgotten unless keep_alive is set, and only
        then is exit_callback called with it.
        """
        process = self.create_process(mode, keep_alive=keep_alive)

        def handle_exit(exited: JestProcess) -> None:
            if not exited.keep_alive:
                self.forget(exited)
            exit_callback(exited)

        process.on_exit(handle_exit)
        return process

    def forget(self, process: JestProcess) -> None:
        """Stop tracking a process. No-op if it is not tracked."""
        if process in self._processes:
            self._processes.remove(process)
