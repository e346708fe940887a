"""Top-level session driving a JestProcessManager.

A session is what a front end (the CLI, an editor integration) holds on
to: it starts runs, follows the current process across the watch-mode
hand-off and remembers the most recent test results.
"""

import signal
from typing import TYPE_CHECKING, final

import anyio
import structlog

from jestwatch.process import JestProcess, RunMode

if TYPE_CHECKING:
    from structlog.typing import FilteringBoundLogger

    from jestwatch.process import JestProcessManager, TestRunSummary

log = structlog.get_logger("jestwatch.session")


@final
class JestSession:
    """Runs Jest through a manager and follows the current process.

    Attributes:
        current_process: The process whose results are current. Swapped to
            the watch process when a priming run hands off.
    """

    __slots__ = (
        "_logger",
        "_manager",
        "_previous_results",
        "_shutdown_event",
        "current_process",
    )

    def __init__(
        self,
        manager: "JestProcessManager",
        *,
        logger: "FilteringBoundLogger | None" = None,
    ) -> None:
        """Initialize the session.

        Args:
            manager: A running manager. The session does not own its lifetime.
            logger: Structured logger. Uses the module logger if None.
        """
        self._manager = manager
        self._logger = logger or log
        self._previous_results: TestRunSummary | None = None
        self._shutdown_event: anyio.Event | None = None
        self.current_process: JestProcess | None = None

    @property
    def latest_results(self) -> "TestRunSummary | None":
        """Return the most recent Jest report seen by this session."""
        if self.current_process is not None:
            results = self.current_process.last_results
            if results is not None:
                return results
        return self._previous_results

    async def run(self) -> int | None:
        """Run the test suite once.

        Returns:
            Jest's exit code, or None if Jest could not be launched.
        """
        process = self._manager.start_jest_process(exit_callback=self._on_exit)
        self.current_process = process
        return await process.wait()

    async def watch(self, *, handle_signals: bool = True) -> None:
        """Run Jest in watch mode until shutdown.

        Blocks until shutdown() is called, SIGINT or SIGTERM is received
        (when handle_signals is set), or the watch process exits on its own.
        Every process is then stopped.

        Args:
            handle_signals: Install SIGINT/SIGTERM handlers that shut down.
        """
        self._shutdown_event = anyio.Event()
        self.current_process = self._manager.start_jest_process(
            exit_callback=self._on_exit,
            watch_mode=RunMode.WATCH,
        )

        async with anyio.create_task_group() as tg:
            if handle_signals:
                tg.start_soon(self._handle_signals)

            await self._shutdown_event.wait()
            tg.cancel_scope.cancel()

        await self._manager.stop_all()

    def shutdown(self) -> None:
        """Make watch() stop every process and return."""
        if self._shutdown_event is not None:
            self._shutdown_event.set()

    async def _handle_signals(self) -> None:
        with anyio.open_signal_receiver(signal.SIGINT, signal.SIGTERM) as signals:
            async for signum in signals:
                self._logger.info("shutdown_signal", signal=signal.Signals(signum).name)
                self.shutdown()
                break

    def _on_exit(
        self,
        process: JestProcess,
        watch_process: JestProcess | None = None,
        /,
    ) -> None:
        if process.last_results is not None:
            self._previous_results = process.last_results

        if watch_process is not None:
            self._logger.debug(
                "current_process_swapped",
                previous=process.label,
                current=watch_process.label,
            )
            self.current_process = watch_process
            return

        if process is self.current_process and process.mode is RunMode.WATCH:
            self._logger.warning(
                "watch_process_exited",
                process=process.label,
                exit_code=process.exit_code,
                launch_error=process.status.launch_error,
            )
            self.shutdown()
