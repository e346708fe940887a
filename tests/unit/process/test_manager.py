from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import pytest
from fakes import FakeLauncher, RecordingSink, wait_until

from jestwatch.exceptions import ManagerClosedError, WorkspaceError
from jestwatch.process import (
    HandoffState,
    JestProcess,
    JestProcessManager,
    ProcessState,
    ProjectWorkspace,
    RunMode,
)

if TYPE_CHECKING:
    from pytest_mock import MockerFixture

pytestmark = pytest.mark.anyio


class CallbackRecorder:
    """Exit callback that records its arguments and the manager's view."""

    def __init__(self, manager: JestProcessManager | None = None) -> None:
        self.manager = manager
        self.calls: list[tuple[JestProcess, ...]] = []
        self.tracked_at_call: list[tuple[JestProcess, ...]] = []

    def __call__(
        self, process: JestProcess, watch_process: JestProcess | None = None, /
    ) -> None:
        if watch_process is None:
            self.calls.append((process,))
        else:
            self.calls.append((process, watch_process))
        if self.manager is not None:
            self.tracked_at_call.append(self.manager.processes)


class TestJestProcessManagerConstruction:
    def test_rejects_non_workspace(self) -> None:
        with pytest.raises(WorkspaceError):
            _ = JestProcessManager("/project")  # pyright: ignore[reportArgumentType]

    def test_rejects_empty_jest_command(self, tmp_path: Path) -> None:
        workspace = ProjectWorkspace(root_path=tmp_path, path_to_jest="  ")

        with pytest.raises(WorkspaceError, match="empty"):
            _ = JestProcessManager(workspace)

    def test_rejects_nul_byte_in_jest_command(self, tmp_path: Path) -> None:
        workspace = ProjectWorkspace(root_path=tmp_path, path_to_jest="je\x00st")

        with pytest.raises(WorkspaceError, match="NUL byte"):
            _ = JestProcessManager(workspace)

    def test_runs_all_tests_first_by_default(
        self, workspace: ProjectWorkspace
    ) -> None:
        manager = JestProcessManager(workspace)

        assert manager.run_all_tests_first_in_watch_mode is True
        assert manager.number_of_processes == 0

    def test_start_requires_running_manager(
        self, workspace: ProjectWorkspace
    ) -> None:
        manager = JestProcessManager(workspace)

        with pytest.raises(ManagerClosedError):
            _ = manager.start_jest_process()

    async def test_start_after_exit_raises(
        self, workspace: ProjectWorkspace, launcher: FakeLauncher
    ) -> None:
        manager = JestProcessManager(workspace, launcher=launcher)
        async with manager:
            pass

        with pytest.raises(ManagerClosedError):
            _ = manager.start_jest_process()

    async def test_cannot_be_entered_twice(
        self, workspace: ProjectWorkspace, launcher: FakeLauncher
    ) -> None:
        async with JestProcessManager(workspace, launcher=launcher) as manager:
            with pytest.raises(ManagerClosedError, match="already running"):
                _ = await manager.__aenter__()


class TestSingleRun:
    async def test_process_is_forgotten_on_exit(
        self, workspace: ProjectWorkspace, launcher: FakeLauncher
    ) -> None:
        async with JestProcessManager(workspace, launcher=launcher) as manager:
            callback = CallbackRecorder(manager)
            process = manager.start_jest_process(exit_callback=callback)

            assert process.mode is RunMode.NONE
            assert manager.number_of_processes == 1
            assert manager.processes == (process,)

            await wait_until(lambda: len(launcher.launched) == 1)
            launcher.launched[0].finish(0)
            _ = await process.wait()

            assert manager.number_of_processes == 0
            assert callback.calls == [(process,)]
            # Bookkeeping runs before the caller is told
            assert callback.tracked_at_call == [()]

    async def test_keep_alive_process_stays_tracked(
        self, workspace: ProjectWorkspace
    ) -> None:
        launcher = FakeLauncher(exit_codes={RunMode.NONE: 0})
        async with JestProcessManager(workspace, launcher=launcher) as manager:
            callback = CallbackRecorder(manager)
            process = manager.start_jest_process(
                exit_callback=callback, keep_alive=True
            )
            _ = await process.wait()

            assert process.is_exited
            assert manager.processes == (process,)
            assert callback.calls == [(process,)]

            await manager.stop_jest_process(process)

            assert manager.number_of_processes == 0
            assert callback.calls == [(process,)]

    async def test_direct_watch_start_without_priming(
        self, workspace: ProjectWorkspace, launcher: FakeLauncher
    ) -> None:
        async with JestProcessManager(
            workspace, run_all_tests_first_in_watch_mode=False, launcher=launcher
        ) as manager:
            callback = CallbackRecorder(manager)
            process = manager.start_jest_process(
                exit_callback=callback, watch_mode=RunMode.WATCH
            )

            assert process.mode is RunMode.WATCH
            await wait_until(lambda: len(launcher.launched) == 1)
            assert launcher.launched[0].mode is RunMode.WATCH

            launcher.launched[0].finish(0)
            _ = await process.wait()

            assert callback.calls == [(process,)]
            assert manager.number_of_processes == 0

    async def test_back_to_back_runs_are_independent(
        self, workspace: ProjectWorkspace
    ) -> None:
        launcher = FakeLauncher(exit_codes={RunMode.NONE: 0})
        async with JestProcessManager(workspace, launcher=launcher) as manager:
            first = manager.start_jest_process()
            _ = await first.wait()
            second = manager.start_jest_process()
            _ = await second.wait()

        assert first is not second
        assert first.label != second.label
        assert first.is_exited
        assert second.is_exited
        assert len(launcher.launched) == 2

    async def test_new_processes_go_to_the_front(
        self, workspace: ProjectWorkspace, launcher: FakeLauncher
    ) -> None:
        async with JestProcessManager(workspace, launcher=launcher) as manager:
            first = manager.start_jest_process()
            second = manager.start_jest_process(watch_mode=RunMode.WATCH)

            assert manager.processes == (second, first)
            assert manager.number_of_processes == len(manager.processes)

    async def test_launch_failure_still_runs_bookkeeping(
        self, workspace: ProjectWorkspace
    ) -> None:
        launcher = FakeLauncher(error=PermissionError("permission denied"))
        async with JestProcessManager(workspace, launcher=launcher) as manager:
            callback = CallbackRecorder(manager)
            process = manager.start_jest_process(exit_callback=callback)
            exit_code = await process.wait()

            assert exit_code is None
            assert process.status.launch_error == "permission denied"
            assert manager.number_of_processes == 0
            assert callback.calls == [(process,)]

    async def test_unexpected_launch_error_leaves_siblings_running(
        self, workspace: ProjectWorkspace, launcher: FakeLauncher
    ) -> None:
        async with JestProcessManager(workspace, launcher=launcher) as manager:
            sibling = manager.start_jest_process()
            await wait_until(lambda: sibling.state is ProcessState.RUNNING)

            launcher.error = RuntimeError("launcher exploded")
            callback = CallbackRecorder(manager)
            failed = manager.start_jest_process(exit_callback=callback)
            exit_code = await failed.wait()

            assert exit_code is None
            assert failed.status.launch_error == "launcher exploded"
            assert callback.calls == [(failed,)]
            assert sibling.state is ProcessState.RUNNING
            assert sibling.status.stop_requested is False
            assert manager.processes == (sibling,)

        assert sibling.status.stop_requested is True


class TestWatchModeHandoff:
    async def test_priming_run_hands_off_to_watch_process(
        self, workspace: ProjectWorkspace
    ) -> None:
        launcher = FakeLauncher(exit_codes={RunMode.NONE: 0})
        async with JestProcessManager(workspace, launcher=launcher) as manager:
            callback = CallbackRecorder(manager)
            priming = manager.start_jest_process(
                exit_callback=callback, watch_mode=RunMode.WATCH, keep_alive=True
            )

            assert priming.mode is RunMode.NONE
            assert priming.keep_alive is False

            await wait_until(lambda: len(callback.calls) == 1)

            (stage1, stage2) = callback.calls[0]
            assert stage1 is priming
            assert stage1.is_exited
            assert stage2.mode is RunMode.WATCH
            assert stage2.keep_alive is True
            assert callback.tracked_at_call == [(stage2,)]
            assert manager.processes == (stage2,)

            await wait_until(lambda: len(launcher.launched_in(RunMode.WATCH)) == 1)
            launcher.launched_in(RunMode.WATCH)[0].finish(0)
            _ = await stage2.wait()

            assert callback.calls == [(priming, stage2), (stage2,)]
            # keep_alive applies to the watch process
            assert manager.processes == (stage2,)

    async def test_watch_process_without_keep_alive_is_forgotten(
        self, workspace: ProjectWorkspace
    ) -> None:
        launcher = FakeLauncher(exit_codes={RunMode.NONE: 1, RunMode.WATCH: 0})
        async with JestProcessManager(workspace, launcher=launcher) as manager:
            callback = CallbackRecorder(manager)
            _ = manager.start_jest_process(
                exit_callback=callback, watch_mode=RunMode.WATCH
            )

            await wait_until(lambda: len(callback.calls) == 2)

            assert manager.number_of_processes == 0
            assert [len(args) for args in callback.calls] == [2, 1]
            assert len(launcher.launched) == 2

    async def test_priming_run_failure_still_starts_watch_mode(
        self, workspace: ProjectWorkspace
    ) -> None:
        launcher = FakeLauncher(exit_codes={RunMode.NONE: 1})
        async with JestProcessManager(workspace, launcher=launcher) as manager:
            callback = CallbackRecorder(manager)
            priming = manager.start_jest_process(
                exit_callback=callback, watch_mode=RunMode.WATCH
            )

            await wait_until(lambda: len(callback.calls) == 1)

            assert priming.exit_code == 1
            assert callback.calls[0][1].mode is RunMode.WATCH

    async def test_logs_handoff(
        self, workspace: ProjectWorkspace, mocker: MockerFixture
    ) -> None:
        launcher = FakeLauncher(exit_codes={RunMode.NONE: 0})
        logger = mocker.MagicMock()
        bound = logger.bind.return_value

        async with JestProcessManager(
            workspace, launcher=launcher, logger=logger
        ) as manager:
            callback = CallbackRecorder()
            priming = manager.start_jest_process(
                exit_callback=callback, watch_mode=RunMode.WATCH
            )
            await wait_until(lambda: len(callback.calls) == 1)

        bound.info.assert_any_call(
            "watch_handoff",
            priming_process=priming.label,
            priming_exit_code=0,
            watch_process=callback.calls[0][1].label,
        )

    def test_handoff_states(self) -> None:
        assert [state.value for state in HandoffState] == [
            "awaiting_priming_run",
            "watching",
        ]


class TestStopAll:
    async def test_clears_tracking_immediately_and_waits(
        self, workspace: ProjectWorkspace, launcher: FakeLauncher
    ) -> None:
        async with JestProcessManager(workspace, launcher=launcher) as manager:
            first = manager.start_jest_process()
            second = manager.start_jest_process(watch_mode=RunMode.WATCH)
            third = manager.start_jest_process(keep_alive=True)
            await wait_until(lambda: len(launcher.launched) == 3)

            handle = manager.stop_all()

            assert manager.number_of_processes == 0
            assert all(
                process.state is ProcessState.STOPPING
                for process in (first, second, third)
            )

            await handle

            assert all(process.is_exited for process in (first, second, third))
            assert all(
                process.status.stop_requested for process in (first, second, third)
            )

    async def test_empty_manager_resolves_immediately(
        self, workspace: ProjectWorkspace, launcher: FakeLauncher
    ) -> None:
        async with JestProcessManager(workspace, launcher=launcher) as manager:
            handle = manager.stop_all()
            assert handle.done
            await handle

    async def test_watch_process_started_by_handoff_is_not_covered(
        self, workspace: ProjectWorkspace, launcher: FakeLauncher
    ) -> None:
        async with JestProcessManager(workspace, launcher=launcher) as manager:
            callback = CallbackRecorder(manager)
            priming = manager.start_jest_process(
                exit_callback=callback, watch_mode=RunMode.WATCH
            )
            await wait_until(lambda: len(launcher.launched) == 1)

            await manager.stop_all()

            assert priming.is_exited
            (_, watch_process) = callback.calls[0]
            assert manager.processes == (watch_process,)
            assert not watch_process.status.stop_requested

        assert watch_process.is_exited


class TestStopJestProcess:
    async def test_removes_and_stops(
        self, workspace: ProjectWorkspace, launcher: FakeLauncher
    ) -> None:
        async with JestProcessManager(workspace, launcher=launcher) as manager:
            callback = CallbackRecorder(manager)
            process = manager.start_jest_process(exit_callback=callback)
            other = manager.start_jest_process()
            await wait_until(lambda: len(launcher.launched) == 2)

            handle = manager.stop_jest_process(process)
            assert manager.processes == (other,)
            await handle

            assert process.is_exited
            assert callback.calls == [(process,)]
            assert not other.is_exited

    async def test_untracked_process_is_still_stopped(
        self, workspace: ProjectWorkspace, launcher: FakeLauncher
    ) -> None:
        async with (
            JestProcessManager(workspace, launcher=launcher) as manager,
            JestProcessManager(workspace, launcher=launcher) as other_manager,
        ):
            process = other_manager.start_jest_process()
            await wait_until(lambda: len(launcher.launched) == 1)

            await manager.stop_jest_process(process)

            assert process.is_exited
            assert process.status.stop_requested
            assert manager.number_of_processes == 0
            assert other_manager.number_of_processes == 0

    async def test_exited_process_resolves_immediately(
        self, workspace: ProjectWorkspace
    ) -> None:
        launcher = FakeLauncher(exit_codes={RunMode.NONE: 0})
        async with JestProcessManager(workspace, launcher=launcher) as manager:
            callback = CallbackRecorder(manager)
            process = manager.start_jest_process(exit_callback=callback)
            _ = await process.wait()

            handle = manager.stop_jest_process(process)

            assert handle.done
            await handle
            assert callback.calls == [(process,)]


class TestManagerTeardown:
    async def test_exit_stops_running_processes(
        self, workspace: ProjectWorkspace, launcher: FakeLauncher, sink: RecordingSink
    ) -> None:
        async with JestProcessManager(
            workspace, launcher=launcher, output_sink=sink
        ) as manager:
            process = manager.start_jest_process(watch_mode=RunMode.WATCH)
            await wait_until(lambda: len(launcher.launched) == 1)

        assert process.is_exited
        assert process.status.stop_requested
        assert manager.number_of_processes == 0
        assert "stopping" in sink.event_types(process.label)

    async def test_exit_cancels_processes_from_handoff_in_flight(
        self, workspace: ProjectWorkspace
    ) -> None:
        launcher = FakeLauncher()
        callback = CallbackRecorder()
        async with JestProcessManager(workspace, launcher=launcher) as manager:
            _ = manager.start_jest_process(
                exit_callback=callback, watch_mode=RunMode.WATCH
            )
            await wait_until(lambda: len(launcher.launched) == 1)

        assert len(callback.calls) == 2
        (priming, watch_process) = callback.calls[0]
        assert priming.is_exited
        assert watch_process.is_exited
        assert callback.calls[1] == (watch_process,)
        assert manager.number_of_processes == 0
