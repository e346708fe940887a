"""Process orchestration for Jest test runners.

This package supervises long-lived Jest processes, chains a one-shot
priming run into a persistent watch process, and lets callers observe
every process's termination.

Key Components:
    - RunMode: One-shot or watch execution
    - ProjectWorkspace: Immutable description of the project under test
    - ProcessState: Lifecycle state enumeration
    - ProcessStatus: Runtime status tracking
    - ProcessEvent: Lifecycle event records
    - TestRunSummary: Structured Jest results
    - OutputSink: Protocol for output consumption
    - ProcessLauncher: Protocol for spawning the test runner
    - ConsoleOutputSink: Console output implementation
    - JestLauncher: Spawns Jest with anyio
    - JestProcess: Single process lifecycle supervisor
    - JestProcessManager: Live process coordinator

Example:
    >>> from jestwatch.process import JestProcessManager, ProjectWorkspace, RunMode
    >>> workspace = ProjectWorkspace(root_path=Path("."))
    >>> async with JestProcessManager(workspace) as manager:
    ...     manager.start_jest_process(watch_mode=RunMode.WATCH)
"""

from ._launcher import JestLauncher, build_jest_arguments
from ._manager import HandoffState, JestProcessManager, WatchModeHandoff
from ._models import (
    ProcessEvent,
    ProcessEventType,
    ProcessState,
    ProcessStatus,
    ProjectWorkspace,
    RunMode,
)
from ._output import ConsoleOutputSink
from ._process import JestProcess, StopHandle
from ._protocol import ExitCallback, OutputSink, ProcessLauncher
from ._results import (
    AssertionResult,
    TestFileResult,
    TestRunSummary,
    parse_results_line,
)

__all__ = [
    "AssertionResult",
    "ConsoleOutputSink",
    "ExitCallback",
    "HandoffState",
    "JestLauncher",
    "JestProcess",
    "JestProcessManager",
    "OutputSink",
    "ProcessEvent",
    "ProcessEventType",
    "ProcessLauncher",
    "ProcessState",
    "ProcessStatus",
    "ProjectWorkspace",
    "RunMode",
    "StopHandle",
    "TestFileResult",
    "TestRunSummary",
    "WatchModeHandoff",
    "build_jest_arguments",
    "parse_results_line",
]
