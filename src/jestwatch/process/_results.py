"""Structured Jest result reports.

Jest run with ``--json`` prints a single-line JSON report on stdout after
each test run. This module models that report and recognises it among the
raw output lines of a process.
"""

from typing import ClassVar, Literal

import orjson
from pydantic import BaseModel, ConfigDict, Field, ValidationError

TestStatus = Literal["passed", "failed", "pending", "skipped", "todo", "disabled"]


class AssertionResult(BaseModel):
    """Result of a single ``it``/``test`` block."""

    model_config: ClassVar[ConfigDict] = ConfigDict(
        frozen=True, extra="ignore", populate_by_name=True
    )

    title: str
    full_name: str = Field(default="", alias="fullName")
    status: TestStatus
    failure_messages: tuple[str, ...] = Field(default=(), alias="failureMessages")


class TestFileResult(BaseModel):
    """Result of a single test file."""

    __test__: ClassVar[bool] = False

    model_config: ClassVar[ConfigDict] = ConfigDict(
        frozen=True, extra="ignore", populate_by_name=True
    )

    name: str
    status: Literal["passed", "failed"]
    message: str = ""
    summary: str = ""
    start_time: int = Field(default=0, alias="startTime")
    end_time: int = Field(default=0, alias="endTime")
    assertion_results: tuple[AssertionResult, ...] = Field(
        default=(), alias="assertionResults"
    )


class TestRunSummary(BaseModel):
    """Aggregate result of one Jest run.

    Attributes:
        success: Whether every test suite passed.
        start_time: Run start in milliseconds since the epoch.
        num_total_tests: Number of tests discovered.
        num_total_test_suites: Number of test files discovered.
        num_runtime_error_test_suites: Test files that failed to run.
        num_passed_tests: Number of passing tests.
        num_failed_tests: Number of failing tests.
        num_pending_tests: Number of skipped or pending tests.
        test_results: Per-file results.
    """

    __test__: ClassVar[bool] = False

    model_config: ClassVar[ConfigDict] = ConfigDict(
        frozen=True, extra="ignore", populate_by_name=True
    )

    success: bool
    start_time: int = Field(default=0, alias="startTime")
    num_total_tests: int = Field(default=0, alias="numTotalTests")
    num_total_test_suites: int = Field(default=0, alias="numTotalTestSuites")
    num_runtime_error_test_suites: int = Field(
        default=0, alias="numRuntimeErrorTestSuites"
    )
    num_passed_tests: int = Field(default=0, alias="numPassedTests")
    num_failed_tests: int = Field(default=0, alias="numFailedTests")
    num_pending_tests: int = Field(default=0, alias="numPendingTests")
    test_results: tuple[TestFileResult, ...] = Field(default=(), alias="testResults")

    def failed_files(self) -> list[TestFileResult]:
        """Return the test files that did not pass."""
        return [result for result in self.test_results if result.status == "failed"]


def parse_results_line(line: str) -> TestRunSummary | None:
    """Parse a stdout line as a Jest JSON report.

    Args:
        line: A single line of process output (without trailing newline).

    Returns:
        The parsed report, or None if the line is not a Jest report.
    """
    stripped = line.strip()
    if not stripped.startswith("{"):
        return None

    try:
        data = orjson.loads(stripped)
    except orjson.JSONDecodeError:
        return None

    if not isinstance(data, dict) or "numTotalTests" not in data:
        return None

    try:
        return TestRunSummary.model_validate(data)
    except ValidationError:
        return None
