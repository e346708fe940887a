"""Rich console rendering of Jest output, lifecycle events and results."""

from typing import TYPE_CHECKING, Literal, final

from rich.console import Console
from rich.style import Style
from rich.text import Text

from ._models import ProcessEventType

if TYPE_CHECKING:
    from ._models import ProcessEvent
    from ._results import TestRunSummary

# Jest prints its interactive key bindings in watch mode
WATCH_USAGE_MARKER = "Watch Usage"

LABEL_STYLE = Style(color="blue", bold=True)
DETAIL_STYLE = Style(dim=True)
EVENT_STYLES: dict[ProcessEventType, Style] = {
    ProcessEventType.STARTED: Style(color="green", bold=True),
    ProcessEventType.LAUNCH_FAILED: Style(color="red", bold=True),
    ProcessEventType.STOPPING: Style(color="yellow"),
    ProcessEventType.EXITED: Style(color="cyan"),
}


def _tagged(tag: str) -> Text:
    return Text.assemble((f"[{tag}]", LABEL_STYLE), " ")


@final
class ConsoleOutputSink:
    """Print everything a Jest process reports to a rich Console.

    Output lines are tagged ``[label:pid]``; stderr is dimmed because Jest
    reports progress there. Watch-mode key binding help is never printed.
    With ``show_output=False`` only events and result summaries appear.
    """

    __slots__ = ("_console", "_show_output")

    def __init__(
        self, console: Console | None = None, *, show_output: bool = True
    ) -> None:
        self._console = console or Console()
        self._show_output = show_output

    async def write_line(
        self,
        label: str,
        pid: int,
        stream: Literal["stdout", "stderr"],
        line: str,
    ) -> None:
        if not self._show_output or WATCH_USAGE_MARKER in line:
            return
        text = _tagged(f"{label}:{pid}")
        _ = text.append(line, style=DETAIL_STYLE if stream == "stderr" else "")
        self._console.print(text)

    async def write_event(self, event: "ProcessEvent") -> None:
        style = EVENT_STYLES.get(event.event_type, Style())
        text = _tagged(event.label)
        _ = text.append(event.event_type.value.upper(), style=style)
        if event.pid is not None:
            _ = text.append(f" (pid={event.pid})", style=DETAIL_STYLE)
        if event.exit_code is not None:
            _ = text.append(f" exit_code={event.exit_code}", style=DETAIL_STYLE)
        if event.message:
            _ = text.append(f" - {event.message}", style=style)
        self._console.print(text)

    async def write_results(self, label: str, summary: "TestRunSummary") -> None:
        """Print a one-line PASS/FAIL tally, then each failed test file."""
        text = _tagged(label)
        if summary.success:
            _ = text.append("PASS", style=Style(color="green", bold=True))
        else:
            _ = text.append("FAIL", style=Style(color="red", bold=True))
        _ = text.append(
            f" {summary.num_passed_tests} passed, {summary.num_failed_tests} failed,"
            f" {summary.num_pending_tests} pending"
            f" ({summary.num_total_tests} tests in"
            f" {summary.num_total_test_suites} suites)"
        )
        self._console.print(text)

        for result in summary.failed_files():
            self._console.print(Text(f"  x {result.name}", style=Style(color="red")))
