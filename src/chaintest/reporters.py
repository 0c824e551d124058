"""Reporters - sinks for the events a TestGroup emits while it runs.

Events are fire-and-forget. A reporter may implement any subset of the hooks
below; missing hooks are skipped and errors raised by a hook are logged, never
propagated into the test run.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Iterable

from rich.console import Console
from rich.markup import escape

if TYPE_CHECKING:
    from chaintest.group import TestGroup
    from chaintest.test import ItemResult, ItemStart, Test

logger = logging.getLogger(__name__)


class Reporter:
    """Base reporter with no-op hooks."""

    def group_start(self, group: TestGroup) -> None:
        """Called when a group starts running."""

    def group_end(self, group: TestGroup) -> None:
        """Called once every test in the group has settled."""

    def test_start(self, test: Test) -> None:
        """Called before a test body is invoked."""

    def test_end(self, test: Test) -> None:
        """Called when a test's chain has drained and ``test.passed`` is known."""

    def item_start(self, test: Test, info: ItemStart) -> None:
        """Called right before an assertion's predicate is evaluated."""

    def item_end(self, test: Test, result: ItemResult) -> None:
        """Called after an assertion passed or failed."""

    def log(self, test: Test, message: str) -> None:
        """Called with out-of-band messages, e.g. fatal test errors."""


def emit(reporters: Iterable[Any], event: str, *args: Any) -> None:
    """Call ``event`` on every reporter that implements it."""
    for reporter in reporters:
        hook = getattr(reporter, event, None)
        if hook is None:
            continue
        try:
            hook(*args)
        except Exception:
            logger.exception("Reporter %s failed handling %s", type(reporter).__name__, event)


class RecordingReporter(Reporter):
    """Keeps every event in memory, in emission order."""

    def __init__(self) -> None:
        self.events: list[tuple[str, tuple[Any, ...]]] = []

    def group_start(self, group: TestGroup) -> None:
        self.events.append(("group_start", (group,)))

    def group_end(self, group: TestGroup) -> None:
        self.events.append(("group_end", (group,)))

    def test_start(self, test: Test) -> None:
        self.events.append(("test_start", (test,)))

    def test_end(self, test: Test) -> None:
        self.events.append(("test_end", (test,)))

    def item_start(self, test: Test, info: ItemStart) -> None:
        self.events.append(("item_start", (test, info)))

    def item_end(self, test: Test, result: ItemResult) -> None:
        self.events.append(("item_end", (test, result)))

    def log(self, test: Test, message: str) -> None:
        self.events.append(("log", (test, message)))

    def named(self, event: str) -> list[tuple[Any, ...]]:
        """Arguments of every recorded ``event``."""
        return [args for name, args in self.events if name == event]

    @property
    def messages(self) -> list[str]:
        return [args[1] for args in self.named("log")]


class ConsoleReporter(Reporter):
    """Prints progress to the terminal using rich."""

    def __init__(self, console: Console | None = None, show_passed: bool = False):
        self.console = console or Console()
        self.show_passed = show_passed

    def group_start(self, group: TestGroup) -> None:
        self.console.print(f"[bold]Starting test group \"{escape(group.name)}\"[/bold]")

    def group_end(self, group: TestGroup) -> None:
        self.console.print(f"[bold]Test group \"{escape(group.name)}\":[/bold] {_status(group.passed)}\n")

    def test_start(self, test: Test) -> None:
        self.console.print(f"  [dim]Starting test \"{escape(test.name)}\"[/dim]")

    def test_end(self, test: Test) -> None:
        self.console.print(
            f"  {_status(test.passed)} {escape(test.name)} "
            f"[dim]({test.count} run, {test.count_passed} passed, {test.count_failed} failed)[/dim]"
        )

    def item_end(self, test: Test, result: ItemResult) -> None:
        if not result.passed:
            self.console.print(f"      [red]✗ {escape(result.fulltext)}[/red]", highlight=False)
        elif self.show_passed or test.show_passed:
            self.console.print(f"      [green]✓ {escape(result.fulltext)}[/green]", highlight=False)

    def log(self, test: Test, message: str) -> None:
        self.console.print(f"      [magenta]{escape(message)}[/magenta]", highlight=False)


def _status(passed: bool | None) -> str:
    if passed is None:
        return "[yellow]Unknown[/yellow]"
    return "[green]Passed[/green]" if passed else "[red]Failed[/red]"
