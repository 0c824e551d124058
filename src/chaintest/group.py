"""TestGroup - runs a set of tests concurrently and aggregates their outcome."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any, Callable, Iterable

from chaintest import deferred
from chaintest.assertions import default_registry
from chaintest.registry import AssertionRegistry
from chaintest.reporters import emit
from chaintest.test import DEFAULT_TIMEOUT_SECONDS, Asserter, Test, post_mortem

if TYPE_CHECKING:
    from chaintest.config import ChainTestConfig

logger = logging.getLogger(__name__)

GROUP_OPTIONS = ("debug", "strict", "show_passed", "timeout_seconds", "post_mortem")


class TestGroup:
    """A named collection of tests.

    ``run()`` starts every test at once; their chains interleave on the event
    loop. The group settles when the last test has drained, and only then
    reports ``group_end``.

    Example:
        group = TestGroup("arithmetic")

        @group.test("addition")
        def addition(a):
            a.equals(1 + 1, 2, "one plus one")

        await group.run()
    """

    __test__ = False

    def __init__(
        self,
        name: str = "Unnamed Test Group",
        description: str = "",
        *,
        registry: AssertionRegistry | None = None,
        reporters: Iterable[Any] | None = None,
        timeout_seconds: float | None = DEFAULT_TIMEOUT_SECONDS,
        debug: bool = False,
        strict: bool = False,
        show_passed: bool = False,
        post_mortem: bool = False,
    ):
        self.name = name
        self.description = description
        self.registry = registry or default_registry()
        self.reporters: list[Any] = list(reporters or [])
        self.timeout_seconds = timeout_seconds
        self.debug = debug
        self.strict = strict
        self.show_passed = show_passed
        self.post_mortem = post_mortem

        self.tests: list[Test] = []
        self.passed: bool | None = None
        self._future: asyncio.Future[TestGroup] | None = None
        self._generation = 0
        self._remaining = 0
        self._watchers: list[asyncio.Task[None]] = []

    def __repr__(self) -> str:
        return f"TestGroup(name={self.name!r}, tests={len(self.tests)}, passed={self.passed})"

    @classmethod
    def from_config(cls, config: ChainTestConfig, name: str = "Unnamed Test Group", **kwargs: Any) -> TestGroup:
        """Create a group whose options come from a loaded config."""
        options = {
            "timeout_seconds": config.timeout_seconds,
            "debug": config.debug,
            "strict": config.strict,
            "show_passed": config.show_passed,
            "post_mortem": config.post_mortem,
        }
        options.update(kwargs)
        return cls(name, **options)

    def configure(self, **options: Any) -> TestGroup:
        """Update group options. Tests created afterwards pick them up."""
        unknown = set(options) - set(GROUP_OPTIONS)
        if unknown:
            raise TypeError(f"Unknown group option(s): {', '.join(sorted(unknown))}")
        for key, value in options.items():
            setattr(self, key, value)
        return self

    def add(self, test: Test) -> TestGroup:
        """Append ``test``; group options apply unless the test set its own."""
        test.id = len(self.tests) + 1
        test.group = self
        if test._registry is None:
            test.registry = self.registry
        if test.timeout_seconds == DEFAULT_TIMEOUT_SECONDS:
            test.timeout_seconds = self.timeout_seconds
        test.debug = test.debug or self.debug
        test.strict = test.strict or self.strict
        test.show_passed = test.show_passed or self.show_passed
        self.tests.append(test)
        return self

    def add_reporter(self, reporter: Any) -> TestGroup:
        self.reporters.append(reporter)
        return self

    def test(
        self,
        name: str,
        func: Callable[[Asserter], Any] | None = None,
        description: str = "",
    ) -> Any:
        """Create a test with the group's options and add it.

        Called without ``func`` it returns a decorator.
        """
        if func is None:

            def decorator(f: Callable[[Asserter], Any]) -> Callable[[Asserter], Any]:
                self.test(name, f, description)
                return f

            return decorator

        self.add(
            Test(
                name,
                func,
                description,
                registry=self.registry,
                timeout_seconds=self.timeout_seconds,
                debug=self.debug,
                strict=self.strict,
                show_passed=self.show_passed,
            )
        )
        return self

    @property
    def done(self) -> bool:
        return self._future is not None and self._future.done()

    def run(self) -> asyncio.Future[TestGroup]:
        """Start every test and return a future that resolves to the group.

        Must be called with a running event loop. Calling it again starts a
        fresh run; a previous run still in flight no longer reports.
        """
        self._generation += 1
        generation = self._generation

        for test in self.tests:
            test.reset()
            if self.post_mortem:
                test.debugger = post_mortem

        self.passed = None
        self._future = deferred.create_deferred()
        self._remaining = len(self.tests)
        self._watchers = []

        logger.info("Running group %r (%d tests)", self.name, len(self.tests))
        emit(self.reporters, "group_start", self)

        for test in self.tests:
            emit(self.reporters, "test_start", test)
            test.run_body()
            self._watchers.append(asyncio.ensure_future(self._watch(test, generation)))

        if not self.tests:
            self._finish(generation)

        return self._future

    async def _watch(self, test: Test, generation: int) -> None:
        await test.drain()
        if generation != self._generation:
            return
        test.finish()
        self._remaining -= 1
        if self._remaining == 0:
            self._finish(generation)

    def _finish(self, generation: int) -> None:
        if generation != self._generation or self._future is None or self._future.done():
            return
        self.passed = all(test.passed for test in self.tests)
        logger.info("Group %r %s", self.name, "passed" if self.passed else "failed")
        emit(self.reporters, "group_end", self)
        self._future.set_result(self)
