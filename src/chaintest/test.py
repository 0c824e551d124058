"""Test - one logical test case and its assertion queue.

Every assertion a test body makes is queued onto the test's chain instead of
running immediately. Each queued step waits for the previous tail of the
chain, then for any awaitable arguments (and a pending magic callback), then
evaluates its predicate under the test's timeout. Steps never raise: failures
are recorded on the test and reported through the owning group's reporters.
"""

from __future__ import annotations

import asyncio
import logging
import pdb
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Sequence

from chaintest import deferred
from chaintest.assertions import default_registry
from chaintest.diagnostics import (
    AmbiguousCallbackError,
    ArgumentCountError,
    AssertionFailure,
    CallbackError,
    ConflictingBindingError,
    failure_message,
    is_recognized_failure,
)
from chaintest.registry import AssertionDescriptor, AssertionRegistry, local_name, probe_arity
from chaintest.reporters import emit

if TYPE_CHECKING:
    from chaintest.group import TestGroup

logger = logging.getLogger(__name__)

ANONYMOUS_DESCRIPTION = "an anonymous test"
DEFAULT_TIMEOUT_SECONDS = 10.0

Debugger = Callable[[BaseException], Any]


class TestState(str, Enum):
    """Lifecycle of a test within one run."""

    __test__ = False

    IDLE = "idle"
    RUNNING = "running"
    STOPPED = "stopped"  # A fatal error halted the chain
    SETTLED = "settled"


@dataclass
class ItemStart:
    """Payload of the ``item_start`` event."""

    count: int
    assertion: str
    desc: str


@dataclass
class ItemResult:
    """Outcome of one assertion."""

    count: int
    assertion: str
    desc: str
    passed: bool
    message: str = ""
    fulltext: str = ""


def post_mortem(exc: BaseException) -> None:
    """Debugger hook that opens pdb on the traceback of ``exc``."""
    pdb.post_mortem(exc.__traceback__)


class Test:
    """A named test function plus the chain its assertions are queued on."""

    __test__ = False

    def __init__(
        self,
        name: str,
        func: Callable[[Asserter], Any],
        description: str = "",
        *,
        registry: AssertionRegistry | None = None,
        timeout_seconds: float | None = DEFAULT_TIMEOUT_SECONDS,
        debug: bool = False,
        strict: bool = False,
        show_passed: bool = False,
        debugger: Debugger | None = None,
    ):
        self.name = name
        self.func = func
        self.description = description
        self.timeout_seconds = timeout_seconds
        self.debug = debug
        self.strict = strict
        self.show_passed = show_passed
        self.debugger = debugger

        self.id: int | None = None
        self.group: TestGroup | None = None
        self._registry = registry

        self.state = TestState.IDLE
        self.chain: asyncio.Future[Any] | None = None
        self.results: list[ItemResult] = []
        self.messages: list[str] = []
        self.count = 0
        self.count_passed = 0
        self.count_failed = 0
        self.stopped = False
        self.passed: bool | None = None
        self._callback: asyncio.Future[Any] | None = None
        self._next_timeout: float | None = None

    def __repr__(self) -> str:
        return f"Test(name={self.name!r}, state={self.state.value}, passed={self.passed})"

    @property
    def registry(self) -> AssertionRegistry:
        if self._registry is None:
            self._registry = self.group.registry if self.group is not None else default_registry()
        return self._registry

    @registry.setter
    def registry(self, registry: AssertionRegistry | None) -> None:
        self._registry = registry

    def reset(self) -> None:
        """Start a fresh chain and clear the counters. Must run inside an event loop."""
        self.state = TestState.IDLE
        self.chain = deferred.resolved()
        self.results = []
        self.messages = []
        self.count = 0
        self.count_passed = 0
        self.count_failed = 0
        self.stopped = False
        self.passed = None
        self._callback = None
        self._next_timeout = None

    def run_body(self) -> None:
        """Invoke the test function; the assertions it makes are queued, not run."""
        self.state = TestState.RUNNING
        asserter = Asserter(self)

        if deferred.is_async_callable(self.func):
            self.then(lambda: self.func(asserter), self._body_error)
            return

        try:
            outcome = self.func(asserter)
        except Exception as e:
            self._body_error(e)
            return

        if deferred.is_promise_like(outcome):
            self.then(lambda: outcome, self._body_error)

    async def drain(self) -> None:
        """Wait until the chain stops changing."""
        tail = None
        while tail is not self.chain:
            tail = self.chain
            await tail

    def finish(self) -> None:
        """Settle ``passed`` from the counters once the chain has drained."""
        if self._callback is not None:
            logger.warning("Test %r finished with an unconsumed callback()", self.name)
        self.passed = not self.stopped and self.count == self.count_passed
        self.state = TestState.SETTLED
        logger.debug(
            "Test %r settled: %d run, %d passed, %d failed",
            self.name,
            self.count,
            self.count_passed,
            self.count_failed,
        )
        self._emit("test_end")

    # Queueing API

    def queue_assertion(
        self,
        descriptor: AssertionDescriptor,
        args: Sequence[Any],
        refute: bool = False,
    ) -> Test:
        """Queue a registered assertion in assert or refute mode."""
        assertion = f"{'refute' if refute else 'assert'}.{descriptor.name}"

        if descriptor.style == "boolean":
            return self.queue_boolean_test(
                descriptor.predicate, assertion, args, invert=refute, descriptor=descriptor
            )

        predicate = descriptor.predicate
        if refute:
            predicate = descriptor.refute_predicate or _negate(descriptor.predicate, descriptor.name)
        return self.queue_test(predicate, assertion, args, descriptor=descriptor)

    def queue_boolean_test(
        self,
        predicate: Callable[..., Any],
        assertion: str,
        args: Sequence[Any],
        invert: bool = False,
        *,
        descriptor: AssertionDescriptor | None = None,
    ) -> Test:
        """Queue a predicate that returns ``(passed, message)`` instead of raising."""
        descriptor = descriptor or self._describe(assertion, predicate)

        def check(*values: Any) -> None:
            passed, message = predicate(*values)
            if bool(passed) == invert:
                raise AssertionFailure(message.replace("{not}", "not " if invert else ""), kind="iq")

        return self.queue_test(check, assertion, args, descriptor=descriptor)

    def queue_test(
        self,
        predicate: Callable[..., Any],
        assertion: str,
        args: Sequence[Any],
        *,
        descriptor: AssertionDescriptor | None = None,
    ) -> Test:
        """Queue ``predicate(*args)`` after everything already on the chain.

        ``predicate`` signals failure by raising AssertionError. Awaitable
        arguments are resolved first, and a pending magic callback is bound
        into the argument slot it belongs to.
        """
        if self.stopped:
            logger.debug("Test %r is stopped, not queueing %s", self.name, assertion)
            return self

        descriptor = descriptor or self._describe(assertion, predicate)
        args = list(args)
        pending: list[tuple[int, asyncio.Future[Any]]] = []
        conflict: ConflictingBindingError | None = None

        magic, self._callback = self._callback, None
        slot = None
        if magic is not None:
            slot = self._callback_slot(descriptor, args)
            if slot is None:
                self.test_error(AmbiguousCallbackError(assertion, self._description(descriptor, args)))
                return self
            if slot < len(args) and args[slot] is not None and not deferred.is_promise_like(args[slot]):
                args.insert(slot, None)
            while len(args) <= slot:
                args.append(None)

        for index, arg in enumerate(args):
            if deferred.is_promise_like(arg):
                if index == slot:
                    conflict = ConflictingBindingError(
                        "You're using a magic callback but you've also passed an awaitable "
                        "in the argument it would fill."
                    )
                pending.append((index, deferred.ensure_future(arg)))

        if magic is not None and conflict is None:
            pending.append((slot, magic))

        description = self._description(descriptor, args)
        timeout_seconds = self._take_timeout()
        previous = self.chain or deferred.resolved()
        self.chain = deferred.ensure_future(
            self._run_assertion(
                previous,
                predicate,
                assertion,
                descriptor,
                args,
                pending,
                description,
                timeout_seconds,
                conflict,
            )
        )
        logger.debug("Queued %s in test %r (%d pending)", assertion, self.name, len(pending))
        return self

    def then(
        self,
        on_success: Callable[[], Any],
        on_error: Callable[[Exception], Any] | None = None,
    ) -> Test:
        """Queue an arbitrary continuation (not an assertion) onto the chain."""
        if self.stopped:
            return self
        previous = self.chain or deferred.resolved()
        self.chain = deferred.ensure_future(self._run_continuation(previous, on_success, on_error))
        return self

    def timeout(self, seconds: float | None) -> Test:
        """Override the timeout for the next queued assertion only."""
        self._next_timeout = seconds
        return self

    def callback(
        self,
        target: Callable[..., Any] | None = None,
        timeout_seconds: float | None = None,
    ) -> Callable[..., None]:
        """Create a callback whose result the next queued assertion waits for.

        The returned function applies ``target`` to whatever it is called
        with (or yields True when there is no target). Only one callback may
        be pending at a time.
        """
        if self._callback is not None:
            raise ConflictingBindingError(
                "A callback() is already waiting to be consumed by the next assertion."
            )

        future = deferred.ensure_future(deferred.create_deferred())
        seconds = self.timeout_seconds if timeout_seconds is None else timeout_seconds
        self._callback = deferred.bounded(
            future, seconds, _timeout_message("The callback was not called", seconds)
        )

        def fire(*args: Any, **kwargs: Any) -> None:
            if future.done():
                logger.debug("Ignoring late call of callback() in test %r", self.name)
                return
            if target is None:
                future.set_result(True)
                return
            try:
                value = target(*args, **kwargs)
            except Exception as e:
                self._fatal("An error occurred in your callback()", e)
                reason = f"The callback failed. Reason: {failure_message(e)}"
                future.set_exception(CallbackError(reason, e))
                return
            future.set_result(value)

        return fire

    def backpromise(
        self,
        func: Callable[[Callable[..., None]], Any],
        transform: Callable[..., Any] | None = None,
        timeout_seconds: float | None = None,
    ) -> asyncio.Future[Any]:
        """Turn a callback-accepting function into a future.

        ``func`` is called once with a callback; whatever that callback
        receives is passed through ``transform`` and resolves the returned
        future. The future is not queued: pass it to an assertion.
        """
        future = deferred.ensure_future(deferred.create_deferred())
        seconds = self.timeout_seconds if timeout_seconds is None else timeout_seconds

        def respond(*args: Any) -> None:
            if future.done():
                return
            try:
                value = transform(*args) if transform else _first_or_all(args)
            except Exception as e:
                self._fatal("An error occurred in your backpromise() callback", e)
                reason = f"The backpromise callback failed. Reason: {failure_message(e)}"
                future.set_exception(CallbackError(reason, e))
                return
            future.set_result(value)

        try:
            func(respond)
        except Exception as e:
            self._fatal("An error occurred in your backpromise() function", e)
            if not future.done():
                reason = f"The backpromise function failed. Reason: {failure_message(e)}"
                future.set_exception(CallbackError(reason, e))

        return deferred.bounded(
            future, seconds, _timeout_message("The backpromise was not resolved", seconds)
        )

    def test_error(self, err: Any, debugging: bool = False) -> None:
        """Stop the test. Nothing queued afterwards runs.

        With ``debugging`` the test switches to debug mode, so the next run
        hands unexpected errors to the debugger hook.
        """
        if self.stopped:
            return
        self.stopped = True
        self.passed = False
        self.state = TestState.STOPPED

        message = str(err) or type(err).__name__
        if debugging:
            message = f"{message}. Debugging is enabled if you start again."
            self.debug = True

        logger.warning("Test %r stopped: %s", self.name, message)
        self.messages.append(message)
        self._emit("log", message)

    # Chain steps

    async def _run_assertion(
        self,
        previous: asyncio.Future[Any],
        predicate: Callable[..., Any],
        assertion: str,
        descriptor: AssertionDescriptor,
        args: list[Any],
        pending: list[tuple[int, asyncio.Future[Any]]],
        description: str,
        timeout_seconds: float | None,
        conflict: ConflictingBindingError | None,
    ) -> None:
        await previous
        if self.stopped:
            return

        self.count += 1
        self._emit("item_start", ItemStart(self.count, assertion, description))

        try:
            if conflict is not None:
                raise conflict
            await deferred.with_timeout(
                self._evaluate(predicate, descriptor, args, pending), timeout_seconds
            )
        except Exception as e:
            self._record_failure(assertion, description, e)
        else:
            self._record_pass(assertion, description)

    async def _evaluate(
        self,
        predicate: Callable[..., Any],
        descriptor: AssertionDescriptor,
        args: list[Any],
        pending: list[tuple[int, asyncio.Future[Any]]],
    ) -> None:
        if pending:
            try:
                values = await deferred.gather_all(future for _, future in pending)
            except AssertionError:
                raise
            except Exception as e:
                raise AssertionFailure(failure_message(e)) from e
            for (index, _), value in zip(pending, values):
                args[index] = value

        if len(args) < descriptor.min_args:
            raise ArgumentCountError(descriptor.min_args, len(args))

        outcome = predicate(*args)
        if deferred.is_promise_like(outcome):
            await outcome

    async def _run_continuation(
        self,
        previous: asyncio.Future[Any],
        on_success: Callable[[], Any],
        on_error: Callable[[Exception], Any] | None,
    ) -> None:
        await previous
        if self.stopped:
            return
        try:
            outcome = on_success()
            if deferred.is_promise_like(outcome):
                await outcome
        except Exception as e:
            if on_error is None:
                self._continuation_error(e)
                return
            try:
                on_error(e)
            except Exception as handler_error:
                self._continuation_error(handler_error)

    # Recording

    def _record_pass(self, assertion: str, description: str) -> None:
        self.count_passed += 1
        result = ItemResult(
            count=self.count,
            assertion=assertion,
            desc=description,
            passed=True,
            fulltext=f'Test #{self.count} {assertion} passed in test "{description}"',
        )
        self._emit("item_end", result)

    def _record_failure(self, assertion: str, description: str, exc: Exception) -> None:
        recognized = is_recognized_failure(exc)
        message = failure_message(exc)
        if getattr(exc, "kind", None) == "iq":
            message = f"[{assertion}] {message}"
        if not recognized and not isinstance(exc, ConflictingBindingError):
            message = f"{message}. Debugging has been enabled."

        self.count_failed += 1
        result = ItemResult(
            count=self.count,
            assertion=assertion,
            desc=description,
            passed=False,
            message=message,
            fulltext=f'Test #{self.count} {assertion} failed: {message} in test "{description}"',
        )
        self.results.append(result)
        self._emit("item_end", result)

        if isinstance(exc, ConflictingBindingError):
            self.test_error(exc)
        elif not recognized:
            logger.error("Unexpected error in %s of test %r", assertion, self.name, exc_info=exc)
            self._enter_debugger(exc)
            self.test_error(exc, debugging=True)
        elif self.strict:
            self.test_error(f"Stopped after the first failed assertion (#{self.count})")

    # Helpers

    def _describe(self, assertion: str, predicate: Callable[..., Any]) -> AssertionDescriptor:
        if assertion in self.registry:
            return self.registry.describe(assertion)
        return AssertionDescriptor(
            name=local_name(assertion),
            predicate=predicate,
            min_args=probe_arity(predicate),
        )

    @staticmethod
    def _callback_slot(descriptor: AssertionDescriptor, args: list[Any]) -> int | None:
        if descriptor.min_args <= 1:
            return descriptor.actual_index
        first = _populated(args, 0)
        second = _populated(args, 1)
        if first and not second:
            return 1
        if second and not first:
            return 0
        return None

    @staticmethod
    def _description(descriptor: AssertionDescriptor, args: list[Any]) -> str:
        extra = args[descriptor.min_args:]
        if extra and isinstance(extra[-1], str):
            return extra[-1]
        return ANONYMOUS_DESCRIPTION

    def _take_timeout(self) -> float | None:
        if self._next_timeout is not None:
            seconds, self._next_timeout = self._next_timeout, None
            return seconds
        return self.timeout_seconds

    def _enter_debugger(self, exc: BaseException) -> None:
        if self.debug and self.debugger is not None:
            self.debugger(exc)

    def _fatal(self, context: str, exc: Exception) -> None:
        self._enter_debugger(exc)
        self.test_error(f"{context}: {failure_message(exc)}", debugging=True)

    def _body_error(self, exc: Exception) -> None:
        self._fatal("An error occurred in your test code", exc)

    def _continuation_error(self, exc: Exception) -> None:
        self._fatal("An error occurred in then()", exc)

    def _emit(self, event: str, *args: Any) -> None:
        reporters = self.group.reporters if self.group is not None else ()
        emit(reporters, event, self, *args)


class Asserter:
    """The object a test body receives.

    Attribute access resolves assertion names from the registry; calling the
    asserter itself queues ``truthy``. Every queueing call returns the
    asserter, so calls can be chained.
    """

    def __init__(self, test: Test, refute: bool = False):
        self.test = test
        self._refute = refute

    def __call__(self, *args: Any) -> Asserter:
        return self._queue("truthy", args)

    def __getattr__(self, name: str) -> Callable[..., Asserter]:
        if name.startswith("_"):
            raise AttributeError(name)
        if name not in self.test.registry:
            raise AttributeError(f"Unknown assertion {name!r}")

        def queue(*args: Any) -> Asserter:
            return self._queue(name, args)

        queue.__name__ = name
        return queue

    @property
    def refute(self) -> Asserter:
        return Asserter(self.test, refute=True)

    def callback(
        self,
        target: Callable[..., Any] | None = None,
        timeout_seconds: float | None = None,
    ) -> Callable[..., None]:
        return self.test.callback(target, timeout_seconds)

    def backpromise(
        self,
        func: Callable[[Callable[..., None]], Any],
        transform: Callable[..., Any] | None = None,
        timeout_seconds: float | None = None,
    ) -> asyncio.Future[Any]:
        return self.test.backpromise(func, transform, timeout_seconds)

    def then(
        self,
        on_success: Callable[[], Any],
        on_error: Callable[[Exception], Any] | None = None,
    ) -> Asserter:
        self.test.then(on_success, on_error)
        return self

    def timeout(self, seconds: float | None) -> Asserter:
        self.test.timeout(seconds)
        return self

    def _queue(self, name: str, args: Sequence[Any]) -> Asserter:
        self.test.queue_assertion(self.test.registry.describe(name), args, refute=self._refute)
        return self


def _populated(args: list[Any], index: int) -> bool:
    return index < len(args) and args[index] is not None


def _timeout_message(what: str, seconds: float | None) -> str | None:
    return f"{what} within {seconds:g} seconds" if seconds else None


def _first_or_all(args: tuple[Any, ...]) -> Any:
    if not args:
        return None
    return args[0] if len(args) == 1 else args


def _negate(predicate: Callable[..., Any], name: str) -> Callable[..., None]:
    """Refute-mode wrapper for a throwing predicate without a refute counterpart."""

    def negated(*values: Any) -> None:
        try:
            predicate(*values)
        except AssertionError:
            return
        raise AssertionFailure(f"expected {name} to fail", kind="iq")

    return negated
