"""Diagnostics and error reporting for ChainTest.

Defines the error taxonomy used by the queueing engine and helpers that
render values for failure messages.
"""

from __future__ import annotations

import re
from typing import Any

ARGUMENT_COUNT_PATTERN = re.compile(r"Expected.*?(\d+) argument(?:s)?\s*$")


class ChainTestError(Exception):
    """Base class for caller-programming errors detected by the engine."""


class AssertionFailure(AssertionError):
    """Raised by a predicate to signal a recognized, recoverable failure.

    ``kind`` tags where the failure came from. Failures of kind ``"iq"`` are
    produced by the engine itself (boolean-style predicates, argument checks)
    and get the assertion name prefixed to their message.
    """

    def __init__(self, message: str, kind: str | None = None):
        self.kind = kind
        super().__init__(message)

    @property
    def message(self) -> str:
        return str(self)


class ArgumentCountError(AssertionFailure):
    """Raised when an assertion receives fewer arguments than it requires."""

    def __init__(self, expected: int, received: int | None = None):
        self.expected = expected
        self.received = received
        plural = "" if expected == 1 else "s"
        super().__init__(f"Expected to receive at least {expected} argument{plural}", kind="iq")


class TimeoutError(AssertionFailure):
    """Raised when an assertion does not settle within its timeout."""

    def __init__(self, timeout_seconds: float, message: str | None = None):
        self.timeout_seconds = timeout_seconds
        msg = message or f"Assertion timed out after {timeout_seconds:g} seconds"
        super().__init__(msg)


class AmbiguousCallbackError(ChainTestError):
    """Raised when a magic callback cannot be bound to a single argument slot."""

    def __init__(self, assertion: str, description: str):
        self.assertion = assertion
        self.description = description
        super().__init__(
            "I couldn't figure out what to do with your magic callback. "
            "For this test you may need to define it explicitly. "
            f"[{assertion}] {description}"
        )


class ConflictingBindingError(ChainTestError):
    """Raised when two argument-binding mechanisms collide.

    Either a second magic callback was requested before the first one was
    consumed, or an awaitable sits in the slot the magic callback would fill.
    """


class CallbackError(ChainTestError):
    """A callback, backpromise or awaited dependency failed."""

    def __init__(self, message: str, cause: BaseException | None = None):
        self.cause = cause
        super().__init__(message)


def parse_argument_count(message: str) -> int:
    """Extract the required argument count from an argument-count message.

    Returns 0 when the message does not follow the expected format.
    """
    match = ARGUMENT_COUNT_PATTERN.search(message)
    return int(match.group(1)) if match else 0


def is_recognized_failure(exc: BaseException) -> bool:
    """Whether ``exc`` is an expected assertion failure rather than a bug."""
    return isinstance(exc, AssertionError)


def failure_message(exc: BaseException) -> str:
    """Human-readable message for any exception raised during an assertion."""
    text = str(exc)
    if text:
        return text
    return type(exc).__name__


def format_value_diff(expected: Any, actual: Any, max_length: int = 100) -> str:
    """Format a diff between expected and actual values.

    Args:
        expected: The expected value.
        actual: The actual value.
        max_length: Max length for value repr before truncation.

    Returns:
        Formatted diff string.
    """
    expected_repr = _truncate_repr(expected, max_length)
    actual_repr = _truncate_repr(actual, max_length)

    return f"expected {expected_repr}, got {actual_repr}"


def with_message(message: str | None, text: str) -> str:
    """Prefix ``text`` with a caller-supplied assertion message."""
    return f"{message}: {text}" if message else text


def _truncate_repr(value: Any, max_length: int) -> str:
    """Get repr of value, truncating if too long."""
    r = repr(value)
    if len(r) > max_length:
        return r[: max_length - 3] + "..."
    return r
