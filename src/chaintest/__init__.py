"""ChainTest - queued, asynchronous assertions grouped into tests."""

__version__ = "0.1.0"

from chaintest.assertions import Outcome, default_registry
from chaintest.diagnostics import (
    AmbiguousCallbackError,
    ArgumentCountError,
    AssertionFailure,
    CallbackError,
    ChainTestError,
    ConflictingBindingError,
)
from chaintest.group import TestGroup
from chaintest.registry import AssertionDescriptor, AssertionRegistry
from chaintest.reporters import ConsoleReporter, RecordingReporter, Reporter
from chaintest.test import Asserter, ItemResult, ItemStart, Test, TestState

__all__ = [
    "AmbiguousCallbackError",
    "ArgumentCountError",
    "Asserter",
    "AssertionDescriptor",
    "AssertionFailure",
    "AssertionRegistry",
    "CallbackError",
    "ChainTestError",
    "ConflictingBindingError",
    "ConsoleReporter",
    "ItemResult",
    "ItemStart",
    "Outcome",
    "RecordingReporter",
    "Reporter",
    "Test",
    "TestGroup",
    "TestState",
    "default_registry",
]
