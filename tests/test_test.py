"""Tests for the per-test assertion queue."""

import asyncio

import pytest

from chaintest import Asserter, AssertionDescriptor, AssertionFailure, Test, TestState


async def later(value, delay=0.0):
    await asyncio.sleep(delay)
    return value


async def rejecting(message):
    await asyncio.sleep(0)
    raise ValueError(message)


def only(group):
    return group.tests[0]


def test_assertions_run_in_queue_order(group, reporter, run_group):
    def body(a):
        a.equals(later(1, 0.05), 1, "slow first")
        a.equals(later(2), 2, "fast second")

    group.test("order", body)
    run_group(group)

    assert [info.desc for _, info in reporter.named("item_start")] == ["slow first", "fast second"]
    assert [result.desc for _, result in reporter.named("item_end")] == ["slow first", "fast second"]
    assert only(group).passed is True


def test_item_start_counts_and_descriptions(group, reporter, run_group):
    def body(a):
        a.equals(1, 1, "named")
        a.is_true(True)

    group.test("counts", body)
    run_group(group)

    infos = [info for _, info in reporter.named("item_start")]
    assert [(i.count, i.assertion, i.desc) for i in infos] == [
        (1, "assert.equals", "named"),
        (2, "assert.is_true", "an anonymous test"),
    ]


def test_recognized_failure_does_not_stop_the_chain(group, run_group):
    def body(a):
        a.equals(1, 2, "wrong")
        a.equals(2, 2, "right")

    group.test("continue", body)
    run_group(group)

    test = only(group)
    assert test.count == 2
    assert test.count_passed == 1
    assert test.count_failed == 1
    assert test.stopped is False
    assert test.passed is False
    assert test.state is TestState.SETTLED

    [result] = test.results
    assert result.message == "wrong: expected 2, got 1"
    assert result.fulltext == 'Test #1 assert.equals failed: wrong: expected 2, got 1 in test "wrong"'


def test_unexpected_error_stops_and_enables_debugging(group, reporter, run_group):
    def explode(value, message=None):
        raise ValueError("boom")

    group.registry.register({"explodes": AssertionDescriptor("explodes", explode, 1)})

    def body(a):
        a.explodes(1, "kaboom")
        a.equals(1, 1, "never runs")

    group.test("unexpected", body)
    run_group(group)

    test = only(group)
    assert test.count == 1
    assert test.count_failed == 1
    assert test.stopped is True
    assert test.passed is False
    assert test.debug is True
    assert test.results[0].message == "boom. Debugging has been enabled."
    assert reporter.messages == ["boom. Debugging is enabled if you start again."]


def test_timeout_error_from_predicate_is_unexpected(group, run_group):
    def read_socket(value, message=None):
        raise TimeoutError("socket read timed out")

    group.registry.register({"reads": AssertionDescriptor("reads", read_socket, 1)})

    def body(a):
        a.reads(1)
        a.equals(1, 1, "never runs")

    group.test("builtin timeout", body)
    run_group(group)

    test = only(group)
    assert test.count == 1
    assert test.stopped is True
    assert test.debug is True
    assert test.results[0].message == "socket read timed out. Debugging has been enabled."


def test_debugger_runs_on_the_next_run(group, run_group):
    calls = []

    def explode(value, message=None):
        raise ValueError("boom")

    group.registry.register({"explodes": AssertionDescriptor("explodes", explode, 1)})
    group.test("debugger", lambda a: a.explodes(1))
    only(group).debugger = calls.append

    run_group(group)
    assert calls == []
    assert only(group).debug is True

    run_group(group)
    assert len(calls) == 1
    assert isinstance(calls[0], ValueError)


def test_strict_mode_stops_at_first_failure(group, reporter, run_group):
    group.configure(strict=True)

    def body(a):
        a.equals(1, 2)
        a.equals(3, 4)

    group.test("strict", body)
    run_group(group)

    test = only(group)
    assert test.count == 1
    assert test.stopped is True
    assert test.debug is False
    assert reporter.messages == ["Stopped after the first failed assertion (#1)"]


def test_magic_callbacks_bind_in_call_order(group, reporter, run_group):
    def body(a):
        loop = asyncio.get_running_loop()
        first = a.callback()
        a.is_true(None, "first")
        second = a.callback(lambda value: value * 2)
        a.equals(None, 10, "second")
        loop.call_later(0.02, first)
        loop.call_soon(second, 5)

    group.test("magic", body)
    run_group(group)

    results = [result for _, result in reporter.named("item_end")]
    assert [(r.desc, r.passed) for r in results] == [("first", True), ("second", True)]
    assert only(group).passed is True


def test_magic_callback_fills_the_empty_slot(group, run_group):
    def body(a):
        done = a.callback(lambda err, value: value)
        a.equals(None, "dark", "actual slot")
        done(None, "dark")
        done = a.callback(lambda err, value: value)
        a.equals("dark", None, "expected slot")
        done(None, "dark")

    group.test("slots", body)
    run_group(group)

    assert only(group).count_passed == 2


def test_magic_callback_with_message_only(group, run_group):
    def body(a):
        done = a.callback()
        a.is_true("message only")
        done()

    group.test("message only", body)
    run_group(group)

    test = only(group)
    assert test.passed is True
    assert test.count == 1


def test_ambiguous_magic_callback_stops_the_test(group, reporter, run_group):
    def body(a):
        a.callback()
        a.equals(None, None, "ambiguous")

    group.test("ambiguous", body)
    run_group(group)

    test = only(group)
    assert test.count == 0
    assert test.stopped is True
    assert test.passed is False
    assert reporter.messages[0].startswith("I couldn't figure out what to do with your magic callback")
    assert "[assert.equals] ambiguous" in reporter.messages[0]


def test_awaitable_in_callback_slot_conflicts(group, run_group):
    def body(a):
        a.callback()
        a.is_true(later(True), "conflict")
        a.is_true(True)

    group.test("conflict", body)
    run_group(group)

    test = only(group)
    assert test.count == 1
    assert test.count_failed == 1
    assert test.stopped is True
    assert test.debug is False
    assert "magic callback" in test.results[0].message


def test_second_callback_while_pending_is_an_error(group, reporter, run_group):
    def body(a):
        a.callback()
        a.callback()

    group.test("twice", body)
    run_group(group)

    assert only(group).passed is False
    assert reporter.messages[0].startswith("An error occurred in your test code: A callback() is already waiting")


def test_error_in_callback_target_is_fatal(group, reporter, run_group):
    def target(value):
        raise KeyError(value)

    def body(a):
        done = a.callback(target)
        a.is_true(None)
        asyncio.get_running_loop().call_soon(done, "missing")

    group.test("callback error", body)
    run_group(group)

    test = only(group)
    assert test.stopped is True
    assert test.debug is True
    assert test.count_failed == 1
    assert test.results[0].message == "The callback failed. Reason: 'missing'"
    assert reporter.messages[0].startswith("An error occurred in your callback(): 'missing'")


def test_rejected_dependency_fails_without_calling_predicate(group, run_group):
    calls = []

    def spy(value):
        calls.append(value)

    def body(a):
        a.test.queue_test(spy, "assert.spy", [rejecting("nope")])
        a.equals(1, 1, "still runs")

    group.test("rejected", body)
    run_group(group)

    test = only(group)
    assert calls == []
    assert test.count == 2
    assert test.count_failed == 1
    assert test.stopped is False
    assert test.results[0].message == "nope"


def test_promise_arguments_are_resolved_before_the_predicate(group, run_group):
    seen = []

    def record(actual, expected):
        seen.append((actual, expected))

    def body(a):
        a.test.queue_test(record, "assert.record", [later("a", 0.01), later("b")])

    group.test("resolved", body)
    run_group(group)

    assert seen == [("a", "b")]
    assert only(group).passed is True


def test_timeout_fails_the_assertion(group, run_group):
    def body(a):
        a.timeout(0.05).equals(later(1, 1), 1, "too slow")
        a.equals(1, 1, "after")

    group.test("timeout", body)
    run_group(group)

    test = only(group)
    assert test.count == 2
    assert test.count_failed == 1
    assert test.results[0].message == "Assertion timed out after 0.05 seconds"
    assert test.stopped is False


def test_group_timeout_applies_to_tests(group, run_group):
    group.configure(timeout_seconds=0.05)
    group.test("slow", lambda a: a.equals(later(1, 1), 1))
    run_group(group)

    assert only(group).results[0].message == "Assertion timed out after 0.05 seconds"


def test_timeout_clock_starts_after_previous_assertion(group, run_group):
    def body(a):
        a.timeout(0.5).equals(later(1, 0.2), 1, "first")
        a.timeout(0.2).equals(later(2, 0.3), 2, "second")

    group.test("clock", body)
    run_group(group)

    assert only(group).passed is True


def test_backpromise_resolves_with_transformed_value(group, run_group):
    def lookup(cb):
        asyncio.get_running_loop().call_soon(cb, None, "dark")

    def body(a):
        value = a.backpromise(lookup, lambda err, theme: theme)
        a.equals(value, "dark", "from backpromise")

    group.test("backpromise", body)
    run_group(group)

    assert only(group).passed is True


def test_backpromise_function_error_is_fatal(group, reporter, run_group):
    def broken(cb):
        raise RuntimeError("cannot start")

    def body(a):
        value = a.backpromise(broken)
        a.equals(value, 1)

    group.test("broken backpromise", body)
    run_group(group)

    test = only(group)
    assert test.stopped is True
    assert test.count == 0
    assert reporter.messages[0].startswith("An error occurred in your backpromise() function: cannot start")


def test_boolean_predicates_substitute_not(group, run_group):
    def body(a):
        a(0, "zero")
        a.refute.truthy(1, "one")
        a.refute(0, "passes")

    group.test("boolean", body)
    run_group(group)

    test = only(group)
    assert test.count == 3
    assert [r.message for r in test.results] == [
        "[assert.truthy] zero: expected the object 0 to be truthy",
        "[refute.truthy] one: expected the object 1 to not be truthy",
    ]


def test_refute_without_counterpart_negates_the_predicate(group, run_group):
    def positive(value):
        if value <= 0:
            raise AssertionFailure(f"{value} is not positive")

    group.registry.register({"positive": AssertionDescriptor("positive", positive, 1)})

    def body(a):
        a.refute.positive(-1)
        a.refute.positive(1)

    group.test("negated", body)
    run_group(group)

    test = only(group)
    assert test.count_passed == 1
    assert test.results[0].message == "[refute.positive] expected positive to fail"


def test_too_few_arguments_is_an_assertion_failure(group, run_group):
    group.test("arity", lambda a: a.equals(1))
    run_group(group)

    test = only(group)
    assert test.stopped is False
    assert test.results[0].message == "[assert.equals] Expected to receive at least 2 arguments"


def test_queueing_after_test_error_is_a_no_op(group, reporter, run_group):
    def body(a):
        a.test.test_error("halt")
        a.equals(1, 1)

    group.test("halted", body)
    run_group(group)

    test = only(group)
    assert test.count == 0
    assert test.passed is False
    assert reporter.messages == ["halt"]


def test_then_runs_after_queued_assertions(group, run_group):
    seen = []

    def body(a):
        a.equals(later(1, 0.01), 1)
        a.then(lambda: seen.append(only(group).count))
        a.then(lambda: later(None, 0.01))

    group.test("then", body)
    run_group(group)

    assert seen == [1]
    assert only(group).passed is True


def test_then_error_stops_with_debugging(group, reporter, run_group):
    def body(a):
        a.then(lambda: 1 / 0)
        a.equals(1, 1)

    group.test("then error", body)
    run_group(group)

    test = only(group)
    assert test.count == 0
    assert test.debug is True
    assert reporter.messages[0].startswith("An error occurred in then(): division by zero")


def test_then_custom_error_handler(group, run_group):
    errors = []

    def body(a):
        a.then(lambda: 1 / 0, errors.append)
        a.equals(1, 1)

    group.test("handled", body)
    run_group(group)

    assert len(errors) == 1
    assert only(group).passed is True


def test_coroutine_body(group, run_group):
    async def body(a):
        value = await later(3)
        a.equals(value, 3, "awaited in body")

    group.test("async body", body)
    run_group(group)

    test = only(group)
    assert test.count == 1
    assert test.passed is True


def test_error_in_body_is_fatal(group, reporter, run_group):
    def body(a):
        raise RuntimeError("bad")

    group.test("bad body", body)
    run_group(group)

    assert only(group).passed is False
    assert reporter.messages == ["An error occurred in your test code: bad. Debugging is enabled if you start again."]


def test_unknown_assertion_is_an_attribute_error():
    asserter = Asserter(Test("standalone", lambda a: None))

    with pytest.raises(AttributeError):
        asserter.does_not_exist

    assert callable(asserter.equals)
    assert asserter.refute.test is asserter.test
