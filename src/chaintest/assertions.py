"""Built-in assertion predicates.

Two styles are supported by the queueing engine:

- throwing-style predicates raise ``AssertionFailure`` to signal failure and
  come in assert/refute pairs;
- boolean-style predicates return an ``Outcome`` whose message carries a
  ``{not}`` placeholder, and are negated by the engine in refute mode.

Every predicate takes its required arguments positionally, optionally
followed by a message string.
"""

from __future__ import annotations

import re
from dataclasses import asdict, is_dataclass
from typing import Any, Callable, NamedTuple

from chaintest.diagnostics import AssertionFailure, format_value_diff, with_message
from chaintest.registry import AssertionDescriptor, AssertionRegistry


class Outcome(NamedTuple):
    """Result of a boolean-style predicate."""

    passed: bool
    message: str = ""


def _fail(message: str | None, text: str) -> None:
    raise AssertionFailure(with_message(message, text))


# Throwing-style predicates


def assert_equals(actual: Any, expected: Any, message: str | None = None) -> None:
    if actual != expected:
        _fail(message, format_value_diff(expected, actual))


def refute_equals(actual: Any, expected: Any, message: str | None = None) -> None:
    if actual == expected:
        _fail(message, f"expected {actual!r} not to equal {expected!r}")


def assert_same(actual: Any, expected: Any, message: str | None = None) -> None:
    if actual is not expected:
        _fail(message, f"expected the same object as {expected!r}, got {actual!r}")


def refute_same(actual: Any, expected: Any, message: str | None = None) -> None:
    if actual is expected:
        _fail(message, f"expected {actual!r} not to be the same object")


def assert_is_true(actual: Any, message: str | None = None) -> None:
    if actual is not True:
        _fail(message, f"expected True, got {actual!r}")


def refute_is_true(actual: Any, message: str | None = None) -> None:
    if actual is True:
        _fail(message, "expected anything but True")


def assert_is_false(actual: Any, message: str | None = None) -> None:
    if actual is not False:
        _fail(message, f"expected False, got {actual!r}")


def refute_is_false(actual: Any, message: str | None = None) -> None:
    if actual is False:
        _fail(message, "expected anything but False")


def assert_is_none(actual: Any, message: str | None = None) -> None:
    if actual is not None:
        _fail(message, f"expected None, got {actual!r}")


def refute_is_none(actual: Any, message: str | None = None) -> None:
    if actual is None:
        _fail(message, "expected non-None value, got None")


def assert_type_of(actual: Any, type_name: str, message: str | None = None) -> None:
    name = type(actual).__name__
    if name != type_name:
        _fail(message, f"expected type {type_name}, got {name}")


def refute_type_of(actual: Any, type_name: str, message: str | None = None) -> None:
    if type(actual).__name__ == type_name:
        _fail(message, f"expected {actual!r} not to be of type {type_name}")


def assert_is_instance(actual: Any, cls: type | tuple[type, ...], message: str | None = None) -> None:
    if not isinstance(actual, cls):
        _fail(message, f"expected an instance of {_type_names(cls)}, got {type(actual).__name__}")


def refute_is_instance(actual: Any, cls: type | tuple[type, ...], message: str | None = None) -> None:
    if isinstance(actual, cls):
        _fail(message, f"expected {actual!r} not to be an instance of {_type_names(cls)}")


def assert_is_callable(actual: Any, message: str | None = None) -> None:
    if not callable(actual):
        _fail(message, f"expected a callable, got {type(actual).__name__}")


def refute_is_callable(actual: Any, message: str | None = None) -> None:
    if callable(actual):
        _fail(message, f"expected {actual!r} not to be callable")


def assert_match(actual: Any, pattern: Any, message: str | None = None) -> None:
    passed, reason = _matches(actual, pattern)
    if not passed:
        _fail(message, reason or f"expected {actual!r} to match {pattern!r}")


def refute_match(actual: Any, pattern: Any, message: str | None = None) -> None:
    passed, _ = _matches(actual, pattern)
    if passed:
        _fail(message, f"expected {actual!r} not to match {pattern!r}")


def assert_raises(
    func: Callable[[], Any],
    exception: type[BaseException] | str | None = None,
    message: str | None = None,
) -> None:
    try:
        func()
    except Exception as e:
        if exception is None:
            return
        if isinstance(exception, str):
            if type(e).__name__ != exception:
                _fail(message, f"expected {exception}, got {type(e).__name__}")
        elif not isinstance(e, exception):
            _fail(message, f"expected {exception.__name__}, got {type(e).__name__}")
        return
    expected = exception if isinstance(exception, str) or exception is None else exception.__name__
    _fail(message, f"expected {expected or 'an exception'} but call succeeded")


def refute_raises(func: Callable[[], Any], message: str | None = None) -> None:
    try:
        func()
    except Exception as e:
        _fail(message, f"expected no exception, got {type(e).__name__}: {e}")


# Boolean-style predicates


def truthy(obj: Any, message: str | None = None) -> Outcome:
    return Outcome(bool(obj), with_message(message, f"expected the object {obj!r} to {{not}}be truthy"))


def contents_equal(expected: Any, actual: Any, message: str | None = None) -> Outcome:
    """Two containers hold the same values, ignoring order.

    Strings are compared as comma-separated lists, mappings by their values.
    """
    reason = None
    if type(actual) is not type(expected):
        reason = (
            f"the objects are different types (expected is {type(expected).__name__}, "
            f"actual is {type(actual).__name__})"
        )
    elif isinstance(actual, (str, list, tuple, set, frozenset, dict)):
        actual_items = _container_values(actual)
        expected_items = _container_values(expected)
        if len(actual_items) != len(expected_items):
            reason = (
                f"the objects are different lengths, expected {len(expected_items)} "
                f"and was {len(actual_items)}"
            )
        else:
            for index, (exp, act) in enumerate(zip(expected_items, actual_items)):
                if exp != act:
                    reason = (
                        f"sorted objects are different at element {index}, "
                        f"expected {exp!r} vs. actual {act!r}"
                    )
                    break
    else:
        reason = f"values of type {type(actual).__name__} are not containers"

    if reason is None:
        return Outcome(True, with_message(message, "expected the objects to {not}have the same contents"))
    return Outcome(False, with_message(message, reason))


def _container_values(value: Any) -> list[Any]:
    if isinstance(value, str):
        items: list[Any] = [part.strip() for part in value.split(",")]
    elif isinstance(value, dict):
        items = list(value.values())
    else:
        items = list(value)
    try:
        return sorted(items)
    except TypeError:
        return sorted(items, key=repr)


def _type_names(cls: type | tuple[type, ...]) -> str:
    if isinstance(cls, tuple):
        return " or ".join(c.__name__ for c in cls)
    return cls.__name__


def _matches(actual: Any, pattern: Any) -> tuple[bool, str | None]:
    """Match strings against regular expressions, containers by partial structure."""
    if isinstance(pattern, re.Pattern):
        if not isinstance(actual, str):
            return False, f"expected a string to match {pattern.pattern!r}, got {type(actual).__name__}"
        return bool(pattern.search(actual)), None
    if isinstance(pattern, str) and isinstance(actual, str):
        return bool(re.search(pattern, actual)), None
    return _check_contains(actual, pattern)


def _check_contains(actual: Any, expected: Any, path: str = "") -> tuple[bool, str | None]:
    """Recursively check if actual contains expected values.

    Handles nested dicts, dataclasses, pydantic models, lists (subset
    matching) and primitive values.
    """

    def fmt_path(p: str) -> str:
        return f" at '{p}'" if p else ""

    actual_dict = _to_dict(actual)

    if isinstance(expected, dict):
        if actual_dict is None:
            return False, f"Expected object with keys{fmt_path(path)}, got {type(actual).__name__}"

        for key, expected_val in expected.items():
            key_path = f"{path}.{key}" if path else key

            if key not in actual_dict:
                return False, f"Missing key '{key}'{fmt_path(path)}"

            passed, msg = _check_contains(actual_dict[key], expected_val, key_path)
            if not passed:
                return False, msg

        return True, None

    if isinstance(expected, list):
        if not isinstance(actual, (list, tuple)):
            return False, f"Expected list{fmt_path(path)}, got {type(actual).__name__}"

        for expected_item in expected:
            if not any(_check_contains(item, expected_item)[0] for item in actual):
                return False, f"Expected item {expected_item!r} not found in list{fmt_path(path)}"
        return True, None

    if actual != expected:
        return False, f"Mismatch{fmt_path(path)}: {format_value_diff(expected, actual)}"

    return True, None


def _to_dict(obj: Any) -> dict | None:
    if isinstance(obj, dict):
        return obj

    if is_dataclass(obj) and not isinstance(obj, type):
        return asdict(obj)

    if hasattr(obj, "model_dump"):  # Pydantic v2
        return obj.model_dump()

    if hasattr(obj, "__dict__"):
        return vars(obj)

    return None


BUILTIN_ASSERTIONS: dict[str, AssertionDescriptor] = {
    descriptor.name: descriptor
    for descriptor in [
        AssertionDescriptor("equals", assert_equals, 2, refute_predicate=refute_equals),
        AssertionDescriptor("same", assert_same, 2, refute_predicate=refute_same),
        AssertionDescriptor("is_true", assert_is_true, 1, refute_predicate=refute_is_true),
        AssertionDescriptor("is_false", assert_is_false, 1, refute_predicate=refute_is_false),
        AssertionDescriptor("is_none", assert_is_none, 1, refute_predicate=refute_is_none),
        AssertionDescriptor("type_of", assert_type_of, 2, refute_predicate=refute_type_of),
        AssertionDescriptor("is_instance", assert_is_instance, 2, refute_predicate=refute_is_instance),
        AssertionDescriptor("is_callable", assert_is_callable, 1, refute_predicate=refute_is_callable),
        AssertionDescriptor("match", assert_match, 2, refute_predicate=refute_match),
        AssertionDescriptor("raises", assert_raises, 1, refute_predicate=refute_raises),
        AssertionDescriptor("truthy", truthy, 1, style="boolean"),
        AssertionDescriptor("contents_equal", contents_equal, 2, style="boolean"),
    ]
}


def default_registry() -> AssertionRegistry:
    """A fresh registry holding the built-in assertions."""
    return AssertionRegistry(BUILTIN_ASSERTIONS)
