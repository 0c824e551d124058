"""Assertion registry.

Maps an assertion name to what the queueing engine needs to know about it:
the predicate(s), how many arguments it requires, and which argument holds
the "actual" value.
"""

from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass
from typing import Any, Callable, Literal, Mapping

from chaintest.diagnostics import ArgumentCountError, parse_argument_count

logger = logging.getLogger(__name__)

PredicateStyle = Literal["throwing", "boolean"]


@dataclass(frozen=True)
class AssertionDescriptor:
    """Static description of one assertion."""

    name: str
    predicate: Callable[..., Any]
    min_args: int = 0
    actual_index: int = 0
    style: PredicateStyle = "throwing"
    refute_predicate: Callable[..., Any] | None = None


def local_name(assertion: str) -> str:
    """Strip the mode prefix: ``"refute.equals"`` -> ``"equals"``."""
    return assertion.rsplit(".", 1)[-1]


def probe_arity(predicate: Callable[..., Any]) -> int:
    """Determine how many arguments ``predicate`` requires.

    Required positional parameters are read from the signature. Predicates
    with an opaque signature (``*args`` only, or builtins without one) are
    called with no arguments and must raise an ArgumentCountError, or any
    error whose message reads "Expected ... N argument(s)", before doing
    anything else. Returns 0 when nothing can be learned.
    """
    try:
        signature = inspect.signature(predicate)
    except (TypeError, ValueError):
        signature = None

    if signature is not None:
        required = [
            p
            for p in signature.parameters.values()
            if p.kind in (p.POSITIONAL_ONLY, p.POSITIONAL_OR_KEYWORD)
            and p.default is p.empty
        ]
        variadic = any(p.kind is p.VAR_POSITIONAL for p in signature.parameters.values())
        if required or not variadic:
            return len(required)

    try:
        predicate()
    except ArgumentCountError as e:
        return e.expected
    except Exception as e:
        return parse_argument_count(str(e))
    return 0


class AssertionRegistry:
    """Name -> AssertionDescriptor mapping, constructed and passed around explicitly."""

    def __init__(self, predicates: Mapping[str, Any] | None = None):
        self._descriptors: dict[str, AssertionDescriptor] = {}
        if predicates:
            self.register(predicates)

    def register(self, predicates: Mapping[str, Any]) -> AssertionRegistry:
        """Merge ``{name: predicate or AssertionDescriptor}`` into the registry.

        Names already present are skipped; the first registration wins.
        """
        for name, entry in predicates.items():
            if name in self._descriptors:
                logger.debug("Assertion %r already registered, skipping", name)
                continue
            if isinstance(entry, AssertionDescriptor):
                descriptor = entry
            else:
                descriptor = AssertionDescriptor(
                    name=name,
                    predicate=entry,
                    min_args=probe_arity(entry),
                )
            self._descriptors[name] = descriptor
        return self

    def describe(self, assertion: str) -> AssertionDescriptor:
        """Look up by local method name, independent of assert/refute mode."""
        return self._descriptors[local_name(assertion)]

    def names(self) -> list[str]:
        return sorted(self._descriptors)

    def __contains__(self, assertion: object) -> bool:
        return isinstance(assertion, str) and local_name(assertion) in self._descriptors

    def __len__(self) -> int:
        return len(self._descriptors)
