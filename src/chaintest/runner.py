"""Test runner - loads test groups from files and runs them to completion."""

from __future__ import annotations

import asyncio
import importlib.util
import logging
import sys
from pathlib import Path
from typing import Any, Iterable

from chaintest.group import TestGroup

logger = logging.getLogger(__name__)

TEST_FILE_PATTERN = "chain_*.py"


class LoadError(Exception):
    """Raised when a test group module cannot be imported."""


def discover(paths: Iterable[str | Path]) -> list[Path]:
    """Expand files and directories into the test group modules they hold."""
    files: list[Path] = []
    for entry in paths:
        path = Path(entry)
        if path.is_file():
            files.append(path)
        elif path.is_dir():
            files.extend(sorted(path.rglob(TEST_FILE_PATTERN)))
        else:
            logger.debug("Skipping missing test path %s", path)
    return files


def load_groups(path: Path) -> list[TestGroup]:
    """Import ``path`` and return the TestGroups defined at its top level.

    Groups are returned in definition order.
    """
    spec = importlib.util.spec_from_file_location(
        f"chaintest_module_{path.stem}_{id(path)}",
        path,
    )
    if spec is None or spec.loader is None:
        raise LoadError(f"Cannot import {path}")

    module = importlib.util.module_from_spec(spec)
    sys.modules[spec.name] = module

    parent = str(path.resolve().parent)
    if parent not in sys.path:
        sys.path.insert(0, parent)

    try:
        spec.loader.exec_module(module)
    except Exception as e:
        del sys.modules[spec.name]
        raise LoadError(f"Failed to load {path}: {e}") from e

    groups = [value for value in vars(module).values() if isinstance(value, TestGroup)]
    logger.debug("Loaded %d group(s) from %s", len(groups), path)
    return groups


async def run_groups(groups: list[TestGroup], reporters: Iterable[Any] = ()) -> list[TestGroup]:
    """Run each group in turn.

    Args:
        groups: The groups to run.
        reporters: Extra reporters attached to every group before it starts.

    Returns:
        The same groups, settled.
    """
    extra = list(reporters)
    for group in groups:
        for reporter in extra:
            if reporter not in group.reporters:
                group.add_reporter(reporter)
        await group.run()
    return groups


def run(groups: list[TestGroup], reporters: Iterable[Any] = ()) -> list[TestGroup]:
    """Run groups on a fresh event loop."""
    return asyncio.run(run_groups(groups, reporters))


def format_results(groups: list[TestGroup], show_passed: bool = False) -> str:
    """Format group results for display.

    Args:
        groups: Settled groups.
        show_passed: If True, list the assertion counts of passing tests too.

    Returns:
        Formatted string for display.
    """
    lines = []
    passed = 0
    failed = 0
    errors = 0

    for group in groups:
        lines.append(f"{group.name}")
        for test in group.tests:
            if test.passed:
                status_icon = "✓"  # checkmark
                passed += 1
            elif test.stopped:
                status_icon = "!"
                errors += 1
            else:
                status_icon = "✗"  # x mark
                failed += 1

            line = f"  {status_icon} {test.name}"
            if test.passed:
                if show_passed or test.show_passed:
                    line += f"\n      {test.count_passed} assertion(s) passed"
            else:
                for result in test.results:
                    line += f"\n      {result.fulltext}"
                for message in test.messages:
                    line += f"\n      {message}"
            lines.append(line)

    total = passed + failed + errors
    summary = f"\n{passed} passed, {failed} failed, {errors} errors ({total} total)"

    return "\n".join(lines) + summary
