"""Pytest configuration and fixtures."""

import asyncio

import pytest

from chaintest import RecordingReporter, TestGroup, default_registry


@pytest.fixture()
def registry():
    return default_registry()


@pytest.fixture()
def reporter():
    return RecordingReporter()


@pytest.fixture()
def group(registry, reporter):
    return TestGroup("fixture group", registry=registry, reporters=[reporter])


@pytest.fixture()
def run_group():
    """Run a group to completion on a fresh event loop and return it."""

    def _run(group):
        async def _main():
            return await group.run()

        return asyncio.run(_main())

    return _run
