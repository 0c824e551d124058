"""Example async and callback-style functions for the example test groups."""

import asyncio


async def async_add(a: int, b: int) -> int:
    """Async function that adds two numbers."""
    await asyncio.sleep(0.01)  # Simulate some async work
    return a + b


async def async_fetch_data(key: str) -> dict:
    """Async function that simulates fetching data."""
    await asyncio.sleep(0.05)  # Simulate network delay
    data = {
        "user": {"id": 1, "name": "Kohl"},
        "config": {"theme": "dark", "lang": "en"},
    }
    return data.get(key, {})


def read_setting(key: str, done) -> None:
    """Callback-style lookup: calls ``done(error, value)`` on the next loop turn."""
    settings = {"theme": "dark", "lang": "en"}
    loop = asyncio.get_running_loop()
    if key in settings:
        loop.call_soon(done, None, settings[key])
    else:
        loop.call_soon(done, KeyError(key), None)
