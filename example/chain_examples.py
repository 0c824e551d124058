"""Example test groups. Run with ``chaintest run example``."""

import re

from async_funcs import async_add, async_fetch_data, read_setting

from chaintest import TestGroup

arithmetic = TestGroup("arithmetic", "Plain and awaited values")


@arithmetic.test("addition")
def addition(a):
    a.equals(1 + 1, 2, "one plus one")
    a.equals(async_add(2, 3), 5, "awaited sum")
    a.refute.equals(async_add(2, 2), 5, "two plus two is not five")


@arithmetic.test("contents")
def contents(a):
    a.contents_equal([3, 1, 2], [1, 2, 3], "order does not matter")
    a.contents_equal("a, b, c", "c,b,a", "comma separated strings")
    a.refute.contents_equal([1, 2], [1, 2, 3], "different lengths")


fetching = TestGroup("fetching", "Async data sources")


@fetching.test("user record")
def user_record(a):
    a.match(async_fetch_data("user"), {"name": "Kohl"}, "partial match on the user")
    a.match("dark theme", re.compile(r"^dark"), "regular expression")
    a.truthy(async_fetch_data("config"), "config is not empty")


@fetching.test("callback style")
def callback_style(a):
    read_setting("theme", a.callback(lambda err, value: value))
    a.equals(None, "dark", "magic callback fills the empty slot")

    lang = a.backpromise(lambda cb: read_setting("lang", cb), lambda err, value: value)
    a.equals(lang, "en", "backpromise resolves with the transformed value")


@fetching.test("coroutine body")
async def coroutine_body(a):
    total = await async_add(1, 1)
    a.equals(total, 2, "awaited inside the body")
    a.timeout(1).is_true(total > 1, "with a one-off timeout")
