"""Tests for prioritized strategy lists."""

import pytest

from lib.tripadvisor.strategies import Strategy, first_success


def _returning(value):
    async def fn(handle):
        return value
    return fn


async def _raising(handle):
    raise TimeoutError("selector timed out")


class TestFirstSuccess:

    @pytest.mark.asyncio
    async def test_first_hit_wins_in_order(self):
        strategies = [
            Strategy("a", _returning(None)),
            Strategy("b", _returning("from b")),
            Strategy("c", _returning("from c")),
        ]
        assert await first_success(strategies, object()) == ("from b", "b")

    @pytest.mark.asyncio
    async def test_raise_counts_as_miss(self):
        strategies = [Strategy("boom", _raising), Strategy("ok", _returning("value"))]
        assert await first_success(strategies, object()) == ("value", "ok")

    @pytest.mark.asyncio
    async def test_blank_string_is_a_miss(self):
        strategies = [Strategy("blank", _returning("   ")), Strategy("ok", _returning("x"))]
        assert await first_success(strategies, object()) == ("x", "ok")

    @pytest.mark.asyncio
    async def test_accept_filters_values(self):
        strategies = [Strategy("big", _returning(9)), Strategy("small", _returning(3))]
        value, name = await first_success(strategies, object(), accept=lambda v: v <= 5)
        assert (value, name) == (3, "small")

    @pytest.mark.asyncio
    async def test_all_miss(self):
        strategies = [Strategy("a", _returning(None)), Strategy("b", _raising)]
        assert await first_success(strategies, object()) == (None, None)

    @pytest.mark.asyncio
    async def test_later_strategies_not_called_after_hit(self):
        called = []

        async def tracked(handle):
            called.append("late")
            return "late"

        strategies = [Strategy("early", _returning("early")), Strategy("late", tracked)]
        await first_success(strategies, object())
        assert called == []
