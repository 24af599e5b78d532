from __future__ import annotations

import asyncio

import pytest

from reviewgate.concurrency import MapLimitError, map_limit, settle_limit


@pytest.mark.asyncio
async def test_map_limit_keeps_input_order() -> None:
    async def mapper(value: int, _index: int) -> int:
        await asyncio.sleep(0.001 * (5 - value))
        return value * 10

    assert await map_limit([1, 2, 3, 4], 2, mapper) == [10, 20, 30, 40]


@pytest.mark.asyncio
async def test_map_limit_never_exceeds_bound() -> None:
    in_flight = 0
    peak = 0

    async def mapper(value: int, _index: int) -> int:
        nonlocal in_flight, peak
        in_flight += 1
        peak = max(peak, in_flight)
        await asyncio.sleep(0.001)
        in_flight -= 1
        return value

    await map_limit(list(range(20)), 3, mapper)

    assert peak == 3


@pytest.mark.asyncio
async def test_map_limit_isolates_failures_and_reports_all_errors() -> None:
    seen: list[int] = []

    async def mapper(value: int, index: int) -> int:
        seen.append(index)
        if value % 2:
            raise ValueError(f"odd {value}")
        return value

    with pytest.raises(MapLimitError) as info:
        await map_limit([0, 1, 2, 3], 2, mapper)

    assert sorted(seen) == [0, 1, 2, 3]
    assert info.value.results == [0, None, 2, None]
    assert sorted(info.value.errors) == [1, 3]
    assert str(info.value.first_error) == "odd 1"


@pytest.mark.asyncio
async def test_settle_limit_returns_outcomes() -> None:
    async def mapper(value: str, _index: int) -> str:
        if not value:
            raise RuntimeError("empty")
        return value.upper()

    outcomes = await settle_limit(["a", "", "c"], 8, mapper)

    assert [outcome.ok for outcome in outcomes] == [True, False, True]
    assert outcomes[2].value == "C"
    assert isinstance(outcomes[1].error, RuntimeError)


@pytest.mark.asyncio
async def test_map_limit_with_no_items() -> None:
    async def mapper(value: int, _index: int) -> int:
        return value

    assert await map_limit([], 4, mapper) == []
