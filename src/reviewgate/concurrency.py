from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import Generic, TypeVar

T = TypeVar("T")
R = TypeVar("R")


class MapLimitError(RuntimeError):
    """Raised after every item settled when at least one mapper call failed.

    ``results`` keeps the values of the items that completed (``None`` where the
    mapper raised) and ``errors`` maps input index to the exception raised.
    """

    def __init__(self, results: list, errors: dict[int, BaseException]) -> None:
        first_index = min(errors)
        super().__init__(
            f"{len(errors)} of {len(results)} item(s) failed; "
            f"first at index {first_index}: {errors[first_index]}"
        )
        self.results = results
        self.errors = errors

    @property
    def first_error(self) -> BaseException:
        return self.errors[min(self.errors)]


@dataclass(slots=True)
class Outcome(Generic[R]):
    value: R | None = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def _bound(limit: int, size: int) -> int:
    return max(1, min(int(limit), size or 1))


async def settle_limit(
    items: Sequence[T],
    limit: int,
    mapper: Callable[[T, int], Awaitable[R]],
) -> list[Outcome[R]]:
    """Run ``mapper`` over ``items`` with at most ``limit`` calls in flight.

    Outcomes keep input order. A failing item never cancels its siblings.
    """
    semaphore = asyncio.Semaphore(_bound(limit, len(items)))

    async def guarded(item: T, index: int) -> Outcome[R]:
        async with semaphore:
            try:
                return Outcome(value=await mapper(item, index))
            except Exception as exc:
                return Outcome(error=exc)

    return list(await asyncio.gather(*(guarded(item, index) for index, item in enumerate(items))))


async def map_limit(
    items: Sequence[T],
    limit: int,
    mapper: Callable[[T, int], Awaitable[R]],
) -> list[R]:
    outcomes = await settle_limit(items, limit, mapper)
    errors = {index: outcome.error for index, outcome in enumerate(outcomes) if outcome.error is not None}
    results = [outcome.value for outcome in outcomes]
    if errors:
        raise MapLimitError(results, errors) from errors[min(errors)]
    return results  # type: ignore[return-value]
