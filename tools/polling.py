import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Generic, Optional, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class PollResult(Generic[T]):
    satisfied: bool
    attempts: int
    value: Optional[T] = None


async def poll_until(
    fetch: Callable[[], Awaitable[T]],
    predicate: Callable[[T], bool],
    *,
    interval: float,
    attempts: int,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> PollResult[T]:
    """Call ``fetch`` until ``predicate`` holds or ``attempts`` reads were made.

    Sleeps ``interval`` seconds between reads, never after the last one.
    Errors raised by ``fetch`` propagate to the caller.
    """
    if attempts < 1:
        raise ValueError("attempts must be >= 1")

    value: Optional[T] = None
    for attempt in range(1, attempts + 1):
        value = await fetch()
        if predicate(value):
            return PollResult(satisfied=True, attempts=attempt, value=value)
        if attempt < attempts:
            await sleep(interval)
    return PollResult(satisfied=False, attempts=attempts, value=value)
