"""
Bounded concurrency pool for peerkeeper.

Runs a list of coroutine factories with a fixed number of worker
coroutines. Each unit's outcome is recorded at its input index as a
:class:`Success` or :class:`Failure`; one unit failing never cancels or
blocks its siblings. There is no per-unit timeout at this layer.

Example::

    results = await async_pool(4, [lambda n=n: fetch(n) for n in names])
    for name, result in zip(names, results):
        if result.ok:
            print(name, result.value)
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import (
    Any,
    Awaitable,
    Callable,
    Generic,
    List,
    Optional,
    Sequence,
    TypeVar,
    Union,
)

from peerkeeper.utils.logger import get_logger

logger = get_logger("pool")

T = TypeVar("T")

__all__ = ["Success", "Failure", "PoolResult", "async_pool"]


@dataclass(frozen=True)
class Success(Generic[T]):
    """A unit of work that completed with ``value``."""

    value: T
    ok: bool = True


@dataclass(frozen=True)
class Failure:
    """A unit of work that raised ``error``."""

    error: Exception
    ok: bool = False


PoolResult = Union[Success[T], Failure]

TaskFactory = Callable[[], Awaitable[T]]


async def async_pool(
    concurrency: int,
    tasks: Sequence[TaskFactory[Any]],
) -> List[PoolResult[Any]]:
    """Run ``tasks`` with at most ``concurrency`` of them in flight.

    Args:
        concurrency: Maximum number of simultaneously running units. Values
            below 1 are treated as 1.
        tasks: Zero-argument callables returning an awaitable.

    Returns:
        One result per task, in input order regardless of completion order.
    """
    limit = max(1, concurrency)
    total = len(tasks)
    results: List[Optional[PoolResult[Any]]] = [None] * total
    next_index = 0

    async def worker() -> None:
        nonlocal next_index
        while True:
            # No await between read and increment, so claiming is atomic
            current = next_index
            next_index += 1
            if current >= total:
                return
            try:
                results[current] = Success(await tasks[current]())
            except Exception as exc:  # noqa: BLE001 - captured per unit
                logger.debug("Pool unit %d failed: %s", current, exc)
                results[current] = Failure(exc)

    workers = [worker() for _ in range(min(limit, total))]
    if workers:
        await asyncio.gather(*workers)

    return [result for result in results if result is not None]
