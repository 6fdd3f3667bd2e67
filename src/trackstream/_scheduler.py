"""Fixed-period, single-flight scheduling on the running event loop."""

from __future__ import annotations

import asyncio
from collections.abc import Callable


async def _sleep_or_stop(delay: float, stop: asyncio.Event | None) -> bool:
    """Sleep for *delay* seconds; return ``True`` if *stop* was set meanwhile."""
    if stop is None:
        await asyncio.sleep(delay)
        return False
    if stop.is_set():
        return True
    try:
        await asyncio.wait_for(stop.wait(), timeout=delay)
    except TimeoutError:
        return False
    return True


async def run_periodic(
    callback: Callable[[], object],
    interval: float,
    *,
    stop: asyncio.Event | None = None,
    max_runs: int | None = None,
    immediate: bool = True,
) -> int:
    """Invoke *callback* every *interval* seconds until *stop* is set.

    Deadlines advance by exactly *interval* from the previous deadline, so
    a slow callback delays later runs without ever skipping or overlapping
    them. Exceptions from *callback* propagate. Returns the number of runs.
    """
    loop = asyncio.get_running_loop()
    runs = 0
    deadline = loop.time() if immediate else loop.time() + interval

    while max_runs is None or runs < max_runs:
        if await _sleep_or_stop(max(0.0, deadline - loop.time()), stop):
            break
        callback()
        runs += 1
        deadline += interval

    return runs
