"""Async utilities for bridging blocking HTTP adapters into the async engine."""

import asyncio
import logging
from typing import Any, Callable, TypeVar

from ..errors import TransientError

T = TypeVar("T")
logger = logging.getLogger(__name__)


async def run_sync(func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
    """Run a synchronous function in a thread pool without blocking the event loop.

    Args:
        func: Synchronous function to call
        *args: Positional arguments for func
        **kwargs: Keyword arguments for func

    Returns:
        Result of func(*args, **kwargs)

    Example:
        tracker = NotionTracker(connection)
        records = await run_sync(tracker.fetch_open_records)
    """
    return await asyncio.to_thread(func, *args, **kwargs)


async def _before_deadline(
    func: Callable[..., T], args: tuple, kwargs: dict, timeout: float
) -> T:
    name = getattr(func, "__qualname__", repr(func))
    try:
        return await asyncio.wait_for(
            asyncio.to_thread(func, *args, **kwargs), timeout=timeout
        )
    except asyncio.TimeoutError:
        logger.warning("Call to %s timed out after %.1fs", name, timeout)
        raise TransientError(
            f"{name} timed out after {timeout:.1f}s"
        ) from None


async def call_with_timeout(
    func: Callable[..., T],
    *args: Any,
    timeout: float,
    semaphore: asyncio.Semaphore | None = None,
    **kwargs: Any,
) -> T:
    """Run a blocking adapter call with a hard deadline.

    With *semaphore*, the slot is acquired first and the deadline starts
    once the call is running; time spent queued never counts against
    *timeout*. The semaphore is owned by the caller (one per engine
    instance), so two engines in the same process never share a budget.

    The worker thread cannot be interrupted; on timeout the result is
    abandoned and the caller sees a ``TransientError``.

    Raises:
        TransientError: If the call did not finish within *timeout* seconds.
    """
    if semaphore is None:
        return await _before_deadline(func, args, kwargs, timeout)
    async with semaphore:
        return await _before_deadline(func, args, kwargs, timeout)
