"""Run an awaitable against a deadline without relying on the awaitable to cooperate."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable
from enum import Enum
from typing import Final, Literal, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class _Expired(Enum):
    TOKEN = "expired"


EXPIRED: Final = _Expired.TOKEN


async def run_with_deadline(
    operation: Awaitable[T],
    timeout_ms: int,
) -> T | Literal[_Expired.TOKEN]:
    """Await ``operation`` for at most ``timeout_ms`` milliseconds.

    Returns the operation's result, re-raises its exception, or returns
    ``EXPIRED`` when the deadline passes first. An operation that ends
    cancelled while the caller is not being cancelled raises ``RuntimeError``,
    so a stray cancellation surfaces as an ordinary failure.

    An expired operation is cancelled, so an abandoned request does not keep
    running next to later calls on the same session. It is never awaited:
    one that ignores the cancellation cannot hold up the caller, and whatever
    it produces later is discarded.
    """
    task = asyncio.ensure_future(operation)
    try:
        done, _ = await asyncio.wait({task}, timeout=timeout_ms / 1000)
    except asyncio.CancelledError:
        task.cancel()
        raise

    if task in done:
        if task.cancelled() and not _caller_cancelling():
            raise RuntimeError("operation was cancelled")
        return task.result()

    task.cancel()
    task.add_done_callback(_discard_late_outcome)
    return EXPIRED


def _caller_cancelling() -> bool:
    current = asyncio.current_task()
    return current is not None and current.cancelling() > 0


def _discard_late_outcome(task: asyncio.Future[object]) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.debug("Discarded late failure of an expired operation: %r", exc)
