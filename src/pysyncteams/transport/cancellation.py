"""Caller-driven cancellation and cancellable timers.

Provides:
- CancellationToken: an external abort signal shared by one or more operations
- sleep(): a timer that finishes early with OperationCancelledError
- run_cancellable(): races an awaitable against a token

Design: Information Hiding (Parnas)
Encapsulates how cancellation is observed. Operations only ever see
OperationCancelledError; the asyncio.Event behind the token and the
helper tasks used for racing never escape this module.

Every helper task created here is cancelled and awaited before the
function returns, on every exit path.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable
from typing import Any, TypeVar

from pysyncteams.errors import OperationCancelledError

R = TypeVar("R")

__all__ = ["CancellationToken", "sleep", "run_cancellable"]


class CancellationToken:
    """External abort signal for client operations.

    One token may be passed to any number of operations; cancelling it
    aborts all of them. Cancellation is one-way: a cancelled token stays
    cancelled.

    Example:
        ```python
        token = CancellationToken()
        wait = asyncio.create_task(
            client.wait_for_completion(task_id, cancel_token=token)
        )
        ...
        token.cancel("user closed the page")
        await wait  # raises OperationCancelledError
        ```
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._reason: Any = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> Any:
        return self._reason

    def cancel(self, reason: Any = None) -> None:
        """Fire the token. Later calls keep the first reason."""
        if self._event.is_set():
            return
        self._reason = reason
        self._event.set()

    async def wait(self) -> None:
        """Block until the token fires."""
        await self._event.wait()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise OperationCancelledError(self._reason)

    def __repr__(self) -> str:
        state = f"cancelled, reason={self._reason!r}" if self.cancelled else "active"
        return f"CancellationToken({state})"


async def _cancel_and_wait(*tasks: asyncio.Future[Any]) -> None:
    for task in tasks:
        task.cancel()
    await asyncio.gather(*tasks, return_exceptions=True)


async def sleep(delay_ms: float, cancel_token: CancellationToken | None = None) -> None:
    """
    Suspend for ``delay_ms`` milliseconds.

    Returns normally once the delay elapses. If the token fires first
    (or has already fired) raises OperationCancelledError immediately.

    Args:
        delay_ms: Delay in milliseconds; negative values are treated as 0
        cancel_token: Optional token that ends the sleep early
    """
    seconds = max(delay_ms, 0) / 1000.0
    if cancel_token is None:
        await asyncio.sleep(seconds)
        return

    cancel_token.raise_if_cancelled()
    try:
        await asyncio.wait_for(cancel_token.wait(), timeout=seconds)
    except TimeoutError:
        return
    raise OperationCancelledError(cancel_token.reason)


async def run_cancellable(
    awaitable: Awaitable[R], cancel_token: CancellationToken | None = None
) -> R:
    """
    Await ``awaitable`` unless the token fires first.

    When the token wins, the work is cancelled (aborting any in-flight
    I/O), awaited, and OperationCancelledError is raised. Exceptions from
    the work propagate unchanged.
    """
    if cancel_token is None:
        return await awaitable

    if cancel_token.cancelled:
        if asyncio.iscoroutine(awaitable):
            awaitable.close()
        raise OperationCancelledError(cancel_token.reason)

    work = asyncio.ensure_future(awaitable)
    waiter = asyncio.ensure_future(cancel_token.wait())
    try:
        done, _ = await asyncio.wait({work, waiter}, return_when=asyncio.FIRST_COMPLETED)
    except BaseException:
        await _cancel_and_wait(work, waiter)
        raise

    if work in done:
        await _cancel_and_wait(waiter)
        return work.result()

    await _cancel_and_wait(work)
    raise OperationCancelledError(cancel_token.reason)
