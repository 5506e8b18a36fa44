"""Cooperative cancellation shared by every sub-call of one pipeline action."""

from __future__ import annotations

import asyncio
from typing import Awaitable, Optional, TypeVar

T = TypeVar("T")


class OperationCanceled(Exception):
    """Raised by `CancellationToken.guard` when the token is signaled."""


def _consume_result(task: "asyncio.Future") -> None:
    # Abandoned calls may still fail; retrieve the exception so the loop does not warn.
    if not task.cancelled():
        task.exception()


class CancellationToken:
    """Signal that lets an in-flight action be aborted.

    The token is checked before each model attempt and raced against every
    call and backoff wait through `guard`.
    """

    def __init__(self, label: str = "action") -> None:
        self.label = label
        self._event = asyncio.Event()
        self.reason: Optional[str] = None

    @property
    def canceled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str = "canceled") -> None:
        if not self._event.is_set():
            self.reason = reason
            self._event.set()

    async def guard(self, awaitable: Awaitable[T], timeout: Optional[float] = None) -> T:
        """Await `awaitable` unless the token fires or `timeout` elapses first.

        Raises:
            OperationCanceled: The token was signaled before completion.
            asyncio.TimeoutError: The timeout elapsed first.
        """
        if self.canceled:
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            raise OperationCanceled(self.reason)

        work = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            done, _ = await asyncio.wait(
                {work, waiter}, timeout=timeout, return_when=asyncio.FIRST_COMPLETED
            )
        except asyncio.CancelledError:
            work.cancel()
            raise
        finally:
            waiter.cancel()

        if work in done and not self.canceled:
            return work.result()

        if not work.done():
            work.cancel()
        work.add_done_callback(_consume_result)
        if self.canceled:
            raise OperationCanceled(self.reason)
        raise asyncio.TimeoutError()
