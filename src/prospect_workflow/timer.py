from __future__ import annotations

import asyncio
from contextlib import suppress
from datetime import timedelta
from typing import Awaitable, Callable, Optional

import structlog

from prospect_workflow.models import FenceToken

logger = structlog.get_logger(__name__)

FireCallback = Callable[[str, FenceToken], Awaitable[None]]


class FollowUpTimer:
    """
    Single-shot, re-armable timers keyed by customer id.

    Arming a key replaces whatever timer was armed for it. When a timer expires
    the callback receives ``(customer_id, token)``; deciding whether the fire is
    still relevant is the callback's job.
    """

    def __init__(self, callback: Optional[FireCallback] = None) -> None:
        self._callback = callback
        self._tasks: dict[str, asyncio.Task[None]] = {}

    def bind(self, callback: FireCallback) -> None:
        self._callback = callback

    def arm(self, customer_id: str, delay: timedelta | float, token: FenceToken) -> None:
        if self._callback is None:
            raise RuntimeError("FollowUpTimer has no callback bound")

        seconds = delay.total_seconds() if isinstance(delay, timedelta) else float(delay)
        self.cancel(customer_id)
        task = asyncio.create_task(
            self._run(customer_id, max(seconds, 0.0), token),
            name=f"follow-up-{customer_id}",
        )
        self._tasks[customer_id] = task
        logger.debug(
            "Armed follow-up timer",
            customer_id=customer_id,
            delay_seconds=seconds,
            token=token.model_dump(mode="json"),
        )

    def cancel(self, customer_id: str) -> bool:
        task = self._tasks.pop(customer_id, None)
        if task is None or task.done():
            return False
        if task is asyncio.current_task():
            return False
        task.cancel()
        return True

    def armed(self, customer_id: str) -> bool:
        task = self._tasks.get(customer_id)
        return task is not None and not task.done()

    async def cancel_all(self) -> None:
        tasks = list(self._tasks.values())
        self._tasks.clear()
        for task in tasks:
            task.cancel()
        for task in tasks:
            with suppress(asyncio.CancelledError):
                await task

    async def _run(self, customer_id: str, seconds: float, token: FenceToken) -> None:
        await asyncio.sleep(seconds)
        if self._tasks.get(customer_id) is asyncio.current_task():
            del self._tasks[customer_id]
        try:
            await self._callback(customer_id, token)  # type: ignore[misc]
        except Exception:
            logger.exception("Follow-up timer callback failed", customer_id=customer_id)


__all__ = ["FireCallback", "FollowUpTimer"]
