from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)


class PeriodicTask:
    """Run `fn` every `interval_s` seconds on the running event loop.

    `fn` returns False to stop the loop. The task belongs to whoever started it and
    must be stopped by that owner; it never outlives `stop()`/`cancel()`.
    """

    def __init__(
        self,
        name: str,
        fn: Callable[[], Awaitable[bool]],
        interval_s: float,
        *,
        run_immediately: bool = True,
    ) -> None:
        self.name = name
        self._fn = fn
        self._interval_s = interval_s
        self._run_immediately = run_immediately
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run(), name=self.name)

    def cancel(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()

    async def stop(self) -> None:
        task = self._task
        if task is None:
            return
        self.cancel()
        if task is asyncio.current_task():
            return
        with contextlib.suppress(asyncio.CancelledError):
            try:
                await task
            except Exception:
                logger.exception(f"Periodic task {self.name!r} ended with an error")

    async def _run(self) -> None:
        if not self._run_immediately:
            await asyncio.sleep(self._interval_s)
        while True:
            try:
                keep_going = await self._fn()
            except Exception:
                # One bad run must not end the schedule.
                logger.exception(
                    f"Periodic task {self.name!r} failed; retrying in {self._interval_s}s"
                )
                keep_going = True
            if not keep_going:
                logger.debug(f"Periodic task {self.name!r} finished")
                return
            await asyncio.sleep(self._interval_s)
