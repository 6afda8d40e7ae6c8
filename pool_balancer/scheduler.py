# scheduler.py

"""Periodic execution of the evaluation cycle."""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

logger = logging.getLogger(__name__)

class Job:
    """
    Run a coroutine function every `interval` seconds, one run at a time.

    A tick that comes while the previous run is still going is dropped, not
    queued. The job is created disabled.
    """

    def __init__(self, interval: float, fn: Callable[[], Awaitable]):
        self.interval = interval
        self.fn = fn
        self._timer: Optional[asyncio.Task] = None
        self._current: Optional[asyncio.Future] = None

    @property
    def enabled(self) -> bool:
        return self._timer is not None and not self._timer.done()

    @property
    def running(self) -> bool:
        return self._current is not None and not self._current.done()

    def start(self) -> None:
        if not self.enabled:
            self._timer = asyncio.ensure_future(self._run_forever())

    def stop(self) -> None:
        """Stop the timer. A run in progress goes on until it finishes."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def tick(self) -> Optional[asyncio.Future]:
        """Start a run unless one is in progress."""
        if self.running:
            logger.debug("Previous run still in progress, tick skipped")
            return None

        self._current = asyncio.ensure_future(self._run())
        return self._current

    async def wait_idle(self) -> None:
        """Wait for the run in progress, if any."""
        if self.running:
            await asyncio.shield(self._current)

    async def _run_forever(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            self.tick()

    async def _run(self) -> None:
        try:
            await self.fn()
        except Exception as e:
            logger.exception(f"[WARN] scheduled function failed: {e}")
