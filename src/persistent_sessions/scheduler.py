"""Periodic eviction of expired session records.

The store itself never schedules anything; ``ExpiredRecordReaper`` is the
caller-owned loop that invokes ``delete_expired`` at a fixed interval and
can be cancelled at shutdown without waiting for the next tick.

Classes
-------
- ExpiredRecordReaper  — asyncio task wrapper around ``delete_expired``
"""
from __future__ import annotations

import asyncio
import logging
from datetime import timedelta
from typing import Any

from persistent_sessions.storage.base import AsyncSessionStore

logger = logging.getLogger(__name__)


class ExpiredRecordReaper:
    """Run ``store.delete_expired()`` now and then once per ``interval``.

    A failed sweep is logged and ends the loop; the exception is re-raised
    by ``run`` and by ``stop``.  Retrying is left to whoever restarts the
    reaper.

    Parameters
    ----------
    store:
        The store to sweep.
    interval:
        Delay between sweeps.  Defaults to 60 seconds.

    Example
    -------
    >>> async with ExpiredRecordReaper(store, timedelta(minutes=1)):
    ...     await serve_forever()
    """

    def __init__(
        self,
        store: AsyncSessionStore,
        interval: timedelta = timedelta(seconds=60),
    ) -> None:
        if interval <= timedelta(0):
            raise ValueError("interval must be positive")
        self._store = store
        self._interval = interval
        self._task: asyncio.Task[None] | None = None
        self.sweeps: int = 0
        self.removed_total: int = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def sweep_once(self) -> int:
        """Perform a single sweep and return the number of records removed."""
        removed = await self._store.delete_expired()
        self.sweeps += 1
        self.removed_total += removed
        logger.debug("Eviction sweep %d removed %d records", self.sweeps, removed)
        return removed

    async def run(self) -> None:
        """Sweep forever until cancelled or a sweep fails."""
        seconds = self._interval.total_seconds()
        while True:
            try:
                await self.sweep_once()
            except Exception:
                logger.exception("Eviction sweep failed; stopping reaper")
                raise
            await asyncio.sleep(seconds)

    def start(self) -> asyncio.Task[None]:
        """Spawn ``run`` as a background task and return it."""
        if self.running:
            raise RuntimeError("ExpiredRecordReaper is already running")
        self._task = asyncio.create_task(self.run(), name="expired-record-reaper")
        logger.info("Eviction reaper started (interval %s)", self._interval)
        return self._task

    async def stop(self) -> None:
        """Cancel the background task and wait for it to finish.

        Raises
        ------
        Exception
            Whatever a failed sweep raised, if the loop had already ended
            with an error.
        """
        task, self._task = self._task, None
        if task is None:
            return
        if not task.done():
            task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            # Propagate only when the caller of stop() is itself being cancelled.
            current = asyncio.current_task()
            if current is not None and current.cancelling():
                raise
        logger.info("Eviction reaper stopped after %d sweeps", self.sweeps)

    async def __aenter__(self) -> ExpiredRecordReaper:
        self.start()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.stop()

    def __repr__(self) -> str:
        return f"ExpiredRecordReaper(interval={self._interval!r}, running={self.running})"


__all__ = ["ExpiredRecordReaper"]
