"""Fixed-interval background task that drives the Airtable sync.

The scheduler owns the per-mapping cursors between passes. They live in
memory only, so a restart begins with a full sync of every mapping.
"""

import asyncio
import logging
from datetime import datetime
from typing import Awaitable, Callable, Dict, List, Optional, Sequence

from app.services.sync import (
    Clock,
    SyncDestination,
    SyncMapping,
    SyncOutcome,
    SyncSource,
    reconcile_all,
    utc_now,
)

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


class SyncScheduler:
    def __init__(
        self,
        mappings: Sequence[SyncMapping],
        *,
        source: SyncSource,
        destination: SyncDestination,
        interval_seconds: float = 300,
        batch_size: int = 10,
        clock: Clock = utc_now,
        sleep: Sleep = asyncio.sleep,
    ):
        self.mappings = tuple(mappings)
        self.source = source
        self.destination = destination
        self.interval_seconds = interval_seconds
        self.batch_size = batch_size
        self.clock = clock
        self.sleep = sleep
        self.cursors: Dict[str, Optional[datetime]] = {m.name: None for m in self.mappings}
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run_once(self) -> List[SyncOutcome]:
        """Reconcile every mapping once and keep the cursors it hands back."""
        self.cursors, outcomes = await reconcile_all(
            self.mappings,
            self.cursors,
            source=self.source,
            destination=self.destination,
            clock=self.clock,
            batch_size=self.batch_size,
        )
        return outcomes

    async def run_forever(self, max_runs: Optional[int] = None) -> None:
        """Run a pass, then wait one interval, until cancelled or *max_runs* passes are done."""
        runs = 0
        while max_runs is None or runs < max_runs:
            try:
                await self.run_once()
            except Exception:
                logger.exception("Scheduled sync pass failed")
            runs += 1
            if max_runs is not None and runs >= max_runs:
                break
            await self.sleep(self.interval_seconds)

    def start(self) -> None:
        if self.running:
            return
        logger.info("Starting sync scheduler (every %ss)", self.interval_seconds)
        self._task = asyncio.create_task(self.run_forever())

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Sync scheduler stopped")
