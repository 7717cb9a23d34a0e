"""
Merge parsed index records into a :class:`GoIndex`.
"""
from __future__ import annotations

import asyncio
import logging
from typing import List

from goscrape.domain.models import GoIndex, IndexRecord

logger = logging.getLogger(__name__)

# Queue marker telling one consumer to stop.
_CLOSED = object()


class Aggregator:
    """
    A fixed pool of consumers draining the record queue into ``index``.

    Consumers are started before any fetch task so that a bounded queue only
    slows producers down instead of blocking them forever.
    """

    def __init__(self, index: GoIndex, queue: asyncio.Queue, workers: int):
        self.index = index
        self.queue = queue
        self.workers = workers
        self.records = 0
        self._tasks: List[asyncio.Task] = []

    def start(self) -> None:
        if self._tasks:
            raise RuntimeError("Aggregator already started")
        self._tasks = [asyncio.create_task(self._consume()) for _ in range(self.workers)]

    async def close(self) -> int:
        """
        Signal end of input and wait for every consumer to finish.

        Returns:
            Number of records merged into the index.
        """
        for _ in self._tasks:
            await self.queue.put(_CLOSED)
        await asyncio.gather(*self._tasks)
        logger.debug(f"Aggregated {self.records} records into {len(self.index)} packages")
        return self.records

    def cancel(self) -> None:
        for task in self._tasks:
            task.cancel()

    async def _consume(self) -> None:
        while True:
            item = await self.queue.get()
            if item is _CLOSED:
                return
            self.merge(item)

    def merge(self, record: IndexRecord) -> None:
        self.index.append(record.path, record.version, record.timestamp)
        self.records += 1
