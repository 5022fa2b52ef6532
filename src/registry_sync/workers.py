"""
Bounded Import Workers

Dispatches entity batches to a BatchImporter with at most ``worker_count``
batches in flight. The dispatching coroutine blocks on an asyncio.Semaphore
until a running batch completes, which caps simultaneous database
connections and in-flight memory however fast batches are produced.

Run-level statistics are owned by a single aggregator task: workers only
send their batch ImportStats through a queue.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence

from src.registry_sync.importer import BatchImporter
from src.registry_sync.models import ImportStats, ParsedEntity, RegistryType

logger = logging.getLogger(__name__)


class ImportWorkerPool:
    """Fixed-size pool of concurrent batch imports for one registry type."""

    def __init__(
        self,
        importer: BatchImporter,
        registry_type: RegistryType,
        worker_count: int,
        on_stats: Callable[[ImportStats], None] | None = None,
    ):
        """
        Initialize worker pool.

        Args:
            importer: Importer shared by all workers
            registry_type: Registry the batches belong to
            worker_count: Maximum batches importing at the same time
            on_stats: Called by the aggregator with each batch's stats
        """
        if worker_count < 1:
            raise ValueError("worker_count must be at least 1")
        self.importer = importer
        self.registry_type = registry_type
        self.worker_count = worker_count
        self._on_stats = on_stats

        self._semaphore = asyncio.Semaphore(worker_count)
        self._queue: asyncio.Queue[ImportStats | None] = asyncio.Queue()
        self._tasks: set[asyncio.Task] = set()
        self._aggregator: asyncio.Task | None = None
        self._totals = ImportStats()

        self.batches_dispatched = 0
        self.in_flight = 0
        self.peak_in_flight = 0

    async def submit(self, entities: Sequence[ParsedEntity]) -> None:
        """Wait for a free slot, then start importing the batch in the background."""
        self._ensure_aggregator()
        await self._semaphore.acquire()

        self.batches_dispatched += 1
        self.in_flight += 1
        self.peak_in_flight = max(self.peak_in_flight, self.in_flight)

        task = asyncio.create_task(self._run(list(entities), self.batches_dispatched))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def record_rejected(self, count: int) -> None:
        """Count records that never became entities (normalization rejects) as errors."""
        if count:
            self._ensure_aggregator()
            self._queue.put_nowait(ImportStats(errors=count))

    async def drain(self) -> ImportStats:
        """Wait for every dispatched batch and return the run-level totals."""
        self._ensure_aggregator()
        while self._tasks:
            await asyncio.gather(*list(self._tasks))
        self._queue.put_nowait(None)
        await self._aggregator
        return self._totals

    @property
    def totals(self) -> ImportStats:
        return self._totals

    def _ensure_aggregator(self) -> None:
        if self._aggregator is None:
            self._aggregator = asyncio.create_task(self._aggregate())

    async def _aggregate(self) -> None:
        while True:
            stats = await self._queue.get()
            if stats is None:
                return
            self._totals = self._totals + stats
            if self._on_stats:
                self._on_stats(stats)

    async def _run(self, entities: list[ParsedEntity], batch_number: int) -> None:
        try:
            stats = await self.importer.import_batch(entities, self.registry_type)
        except Exception as e:
            logger.error(
                f"{self.registry_type.value} batch {batch_number} failed, "
                f"counting {len(entities)} entities as errors: {e}"
            )
            stats = ImportStats(errors=len(entities))
        finally:
            self.in_flight -= 1
            self._semaphore.release()
        self._queue.put_nowait(stats)
