"""
Import Pipeline

Wires the streaming parser, the normalizer and the bounded worker pool
together for one XML file. The parser waits on each batch hand-off, and
the hand-off waits for a free worker, so parsing never runs more than
``worker_count`` batches ahead of the database.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from src.registry_sync.errors import TransformationError
from src.registry_sync.importer import BatchImporter
from src.registry_sync.models import ImportStats, ParsedEntity, RegistryType
from src.registry_sync.normalizer import normalize
from src.registry_sync.parser import RawRecord, parse_batches
from src.registry_sync.progress import ProgressReporter
from src.registry_sync.workers import ImportWorkerPool

logger = logging.getLogger(__name__)


@dataclass
class PipelineResult:
    parsed: int
    stats: ImportStats
    batches: int


class ImportPipeline:
    """Parse -> normalize -> import for one registry XML file."""

    def __init__(
        self,
        importer: BatchImporter,
        batch_size: int = 500,
        worker_count: int = 10,
    ):
        self.importer = importer
        self.batch_size = batch_size
        self.worker_count = worker_count
        self.last_result: PipelineResult | None = None

    async def run(
        self,
        xml_path: Path,
        registry_type: RegistryType,
        progress: ProgressReporter | None = None,
    ) -> PipelineResult:
        """
        Import every record in ``xml_path``.

        Records rejected by the normalizer are counted as errors and never
        reach the importer. Batches already dispatched are always awaited,
        even when parsing fails part-way; their totals are then available
        as ``last_result``.

        Raises:
            ParseError: If the XML is malformed (after in-flight batches finish)
        """
        self.last_result = None
        pool = ImportWorkerPool(
            self.importer,
            registry_type,
            self.worker_count,
            on_stats=progress.add_stats if progress else None,
        )

        async def on_batch(raw_batch: list[RawRecord]) -> None:
            entities: list[ParsedEntity] = []
            rejected = 0
            for raw in raw_batch:
                try:
                    entities.append(normalize(registry_type, raw))
                except TransformationError as e:
                    rejected += 1
                    logger.debug(f"Rejected record: {e}")
            pool.record_rejected(rejected)
            if entities:
                await pool.submit(entities)

        parsed = 0

        def on_parsed() -> None:
            nonlocal parsed
            parsed += 1
            if progress:
                progress.add_parsed()

        try:
            await parse_batches(xml_path, self.batch_size, on_batch, on_parsed=on_parsed)
        finally:
            stats = await pool.drain()
            self.last_result = PipelineResult(
                parsed=parsed, stats=stats, batches=pool.batches_dispatched
            )

        logger.info(
            f"{registry_type.value} pipeline finished: {parsed} parsed in "
            f"{pool.batches_dispatched} batches (peak {pool.peak_in_flight} concurrent)"
        )
        return self.last_result
