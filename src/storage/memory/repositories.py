"""
In-Memory Repository Implementations

Simple dict-based storage for unit testing.
Implements the same protocols as production backends.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, replace
from datetime import date, datetime

from src.registry_sync.models import (
    ImportLogEntry,
    ImportStatus,
    ParsedEntity,
    RegistryMetadataEntry,
    RegistryType,
)


@dataclass
class StoredEntity:
    entity: ParsedEntity
    content_hash: str


class InMemoryBatchWriter:
    """Stages writes for one batch; they become visible when the batch commits."""

    def __init__(self, repo: InMemoryEntityRepository, registry_type: RegistryType):
        self._repo = repo
        self._registry_type = registry_type
        self._staged: dict[str, StoredEntity] = {}

    async def get_content_hashes(self, records: list[str]) -> dict[str, str]:
        table = self._repo.tables[self._registry_type]
        hashes = {}
        for record in records:
            stored = self._staged.get(record) or table.get(record)
            if stored is not None:
                hashes[record] = stored.content_hash
        return hashes

    async def upsert(self, entity: ParsedEntity, content_hash: str) -> None:
        if self._repo.write_delay:
            await asyncio.sleep(self._repo.write_delay)
        if entity.record in self._repo.failing_records:
            raise RuntimeError(f"simulated write failure for {entity.record}")
        self._staged[entity.record] = StoredEntity(entity=entity, content_hash=content_hash)
        self._repo.write_count += 1

    def commit(self) -> None:
        self._repo.tables[self._registry_type].update(self._staged)


class InMemoryEntityRepository:
    """
    In-memory implementation of EntityRepository.

    Perfect for unit tests - no database required. ``failing_records`` makes
    individual rows fail; ``fail_batches`` makes opening a batch fail the way
    a dropped connection would.
    """

    def __init__(
        self,
        failing_records: set[str] | None = None,
        fail_batches: bool = False,
        write_delay: float = 0.0,
    ):
        self.tables: dict[RegistryType, dict[str, StoredEntity]] = {t: {} for t in RegistryType}
        self.failing_records = failing_records or set()
        self.fail_batches = fail_batches
        self.write_delay = write_delay
        self.write_count = 0

    @asynccontextmanager
    async def batch(self, registry_type: RegistryType) -> AsyncIterator[InMemoryBatchWriter]:
        """Open a writer; staged rows are discarded if the block raises."""
        if self.fail_batches:
            raise ConnectionError("simulated connection failure")
        writer = InMemoryBatchWriter(self, registry_type)
        yield writer
        writer.commit()

    async def count(self, registry_type: RegistryType) -> int:
        return len(self.tables[registry_type])

    def get(self, registry_type: RegistryType, record: str) -> ParsedEntity | None:
        """Fetch a stored entity (test helper)."""
        stored = self.tables[registry_type].get(record)
        return stored.entity if stored else None


class InMemoryImportAuditRepository:
    """In-memory implementation of ImportAuditRepository."""

    def __init__(self):
        self.logs: dict[int, ImportLogEntry] = {}
        self.metadata: dict[str, RegistryMetadataEntry] = {}
        self._next_id = 1

    async def start_import(self, registry_name: str, file_name: str) -> int:
        log_id = self._next_id
        self._next_id += 1
        self.logs[log_id] = ImportLogEntry(
            id=log_id, registry_name=registry_name, file_name=file_name
        )
        return log_id

    async def finish_import(
        self,
        log_id: int,
        status: ImportStatus,
        records_imported: int,
        records_failed: int,
        error_message: str | None = None,
    ) -> None:
        self.logs[log_id] = replace(
            self.logs[log_id],
            status=status,
            completed_at=datetime.now(),
            records_imported=records_imported,
            records_failed=records_failed,
            error_message=error_message,
        )

    async def upsert_metadata(self, registry_name: str, record_count: int) -> None:
        self.metadata[registry_name] = RegistryMetadataEntry(
            registry_name=registry_name,
            record_count=record_count,
            last_update_date=date.today(),
        )

    async def get_metadata(self, registry_name: str) -> RegistryMetadataEntry | None:
        return self.metadata.get(registry_name)

    async def list_metadata(self) -> list[RegistryMetadataEntry]:
        return sorted(self.metadata.values(), key=lambda m: m.registry_name)

    async def recent_imports(self, limit: int = 20) -> list[ImportLogEntry]:
        return sorted(self.logs.values(), key=lambda e: e.id, reverse=True)[:limit]
