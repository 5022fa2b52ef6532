"""
Repository Protocol Definitions

Uses typing.Protocol for duck-typed interface definitions.
No inheritance required - any class implementing these methods qualifies.
"""

from __future__ import annotations

from contextlib import AbstractAsyncContextManager
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from src.registry_sync.models import (
        ImportLogEntry,
        ImportStatus,
        ParsedEntity,
        RegistryMetadataEntry,
        RegistryType,
    )


@runtime_checkable
class EntityBatchWriter(Protocol):
    """
    Writes one batch of entities inside a single transaction.

    Each upsert is isolated: a failing row is rolled back on its own and the
    exception re-raised, leaving the rest of the batch intact.
    """

    async def get_content_hashes(self, records: list[str]) -> dict[str, str]:
        """Stored content hashes for the given natural keys (missing keys omitted)."""
        ...

    async def upsert(self, entity: ParsedEntity, content_hash: str) -> None:
        """Insert or fully replace an entity and its child rows."""
        ...


@runtime_checkable
class EntityRepository(Protocol):
    """
    Repository for the three registry entity tables.

    Local implementation uses PostgreSQL; unit tests use the in-memory one.
    """

    def batch(self, registry_type: RegistryType) -> AbstractAsyncContextManager[EntityBatchWriter]:
        """Open a transactional writer for one batch."""
        ...

    async def count(self, registry_type: RegistryType) -> int:
        """Row count of the registry's main table."""
        ...


@runtime_checkable
class ImportAuditRepository(Protocol):
    """Repository for the import_log audit table and registry_metadata."""

    async def start_import(self, registry_name: str, file_name: str) -> int:
        """Create an in_progress import_log row. Returns its id."""
        ...

    async def finish_import(
        self,
        log_id: int,
        status: ImportStatus,
        records_imported: int,
        records_failed: int,
        error_message: str | None = None,
    ) -> None:
        """Mark an import_log row completed or failed."""
        ...

    async def upsert_metadata(self, registry_name: str, record_count: int) -> None:
        """Record the latest row count with today's date as last update."""
        ...

    async def get_metadata(self, registry_name: str) -> RegistryMetadataEntry | None:
        ...

    async def list_metadata(self) -> list[RegistryMetadataEntry]:
        ...

    async def recent_imports(self, limit: int = 20) -> list[ImportLogEntry]:
        """Most recent import_log rows, newest first."""
        ...
