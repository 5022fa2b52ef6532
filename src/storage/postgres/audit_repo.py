"""
PostgreSQL Import Audit Repository

Implements ImportAuditRepository over the import_log and registry_metadata
tables.
"""

from __future__ import annotations

import asyncpg

from src.registry_sync.models import ImportLogEntry, ImportStatus, RegistryMetadataEntry


class PostgresImportAuditRepository:
    """PostgreSQL implementation of ImportAuditRepository."""

    def __init__(self, pool: asyncpg.Pool):
        self.pool = pool

    async def start_import(self, registry_name: str, file_name: str) -> int:
        return await self.pool.fetchval(
            """
            INSERT INTO import_log (registry_name, file_name, status)
            VALUES ($1, $2, $3)
            RETURNING id
            """,
            registry_name,
            file_name,
            ImportStatus.IN_PROGRESS.value,
        )

    async def finish_import(
        self,
        log_id: int,
        status: ImportStatus,
        records_imported: int,
        records_failed: int,
        error_message: str | None = None,
    ) -> None:
        await self.pool.execute(
            """
            UPDATE import_log SET
                import_completed_at = CURRENT_TIMESTAMP,
                records_imported = $1,
                records_failed = $2,
                status = $3,
                error_message = $4
            WHERE id = $5
            """,
            records_imported,
            records_failed,
            status.value,
            error_message,
            log_id,
        )

    async def upsert_metadata(self, registry_name: str, record_count: int) -> None:
        await self.pool.execute(
            """
            INSERT INTO registry_metadata (registry_name, record_count, last_update_date)
            VALUES ($1, $2, CURRENT_DATE)
            ON CONFLICT (registry_name) DO UPDATE SET
                record_count = EXCLUDED.record_count,
                last_update_date = EXCLUDED.last_update_date,
                updated_at = CURRENT_TIMESTAMP
            """,
            registry_name,
            record_count,
        )

    async def get_metadata(self, registry_name: str) -> RegistryMetadataEntry | None:
        row = await self.pool.fetchrow(
            """
            SELECT registry_name, record_count, last_update_date
            FROM registry_metadata WHERE registry_name = $1
            """,
            registry_name,
        )
        return self._row_to_metadata(row) if row else None

    async def list_metadata(self) -> list[RegistryMetadataEntry]:
        rows = await self.pool.fetch(
            """
            SELECT registry_name, record_count, last_update_date
            FROM registry_metadata
            WHERE registry_name LIKE 'EDRPOU_%'
            ORDER BY registry_name
            """
        )
        return [self._row_to_metadata(row) for row in rows]

    async def recent_imports(self, limit: int = 20) -> list[ImportLogEntry]:
        rows = await self.pool.fetch(
            """
            SELECT id, registry_name, file_name, status, import_started_at,
                   import_completed_at, records_imported, records_failed, error_message
            FROM import_log
            ORDER BY id DESC
            LIMIT $1
            """,
            limit,
        )
        return [
            ImportLogEntry(
                id=row["id"],
                registry_name=row["registry_name"],
                file_name=row["file_name"],
                status=ImportStatus(row["status"]),
                started_at=row["import_started_at"],
                completed_at=row["import_completed_at"],
                records_imported=row["records_imported"] or 0,
                records_failed=row["records_failed"] or 0,
                error_message=row["error_message"],
            )
            for row in rows
        ]

    def _row_to_metadata(self, row: asyncpg.Record) -> RegistryMetadataEntry:
        return RegistryMetadataEntry(
            registry_name=row["registry_name"],
            record_count=row["record_count"] or 0,
            last_update_date=row["last_update_date"],
        )
