"""
PostgreSQL Registry Entity Repository

Implements EntityRepository for the legal_entities, individual_entrepreneurs
and public_associations tables plus their child tables.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from decimal import Decimal, InvalidOperation

import asyncpg

from src.registry_sync.models import (
    Entrepreneur,
    LegalEntity,
    ParsedEntity,
    PublicAssociation,
    RegistryType,
)

logger = logging.getLogger(__name__)

UPSERT_LEGAL_ENTITY = """
    INSERT INTO legal_entities (
        record, edrpou, name, short_name, opf, stan, authorized_capital,
        founding_document_num, purpose, superior_management, statute,
        registration, managing_paper, terminated_info, termination_cancel_info,
        content_hash
    ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12, $13, $14, $15, $16)
    ON CONFLICT (record) DO UPDATE SET
        edrpou = EXCLUDED.edrpou,
        name = EXCLUDED.name,
        short_name = EXCLUDED.short_name,
        opf = EXCLUDED.opf,
        stan = EXCLUDED.stan,
        authorized_capital = EXCLUDED.authorized_capital,
        founding_document_num = EXCLUDED.founding_document_num,
        purpose = EXCLUDED.purpose,
        superior_management = EXCLUDED.superior_management,
        statute = EXCLUDED.statute,
        registration = EXCLUDED.registration,
        managing_paper = EXCLUDED.managing_paper,
        terminated_info = EXCLUDED.terminated_info,
        termination_cancel_info = EXCLUDED.termination_cancel_info,
        content_hash = EXCLUDED.content_hash,
        updated_at = CURRENT_TIMESTAMP
"""

UPSERT_ENTREPRENEUR = """
    INSERT INTO individual_entrepreneurs (
        record, name, stan, farmer, estate_manager,
        registration, terminated_info, termination_cancel_info, content_hash
    ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9)
    ON CONFLICT (record) DO UPDATE SET
        name = EXCLUDED.name,
        stan = EXCLUDED.stan,
        farmer = EXCLUDED.farmer,
        estate_manager = EXCLUDED.estate_manager,
        registration = EXCLUDED.registration,
        terminated_info = EXCLUDED.terminated_info,
        termination_cancel_info = EXCLUDED.termination_cancel_info,
        content_hash = EXCLUDED.content_hash,
        updated_at = CURRENT_TIMESTAMP
"""

UPSERT_PUBLIC_ASSOCIATION = """
    INSERT INTO public_associations (
        record, edrpou, name, short_name, type_subject, type_branch, stan,
        founding_document, registration, terminated_info, termination_cancel_info,
        content_hash
    ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12)
    ON CONFLICT (record) DO UPDATE SET
        edrpou = EXCLUDED.edrpou,
        name = EXCLUDED.name,
        short_name = EXCLUDED.short_name,
        type_subject = EXCLUDED.type_subject,
        type_branch = EXCLUDED.type_branch,
        stan = EXCLUDED.stan,
        founding_document = EXCLUDED.founding_document,
        registration = EXCLUDED.registration,
        terminated_info = EXCLUDED.terminated_info,
        termination_cancel_info = EXCLUDED.termination_cancel_info,
        content_hash = EXCLUDED.content_hash,
        updated_at = CURRENT_TIMESTAMP
"""

# Child tables keyed by (entity_type, entity_record)
_TYPED_CHILD_TABLES = (
    "founders",
    "beneficiaries",
    "signers",
    "predecessors",
    "termination_started",
    "exchange_data",
)
# Child tables that only ever belong to legal entities
_UO_CHILD_TABLES = ("members", "assignees", "executive_power", "bankruptcy_info")


def parse_capital(value: str | None) -> Decimal | None:
    """Authorized capital as a decimal; the registry uses ',' as decimal mark."""
    if not value:
        return None
    try:
        return Decimal(value.replace(" ", "").replace(",", "."))
    except InvalidOperation:
        return None


class PostgresBatchWriter:
    """Writes entities on one connection inside the batch transaction."""

    def __init__(self, conn: asyncpg.Connection, registry_type: RegistryType):
        self._conn = conn
        self._registry_type = registry_type
        self._table = registry_type.descriptor.table

    async def get_content_hashes(self, records: list[str]) -> dict[str, str]:
        if not records:
            return {}
        rows = await self._conn.fetch(
            f"SELECT record, content_hash FROM {self._table} "
            "WHERE record = ANY($1::text[]) AND content_hash IS NOT NULL",
            records,
        )
        return {row["record"]: row["content_hash"] for row in rows}

    async def upsert(self, entity: ParsedEntity, content_hash: str) -> None:
        """
        Upsert one entity inside its own savepoint.

        A nested asyncpg transaction is a savepoint, so a failing row is rolled
        back without aborting the surrounding batch transaction.
        """
        async with self._conn.transaction():
            if isinstance(entity, LegalEntity):
                await self._upsert_legal_entity(entity, content_hash)
            elif isinstance(entity, Entrepreneur):
                await self._upsert_entrepreneur(entity, content_hash)
            elif isinstance(entity, PublicAssociation):
                await self._upsert_public_association(entity, content_hash)
            else:
                raise TypeError(f"Unsupported entity type: {type(entity).__name__}")

    async def _delete_children(self, record: str) -> None:
        entity_type = self._registry_type.value
        for table in _TYPED_CHILD_TABLES:
            await self._conn.execute(
                f"DELETE FROM {table} WHERE entity_type = $1 AND entity_record = $2",
                entity_type,
                record,
            )
        if self._registry_type is RegistryType.UO:
            for table in _UO_CHILD_TABLES:
                await self._conn.execute(f"DELETE FROM {table} WHERE entity_record = $1", record)
            await self._conn.execute("DELETE FROM branches WHERE parent_record = $1", record)

    async def _insert_texts(self, table: str, column: str, record: str, values: tuple[str, ...]) -> None:
        if not values:
            return
        await self._conn.executemany(
            f"INSERT INTO {table} (entity_type, entity_record, {column}) VALUES ($1, $2, $3)",
            [(self._registry_type.value, record, value) for value in values],
        )

    async def _insert_common_children(self, entity: ParsedEntity) -> None:
        record = entity.record
        if entity.exchange_data:
            await self._conn.executemany(
                """
                INSERT INTO exchange_data (
                    entity_type, entity_record, tax_payer_type,
                    start_date, start_num, end_date, end_num
                ) VALUES ($1, $2, $3, $4, $5, $6, $7)
                """,
                [
                    (
                        self._registry_type.value,
                        record,
                        item.tax_payer_type,
                        item.start_date,
                        item.start_num,
                        item.end_date,
                        item.end_num,
                    )
                    for item in entity.exchange_data
                ],
            )

    async def _insert_association_children(self, entity: LegalEntity | PublicAssociation) -> None:
        record = entity.record
        await self._insert_texts("founders", "founder_info", record, entity.founders)
        await self._insert_texts("beneficiaries", "beneficiary_info", record, entity.beneficiaries)
        await self._insert_texts("signers", "signer_info", record, entity.signers)
        if entity.predecessors:
            await self._conn.executemany(
                """
                INSERT INTO predecessors (entity_type, entity_record, predecessor_name, predecessor_code)
                VALUES ($1, $2, $3, $4)
                """,
                [(self._registry_type.value, record, p.name, p.code) for p in entity.predecessors],
            )
        ts = entity.termination_started
        if ts is not None:
            await self._conn.execute(
                """
                INSERT INTO termination_started (
                    entity_type, entity_record, op_date, reason,
                    sbj_state, signer_name, creditor_req_end_date
                ) VALUES ($1, $2, $3, $4, $5, $6, $7)
                """,
                self._registry_type.value,
                record,
                ts.op_date,
                ts.reason,
                ts.sbj_state,
                ts.signer_name,
                ts.creditor_req_end_date,
            )

    async def _upsert_legal_entity(self, entity: LegalEntity, content_hash: str) -> None:
        record = entity.record
        await self._conn.execute(
            UPSERT_LEGAL_ENTITY,
            record,
            entity.edrpou,
            entity.name,
            entity.short_name,
            entity.legal_form,
            entity.status,
            parse_capital(entity.authorized_capital),
            entity.founding_document_num,
            entity.purpose,
            entity.superior_management,
            entity.statute,
            entity.registration,
            entity.managing_paper,
            entity.terminated_info,
            entity.termination_cancel_info,
            content_hash,
        )
        await self._delete_children(record)
        await self._insert_association_children(entity)
        await self._insert_common_children(entity)

        if entity.members:
            await self._conn.executemany(
                "INSERT INTO members (entity_record, member_info) VALUES ($1, $2)",
                [(record, member) for member in entity.members],
            )
        if entity.branches:
            await self._conn.executemany(
                """
                INSERT INTO branches (parent_record, code, name, signer, create_date)
                VALUES ($1, $2, $3, $4, $5)
                """,
                [(record, b.code, b.name or "", b.signer, b.create_date) for b in entity.branches],
            )
        if entity.assignees:
            await self._conn.executemany(
                "INSERT INTO assignees (entity_record, assignee_name, assignee_code) VALUES ($1, $2, $3)",
                [(record, a.name, a.code) for a in entity.assignees],
            )
        if entity.executive_power is not None:
            await self._conn.execute(
                "INSERT INTO executive_power (entity_record, name, code) VALUES ($1, $2, $3)",
                record,
                entity.executive_power.name,
                entity.executive_power.code,
            )
        if entity.bankruptcy is not None:
            b = entity.bankruptcy
            await self._conn.execute(
                """
                INSERT INTO bankruptcy_info (entity_record, op_date, reason, sbj_state, head_name)
                VALUES ($1, $2, $3, $4, $5)
                """,
                record,
                b.op_date,
                b.reason,
                b.sbj_state,
                b.head_name,
            )

    async def _upsert_entrepreneur(self, entity: Entrepreneur, content_hash: str) -> None:
        await self._conn.execute(
            UPSERT_ENTREPRENEUR,
            entity.record,
            entity.name,
            entity.status,
            entity.farmer,
            entity.estate_manager,
            entity.registration,
            entity.terminated_info,
            entity.termination_cancel_info,
            content_hash,
        )
        await self._delete_children(entity.record)
        await self._insert_common_children(entity)

    async def _upsert_public_association(self, entity: PublicAssociation, content_hash: str) -> None:
        await self._conn.execute(
            UPSERT_PUBLIC_ASSOCIATION,
            entity.record,
            entity.edrpou,
            entity.name,
            entity.short_name,
            entity.type_subject,
            entity.type_branch,
            entity.status,
            entity.founding_document,
            entity.registration,
            entity.terminated_info,
            entity.termination_cancel_info,
            content_hash,
        )
        await self._delete_children(entity.record)
        await self._insert_association_children(entity)
        await self._insert_common_children(entity)


class PostgresEntityRepository:
    """
    PostgreSQL implementation of EntityRepository.

    Each batch runs on one pooled connection inside one transaction.
    """

    def __init__(self, pool: asyncpg.Pool):
        """
        Initialize repository with connection pool.

        Args:
            pool: asyncpg connection pool
        """
        self.pool = pool

    @asynccontextmanager
    async def batch(self, registry_type: RegistryType) -> AsyncIterator[PostgresBatchWriter]:
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                yield PostgresBatchWriter(conn, registry_type)

    async def count(self, registry_type: RegistryType) -> int:
        return await self.pool.fetchval(f"SELECT COUNT(*) FROM {registry_type.descriptor.table}")
