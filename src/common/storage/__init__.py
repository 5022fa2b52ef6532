"""
Storage Abstractions

Repository protocols shared by the PostgreSQL and in-memory backends.
"""

from src.common.storage.protocols import (
    EntityBatchWriter,
    EntityRepository,
    ImportAuditRepository,
)

__all__ = [
    "EntityBatchWriter",
    "EntityRepository",
    "ImportAuditRepository",
]
