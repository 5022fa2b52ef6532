"""
PostgreSQL Storage Backend

Production implementation of the registry repositories using asyncpg.
"""

from src.storage.postgres.audit_repo import PostgresImportAuditRepository
from src.storage.postgres.client import close_pool, create_pool, init_from_config
from src.storage.postgres.entity_repo import PostgresEntityRepository

__all__ = [
    "create_pool",
    "close_pool",
    "init_from_config",
    "PostgresEntityRepository",
    "PostgresImportAuditRepository",
]
