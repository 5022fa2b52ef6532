"""
PostgreSQL Connection Pool Management

Provides async connection pooling using asyncpg.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import asyncpg

logger = logging.getLogger(__name__)

if TYPE_CHECKING:
    from src.registry_sync.config import RegistrySyncConfig

# Module-level pool for connection reuse
_pool: asyncpg.Pool | None = None


async def create_pool(
    postgres_url: str,
    min_size: int = 2,
    max_size: int = 15,
    command_timeout: int = 300,
) -> asyncpg.Pool:
    """
    Create the shared connection pool.

    Args:
        postgres_url: PostgreSQL connection URL
        min_size: Minimum pool connections
        max_size: Maximum pool connections
        command_timeout: Timeout for commands in seconds

    Returns:
        asyncpg connection pool
    """
    global _pool
    if _pool is not None:
        return _pool

    _pool = await asyncpg.create_pool(
        postgres_url,
        min_size=min_size,
        max_size=max_size,
        command_timeout=command_timeout,
    )
    logger.info(f"Database pool created (max_size={max_size})")
    return _pool


async def close_pool() -> None:
    """Close the connection pool."""
    global _pool
    if _pool is not None:
        await _pool.close()
        _pool = None


async def init_from_config(config: RegistrySyncConfig) -> asyncpg.Pool:
    """Create the pool sized for the configured worker count."""
    return await create_pool(
        config.database_url,
        min_size=min(2, config.pool_max_size),
        max_size=config.pool_max_size,
    )
