"""
In-Memory Storage Backend

Simple in-memory implementation for unit tests and dry runs.
No external dependencies required - perfect for fast, isolated tests.
"""

from src.storage.memory.repositories import (
    InMemoryEntityRepository,
    InMemoryImportAuditRepository,
)

__all__ = [
    "InMemoryEntityRepository",
    "InMemoryImportAuditRepository",
]
