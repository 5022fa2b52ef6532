"""
EDRPOU Registry Sync

Downloads the Ukrainian business registry dumps (UO, FOP, FSU), streams
the XML into typed entities and upserts them into PostgreSQL with a
bounded pool of concurrent batch imports.
"""

from src.registry_sync.config import RegistrySyncConfig
from src.registry_sync.errors import (
    DownloadError,
    ExtractionError,
    IngestionError,
    LoadError,
    MissingFileError,
    ParseError,
    TransformationError,
)
from src.registry_sync.importer import BatchImporter
from src.registry_sync.models import (
    Entrepreneur,
    ImportStats,
    LegalEntity,
    PublicAssociation,
    RegistryType,
)
from src.registry_sync.orchestrator import (
    RegistrySyncResult,
    SyncOptions,
    SyncOrchestrator,
    SyncState,
    SyncStatus,
    exit_code,
)
from src.registry_sync.pipeline import ImportPipeline

__all__ = [
    "BatchImporter",
    "DownloadError",
    "Entrepreneur",
    "ExtractionError",
    "ImportPipeline",
    "ImportStats",
    "IngestionError",
    "LegalEntity",
    "LoadError",
    "MissingFileError",
    "ParseError",
    "PublicAssociation",
    "RegistrySyncConfig",
    "RegistrySyncResult",
    "RegistryType",
    "SyncOptions",
    "SyncOrchestrator",
    "SyncState",
    "SyncStatus",
    "TransformationError",
    "exit_code",
]
