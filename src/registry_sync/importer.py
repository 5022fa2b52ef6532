"""
Batch Importer

Validates a batch of entities and upserts it through an EntityRepository.
In diff mode each entity's content hash is compared with the stored hash
and identical rows are left untouched.
"""

from __future__ import annotations

import hashlib
import json
import logging
from collections.abc import Sequence

from src.common.storage.protocols import EntityRepository
from src.registry_sync.errors import LoadError
from src.registry_sync.models import ImportStats, ParsedEntity, RegistryType
from src.registry_sync.validation import EntityValidator

logger = logging.getLogger(__name__)


def content_hash(entity: ParsedEntity) -> str:
    """SHA-256 over the canonical JSON form of the whole entity."""
    payload = json.dumps(entity.to_dict(), sort_keys=True, ensure_ascii=False, default=str)
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


class BatchImporter:
    """Imports entity batches with per-row isolation."""

    def __init__(
        self,
        repository: EntityRepository,
        diff_mode: bool = False,
        skip_invalid: bool = False,
        validator: EntityValidator | None = None,
    ):
        """
        Initialize importer.

        Args:
            repository: Entity storage
            diff_mode: Skip writes for entities whose stored hash is identical
            skip_invalid: Count invalid entities as skipped rather than errors
            validator: Validator to use (a fresh one by default)
        """
        self.repository = repository
        self.diff_mode = diff_mode
        self.skip_invalid = skip_invalid
        self.validator = validator or EntityValidator()

    async def import_batch(
        self,
        entities: Sequence[ParsedEntity],
        registry_type: RegistryType,
    ) -> ImportStats:
        """
        Validate and upsert one batch.

        Invalid entities and rows that fail to write are counted and never
        abort the batch.

        Args:
            entities: Normalized entities, all of ``registry_type``
            registry_type: Target registry

        Returns:
            Batch-level ImportStats

        Raises:
            LoadError: If the batch as a whole fails (e.g. the connection
                drops while the transaction commits)
        """
        stats = ImportStats()
        valid: list[ParsedEntity] = []
        for entity in entities:
            result = self.validator.validate(entity, registry_type)
            if not result.is_valid:
                if self.skip_invalid:
                    stats.skipped += 1
                else:
                    stats.errors += 1
                logger.debug(
                    f"Invalid {registry_type.value} entity {getattr(entity, 'record', None)}: "
                    f"{'; '.join(result.errors)}"
                )
                continue
            valid.append(entity)

        if not valid:
            return stats

        hashes = {entity.record: content_hash(entity) for entity in valid}

        try:
            async with self.repository.batch(registry_type) as writer:
                stored = await writer.get_content_hashes(list(hashes)) if self.diff_mode else {}

                for entity in valid:
                    entity_hash = hashes[entity.record]
                    if self.diff_mode and stored.get(entity.record) == entity_hash:
                        stats.unchanged += 1
                        continue
                    try:
                        await writer.upsert(entity, entity_hash)
                    except Exception as e:
                        stats.errors += 1
                        logger.warning(
                            f"Failed to import {registry_type.value} entity {entity.record}: {e}"
                        )
                    else:
                        stats.imported += 1
        except Exception as e:
            raise LoadError(
                f"{registry_type.value} batch of {len(valid)} entities failed: {e}",
                source=registry_type.value,
                rows_affected=len(valid),
            ) from e

        return stats
