"""
Tests for BatchImporter: validation gating, per-row isolation and diff mode.
"""

from __future__ import annotations

from dataclasses import replace

import pytest

from registry_samples import make_entrepreneurs
from src.registry_sync.errors import LoadError
from src.registry_sync.importer import BatchImporter, content_hash
from src.registry_sync.models import LegalEntity, RegistryType
from src.storage.memory import InMemoryEntityRepository


@pytest.fixture
def repo() -> InMemoryEntityRepository:
    return InMemoryEntityRepository()


class TestContentHash:
    """Tests for content_hash."""

    def test_stable_for_equal_entities(self, legal_entity):
        assert content_hash(legal_entity) == content_hash(replace(legal_entity))

    def test_changes_with_any_field(self, legal_entity):
        assert content_hash(legal_entity) != content_hash(replace(legal_entity, status="припинено"))
        assert content_hash(legal_entity) != content_hash(replace(legal_entity, founders=()))

    def test_is_sha256_hex(self, legal_entity):
        digest = content_hash(legal_entity)
        assert len(digest) == 64
        int(digest, 16)


class TestBatchImporter:
    """Tests for import_batch."""

    @pytest.mark.asyncio
    async def test_imports_all_valid(self, repo):
        importer = BatchImporter(repo)
        stats = await importer.import_batch(make_entrepreneurs(5), RegistryType.FOP)

        assert stats.imported == 5
        assert stats.errors == 0
        assert await repo.count(RegistryType.FOP) == 5

    @pytest.mark.asyncio
    async def test_invalid_entities_count_as_errors(self, repo):
        entities = make_entrepreneurs(4)
        entities[1] = replace(entities[1], name=None)
        entities[3] = replace(entities[3], name="")

        stats = await BatchImporter(repo).import_batch(entities, RegistryType.FOP)

        assert stats.imported == 2
        assert stats.errors == 2
        assert repo.get(RegistryType.FOP, entities[1].record) is None

    @pytest.mark.asyncio
    async def test_skip_invalid_counts_as_skipped(self, repo):
        entities = make_entrepreneurs(3)
        entities[0] = replace(entities[0], name=None)

        stats = await BatchImporter(repo, skip_invalid=True).import_batch(entities, RegistryType.FOP)

        assert stats.imported == 2
        assert stats.skipped == 1
        assert stats.errors == 0

    @pytest.mark.asyncio
    async def test_failing_row_does_not_abort_batch(self):
        repo = InMemoryEntityRepository(failing_records={"FOP-2"})
        stats = await BatchImporter(repo).import_batch(make_entrepreneurs(3), RegistryType.FOP)

        assert stats.imported == 2
        assert stats.errors == 1
        assert repo.get(RegistryType.FOP, "FOP-1") is not None
        assert repo.get(RegistryType.FOP, "FOP-2") is None
        assert repo.get(RegistryType.FOP, "FOP-3") is not None

    @pytest.mark.asyncio
    async def test_batch_level_failure_raises_load_error(self):
        repo = InMemoryEntityRepository(fail_batches=True)
        with pytest.raises(LoadError) as exc_info:
            await BatchImporter(repo).import_batch(make_entrepreneurs(2), RegistryType.FOP)

        assert exc_info.value.rows_affected == 2
        assert exc_info.value.source == "FOP"
        assert isinstance(exc_info.value.__cause__, ConnectionError)

    @pytest.mark.asyncio
    async def test_all_invalid_never_opens_a_batch(self):
        repo = InMemoryEntityRepository(fail_batches=True)
        entities = [replace(e, name=None) for e in make_entrepreneurs(2)]

        stats = await BatchImporter(repo).import_batch(entities, RegistryType.FOP)

        assert stats.errors == 2

    @pytest.mark.asyncio
    async def test_wrong_registry_is_an_error(self, repo, legal_entity):
        stats = await BatchImporter(repo).import_batch([legal_entity], RegistryType.FSU)
        assert stats.errors == 1
        assert await repo.count(RegistryType.FSU) == 0

    @pytest.mark.asyncio
    async def test_stores_content_hash_without_diff_mode(self, repo, legal_entity):
        await BatchImporter(repo).import_batch([legal_entity], RegistryType.UO)
        stored = repo.tables[RegistryType.UO]["1001"]
        assert stored.content_hash == content_hash(legal_entity)


class TestDiffMode:
    """Hash-based change detection."""

    @pytest.mark.asyncio
    async def test_second_identical_import_is_unchanged(self, repo):
        importer = BatchImporter(repo, diff_mode=True)
        entities = make_entrepreneurs(4)

        first = await importer.import_batch(entities, RegistryType.FOP)
        writes_after_first = repo.write_count
        second = await importer.import_batch(entities, RegistryType.FOP)

        assert first.imported == 4
        assert first.unchanged == 0
        assert second.imported == 0
        assert second.unchanged == 4
        assert repo.write_count == writes_after_first

    @pytest.mark.asyncio
    async def test_changed_entity_is_rewritten(self, repo):
        importer = BatchImporter(repo, diff_mode=True)
        entities = make_entrepreneurs(3)
        await importer.import_batch(entities, RegistryType.FOP)

        entities[2] = replace(entities[2], status="припинено")
        stats = await importer.import_batch(entities, RegistryType.FOP)

        assert stats.unchanged == 2
        assert stats.imported == 1
        assert repo.get(RegistryType.FOP, "FOP-3").status == "припинено"

    @pytest.mark.asyncio
    async def test_without_diff_mode_everything_is_rewritten(self, repo):
        importer = BatchImporter(repo)
        entities = make_entrepreneurs(2)
        await importer.import_batch(entities, RegistryType.FOP)

        stats = await importer.import_batch(entities, RegistryType.FOP)

        assert stats.imported == 2
        assert stats.unchanged == 0

    @pytest.mark.asyncio
    async def test_nested_changes_are_detected(self, repo):
        importer = BatchImporter(repo, diff_mode=True)
        entity = LegalEntity(record="9", name="ТОВ", edrpou="12345678", founders=("А",))
        await importer.import_batch([entity], RegistryType.UO)

        stats = await importer.import_batch([replace(entity, founders=("А", "Б"))], RegistryType.UO)

        assert stats.imported == 1
