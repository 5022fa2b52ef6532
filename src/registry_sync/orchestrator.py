"""
Sync Orchestrator

Drives each registry type through the sync lifecycle:

    PENDING -> DOWNLOADING -> EXTRACTING -> LOCATING -> IMPORTING -> VERIFYING
            -> LOGGING -> ARCHIVING -> CLEANING_UP -> DONE

or FAILED from any state. Registry types run one after another and a failure
in one type never stops the next. An import_log row is written only once
importing begins, so download/extract/locate failures leave no audit trace.
"""

from __future__ import annotations

import asyncio
import functools
import logging
import shutil
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from pathlib import Path

from src.common.storage.protocols import EntityRepository, ImportAuditRepository
from src.registry_sync.archive import archive_file
from src.registry_sync.config import RegistrySyncConfig
from src.registry_sync.downloader import Downloader, download_retry_config
from src.registry_sync.errors import MissingFileError
from src.registry_sync.extractor import ArchiveExtractor, default_strategies, locate_xml
from src.registry_sync.importer import BatchImporter
from src.registry_sync.models import ImportStats, ImportStatus, RegistryType
from src.registry_sync.pipeline import ImportPipeline
from src.registry_sync.progress import ProgressReporter
from src.registry_sync.telemetry import SpanAttributes, record_ingestion_metric, trace_ingestion_operation
from src.registry_sync.validation import EntityValidator

logger = logging.getLogger(__name__)


class SyncState(str, Enum):
    PENDING = "pending"
    DOWNLOADING = "downloading"
    EXTRACTING = "extracting"
    LOCATING = "locating"
    IMPORTING = "importing"
    VERIFYING = "verifying"
    LOGGING = "logging"
    ARCHIVING = "archiving"
    CLEANING_UP = "cleaning_up"
    DONE = "done"
    FAILED = "failed"


class SyncStatus(str, Enum):
    """Final outcome of one registry type."""

    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"
    DRY_RUN = "dry-run"


@dataclass
class SyncOptions:
    """Run-wide switches, normally taken from the CLI."""

    registry_types: list[RegistryType] = field(default_factory=lambda: list(RegistryType))
    skip_download: bool = False
    keep_files: bool = False
    dry_run: bool = False
    diff: bool = False
    skip_invalid: bool | None = None
    due_only: bool = False


@dataclass
class RegistrySyncResult:
    registry_type: RegistryType
    status: SyncStatus | None = None
    stats: ImportStats | None = None
    states: list[SyncState] = field(default_factory=list)
    error: str | None = None
    parsed: int = 0
    db_count: int | None = None
    log_id: int | None = None
    archive_path: Path | None = None

    @property
    def state(self) -> SyncState | None:
        return self.states[-1] if self.states else None

    def enter(self, state: SyncState) -> None:
        self.states.append(state)
        logger.debug(f"{self.registry_type.value} -> {state.value}")

    def summary_line(self) -> str:
        """e.g. ``UO: completed (imported: 2, errors: 1, skipped: 0, unchanged: 0)``"""
        line = f"{self.registry_type.value}: {self.status.value if self.status else 'unknown'}"
        if self.stats is not None:
            line += (
                f" (imported: {self.stats.imported}, errors: {self.stats.errors}, "
                f"skipped: {self.stats.skipped}, unchanged: {self.stats.unchanged})"
            )
        if self.error:
            line += f" - {self.error}"
        return line


def exit_code(results: list[RegistrySyncResult]) -> int:
    """0 when no selected registry type failed, 1 otherwise."""
    return 1 if any(r.status is SyncStatus.FAILED for r in results) else 0


class SyncOrchestrator:
    """Runs the sync lifecycle for each selected registry type."""

    def __init__(
        self,
        config: RegistrySyncConfig,
        entity_repo: EntityRepository,
        audit_repo: ImportAuditRepository,
        downloader: Downloader | None = None,
        extractor: ArchiveExtractor | None = None,
        today: Callable[[], date] = date.today,
    ):
        """
        Initialize orchestrator.

        Args:
            config: Paths, URLs and pipeline sizing
            entity_repo: Storage for registry entities
            audit_repo: Storage for import_log and registry_metadata
            downloader: Archive downloader (default built from config)
            extractor: Archive extractor (default: unzip then zipfile)
            today: Clock used for the --due-only check
        """
        self.config = config
        self.entity_repo = entity_repo
        self.audit_repo = audit_repo
        self.downloader = downloader or Downloader(
            retry_config=download_retry_config(
                config.download_max_attempts, config.download_backoff_base_seconds
            ),
            chunk_size=config.chunk_size,
            timeout=config.download_timeout_seconds,
        )
        self.extractor = extractor or ArchiveExtractor(
            default_strategies(timeout=config.extract_timeout_seconds)
        )
        self._today = today

    async def run(self, options: SyncOptions) -> list[RegistrySyncResult]:
        """
        Sync every selected registry type, sequentially.

        Returns:
            One result per registry type, in the order they ran
        """
        config = self.config
        logger.info(f"EDRPOU sync: {', '.join(t.value for t in options.registry_types)}")
        logger.info(f"Data dir: {config.data_dir}")
        logger.info(f"Batch size: {config.batch_size}, workers: {config.workers}")
        if options.diff:
            logger.info("Mode: diff (hash-based change detection)")
        if options.dry_run:
            logger.info("Mode: DRY RUN - no downloads, file changes or database writes")
        if options.skip_download:
            logger.info("Skipping downloads - using existing archives")

        if not options.dry_run:
            config.ensure_data_dir()

        results = []
        for registry_type in options.registry_types:
            logger.info("=" * 60)
            logger.info(f"=== {registry_type.value} ({registry_type.descriptor.title}) ===")
            logger.info("=" * 60)
            results.append(await self.sync_registry(registry_type, options))

        logger.info("=" * 60)
        logger.info("SYNC SUMMARY")
        logger.info("=" * 60)
        for result in results:
            log = logger.error if result.status is SyncStatus.FAILED else logger.info
            log(f"  {result.summary_line()}")
        return results

    async def sync_registry(
        self,
        registry_type: RegistryType,
        options: SyncOptions,
    ) -> RegistrySyncResult:
        """Run one registry type to DONE or FAILED. Never raises for sync failures."""
        result = RegistrySyncResult(registry_type=registry_type)
        result.enter(SyncState.PENDING)

        try:
            if options.due_only and not await self._is_due(registry_type):
                result.status = SyncStatus.SKIPPED
                result.enter(SyncState.DONE)
                return result
            xml_path = await self._prepare_source(registry_type, options, result)
        except Exception as e:
            return self._fail(result, e)

        if options.dry_run:
            return self._plan_remaining(registry_type, options, result)

        return await self._import_and_finish(registry_type, xml_path, options, result)

    async def _is_due(self, registry_type: RegistryType) -> bool:
        metadata = await self.audit_repo.get_metadata(registry_type.descriptor.registry_name)
        if metadata is None or metadata.last_update_date is None:
            return True
        age = (self._today() - metadata.last_update_date).days
        if age < self.config.refresh_interval_days:
            logger.info(
                f"{registry_type.value} updated {age} day(s) ago "
                f"(interval {self.config.refresh_interval_days}), not due"
            )
            return False
        return True

    async def _prepare_source(
        self,
        registry_type: RegistryType,
        options: SyncOptions,
        result: RegistrySyncResult,
    ) -> Path | None:
        """DOWNLOADING, EXTRACTING and LOCATING. Returns the XML path (None in dry-run)."""
        config = self.config
        descriptor = registry_type.descriptor
        zip_path = config.archive_path(registry_type)
        extract_dir = config.extract_dir(registry_type)
        url = config.url_for(registry_type)

        result.enter(SyncState.DOWNLOADING)
        if options.skip_download:
            logger.info(f"Skipping download, using {zip_path}")
            if not options.dry_run and not zip_path.exists():
                raise MissingFileError(f"Archive not found: {zip_path}", source=registry_type.value)
        elif options.dry_run:
            logger.info(f"[DRY RUN] Would download {url} -> {zip_path}")
        else:
            download = await self.downloader.download(
                url,
                zip_path,
                on_progress=functools.partial(self._log_download_progress, registry_type),
                source=registry_type.value,
            )
            mode = "resumed" if download.resumed else "fresh"
            logger.info(
                f"Downloaded {download.size_bytes / (1024 * 1024):.1f} MB "
                f"({mode}, {download.attempts} attempt(s))"
            )

        result.enter(SyncState.EXTRACTING)
        if options.dry_run:
            logger.info(f"[DRY RUN] Would extract {zip_path} -> {extract_dir}")
            result.enter(SyncState.LOCATING)
            logger.info(f"[DRY RUN] Would look for {' or '.join(descriptor.xml_candidates)}")
            return None

        with trace_ingestion_operation("extract", {SpanAttributes.REGISTRY: registry_type.value}):
            loop = asyncio.get_running_loop()
            files = await loop.run_in_executor(
                None,
                functools.partial(self.extractor.extract, zip_path, extract_dir, registry_type.value),
            )

        result.enter(SyncState.LOCATING)
        xml_path = locate_xml(
            files, descriptor.xml_candidates, source=registry_type.value, search_dir=extract_dir
        )
        logger.info(f"Found XML: {xml_path.name} ({xml_path.stat().st_size / (1024 * 1024):.1f} MB)")
        return xml_path

    def _plan_remaining(
        self,
        registry_type: RegistryType,
        options: SyncOptions,
        result: RegistrySyncResult,
    ) -> RegistrySyncResult:
        """Log the steps a real run would take after locating the XML."""
        descriptor = registry_type.descriptor
        config = self.config

        result.enter(SyncState.IMPORTING)
        diff_note = ", diff mode" if options.diff else ""
        logger.info(
            f"[DRY RUN] Would import into {descriptor.table} "
            f"(batch size {config.batch_size}, {config.workers} workers{diff_note})"
        )
        result.enter(SyncState.VERIFYING)
        logger.info(f"[DRY RUN] Would count rows in {descriptor.table}")
        result.enter(SyncState.LOGGING)
        logger.info(f"[DRY RUN] Would record import_log and registry_metadata for {descriptor.registry_name}")
        result.enter(SyncState.ARCHIVING)
        logger.info(f"[DRY RUN] Would gzip the XML into {config.archive_dir}")
        result.enter(SyncState.CLEANING_UP)
        if options.keep_files:
            logger.info("[DRY RUN] Would keep downloaded and extracted files")
        else:
            logger.info(
                f"[DRY RUN] Would remove {config.extract_dir(registry_type)} "
                f"and {config.archive_path(registry_type)}"
            )
        result.status = SyncStatus.DRY_RUN
        result.enter(SyncState.DONE)
        return result

    async def _import_and_finish(
        self,
        registry_type: RegistryType,
        xml_path: Path,
        options: SyncOptions,
        result: RegistrySyncResult,
    ) -> RegistrySyncResult:
        """IMPORTING through CLEANING_UP for a located XML file."""
        descriptor = registry_type.descriptor

        result.enter(SyncState.IMPORTING)
        try:
            log_id = await self.audit_repo.start_import(descriptor.registry_name, xml_path.name)
        except Exception as e:
            return self._fail(result, e)
        result.log_id = log_id

        try:
            await self._import(registry_type, xml_path, options, result)
            result.enter(SyncState.VERIFYING)
            result.db_count = await self._verify(registry_type, result.stats)
        except Exception as e:
            failed_in = result.state
            result.enter(SyncState.LOGGING)
            stats = result.stats or ImportStats()
            logger.warning(
                f"{registry_type.value} stopped after importing {stats.imported} "
                f"with {stats.errors} errors"
            )
            try:
                await self.audit_repo.finish_import(
                    log_id,
                    ImportStatus.FAILED,
                    stats.imported,
                    stats.errors,
                    str(e),
                )
            except Exception as log_error:
                logger.error(f"Could not mark import_log {log_id} as failed: {log_error}")
            return self._fail(result, e, failed_in)

        try:
            result.enter(SyncState.LOGGING)
            await self.audit_repo.finish_import(
                log_id,
                ImportStatus.COMPLETED,
                result.stats.imported,
                result.stats.errors,
            )
            await self.audit_repo.upsert_metadata(descriptor.registry_name, result.db_count)

            result.enter(SyncState.ARCHIVING)
            loop = asyncio.get_running_loop()
            result.archive_path = await loop.run_in_executor(
                None, archive_file, xml_path, self.config.archive_dir
            )

            result.enter(SyncState.CLEANING_UP)
            self._cleanup(registry_type, options)
        except Exception as e:
            return self._fail(result, e)

        result.status = SyncStatus.COMPLETED
        result.enter(SyncState.DONE)
        return result

    async def _import(
        self,
        registry_type: RegistryType,
        xml_path: Path,
        options: SyncOptions,
        result: RegistrySyncResult,
    ) -> None:
        config = self.config
        skip_invalid = config.skip_invalid if options.skip_invalid is None else options.skip_invalid
        validator = EntityValidator()
        importer = BatchImporter(
            self.entity_repo,
            diff_mode=options.diff,
            skip_invalid=skip_invalid,
            validator=validator,
        )
        pipeline = ImportPipeline(importer, batch_size=config.batch_size, worker_count=config.workers)
        progress = ProgressReporter(
            description=f"{registry_type.value} import",
            estimated_total=registry_type.descriptor.estimated_count,
            interval=config.progress_interval_seconds,
        )

        with trace_ingestion_operation(
            "import",
            {SpanAttributes.REGISTRY: registry_type.value, SpanAttributes.FILE_PATH: str(xml_path)},
        ) as span:
            progress.start()
            try:
                outcome = await pipeline.run(xml_path, registry_type, progress)
            finally:
                await progress.stop()
                if pipeline.last_result is not None:
                    result.parsed = pipeline.last_result.parsed
                    result.stats = pipeline.last_result.stats

            span.set_attribute(SpanAttributes.RECORDS_PARSED, outcome.parsed)
            span.set_attribute(SpanAttributes.RECORDS_IMPORTED, outcome.stats.imported)
            span.set_attribute(SpanAttributes.RECORDS_UNCHANGED, outcome.stats.unchanged)
            span.set_attribute(SpanAttributes.RECORDS_SKIPPED, outcome.stats.skipped)
            span.set_attribute(SpanAttributes.RECORDS_FAILED, outcome.stats.errors)

        attributes = {"registry": registry_type.value}
        record_ingestion_metric("records_imported_total", outcome.stats.imported, attributes)
        record_ingestion_metric("records_failed_total", outcome.stats.errors, attributes)

        stats = outcome.stats
        logger.info(
            f"Parsed: {outcome.parsed}, imported: {stats.imported}, errors: {stats.errors}, "
            f"skipped: {stats.skipped}, unchanged: {stats.unchanged}"
        )
        summary = validator.summary
        logger.info(
            f"Validation: {summary.valid} valid, {summary.invalid} invalid, "
            f"{summary.warnings} with warnings"
        )

    async def _verify(self, registry_type: RegistryType, stats: ImportStats | None) -> int:
        """Row-count check, logged for observability and never enforced."""
        descriptor = registry_type.descriptor
        with trace_ingestion_operation(
            "verify", {SpanAttributes.REGISTRY: registry_type.value, SpanAttributes.DB_TABLE: descriptor.table}
        ) as span:
            count = await self.entity_repo.count(registry_type)
            span.set_attribute(SpanAttributes.DB_ROW_COUNT, count)

        previous = await self.audit_repo.get_metadata(descriptor.registry_name)
        previous_count = previous.record_count if previous else "n/a"
        logger.info(
            f"Verification: {count} records in {descriptor.table} "
            f"(previous: {previous_count}, expected ~{descriptor.estimated_count})"
        )
        if previous and count < previous.record_count:
            logger.warning(
                f"{descriptor.table} row count dropped from {previous.record_count} to {count}"
            )
        if stats and stats.imported and count == 0:
            logger.warning(f"{descriptor.table} is empty after importing {stats.imported} records")
        return count

    def _cleanup(self, registry_type: RegistryType, options: SyncOptions) -> None:
        if options.keep_files:
            logger.info("Keeping downloaded and extracted files")
            return
        extract_dir = self.config.extract_dir(registry_type)
        zip_path = self.config.archive_path(registry_type)
        logger.info(f"Cleaning up {extract_dir} and {zip_path}")
        if extract_dir.exists():
            shutil.rmtree(extract_dir)
        zip_path.unlink(missing_ok=True)

    def _fail(
        self,
        result: RegistrySyncResult,
        error: Exception,
        failed_in: SyncState | None = None,
    ) -> RegistrySyncResult:
        failed_in = failed_in or result.state
        state_name = failed_in.value if failed_in else "unknown"
        logger.error(f"Failed to sync {result.registry_type.value} during {state_name}: {error}")
        result.status = SyncStatus.FAILED
        result.error = str(error) or type(error).__name__
        result.enter(SyncState.FAILED)
        return result

    def _log_download_progress(self, registry_type: RegistryType, downloaded: int, total: int | None) -> None:
        mb = downloaded // (1024 * 1024)
        if total:
            logger.info(f"{registry_type.value} downloaded: {mb} MB / {total // (1024 * 1024)} MB")
        else:
            logger.info(f"{registry_type.value} downloaded: {mb} MB")
