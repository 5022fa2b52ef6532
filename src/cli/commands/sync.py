"""
Registry sync CLI commands.

Usage:
    # Sync all registries
    python -m src.cli.main sync

    # Only legal entities and entrepreneurs, skipping unchanged rows
    python -m src.cli.main sync --only UO,FOP --diff

    # Show what would happen without touching anything
    python -m src.cli.main sync --dry-run

    # Show last imports and registry freshness
    python -m src.cli.main status
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Annotated

import typer
from rich.console import Console
from rich.table import Table

from src.common.storage.protocols import EntityRepository, ImportAuditRepository
from src.registry_sync.config import RegistrySyncConfig
from src.registry_sync.models import RegistryType
from src.registry_sync.orchestrator import (
    RegistrySyncResult,
    SyncOptions,
    SyncOrchestrator,
    SyncStatus,
    exit_code,
)

logger = logging.getLogger(__name__)

console = Console()

_STATUS_STYLES = {
    SyncStatus.COMPLETED: "green",
    SyncStatus.FAILED: "red",
    SyncStatus.SKIPPED: "yellow",
    SyncStatus.DRY_RUN: "cyan",
}


async def create_repositories(
    config: RegistrySyncConfig,
    dry_run: bool = False,
) -> tuple[EntityRepository, ImportAuditRepository, Callable[[], Awaitable[None]]]:
    """
    Build repositories for a run.

    Dry runs never connect to the database; they get throwaway in-memory
    repositories that the orchestrator does not write to.

    Returns:
        (entity repository, audit repository, async close callback)
    """
    if dry_run:
        from src.storage.memory import InMemoryEntityRepository, InMemoryImportAuditRepository

        async def _noop() -> None:
            return None

        return InMemoryEntityRepository(), InMemoryImportAuditRepository(), _noop

    from src.storage.postgres import (
        PostgresEntityRepository,
        PostgresImportAuditRepository,
        close_pool,
        init_from_config,
    )

    pool = await init_from_config(config)
    return PostgresEntityRepository(pool), PostgresImportAuditRepository(pool), close_pool


def sync_command(
    only: Annotated[
        str | None,
        typer.Option("--only", help="Comma-separated registry types to sync (UO,FOP,FSU)"),
    ] = None,
    skip_download: Annotated[
        bool,
        typer.Option("--skip-download", help="Reuse the archive already in the data directory"),
    ] = False,
    keep_files: Annotated[
        bool,
        typer.Option("--keep-files", help="Keep downloaded and extracted files after import"),
    ] = False,
    dry_run: Annotated[
        bool,
        typer.Option("--dry-run", help="Log every step without downloading or writing anything"),
    ] = False,
    diff: Annotated[
        bool,
        typer.Option("--diff", help="Skip rows whose content hash is unchanged"),
    ] = False,
    skip_invalid: Annotated[
        bool | None,
        typer.Option(
            "--skip-invalid/--count-invalid",
            help="Count invalid entities as skipped instead of errors",
        ),
    ] = None,
    due_only: Annotated[
        bool,
        typer.Option("--due-only", help="Only sync registries older than the refresh interval"),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", help="Enable debug logging"),
    ] = False,
) -> None:
    """
    Download, extract and import EDRPOU registry dumps.

    Exits with code 1 if any selected registry failed.
    """
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    try:
        registry_types = RegistryType.parse_list(only)
    except ValueError as e:
        raise typer.BadParameter(str(e), param_hint="--only") from e

    options = SyncOptions(
        registry_types=registry_types,
        skip_download=skip_download,
        keep_files=keep_files,
        dry_run=dry_run,
        diff=diff,
        skip_invalid=skip_invalid,
        due_only=due_only,
    )
    results = asyncio.run(_sync_async(RegistrySyncConfig(), options))
    _print_summary(results)
    raise typer.Exit(exit_code(results))


async def _sync_async(config: RegistrySyncConfig, options: SyncOptions) -> list[RegistrySyncResult]:
    """Async implementation of the sync command."""
    entity_repo, audit_repo, close = await create_repositories(config, dry_run=options.dry_run)
    try:
        orchestrator = SyncOrchestrator(config, entity_repo, audit_repo)
        return await orchestrator.run(options)
    finally:
        await close()


def _print_summary(results: list[RegistrySyncResult]) -> None:
    console.print()
    table = Table(title="Sync Summary")
    table.add_column("Registry", style="cyan")
    table.add_column("Status")
    table.add_column("Parsed", justify="right")
    table.add_column("Imported", justify="right")
    table.add_column("Unchanged", justify="right")
    table.add_column("Skipped", justify="right")
    table.add_column("Errors", justify="right")
    table.add_column("Rows", justify="right")
    table.add_column("Error")

    for result in results:
        stats = result.stats
        style = _STATUS_STYLES.get(result.status, "white")
        status = result.status.value if result.status else "unknown"
        table.add_row(
            result.registry_type.value,
            f"[{style}]{status}[/{style}]",
            str(result.parsed) if stats else "-",
            str(stats.imported) if stats else "-",
            str(stats.unchanged) if stats else "-",
            str(stats.skipped) if stats else "-",
            str(stats.errors) if stats else "-",
            str(result.db_count) if result.db_count is not None else "-",
            result.error or "",
        )

    console.print(table)


def status_command(
    limit: Annotated[
        int,
        typer.Option("--limit", "-n", help="Number of import_log rows to show"),
    ] = 10,
) -> None:
    """Show registry freshness and recent imports."""
    try:
        asyncio.run(_status_async(RegistrySyncConfig(), limit))
    except Exception as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e


async def _status_async(config: RegistrySyncConfig, limit: int) -> None:
    """Async implementation of the status command."""
    _, audit_repo, close = await create_repositories(config)
    try:
        metadata = await audit_repo.list_metadata()
        imports = await audit_repo.recent_imports(limit)
    finally:
        await close()

    table = Table(title="Registry Metadata")
    table.add_column("Registry", style="cyan")
    table.add_column("Records", justify="right")
    table.add_column("Last Update")
    for entry in metadata:
        table.add_row(entry.registry_name, f"{entry.record_count:,}", str(entry.last_update_date))
    console.print(table)

    table = Table(title="Recent Imports")
    table.add_column("ID", justify="right")
    table.add_column("Registry", style="cyan")
    table.add_column("File")
    table.add_column("Status")
    table.add_column("Started")
    table.add_column("Imported", justify="right")
    table.add_column("Failed", justify="right")
    table.add_column("Error")
    for entry in imports:
        table.add_row(
            str(entry.id),
            entry.registry_name,
            entry.file_name,
            entry.status.value,
            entry.started_at.strftime("%Y-%m-%d %H:%M") if entry.started_at else "-",
            str(entry.records_imported),
            str(entry.records_failed),
            (entry.error_message or "")[:60],
        )
    console.print(table)
