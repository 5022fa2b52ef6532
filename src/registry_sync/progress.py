"""
Progress Tracking for Registry Imports

Accumulates parse/import counters and logs them on a timer with an
advisory completion estimate based on the registry's expected size.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field

from src.registry_sync.models import ImportStats

logger = logging.getLogger(__name__)


@dataclass
class ProgressReporter:
    """Counters for one registry-type import, reported every ``interval`` seconds."""

    description: str
    estimated_total: int
    interval: float = 30.0

    # Counters
    parsed: int = 0
    imported: int = 0
    errors: int = 0
    skipped: int = 0
    unchanged: int = 0

    # Internal state
    started_at: float = field(default_factory=time.time)
    _task: asyncio.Task | None = field(default=None, init=False, repr=False)

    def add_parsed(self, count: int = 1) -> None:
        self.parsed += count

    def add_imported(self, count: int) -> None:
        self.imported += count

    def add_errors(self, count: int) -> None:
        self.errors += count

    def add_skipped(self, count: int) -> None:
        self.skipped += count

    def add_unchanged(self, count: int) -> None:
        self.unchanged += count

    def add_stats(self, stats: ImportStats) -> None:
        """Apply one batch's stats."""
        self.add_imported(stats.imported)
        self.add_errors(stats.errors)
        self.add_skipped(stats.skipped)
        self.add_unchanged(stats.unchanged)

    def start(self) -> None:
        """Start the periodic reporter. Must be called from a running event loop."""
        self.started_at = time.time()
        if self._task is None:
            self._task = asyncio.create_task(self._run())

    async def stop(self) -> dict:
        """
        Stop periodic reporting and log a final line.

        Returns:
            Summary statistics
        """
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        elapsed = self.elapsed_seconds
        summary = {
            "parsed": self.parsed,
            "imported": self.imported,
            "errors": self.errors,
            "skipped": self.skipped,
            "unchanged": self.unchanged,
            "elapsed_seconds": elapsed,
            "rate_per_second": self.rate_per_second,
        }
        logger.info(
            f"{self.description} complete: {self.parsed} parsed, {self.imported} imported, "
            f"{self.unchanged} unchanged, {self.skipped} skipped, {self.errors} errors "
            f"in {self._format_duration(elapsed)}"
        )
        return summary

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            self.report()

    def report(self) -> None:
        """Log the current counters."""
        logger.info(
            f"{self.description}: parsed {self.parsed} "
            f"(~{self.percent_complete:.1f}% of ~{self.estimated_total}) | "
            f"imported {self.imported} | unchanged {self.unchanged} | skipped {self.skipped} | "
            f"errors {self.errors} | {self.rate_per_second:.0f}/sec | "
            f"elapsed {self._format_duration(self.elapsed_seconds)}"
        )

    def _format_duration(self, seconds: float) -> str:
        """Format duration in human-readable format."""
        if seconds < 60:
            return f"{seconds:.0f}s"
        elif seconds < 3600:
            minutes = seconds / 60
            return f"{minutes:.1f}m"
        else:
            hours = seconds / 3600
            return f"{hours:.1f}h"

    @property
    def percent_complete(self) -> float:
        """Advisory percentage; capped at 100 since the total is only an estimate."""
        if self.estimated_total <= 0:
            return 0.0
        return min(self.parsed / self.estimated_total * 100, 100.0)

    @property
    def elapsed_seconds(self) -> float:
        return time.time() - self.started_at

    @property
    def rate_per_second(self) -> float:
        elapsed = self.elapsed_seconds
        return self.parsed / elapsed if elapsed > 0 else 0
