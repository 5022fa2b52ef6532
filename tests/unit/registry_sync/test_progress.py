"""
Tests for ProgressReporter.
"""

from __future__ import annotations

import asyncio

import pytest

from src.registry_sync.models import ImportStats
from src.registry_sync.progress import ProgressReporter


class TestProgressReporter:
    """Tests for ProgressReporter."""

    def test_add_stats(self):
        progress = ProgressReporter(description="UO import", estimated_total=10)
        progress.add_stats(ImportStats(imported=3, errors=1, skipped=2, unchanged=4))
        progress.add_stats(ImportStats(imported=1))

        assert progress.imported == 4
        assert progress.errors == 1
        assert progress.skipped == 2
        assert progress.unchanged == 4

    def test_percent_is_capped(self):
        progress = ProgressReporter(description="FSU import", estimated_total=10)
        progress.add_parsed(5)
        assert progress.percent_complete == 50.0

        progress.add_parsed(20)
        assert progress.percent_complete == 100.0

    def test_unknown_total(self):
        progress = ProgressReporter(description="x", estimated_total=0)
        progress.add_parsed()
        assert progress.percent_complete == 0.0

    def test_format_duration(self):
        progress = ProgressReporter(description="x", estimated_total=1)
        assert progress._format_duration(42) == "42s"
        assert progress._format_duration(90) == "1.5m"
        assert progress._format_duration(5400) == "1.5h"

    @pytest.mark.asyncio
    async def test_periodic_reports(self, caplog):
        progress = ProgressReporter(description="FOP import", estimated_total=100, interval=0.01)

        with caplog.at_level("INFO"):
            progress.start()
            progress.add_parsed(7)
            await asyncio.sleep(0.05)
            summary = await progress.stop()

        assert "FOP import: parsed 7" in caplog.text
        assert summary["parsed"] == 7
        assert "FOP import complete" in caplog.text

    @pytest.mark.asyncio
    async def test_stop_without_start(self):
        progress = ProgressReporter(description="x", estimated_total=1)
        summary = await progress.stop()
        assert summary["imported"] == 0
