"""
Sync Telemetry

OpenTelemetry spans and metrics for the registry sync pipeline. Uses the
OpenTelemetry API only; without a configured SDK every call is a no-op.
"""

from __future__ import annotations

from collections.abc import Generator
from contextlib import contextmanager
from typing import Any

from opentelemetry import metrics, trace
from opentelemetry.trace import Span, Status, StatusCode

_tracer = trace.get_tracer("registry_sync")
_meter = metrics.get_meter("registry_sync")

_counters: dict[str, Any] = {}
_histograms: dict[str, Any] = {}


@contextmanager
def trace_ingestion_operation(
    name: str,
    attributes: dict[str, Any] | None = None,
) -> Generator[Span, None, None]:
    """
    Context manager for tracing a sync step.

    Args:
        name: Span name (e.g., "download", "import")
        attributes: Initial span attributes

    Example:
        with trace_ingestion_operation("download", {SpanAttributes.REGISTRY: "UO"}) as span:
            result = await downloader.download(url, path)
            span.set_attribute(SpanAttributes.FILE_SIZE_BYTES, result.size_bytes)
    """
    with _tracer.start_as_current_span(f"registry_sync.{name}") as span:
        if attributes:
            span.set_attributes(attributes)
        try:
            yield span
        except Exception as e:
            span.record_exception(e)
            span.set_status(Status(StatusCode.ERROR, str(e)))
            raise


def record_ingestion_metric(
    name: str,
    value: int | float,
    attributes: dict[str, Any] | None = None,
) -> None:
    """
    Record a sync metric.

    Names ending in ``_total`` or ``_count`` are counters, anything else
    is a histogram.
    """
    if name.endswith("_total") or name.endswith("_count"):
        if name not in _counters:
            _counters[name] = _meter.create_counter(f"registry_sync.{name}")
        _counters[name].add(int(value), attributes or {})
    else:
        if name not in _histograms:
            _histograms[name] = _meter.create_histogram(f"registry_sync.{name}")
        _histograms[name].record(value, attributes or {})


class SpanAttributes:
    """Standard attribute names for sync spans."""

    REGISTRY = "registry.type"
    SOURCE_URL = "registry.source_url"

    FILE_PATH = "file.path"
    FILE_SIZE_BYTES = "file.size_bytes"

    DB_TABLE = "db.table"
    DB_ROW_COUNT = "db.row_count"

    RECORDS_PARSED = "sync.records_parsed"
    RECORDS_IMPORTED = "sync.records_imported"
    RECORDS_UNCHANGED = "sync.records_unchanged"
    RECORDS_SKIPPED = "sync.records_skipped"
    RECORDS_FAILED = "sync.records_failed"

    DOWNLOAD_RESUMED = "download.resumed"
    DOWNLOAD_ATTEMPTS = "download.attempts"
