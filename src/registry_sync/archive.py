"""
Source File Archiving

Gzips a processed XML file under a timestamped name so repeated runs never
overwrite an earlier archive.
"""

from __future__ import annotations

import gzip
import logging
import shutil
from datetime import datetime
from pathlib import Path
from typing import BinaryIO

logger = logging.getLogger(__name__)

TIMESTAMP_FORMAT = "%Y-%m-%dT%H-%M-%S"


def archive_name(source: Path, now: datetime | None = None) -> Path:
    """e.g. UO_FULL_out.xml -> UO_FULL_out.xml.2024-05-01T03-00-00.gz"""
    stamp = (now or datetime.now()).strftime(TIMESTAMP_FORMAT)
    return source.with_name(f"{source.name}.{stamp}.gz")


def _open_new(target: Path) -> tuple[Path, BinaryIO]:
    """Create ``target``, or ``<stem>.1.gz``, ``<stem>.2.gz``... if it is taken."""
    candidate = target
    n = 0
    while True:
        try:
            return candidate, open(candidate, "xb")
        except FileExistsError:
            n += 1
            candidate = target.with_name(f"{target.stem}.{n}{target.suffix}")


def archive_file(source: Path, dest_dir: Path | None = None, now: datetime | None = None) -> Path:
    """
    Compress ``source`` with gzip next to it (or into ``dest_dir``).

    An existing archive is never replaced: when two runs share a timestamp
    the later one gets a numeric suffix.

    Args:
        source: File to archive; it is left in place
        dest_dir: Directory for the archive (defaults to the source's directory)
        now: Timestamp to embed (defaults to the current time)

    Returns:
        Path of the written .gz file
    """
    target = archive_name(source, now)
    if dest_dir is not None:
        dest_dir.mkdir(parents=True, exist_ok=True)
        target = dest_dir / target.name

    target, raw = _open_new(target)
    with raw, open(source, "rb") as src, gzip.GzipFile(fileobj=raw, mode="wb") as dst:
        shutil.copyfileobj(src, dst, 1024 * 1024)

    size_mb = target.stat().st_size / (1024 * 1024)
    logger.info(f"Archived {source.name} -> {target} ({size_mb:.1f} MB)")
    return target
