"""
Tests for gzip archiving of processed XML files.
"""

from __future__ import annotations

import gzip
from datetime import datetime
from pathlib import Path

from src.registry_sync.archive import archive_file, archive_name


def test_archive_name_embeds_timestamp(tmp_path: Path):
    name = archive_name(tmp_path / "UO_FULL_out.xml", datetime(2024, 5, 1, 3, 0, 0))
    assert name == tmp_path / "UO_FULL_out.xml.2024-05-01T03-00-00.gz"


def test_archive_file_round_trips_content(tmp_path: Path):
    source = tmp_path / "UO_FULL_out.xml"
    source.write_text("<DATA>ЄДРПОУ</DATA>", encoding="utf-8")

    target = archive_file(source, tmp_path / "archive", now=datetime(2024, 5, 1, 3, 0, 0))

    assert target.parent == tmp_path / "archive"
    assert target.name == "UO_FULL_out.xml.2024-05-01T03-00-00.gz"
    assert gzip.decompress(target.read_bytes()).decode("utf-8") == "<DATA>ЄДРПОУ</DATA>"
    assert source.exists()


def test_archive_file_defaults_to_source_directory(tmp_path: Path):
    source = tmp_path / "FOP.xml"
    source.write_text("<DATA/>")

    target = archive_file(source)

    assert target.parent == tmp_path


def test_repeated_runs_do_not_overwrite(tmp_path: Path):
    source = tmp_path / "FSU.xml"
    source.write_text("<DATA/>")

    first = archive_file(source, now=datetime(2024, 5, 1, 3, 0, 0))
    second = archive_file(source, now=datetime(2024, 5, 8, 3, 0, 0))

    assert first != second
    assert first.exists() and second.exists()


def test_same_timestamp_gets_numbered_suffix(tmp_path: Path):
    source = tmp_path / "UO_FULL_out.xml"
    now = datetime(2024, 5, 1, 3, 0, 0)
    dest = tmp_path / "archive"

    source.write_text("<DATA>first</DATA>", encoding="utf-8")
    first = archive_file(source, dest, now=now)
    source.write_text("<DATA>second</DATA>", encoding="utf-8")
    second = archive_file(source, dest, now=now)
    third = archive_file(source, dest, now=now)

    assert first.name == "UO_FULL_out.xml.2024-05-01T03-00-00.gz"
    assert second.name == "UO_FULL_out.xml.2024-05-01T03-00-00.1.gz"
    assert third.name == "UO_FULL_out.xml.2024-05-01T03-00-00.2.gz"
    assert gzip.decompress(first.read_bytes()) == b"<DATA>first</DATA>"
    assert gzip.decompress(second.read_bytes()) == b"<DATA>second</DATA>"
