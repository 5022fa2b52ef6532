"""
Archive Extraction

Unpacks a registry archive with an ordered list of strategies: the system
``unzip`` utility first (fastest on multi-gigabyte archives), then Python's
zipfile module streaming each member to disk. The first strategy that
succeeds wins; if all fail, ExtractionError lists every attempt.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
import zipfile
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from src.registry_sync.errors import ExtractionError, MissingFileError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExtractionAttempt:
    """Outcome of one strategy."""

    strategy: str
    ok: bool
    error: str | None = None


class ExtractionStrategy(Protocol):
    name: str

    def extract(self, archive_path: Path, dest_dir: Path) -> ExtractionAttempt: ...


class SystemUnzipStrategy:
    """Runs ``unzip -o -q <archive> -d <dest>``."""

    name = "unzip"

    def __init__(self, executable: str = "unzip", timeout: float = 600.0):
        self.executable = executable
        self.timeout = timeout

    def extract(self, archive_path: Path, dest_dir: Path) -> ExtractionAttempt:
        binary = shutil.which(self.executable)
        if binary is None:
            return ExtractionAttempt(self.name, False, f"{self.executable} not found on PATH")
        try:
            completed = subprocess.run(
                [binary, "-o", "-q", str(archive_path), "-d", str(dest_dir)],
                capture_output=True,
                text=True,
                timeout=self.timeout,
                check=False,
            )
        except subprocess.TimeoutExpired:
            return ExtractionAttempt(self.name, False, f"timed out after {self.timeout:.0f}s")
        except OSError as e:
            return ExtractionAttempt(self.name, False, str(e))
        if completed.returncode != 0:
            detail = completed.stderr.strip() or f"exit code {completed.returncode}"
            return ExtractionAttempt(self.name, False, detail)
        return ExtractionAttempt(self.name, True)


class ZipfileStrategy:
    """In-process extraction, copying each member to disk in chunks."""

    name = "zipfile"

    def __init__(self, chunk_size: int = 1024 * 1024):
        self.chunk_size = chunk_size

    def extract(self, archive_path: Path, dest_dir: Path) -> ExtractionAttempt:
        root = dest_dir.resolve()
        try:
            with zipfile.ZipFile(archive_path) as archive:
                for member in archive.infolist():
                    target = (dest_dir / member.filename).resolve()
                    if not target.is_relative_to(root):
                        return ExtractionAttempt(
                            self.name, False, f"unsafe member path: {member.filename}"
                        )
                    if member.is_dir():
                        target.mkdir(parents=True, exist_ok=True)
                        continue
                    target.parent.mkdir(parents=True, exist_ok=True)
                    with archive.open(member) as src, open(target, "wb") as dst:
                        shutil.copyfileobj(src, dst, self.chunk_size)
        except (zipfile.BadZipFile, zipfile.LargeZipFile, OSError, EOFError) as e:
            return ExtractionAttempt(self.name, False, str(e))
        return ExtractionAttempt(self.name, True)


def default_strategies(timeout: float = 600.0) -> list[ExtractionStrategy]:
    return [SystemUnzipStrategy(timeout=timeout), ZipfileStrategy()]


def list_files(directory: Path) -> list[Path]:
    """Every regular file under ``directory``, recursively, in sorted order."""
    return sorted(p for p in directory.rglob("*") if p.is_file())


class ArchiveExtractor:
    """Extracts archives through a fallback chain of strategies."""

    def __init__(self, strategies: Sequence[ExtractionStrategy] | None = None):
        self.strategies = list(strategies) if strategies is not None else default_strategies()

    def extract(self, archive_path: Path, dest_dir: Path, source: str | None = None) -> list[Path]:
        """
        Extract ``archive_path`` into a fresh ``dest_dir`` and list the results.

        Anything left in ``dest_dir`` by an earlier run is removed first.
        ZIP files found inside the archive are extracted next to themselves
        (one level deep), since some dumps ship the XML in an inner archive.

        Returns:
            All files under ``dest_dir`` after extraction

        Raises:
            ExtractionError: If every strategy fails
        """
        archive_path = Path(archive_path)
        dest_dir = Path(dest_dir)
        if dest_dir.exists():
            logger.info(f"Removing stale extraction directory {dest_dir}")
            shutil.rmtree(dest_dir)
        dest_dir.mkdir(parents=True, exist_ok=True)

        self._extract_once(archive_path, dest_dir, source)

        for nested in [p for p in list_files(dest_dir) if p.suffix.lower() == ".zip"]:
            logger.info(f"Extracting nested archive {nested.name}")
            self._extract_once(nested, nested.parent, source)
            nested.unlink()

        files = list_files(dest_dir)
        logger.info(f"Extracted {len(files)} file(s) into {dest_dir}")
        return files

    def _extract_once(self, archive_path: Path, dest_dir: Path, source: str | None) -> ExtractionAttempt:
        attempts: list[ExtractionAttempt] = []
        for strategy in self.strategies:
            attempt = strategy.extract(archive_path, dest_dir)
            attempts.append(attempt)
            if attempt.ok:
                logger.info(f"Extracted {archive_path.name} with {attempt.strategy}")
                return attempt
            logger.warning(
                f"Extraction of {archive_path.name} with {attempt.strategy} failed: {attempt.error}"
            )

        summary = "; ".join(f"{a.strategy}: {a.error}" for a in attempts) or "no strategies configured"
        raise ExtractionError(
            f"Could not extract {archive_path.name} ({summary})",
            source=source,
            archive_path=archive_path,
            attempts=attempts,
        )


def locate_xml(
    files: Iterable[Path],
    candidates: Sequence[str],
    source: str | None = None,
    search_dir: Path | None = None,
) -> Path:
    """
    Pick the registry XML among extracted files.

    Candidates are tried in order and matched case-insensitively on the
    file name, so the preferred name wins when several are present.

    Raises:
        MissingFileError: If no candidate is present
    """
    by_name: dict[str, Path] = {}
    for path in files:
        by_name.setdefault(path.name.lower(), path)
    for candidate in candidates:
        match = by_name.get(candidate.lower())
        if match is not None:
            return match
    raise MissingFileError(
        f"None of {', '.join(candidates)} found among {len(by_name)} extracted file(s)",
        source=source,
        search_dir=search_dir,
        candidates=tuple(candidates),
    )
