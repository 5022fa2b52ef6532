"""
Sync Errors

Custom exception hierarchy for the registry sync pipeline.
"""

from __future__ import annotations

from pathlib import Path


class IngestionError(Exception):
    """Base exception for all registry sync errors."""

    def __init__(self, message: str, source: str | None = None):
        """
        Initialize ingestion error.

        Args:
            message: Error description
            source: Registry type code (UO, FOP, FSU)
        """
        self.source = source
        super().__init__(message)


class DownloadError(IngestionError):
    """Failed to download a registry archive."""

    def __init__(
        self,
        message: str,
        source: str | None = None,
        url: str | None = None,
        status_code: int | None = None,
    ):
        """
        Initialize download error.

        Args:
            message: Error description
            source: Registry type code
            url: URL that failed
            status_code: HTTP status code if applicable
        """
        self.url = url
        self.status_code = status_code
        super().__init__(message, source)


class ExtractionError(IngestionError):
    """Every extraction strategy failed for an archive."""

    def __init__(
        self,
        message: str,
        source: str | None = None,
        archive_path: Path | None = None,
        attempts: list | None = None,
    ):
        """
        Initialize extraction error.

        Args:
            message: Error description
            source: Registry type code
            archive_path: Archive that could not be extracted
            attempts: ExtractionAttempt results, one per strategy tried
        """
        self.archive_path = archive_path
        self.attempts = attempts or []
        super().__init__(message, source)


class MissingFileError(IngestionError):
    """The extracted archive does not contain the expected XML file."""

    def __init__(
        self,
        message: str,
        source: str | None = None,
        search_dir: Path | None = None,
        candidates: tuple[str, ...] = (),
    ):
        self.search_dir = search_dir
        self.candidates = candidates
        super().__init__(message, source)


class ParseError(IngestionError):
    """The XML document is malformed."""

    def __init__(self, message: str, source: str | None = None, path: Path | None = None):
        self.path = path
        super().__init__(message, source)


class TransformationError(IngestionError):
    """Failed to turn a raw XML record into a typed entity."""

    def __init__(
        self,
        message: str,
        source: str | None = None,
        record_id: str | None = None,
        field: str | None = None,
    ):
        """
        Initialize transformation error.

        Args:
            message: Error description
            source: Registry type code
            record_id: ID of the record that failed, if it has one
            field: Field that caused the error
        """
        self.record_id = record_id
        self.field = field
        super().__init__(message, source)


class LoadError(IngestionError):
    """Failed to load a batch into the database."""

    def __init__(
        self,
        message: str,
        source: str | None = None,
        rows_affected: int | None = None,
    ):
        """
        Initialize load error.

        Args:
            message: Error description
            source: Registry type code
            rows_affected: Number of rows in the failed batch
        """
        self.rows_affected = rows_affected
        super().__init__(message, source)
