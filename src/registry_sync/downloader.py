"""
Resumable Downloader

Streams a registry archive to disk with httpx. Interrupted downloads are
resumed with an HTTP Range request from whatever bytes already landed on
disk, and transient failures are retried with exponential backoff.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

import httpx

from src.common.resilience import RetryConfig, retry_with_backoff
from src.registry_sync.errors import DownloadError
from src.registry_sync.telemetry import SpanAttributes, record_ingestion_metric, trace_ingestion_operation

logger = logging.getLogger(__name__)

ZIP_MAGIC = b"PK\x03\x04"
PROGRESS_STEP_BYTES = 10 * 1024 * 1024

ProgressCallback = Callable[[int, int | None], None]


def download_retry_config(max_attempts: int = 3, base_delay: float = 5.0) -> RetryConfig:
    """Backoff for downloads: base_delay, then x3 per attempt (5s, 15s, 45s...)."""
    return RetryConfig(
        max_attempts=max_attempts,
        base_delay=base_delay,
        exponential_base=3.0,
        retryable_exceptions=(httpx.TransportError, DownloadError),
    )


@dataclass(frozen=True)
class DownloadResult:
    path: Path
    size_bytes: int
    resumed: bool
    attempts: int


class Downloader:
    """Downloads large files with resume and retry support."""

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        retry_config: RetryConfig | None = None,
        chunk_size: int = 65536,
        timeout: float = 2700.0,
        progress_step: int = PROGRESS_STEP_BYTES,
    ):
        """
        Initialize downloader.

        Args:
            client: HTTP client to use; a client is created per download if omitted
            retry_config: Backoff policy (default: 3 attempts, 5s base, x3 growth)
            chunk_size: Streaming chunk size in bytes
            timeout: Read timeout for one attempt in seconds
            progress_step: Bytes between progress callbacks
        """
        self._client = client
        self.retry_config = retry_config or download_retry_config()
        self.chunk_size = chunk_size
        self.timeout = timeout
        self.progress_step = progress_step

    async def download(
        self,
        url: str,
        dest_path: Path,
        on_progress: ProgressCallback | None = None,
        source: str | None = None,
    ) -> DownloadResult:
        """
        Download ``url`` to ``dest_path``, resuming a partial file if present.

        Args:
            url: Remote archive URL
            dest_path: Local file path
            on_progress: Called with (downloaded_bytes, total_bytes or None)
            source: Registry type code for errors and telemetry

        Returns:
            DownloadResult with final size, whether the last attempt resumed,
            and the number of attempts made

        Raises:
            DownloadError: After all attempts fail, or if the result is empty
        """
        dest_path = Path(dest_path)
        dest_path.parent.mkdir(parents=True, exist_ok=True)
        logger.info(f"Downloading {url} -> {dest_path}")

        with trace_ingestion_operation(
            "download",
            {SpanAttributes.REGISTRY: source or "", SpanAttributes.SOURCE_URL: url},
        ) as span:
            if self._client is not None:
                result = await self._download(self._client, url, dest_path, on_progress, source)
            else:
                timeout = httpx.Timeout(self.timeout, connect=30.0)
                async with httpx.AsyncClient(timeout=timeout) as client:
                    result = await self._download(client, url, dest_path, on_progress, source)

            span.set_attribute(SpanAttributes.FILE_SIZE_BYTES, result.size_bytes)
            span.set_attribute(SpanAttributes.DOWNLOAD_RESUMED, result.resumed)
            span.set_attribute(SpanAttributes.DOWNLOAD_ATTEMPTS, result.attempts)

        record_ingestion_metric("download_bytes_total", result.size_bytes, {"registry": source or ""})
        resumed = " (resumed)" if result.resumed else ""
        logger.info(
            f"Download complete: {result.size_bytes / (1024 * 1024):.1f} MB "
            f"in {result.attempts} attempt(s){resumed}"
        )
        return result

    async def _download(
        self,
        client: httpx.AsyncClient,
        url: str,
        dest_path: Path,
        on_progress: ProgressCallback | None,
        source: str | None,
    ) -> DownloadResult:
        attempts = 0

        async def attempt() -> bool:
            nonlocal attempts
            attempts += 1
            return await self._attempt(client, url, dest_path, on_progress, source)

        try:
            resumed = await retry_with_backoff(attempt, config=self.retry_config)
        except DownloadError as e:
            raise DownloadError(
                f"Download failed after {attempts} attempts: {e}",
                source=source,
                url=url,
                status_code=e.status_code,
            ) from e
        except httpx.HTTPError as e:
            raise DownloadError(
                f"Download failed after {attempts} attempts: {e}",
                source=source,
                url=url,
            ) from e

        size = dest_path.stat().st_size
        if size == 0:
            raise DownloadError("Downloaded file is empty", source=source, url=url)
        self._check_zip_magic(dest_path)
        return DownloadResult(path=dest_path, size_bytes=size, resumed=resumed, attempts=attempts)

    async def _remote_size(self, client: httpx.AsyncClient, url: str) -> int | None:
        """Content-Length from a HEAD request, or None if unavailable."""
        try:
            response = await client.head(url, follow_redirects=True)
        except httpx.HTTPError as e:
            logger.debug(f"HEAD {url} failed: {e}")
            return None
        length = response.headers.get("content-length")
        if response.status_code != 200 or not length or not length.isdigit():
            return None
        return int(length)

    async def _attempt(
        self,
        client: httpx.AsyncClient,
        url: str,
        dest_path: Path,
        on_progress: ProgressCallback | None,
        source: str | None,
    ) -> bool:
        """One download attempt. Returns True if it resumed a partial file."""
        existing = dest_path.stat().st_size if dest_path.exists() else 0
        headers: dict[str, str] = {}
        if existing > 0:
            remote = await self._remote_size(client, url)
            if remote is None or existing < remote:
                headers["Range"] = f"bytes={existing}-"
                logger.info(f"Resuming download from byte {existing}")
            else:
                logger.info(
                    f"Local file ({existing} bytes) is not smaller than remote "
                    f"({remote} bytes), starting fresh"
                )
                existing = 0

        async with client.stream("GET", url, headers=headers, follow_redirects=True) as response:
            if response.status_code == 206 and headers:
                resumed = True
                mode = "ab"
                downloaded = existing
            elif response.status_code == 200:
                if headers:
                    logger.info("Server does not support resume, restarting download from scratch")
                resumed = False
                mode = "wb"
                downloaded = 0
            else:
                if response.status_code == 416:
                    # Range no longer valid for this resource; next attempt starts over
                    dest_path.unlink(missing_ok=True)
                raise DownloadError(
                    f"HTTP {response.status_code}",
                    source=source,
                    url=url,
                    status_code=response.status_code,
                )

            length = response.headers.get("content-length")
            total = int(length) + downloaded if length and length.isdigit() else None
            next_report = (downloaded // self.progress_step + 1) * self.progress_step

            with open(dest_path, mode) as fh:
                async for chunk in response.aiter_bytes(self.chunk_size):
                    fh.write(chunk)
                    downloaded += len(chunk)
                    if on_progress and downloaded >= next_report:
                        on_progress(downloaded, total)
                        next_report = (downloaded // self.progress_step + 1) * self.progress_step

        if total is not None and downloaded < total:
            raise DownloadError(
                f"Connection closed after {downloaded} of {total} bytes",
                source=source,
                url=url,
            )
        return resumed

    def _check_zip_magic(self, path: Path) -> None:
        with open(path, "rb") as fh:
            header = fh.read(len(ZIP_MAGIC))
        if header != ZIP_MAGIC:
            logger.warning(f"{path.name} does not start with ZIP magic bytes, it may not be a valid ZIP")
