"""
HTTP download of Ruby source archives.

Streams a URL to disk with:
- Progress reporting (bytes, percentage, speed)
- Optional SHA256 verification while streaming
- Bounded retry with exponential backoff for transient network errors
- Writes to a ".part" file that is renamed into place once complete
"""

import hashlib
import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

import requests
from requests.exceptions import RequestException

from rubykit.core.exceptions import (
    ArchiveIOError,
    ArchiveRequestError,
    ChecksumMismatchError,
)

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024
PARTIAL_SUFFIX = ".part"


@dataclass
class DownloadProgress:
    """Progress information for a download."""

    bytes_downloaded: int
    total_bytes: int  # 0 when the server sends no Content-Length
    speed_bps: float  # bytes per second

    @property
    def percentage(self) -> float:
        if self.total_bytes <= 0:
            return 0.0
        return self.bytes_downloaded / self.total_bytes * 100

    def __str__(self) -> str:
        return format_progress(self)


def download_file(
    url: str,
    destination: Path,
    expected_sha256: Optional[str] = None,
    progress_callback: Optional[Callable[[DownloadProgress], None]] = None,
    timeout: int = 30,
    max_retries: int = 3,
) -> Path:
    """
    Download a URL to a local file.

    Args:
        url: URL to download from
        destination: Local path to save file (parent directories are created)
        expected_sha256: Expected SHA256 hex digest, verified during download
        progress_callback: Optional callback for progress updates
        timeout: Request timeout in seconds
        max_retries: Maximum number of attempts for network failures

    Returns:
        Path to downloaded file

    Raises:
        ArchiveRequestError: If the download fails after retries
        ChecksumMismatchError: If the checksum doesn't match
        ArchiveIOError: If the destination cannot be written

    Example:
        >>> download_file(
        ...     "https://cache.ruby-lang.org/pub/ruby/2.6/ruby-2.6.2.tar.bz2",
        ...     Path("cache/ruby-2.6.2.tar.bz2"),
        ... )
    """
    if not url:
        raise ValueError("URL cannot be empty")

    destination = Path(destination)
    try:
        destination.parent.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise ArchiveIOError("create directory", destination.parent, e) from e

    for attempt in range(max_retries):
        try:
            return _stream_to_file(
                url, destination, expected_sha256, progress_callback, timeout
            )
        except RequestException as e:
            if attempt == max_retries - 1:
                raise ArchiveRequestError(
                    f"Download of {url} failed after {max_retries} attempts: {e}"
                ) from e

            backoff_seconds = 2**attempt
            logger.warning(
                f"Download attempt {attempt + 1} failed: {e}. "
                f"Retrying in {backoff_seconds}s..."
            )
            time.sleep(backoff_seconds)

    raise ArchiveRequestError(f"Download of {url} failed")


def _stream_to_file(
    url: str,
    destination: Path,
    expected_sha256: Optional[str],
    progress_callback: Optional[Callable[[DownloadProgress], None]],
    timeout: int,
) -> Path:
    logger.info(f"Downloading {url}")

    # Only a complete, verified archive ever appears at destination
    partial = partial_path(destination)
    try:
        downloaded = _fetch(url, partial, expected_sha256, progress_callback, timeout)
        try:
            partial.replace(destination)
        except OSError as e:
            raise ArchiveIOError("move into place", destination, e) from e
    except Exception:
        _discard(partial)
        raise

    logger.info(f"Download complete: {destination} ({downloaded} bytes)")
    return destination


def _fetch(
    url: str,
    partial: Path,
    expected_sha256: Optional[str],
    progress_callback: Optional[Callable[[DownloadProgress], None]],
    timeout: int,
) -> int:
    with requests.get(
        url, stream=True, timeout=timeout, allow_redirects=True
    ) as response:
        response.raise_for_status()

        content_length = response.headers.get("content-length")
        total_size = int(content_length) if content_length else 0
        hasher = hashlib.sha256() if expected_sha256 else None

        downloaded = 0
        start_time = time.time()
        last_report = start_time

        try:
            f = open(partial, "wb")
        except OSError as e:
            raise ArchiveIOError("create", partial, e) from e

        with f:
            # Network errors raised by iter_content propagate as RequestException
            for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                if not chunk:
                    continue
                try:
                    f.write(chunk)
                except OSError as e:
                    raise ArchiveIOError("write", partial, e) from e
                downloaded += len(chunk)
                if hasher:
                    hasher.update(chunk)

                # Report at most twice per second
                now = time.time()
                if progress_callback and (
                    now - last_report >= 0.5 or downloaded == total_size
                ):
                    elapsed = now - start_time
                    speed = downloaded / elapsed if elapsed > 0 else 0.0
                    progress_callback(DownloadProgress(downloaded, total_size, speed))
                    last_report = now

    if hasher:
        actual = hasher.hexdigest()
        if actual.lower() != expected_sha256.lower():
            raise ChecksumMismatchError(
                f"Checksum mismatch for {url}: "
                f"expected {expected_sha256}, got {actual}"
            )
        logger.info("Checksum verified successfully")

    return downloaded


def partial_path(destination: Path) -> Path:
    """Path a download is streamed to before it is moved to destination."""
    return destination.with_name(destination.name + PARTIAL_SUFFIX)


def _discard(partial: Path) -> None:
    try:
        partial.unlink(missing_ok=True)
    except OSError as e:
        logger.warning(f"Failed to remove partial download {partial}: {e}")


def format_progress(progress: DownloadProgress) -> str:
    """
    Format progress for display.

    Example:
        >>> format_progress(DownloadProgress(52428800, 104857600, 1048576))
        '50.0/100.0 MB (50.0%) at 1.0 MB/s'
    """
    mb_downloaded = progress.bytes_downloaded / 1024 / 1024
    speed_mbps = progress.speed_bps / 1024 / 1024

    if progress.total_bytes > 0:
        mb_total = progress.total_bytes / 1024 / 1024
        return (
            f"{mb_downloaded:.1f}/{mb_total:.1f} MB "
            f"({progress.percentage:.1f}%) "
            f"at {speed_mbps:.1f} MB/s"
        )
    return f"{mb_downloaded:.1f} MB at {speed_mbps:.1f} MB/s"
