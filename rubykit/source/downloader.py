"""
Download and unpack Ruby source code.

The downloader resolves a version to 'dst_dir/ruby-<version>'. An existing
source directory is reused. Otherwise the archive is fetched from
cache.ruby-lang.org into either the archive cache or a scratch directory
and unpacked into dst_dir. Archives in the scratch directory are always
removed afterwards, including when the download or unpacking fails.

Usage:
    from rubykit.core.version import Version
    from rubykit.source.downloader import RubySourceDownloader

    downloader = RubySourceDownloader(Version.of(2, 6, 2), Path("work"))
    source = downloader.download()
"""

import logging
from contextlib import nullcontext
from pathlib import Path
from typing import Optional

from rubykit.core.directory import get_archive_cache_dir, get_temp_archive_dir
from rubykit.core.download import DownloadProgress, download_file, format_progress
from rubykit.core.exceptions import ArchiveIOError
from rubykit.core.filesystem import removing_file
from rubykit.core.locking import LockManager
from rubykit.core.version import DEFAULT_DOWNLOAD_BASE, Version
from rubykit.source.archive import unpack_file
from rubykit.source.builder import RubySource

logger = logging.getLogger(__name__)


def log_progress(progress: DownloadProgress) -> None:
    logger.info(f"Downloaded {format_progress(progress)}")


class RubySourceDownloader:
    """
    Downloads and unpacks Ruby's source code.

    Args:
        version: Ruby version to fetch
        dst_dir: Directory the sources are unpacked into
        ignore_existing_dir: Unpack again over an existing source directory
        ignore_cache: Download even if a cached archive exists
        cache: Keep the archive in the cache directory for later runs
        cache_dir: Cache directory (implies cache=True; default is the
            global archive cache)
        base_url: Mirror to download from
        sha256: Expected SHA256 of a freshly downloaded archive
        lock_timeout: Seconds to wait for another process using the archive
    """

    def __init__(
        self,
        version: Version,
        dst_dir: Path,
        ignore_existing_dir: bool = False,
        ignore_cache: bool = False,
        cache: bool = False,
        cache_dir: Optional[Path] = None,
        base_url: str = DEFAULT_DOWNLOAD_BASE,
        lock_timeout: int = 300,
        sha256: Optional[str] = None,
    ):
        self.version = version
        self.dst_dir = Path(dst_dir)
        self.ignore_existing_dir = ignore_existing_dir
        self.ignore_cache = ignore_cache
        self.cache = cache or cache_dir is not None
        self.cache_dir = Path(cache_dir) if cache_dir is not None else None
        self.base_url = base_url
        self.lock_timeout = lock_timeout
        self.sha256 = sha256

    @property
    def source_dir(self) -> Path:
        return self.dst_dir / self.version.source_dir_name()

    def archive_dir(self) -> Path:
        """
        Directory the archive is downloaded into.

        Raises:
            MissingCacheDirError: If caching without a cache directory and no
                home directory can be found
        """
        if not self.cache:
            return get_temp_archive_dir()
        if self.cache_dir is not None:
            return self.cache_dir
        return get_archive_cache_dir()

    def download(self) -> RubySource:
        """
        Make the sources available and return them.

        Returns:
            RubySource for dst_dir/ruby-<version>

        Raises:
            MissingCacheDirError: If no cache directory can be found
            ArchiveIOError: If the archive can't be created, opened or written
            ArchiveRequestError: If the archive can't be downloaded
            ChecksumMismatchError: If the archive doesn't match sha256
            ArchiveUnpackError: If the archive can't be unpacked
            FileCleanupError: If a temporary archive can't be removed
            LockTimeoutError: If another process holds the archive too long
        """
        src_dir = self.source_dir
        if not self.ignore_existing_dir and src_dir.exists():
            logger.info(f"Reusing existing Ruby sources: {src_dir}")
            return RubySource.from_path(src_dir)

        archive_dir = self.archive_dir()
        try:
            archive_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ArchiveIOError("create directory", archive_dir, e) from e

        archive_path = archive_dir / self.version.archive_name()
        # Scratch archives are never reused
        refetch = self.ignore_cache or not self.cache

        lock_manager = LockManager(archive_dir)
        with lock_manager.archive_lock(archive_path.name, timeout=self.lock_timeout):
            if self.cache:
                guard = nullcontext(archive_path)
            else:
                guard = removing_file(archive_path)

            with guard:
                if refetch or not archive_path.exists():
                    url = self.version.download_url(self.base_url)
                    download_file(
                        url,
                        archive_path,
                        expected_sha256=self.sha256,
                        progress_callback=log_progress,
                    )
                else:
                    logger.info(f"Using cached archive: {archive_path}")
                unpack_file(archive_path, self.dst_dir)

        return RubySource.from_path(src_dir)
