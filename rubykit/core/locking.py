"""
Concurrent access control for the shared archive cache.

Several build processes (e.g. parallel crates or CI jobs sharing a home
directory) may ask for the same Ruby archive at once. A file lock per
archive makes sure only one of them writes it.

Usage:
    from rubykit.core.locking import LockManager

    lock_manager = LockManager()
    with lock_manager.archive_lock("ruby-2.6.2.tar.bz2", timeout=300):
        # Download or read the cached archive
        pass
"""

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Optional

from filelock import FileLock, Timeout as LockTimeout

from rubykit.core.directory import get_lock_dir
from rubykit.core.exceptions import LockTimeoutError

logger = logging.getLogger(__name__)


class LockManager:
    """
    Manages file locks for rubykit resources.

    Uses file-based locking with the `filelock` library for cross-platform
    compatibility and automatic cleanup on process death.

    Attributes:
        lock_dir: Directory where lock files are stored
    """

    def __init__(self, lock_dir: Optional[Path] = None):
        """
        Initialize lock manager.

        Args:
            lock_dir: Directory for lock files (default: global cache/lock/)
        """
        self.lock_dir = Path(lock_dir) if lock_dir is not None else get_lock_dir()
        self.lock_dir.mkdir(parents=True, exist_ok=True)

    @contextmanager
    def archive_lock(self, archive_name: str, timeout: int = 300):
        """
        Acquire lock for a specific source archive.

        Args:
            archive_name: Archive file name (e.g., 'ruby-2.6.2.tar.bz2')
            timeout: Maximum wait time in seconds (default: 300 for long downloads)

        Yields:
            None

        Raises:
            LockTimeoutError: If lock can't be acquired within timeout
        """
        safe_name = archive_name.replace("/", "-").replace("\\", "-").replace(":", "-")
        lock_path = self.lock_dir / f"{safe_name}.lock"
        lock = FileLock(lock_path, timeout=timeout)

        try:
            with lock:
                logger.debug(f"Acquired archive lock: {lock_path}")
                yield
                logger.debug(f"Released archive lock: {lock_path}")
        except LockTimeout as e:
            logger.error(
                f"Could not acquire archive lock for {archive_name} after {timeout}s. "
                "Another process may be downloading this archive."
            )
            raise LockTimeoutError(
                f"Could not acquire archive lock for {archive_name} after {timeout}s"
            ) from e
