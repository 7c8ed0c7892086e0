"""
File system helpers for rubykit.

This module provides:
- Scoped removal of temporary files (downloaded archives that are not cached)
- Executable lookup on PATH
- Archive member path validation (directory traversal protection)
"""

import logging
import os
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Optional, Union

from rubykit.core.exceptions import FileCleanupError, InsecureArchiveError

logger = logging.getLogger(__name__)

IS_WINDOWS = os.name == "nt"


# ============================================================================
# Scoped Cleanup
# ============================================================================


@contextmanager
def removing_file(path: Union[str, Path]) -> Iterator[Path]:
    """
    Remove a file when the enclosed block exits, however it exits.

    The file does not need to exist on entry or exit. If the block raised,
    a failed removal is logged and the original exception keeps propagating.
    Otherwise a failed removal raises FileCleanupError.

    Args:
        path: File to remove

    Yields:
        The file path

    Raises:
        FileCleanupError: If the file could not be removed after a clean exit

    Example:
        >>> with removing_file(tmp / "ruby-2.6.2.tar.bz2") as archive:
        ...     download_file(url, archive)
        ...     unpack_file(archive, dst)
    """
    path = Path(path)
    try:
        yield path
    except BaseException:
        try:
            path.unlink(missing_ok=True)
        except OSError as cleanup_error:
            logger.warning(
                f"Failed to remove '{path}' during error cleanup: {cleanup_error}"
            )
        raise

    try:
        path.unlink(missing_ok=True)
    except OSError as e:
        raise FileCleanupError(path, e) from e
    logger.debug(f"Removed temporary file: {path}")


# ============================================================================
# Executables
# ============================================================================


def find_executable(
    name: str, search_paths: Optional[List[Path]] = None
) -> Optional[Path]:
    """
    Find an executable in the system PATH or provided search paths.

    Args:
        name: Executable name (e.g., 'nmake', 'ruby')
        search_paths: Optional list of directories to search

    Returns:
        Path to executable if found, None otherwise
    """
    extensions = [""] if not IS_WINDOWS else ["", ".exe", ".bat", ".cmd"]

    if search_paths is None:
        path_env = os.environ.get("PATH", "")
        search_paths = [Path(p) for p in path_env.split(os.pathsep) if p]

    for directory in search_paths:
        for ext in extensions:
            exe_path = Path(directory) / f"{name}{ext}"
            if exe_path.is_file() and os.access(exe_path, os.X_OK):
                return exe_path

    return None


# ============================================================================
# Archive Paths
# ============================================================================


def validate_archive_path(path: str, destination: Path) -> Path:
    """
    Validate that an archive member path is safe to extract.

    Args:
        path: Member path from archive
        destination: Extraction destination

    Returns:
        Resolved target path of the member

    Raises:
        InsecureArchiveError: If path attempts directory traversal
    """
    member_path = (destination / path).resolve()

    if not member_path.is_relative_to(destination.resolve()):
        raise InsecureArchiveError(
            f"Archive member '{path}' attempts directory traversal. "
            "This is a security risk and extraction has been blocked."
        )
    return member_path
