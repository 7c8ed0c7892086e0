"""
Directory management for rubykit.

Resolves where downloaded Ruby archives are cached and where builds happen.

Directory Structure:
    Global Cache (~/.rubykit/ or %USERPROFILE%\\.rubykit\\):
        - archives/   : Cached ruby-X.Y.Z.tar.bz2 source archives
        - lock/       : Lock files guarding concurrent archive downloads

    Work Directory (<work-dir>/<target>/):
        - ruby-X.Y.Z/      : Unpacked sources
        - ruby-X.Y.Z-out/  : Installation prefix
"""

import os
import tempfile
from pathlib import Path
from typing import Mapping, Optional

from rubykit.core.exceptions import MissingCacheDirError

CACHE_DIR_ENV = "RUBYKIT_CACHE_DIR"


def get_global_cache_dir(environ: Optional[Mapping[str, str]] = None) -> Path:
    """
    Get the platform-specific global cache directory path.

    RUBYKIT_CACHE_DIR overrides the default location.

    Args:
        environ: Environment to read (os.environ if None)

    Returns:
        Path: The global cache directory path.
            - Windows: %USERPROFILE%\\.rubykit
            - Linux/macOS: ~/.rubykit/

    Raises:
        MissingCacheDirError: If no home directory can be determined

    Example:
        >>> get_global_cache_dir()
        PosixPath('/home/user/.rubykit')
    """
    environ = os.environ if environ is None else environ

    override = environ.get(CACHE_DIR_ENV)
    if override:
        return Path(override)

    if os.name == "nt":
        user_profile = environ.get("USERPROFILE")
        if not user_profile:
            raise MissingCacheDirError("USERPROFILE environment variable is not set")
        return Path(user_profile) / ".rubykit"

    try:
        return Path.home() / ".rubykit"
    except RuntimeError as e:
        raise MissingCacheDirError(str(e)) from e


def get_archive_cache_dir(cache_root: Optional[Path] = None) -> Path:
    """Directory holding cached source archives."""
    return (cache_root or get_global_cache_dir()) / "archives"


def get_lock_dir(cache_root: Optional[Path] = None) -> Path:
    """Directory holding download lock files."""
    return (cache_root or get_global_cache_dir()) / "lock"


def get_temp_archive_dir() -> Path:
    """Scratch directory for archives that are not cached."""
    return Path(tempfile.gettempdir()) / "rubykit"


def target_work_dir(work_dir: Path, target: str) -> Path:
    """Per-target build directory under work_dir."""
    return Path(work_dir) / target


def install_dir_for(target_dir: Path, version) -> Path:
    """Installation prefix used for a version, e.g. 'ruby-2.6.2-out'."""
    return Path(target_dir) / f"{version.source_dir_name()}-out"

