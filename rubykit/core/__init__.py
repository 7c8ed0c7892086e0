"""
Core functionality for rubykit.

This package contains the foundational modules that other components depend on.
"""

from .directory import (
    get_global_cache_dir,
    get_archive_cache_dir,
    get_lock_dir,
    get_temp_archive_dir,
    install_dir_for,
    target_work_dir,
)

from .locking import LockManager

from .platform import (
    TargetPlatform,
    detect_host_target,
    is_msvc_target,
    clear_platform_cache,
)

from .process import ProcessResult, ProcessRunner

from .version import Strictness, Version, compare, parse_version

from .exceptions import (
    RubyKitError,
    VersionParseError,
    MinorMissingError,
    TeenyMissingError,
    MajorIntError,
    MinorIntError,
    TeenyIntError,
    InvalidEncodingError,
    ProcessSpawnError,
    RuntimeQueryError,
    BuildError,
    BuildStageError,
    LinkError,
    SourceDownloadError,
    ResourceError,
    MissingCacheDirError,
    MissingEnvironmentError,
    FileCleanupError,
    ConfigError,
)

__all__ = [
    "get_global_cache_dir",
    "get_archive_cache_dir",
    "get_lock_dir",
    "get_temp_archive_dir",
    "install_dir_for",
    "target_work_dir",
    "LockManager",
    "TargetPlatform",
    "detect_host_target",
    "is_msvc_target",
    "clear_platform_cache",
    "ProcessResult",
    "ProcessRunner",
    "Strictness",
    "Version",
    "compare",
    "parse_version",
    "RubyKitError",
    "VersionParseError",
    "MinorMissingError",
    "TeenyMissingError",
    "MajorIntError",
    "MinorIntError",
    "TeenyIntError",
    "InvalidEncodingError",
    "ProcessSpawnError",
    "RuntimeQueryError",
    "BuildError",
    "BuildStageError",
    "LinkError",
    "SourceDownloadError",
    "ResourceError",
    "MissingCacheDirError",
    "MissingEnvironmentError",
    "FileCleanupError",
    "ConfigError",
]
