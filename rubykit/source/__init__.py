"""
Ruby source handling for rubykit.

This module provides functionality for:
- Downloading and caching Ruby source archives
- Unpacking archives (including mis-tagged directory entries)
- Building the sources in skip-aware stages
"""

from rubykit.source.archive import (
    ArchiveEntry,
    EntryKind,
    is_directory,
    unpack,
    unpack_file,
)
from rubykit.source.builder import (
    BuildOptions,
    BuildOrchestrator,
    BuildStage,
    RubySource,
    StageDecision,
    StagePlan,
)
from rubykit.source.downloader import RubySourceDownloader

__all__ = [
    "ArchiveEntry",
    "EntryKind",
    "is_directory",
    "unpack",
    "unpack_file",
    "BuildOptions",
    "BuildOrchestrator",
    "BuildStage",
    "RubySource",
    "StageDecision",
    "StagePlan",
    "RubySourceDownloader",
]
