"""
Ruby source archive unpacking.

Some Ruby source tarballs tag directory entries as regular files while still
giving them a trailing-slash name. Extracting such an entry as a file leaves
a zero-byte file where a directory tree should be, so every entry is
classified by looking at its name field instead of trusting the declared
type alone.

Usage:
    from rubykit.source.archive import unpack_file

    unpack_file(Path("ruby-2.6.2.tar.bz2"), Path("build"))
"""

import logging
import sys
import tarfile
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import BinaryIO, Union

from rubykit.core.exceptions import ArchiveIOError, ArchiveUnpackError
from rubykit.core.filesystem import validate_archive_path

logger = logging.getLogger(__name__)

NAME_FIELD_SIZE = 100


class EntryKind(Enum):
    """Declared type of a tar entry."""

    REGULAR_FILE = "file"
    DIRECTORY = "directory"
    SYMLINK = "symlink"
    HARD_LINK = "hardlink"
    OTHER = "other"

    @classmethod
    def from_tarinfo(cls, member: tarfile.TarInfo) -> "EntryKind":
        if member.type in (tarfile.REGTYPE, tarfile.AREGTYPE, tarfile.CONTTYPE):
            return cls.REGULAR_FILE
        if member.type == tarfile.DIRTYPE:
            return cls.DIRECTORY
        if member.type == tarfile.SYMTYPE:
            return cls.SYMLINK
        if member.type == tarfile.LNKTYPE:
            return cls.HARD_LINK
        return cls.OTHER


def is_directory(declared_kind: EntryKind, raw_name_bytes: bytes) -> bool:
    """
    Decide whether an archive entry is a directory.

    Declared directories are directories. A declared regular file is a
    directory when the byte just before the first NUL of its name field
    (or the last byte, if there is no NUL) is '/'. Nothing else is.

    Args:
        declared_kind: Type recorded in the entry header
        raw_name_bytes: Fixed-width name field of the header

    Example:
        >>> is_directory(EntryKind.REGULAR_FILE, b"foo/bar/\\0")
        True
        >>> is_directory(EntryKind.REGULAR_FILE, b"foo/bar.txt\\0")
        False
    """
    if declared_kind is EntryKind.DIRECTORY:
        return True
    if declared_kind is not EntryKind.REGULAR_FILE:
        return False

    end = raw_name_bytes.find(b"\0")
    if end == -1:
        end = len(raw_name_bytes)
    return end > 0 and raw_name_bytes[end - 1 : end] == b"/"


def name_field(name: str) -> bytes:
    """
    Rebuild the NUL-padded name field of a header from a member name.

    Long ustar names keep their tail in the name field, so the last
    NAME_FIELD_SIZE bytes are used.
    """
    raw = name.encode("utf-8", errors="surrogateescape")[-NAME_FIELD_SIZE:]
    return raw.ljust(NAME_FIELD_SIZE, b"\0")


@dataclass(frozen=True)
class ArchiveEntry:
    """An archive member as seen by the directory filter."""

    name: str
    declared_kind: EntryKind
    raw_name_bytes: bytes
    is_directory: bool

    @classmethod
    def from_tarinfo(cls, member: tarfile.TarInfo) -> "ArchiveEntry":
        kind = EntryKind.from_tarinfo(member)
        raw = name_field(member.name)
        return cls(member.name, kind, raw, is_directory(kind, raw))


def unpack(fileobj: BinaryIO, destination: Union[str, Path]) -> int:
    """
    Stream a .tar.bz2 archive into a directory.

    Entries classified as directories are created as directories, every
    other entry is extracted after its parent directories are created.

    Args:
        fileobj: Readable binary stream of bzip2-compressed tar data
        destination: Directory to unpack into (created if missing)

    Returns:
        Number of entries unpacked

    Raises:
        InsecureArchiveError: If a member would land outside destination
        ArchiveUnpackError: If the archive is corrupt or unreadable
    """
    destination = Path(destination)
    destination.mkdir(parents=True, exist_ok=True)
    count = 0

    try:
        with tarfile.open(fileobj=fileobj, mode="r|bz2") as tar:
            for member in tar:
                target = validate_archive_path(member.name, destination)
                entry = ArchiveEntry.from_tarinfo(member)

                if entry.is_directory:
                    target.mkdir(parents=True, exist_ok=True)
                else:
                    target.parent.mkdir(parents=True, exist_ok=True)
                    _extract_member(tar, member, destination)
                count += 1
    except (tarfile.TarError, EOFError, OSError) as e:
        raise ArchiveUnpackError(
            f"Failed to unpack archive into {destination}: {e}"
        ) from e

    logger.debug(f"Unpacked {count} entries into {destination}")
    return count


def _extract_member(tar: tarfile.TarFile, member: tarfile.TarInfo, destination: Path):
    # Extract with filter for security (Python 3.12+)
    if sys.version_info >= (3, 12):
        tar.extract(member, destination, filter="data")
    else:
        tar.extract(member, destination)


def unpack_file(archive_path: Union[str, Path], destination: Union[str, Path]) -> int:
    """
    Unpack a .tar.bz2 file from disk.

    Raises:
        ArchiveIOError: If the archive cannot be opened
        ArchiveUnpackError: If unpacking fails
    """
    archive_path = Path(archive_path)
    logger.info(f"Unpacking {archive_path.name} into {destination}")
    try:
        stream = open(archive_path, "rb")
    except OSError as e:
        raise ArchiveIOError("open", archive_path, e) from e

    with stream:
        return unpack(stream, destination)
