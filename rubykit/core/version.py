"""
Ruby version model.

Versions look like 'major.minor.teeny[-pre]'. Parsing comes in three
strictness levels, and ordering treats release candidates specially:

    2.6.0-preview1 < 2.6.0-rc1 < 2.6.0-rc2 < 2.6.0

Usage:
    from rubykit.core.version import Version, Strictness

    version = Version.parse("2.6", Strictness.REQUIRE_MINOR)
    print(version)                  # 2.6.0
    print(version.download_url())   # https://cache.ruby-lang.org/pub/ruby/2.6/...
"""

import functools
import logging
import os
import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple, Union

from rubykit.core.exceptions import (
    InvalidEncodingError,
    MajorIntError,
    MinorIntError,
    MinorMissingError,
    ProcessSpawnError,
    QueryEncodingError,
    QueryExitError,
    QueryParseError,
    QuerySpawnError,
    TeenyIntError,
    TeenyMissingError,
    VersionParseError,
)
from rubykit.core.process import ProcessRunner

logger = logging.getLogger(__name__)

U16_MAX = 0xFFFF
RELEASE_CANDIDATE_PREFIX = "rc"
DEFAULT_DOWNLOAD_BASE = "https://cache.ruby-lang.org/pub/ruby"
ARCHIVE_EXTENSION = ".tar.bz2"
VERSION_SCRIPT = "print RbConfig::CONFIG['RUBY_PROGRAM_VERSION']"

_DIGITS = re.compile(r"[0-9]+")


class Strictness(Enum):
    """How many version segments must be present."""

    MINIMAL = "minimal"  # 'x', minor and teeny default to 0
    REQUIRE_MINOR = "minor"  # 'x.y', teeny defaults to 0
    REQUIRE_ALL = "all"  # 'x.y.z'


def _parse_u16(segment: str) -> int:
    """
    Parse an unsigned 16-bit integer segment.

    Raises:
        ValueError: If the segment is empty, not all digits, or too large
    """
    if not segment:
        raise ValueError("cannot parse integer from empty string")
    if not _DIGITS.fullmatch(segment):
        raise ValueError("invalid digit found in string")
    value = int(segment)
    if value > U16_MAX:
        raise ValueError(f"number too large to fit in 16 bits (max {U16_MAX})")
    return value


def _check_u16(name: str, value: int) -> int:
    if not isinstance(value, int) or isinstance(value, bool):
        raise TypeError(f"{name} must be an int, got {type(value).__name__}")
    if not 0 <= value <= U16_MAX:
        raise ValueError(f"{name} must be between 0 and {U16_MAX}, got {value}")
    return value


@functools.total_ordering
@dataclass(frozen=True, eq=False)
class Version:
    """
    A Ruby version.

    Attributes:
        major: 'X.y.z'
        minor: 'x.Y.z'
        teeny: 'x.y.Z'
        pre: Pre-release identifier (e.g. 'rc1', 'preview2'), if any
    """

    major: int
    minor: int = 0
    teeny: int = 0
    pre: Optional[str] = None

    def __post_init__(self):
        _check_u16("major", self.major)
        _check_u16("minor", self.minor)
        _check_u16("teeny", self.teeny)
        if self.pre is not None and not isinstance(self.pre, str):
            raise TypeError(f"pre must be a str, got {type(self.pre).__name__}")

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def of(
        cls, major: int, minor: int = 0, teeny: int = 0, pre: Optional[str] = None
    ) -> "Version":
        """Build a version from its parts."""
        return cls(major, minor, teeny, pre)

    @classmethod
    def parse(
        cls,
        text: Union[str, bytes],
        strictness: Strictness = Strictness.MINIMAL,
    ) -> "Version":
        """
        Parse a version string.

        The '-pre' suffix is split off at the first '-', then dot-separated
        segments are consumed as major, minor and teeny.

        Args:
            text: Version string or raw UTF-8 bytes
            strictness: Which segments are required

        Returns:
            Parsed Version

        Raises:
            InvalidEncodingError: If bytes are not valid UTF-8
            MinorMissingError: If 'x.y' is required and minor is absent
            TeenyMissingError: If 'x.y.z' is required and teeny is absent
            MajorIntError/MinorIntError/TeenyIntError: If a segment is invalid

        Example:
            >>> Version.parse("1.0-rc2")
            Version(major=1, minor=0, teeny=0, pre='rc2')
        """
        if isinstance(text, (bytes, bytearray)):
            raw = bytes(text)
            try:
                text = raw.decode("utf-8")
            except UnicodeDecodeError as e:
                raise InvalidEncodingError(raw, e) from e

        original = text
        numbers, sep, pre_text = text.partition("-")
        pre = pre_text if sep else None

        major_text, sep, rest = numbers.partition(".")
        if not sep:
            if strictness is not Strictness.MINIMAL:
                raise MinorMissingError(original)
            return cls(_segment(original, major_text, MajorIntError), pre=pre)
        major = _segment(original, major_text, MajorIntError)

        minor_text, sep, teeny_text = rest.partition(".")
        if not sep:
            if strictness is Strictness.REQUIRE_ALL:
                raise TeenyMissingError(original)
            return cls(major, _segment(original, minor_text, MinorIntError), pre=pre)
        minor = _segment(original, minor_text, MinorIntError)

        teeny = _segment(original, teeny_text, TeenyIntError)
        return cls(major, minor, teeny, pre)

    @classmethod
    def query_installed(
        cls, executable: Union[str, os.PathLike], runner: Optional[ProcessRunner] = None
    ) -> "Version":
        """
        Ask a ruby executable for its own version.

        Args:
            executable: Path or name of the ruby binary
            runner: Process runner (a default ProcessRunner if None)

        Returns:
            Reported version, parsed with Strictness.REQUIRE_ALL

        Raises:
            QuerySpawnError: If ruby could not be started
            QueryExitError: If ruby exited unsuccessfully
            QueryEncodingError: If ruby printed non-UTF-8 output
            QueryParseError: If the printed version could not be parsed
        """
        runner = runner or ProcessRunner()
        try:
            result = runner.run([executable, "-e", VERSION_SCRIPT])
        except ProcessSpawnError as e:
            raise QuerySpawnError(executable, e.cause) from e

        if not result.success:
            raise QueryExitError(executable, result)

        try:
            output = result.stdout_text()
        except UnicodeDecodeError as e:
            raise QueryEncodingError(executable, e) from e

        try:
            version = cls.parse(output.strip(), Strictness.REQUIRE_ALL)
        except VersionParseError as e:
            raise QueryParseError(executable, e) from e

        logger.debug(f"{executable} reports Ruby {version}")
        return version

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def render(self) -> str:
        """Render as 'major.minor.teeny[-pre]'."""
        text = f"{self.major}.{self.minor}.{self.teeny}"
        if self.pre is not None:
            text += f"-{self.pre}"
        return text

    def __str__(self) -> str:
        return self.render()

    def series(self) -> str:
        """The 'major.minor' release series."""
        return f"{self.major}.{self.minor}"

    def source_dir_name(self) -> str:
        """Name of the directory the source archive unpacks to."""
        return f"ruby-{self}"

    def archive_name(self) -> str:
        """Name of the source archive, e.g. 'ruby-2.6.2.tar.bz2'."""
        return f"{self.source_dir_name()}{ARCHIVE_EXTENSION}"

    def download_url(self, base_url: str = DEFAULT_DOWNLOAD_BASE) -> str:
        """HTTPS URL of the source archive."""
        return f"{base_url.rstrip('/')}/{self.series()}/{self.archive_name()}"

    # ------------------------------------------------------------------
    # Ordering
    # ------------------------------------------------------------------

    def _numbers(self) -> Tuple[int, int, int]:
        return (self.major, self.minor, self.teeny)

    def __eq__(self, other) -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        return self._numbers() == other._numbers() and self.pre == other.pre

    def __hash__(self) -> int:
        return hash((self._numbers(), self.pre))

    def __lt__(self, other) -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        return compare(self, other) < 0


def _segment(text: str, segment: str, error_type) -> int:
    try:
        return _parse_u16(segment)
    except ValueError as e:
        raise error_type(text, segment, e) from e


def _compare_pre(a: Optional[str], b: Optional[str]) -> int:
    if a == b:
        return 0
    if a is None:
        return 1
    if b is None:
        return -1

    a_rc = a.startswith(RELEASE_CANDIDATE_PREFIX)
    b_rc = b.startswith(RELEASE_CANDIDATE_PREFIX)
    if a_rc != b_rc:
        return 1 if a_rc else -1
    return -1 if a < b else 1


def compare(a: Version, b: Version) -> int:
    """
    Compare two versions.

    Returns:
        -1 if a < b, 0 if equal, 1 if a > b
    """
    if a._numbers() != b._numbers():
        return -1 if a._numbers() < b._numbers() else 1
    return _compare_pre(a.pre, b.pre)


def parse_version(
    text: Union[str, bytes], strictness: Strictness = Strictness.MINIMAL
) -> Version:
    """Module-level shortcut for Version.parse()."""
    return Version.parse(text, strictness)
