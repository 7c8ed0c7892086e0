"""
Centralized exception hierarchy for rubykit.

Every error raised by rubykit derives from RubyKitError so an embedding
build step can catch one type, print a diagnostic and decide whether to
abort. Nothing here is retried automatically.
"""

from typing import Optional


# ============================================================================
# Base Exceptions
# ============================================================================


class RubyKitError(Exception):
    """Base exception for all rubykit errors."""

    pass


# ============================================================================
# Version Parse Exceptions
# ============================================================================


class VersionParseError(RubyKitError):
    """Base exception for version strings that cannot be parsed."""

    def __init__(self, text: str, message: str):
        self.text = text
        super().__init__(f"Invalid Ruby version '{text}': {message}")


class MinorMissingError(VersionParseError):
    """'x.Y' is required but missing."""

    def __init__(self, text: str):
        super().__init__(text, "minor version is required (expected 'x.y')")


class TeenyMissingError(VersionParseError):
    """'x.y.Z' is required but missing."""

    def __init__(self, text: str):
        super().__init__(text, "teeny version is required (expected 'x.y.z')")


class SegmentIntError(VersionParseError):
    """A version segment is not a valid unsigned 16-bit integer."""

    segment_name = "segment"

    def __init__(self, text: str, segment: str, cause: ValueError):
        self.segment = segment
        self.cause = cause
        super().__init__(text, f"invalid {self.segment_name} '{segment}': {cause}")


class MajorIntError(SegmentIntError):
    """Invalid 'X.y.z'."""

    segment_name = "major version"


class MinorIntError(SegmentIntError):
    """Invalid 'x.Y.z'."""

    segment_name = "minor version"


class TeenyIntError(SegmentIntError):
    """Invalid 'x.y.Z'."""

    segment_name = "teeny version"


class InvalidEncodingError(VersionParseError):
    """Raw version bytes are not valid UTF-8."""

    def __init__(self, raw: bytes, cause: UnicodeDecodeError):
        self.raw = raw
        self.cause = cause
        super().__init__(repr(raw), f"not valid UTF-8 ({cause.reason})")


# ============================================================================
# Process Exceptions
# ============================================================================


class ProcessSpawnError(RubyKitError):
    """Raised when the OS cannot start a process (tool missing, bad path)."""

    def __init__(self, command, cause: OSError):
        self.command = list(command)
        self.cause = cause
        program = self.command[0] if self.command else "<empty>"
        super().__init__(f"Failed to spawn '{program}': {cause}")


# ============================================================================
# Runtime Query Exceptions
# ============================================================================


class RuntimeQueryError(RubyKitError):
    """Base exception for failures asking a ruby executable about itself."""

    pass


class QuerySpawnError(RuntimeQueryError):
    """The ruby executable could not be started."""

    def __init__(self, executable, cause: OSError):
        self.executable = str(executable)
        self.cause = cause
        super().__init__(f"Failed to execute '{self.executable}': {cause}")


class QueryExitError(RuntimeQueryError):
    """The ruby executable ran but exited unsuccessfully."""

    def __init__(self, executable, result):
        self.executable = str(executable)
        self.result = result
        super().__init__(
            f"'{self.executable}' exited with status {result.returncode}: "
            f"{result.output_text().strip()}"
        )


class QueryEncodingError(RuntimeQueryError):
    """The output printed by ruby is not valid UTF-8."""

    def __init__(self, executable, cause: UnicodeDecodeError):
        self.executable = str(executable)
        self.cause = cause
        super().__init__(f"Output of '{self.executable}' is not UTF-8: {cause}")


class QueryParseError(RuntimeQueryError):
    """The reported version could not be parsed."""

    def __init__(self, executable, cause: VersionParseError):
        self.executable = str(executable)
        self.cause = cause
        super().__init__(f"'{self.executable}' reported a bad version: {cause}")


# ============================================================================
# Build Exceptions
# ============================================================================


class BuildError(RubyKitError):
    """Base exception for Ruby build failures."""

    pass


class BuildStageError(BuildError):
    """Base exception for a failed build stage."""

    def __init__(self, stage, message: str):
        self.stage = stage
        super().__init__(f"Build stage '{stage.value}' failed: {message}")


class StageSpawnError(BuildStageError):
    """The stage's tool could not be started (usually a missing toolchain)."""

    def __init__(self, stage, cause: ProcessSpawnError):
        self.cause = cause
        super().__init__(stage, str(cause))


class StageExitError(BuildStageError):
    """The stage's tool ran and reported failure."""

    def __init__(self, stage, result):
        self.result = result
        message = f"exit status {result.returncode}"
        output = result.output_text().strip()
        if output:
            message += f"\n{output}"
        super().__init__(stage, message)


class VersionQueryFailedError(BuildError):
    """The freshly installed ruby could not report its version."""

    def __init__(self, cause: RuntimeQueryError):
        self.cause = cause
        super().__init__(f"Built Ruby but could not read its version: {cause}")


# ============================================================================
# Link Exceptions
# ============================================================================


class LinkError(RubyKitError):
    """Base exception for link configuration failures."""

    pass


class NoLinkLibrariesError(LinkError):
    """The runtime reported an empty link-argument string."""

    def __init__(self, static_requested: bool):
        self.static_requested = static_requested
        kind = "static" if static_requested else "shared"
        super().__init__(f"Ruby reports no {kind} link libraries")


class MissingFrameworkArgumentError(LinkError):
    """A '-framework' flag was the last token."""

    def __init__(self, source: str):
        self.source = source
        super().__init__(f"'-framework' has no argument in: {source!r}")


class MalformedLinkFlagError(LinkError):
    """A link token has a shape rubykit does not understand."""

    def __init__(self, token: str, source: str):
        self.token = token
        self.source = source
        super().__init__(f"Unsupported link flag {token!r} in: {source!r}")


# ============================================================================
# Download and Archive Exceptions
# ============================================================================


class SourceDownloadError(RubyKitError):
    """Base exception for fetching and unpacking Ruby sources."""

    pass


class ArchiveIOError(SourceDownloadError):
    """Local filesystem failure while handling the archive."""

    def __init__(self, action: str, path, cause: OSError):
        self.action = action
        self.path = path
        self.cause = cause
        super().__init__(f"Failed to {action} '{path}': {cause}")


class ArchiveRequestError(SourceDownloadError):
    """The archive could not be fetched over the network."""

    pass


class ChecksumMismatchError(SourceDownloadError):
    """The downloaded archive does not match its expected SHA256."""

    pass


class ArchiveUnpackError(SourceDownloadError):
    """The archive could not be unpacked."""

    pass


class InsecureArchiveError(ArchiveUnpackError):
    """Archive member would be written outside of the destination."""

    pass


# ============================================================================
# Resource Exceptions
# ============================================================================


class ResourceError(RubyKitError):
    """Base exception for missing or unusable local resources."""

    pass


class MissingCacheDirError(ResourceError):
    """No cache directory could be found for the current user."""

    def __init__(self, reason: Optional[str] = None):
        message = "No cache directory could be found for the current user"
        if reason:
            message += f": {reason}"
        super().__init__(message)


class MissingEnvironmentError(ResourceError):
    """A required environment variable is not set."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Required environment variable is not set: {name}")


class FileCleanupError(ResourceError):
    """A temporary file could not be removed."""

    def __init__(self, path, cause: OSError):
        self.path = path
        self.cause = cause
        super().__init__(f"Failed to remove '{path}': {cause}")


class LockTimeoutError(ResourceError):
    """A lock file could not be acquired in time."""

    pass


# ============================================================================
# Config Exceptions
# ============================================================================


class ConfigError(RubyKitError):
    """Configuration parsing or validation error."""

    pass
