"""
Process execution collaborator.

Every external tool rubykit starts (autoconf, configure, make, ruby itself)
goes through ProcessRunner so callers and tests can substitute their own
runner. Calls block until the child exits.
"""

import logging
import os
import subprocess
from dataclasses import dataclass
from typing import Mapping, Optional, Sequence, Union

from rubykit.core.exceptions import ProcessSpawnError

logger = logging.getLogger(__name__)

PathLike = Union[str, os.PathLike]


@dataclass(frozen=True)
class ProcessResult:
    """Exit status and captured output of a finished process."""

    command: tuple
    returncode: int
    stdout: bytes = b""
    stderr: bytes = b""

    @property
    def success(self) -> bool:
        return self.returncode == 0

    def stdout_text(self) -> str:
        """Decode stdout as strict UTF-8."""
        return self.stdout.decode("utf-8")

    def output_text(self) -> str:
        """Combined stdout and stderr for diagnostics (lossy decoding)."""
        parts = []
        for stream in (self.stdout, self.stderr):
            if stream:
                parts.append(stream.decode("utf-8", errors="replace"))
        return "\n".join(parts)


class ProcessRunner:
    """Runs commands with subprocess and captures their output."""

    def run(
        self,
        command: Sequence[PathLike],
        cwd: Optional[PathLike] = None,
        env: Optional[Mapping[str, str]] = None,
        capture_output: bool = True,
        stdin: Optional[bytes] = None,
    ) -> ProcessResult:
        """
        Run a command to completion.

        Args:
            command: Program followed by its arguments
            cwd: Working directory for the child process
            env: Full environment for the child (inherits ours if None)
            capture_output: Capture stdout/stderr instead of inheriting them
            stdin: Bytes to feed to the child; stdin is closed if None

        Returns:
            ProcessResult with exit status and captured output

        Raises:
            ProcessSpawnError: If the program could not be started
        """
        args = [os.fspath(part) for part in command]
        logger.debug(f"Running: {' '.join(args)}" + (f" (cwd={cwd})" if cwd else ""))

        try:
            completed = subprocess.run(
                args,
                cwd=os.fspath(cwd) if cwd is not None else None,
                env=dict(env) if env is not None else None,
                input=stdin,
                stdin=subprocess.DEVNULL if stdin is None else None,
                capture_output=capture_output,
                check=False,
            )
        except OSError as e:
            raise ProcessSpawnError(args, e) from e

        return ProcessResult(
            command=tuple(args),
            returncode=completed.returncode,
            stdout=completed.stdout or b"",
            stderr=completed.stderr or b"",
        )


def merged_environment(
    overrides: Optional[Mapping[str, str]] = None,
    remove: Sequence[str] = (),
    base: Optional[Mapping[str, str]] = None,
) -> dict:
    """
    Build a child environment from the current one.

    Args:
        overrides: Variables to set
        remove: Variables to drop
        base: Starting environment (os.environ if None)

    Returns:
        New environment dictionary
    """
    env = dict(os.environ if base is None else base)
    for key in remove:
        env.pop(key, None)
    if overrides:
        env.update(overrides)
    return env


def executable_name(name: str, windows: bool) -> str:
    """Append '.exe' for Windows targets."""
    return f"{name}.exe" if windows else name
