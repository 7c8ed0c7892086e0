"""
Target platform handling for rubykit.

Builds are driven by a target triple (e.g. 'x86_64-unknown-linux-gnu' or
'x86_64-pc-windows-msvc'). The triple decides which flag grammar the
runtime's link configuration uses (POSIX vs. MSVC), which tools run the
build, and which '--target' value Ruby's configure script receives.

Usage:
    from rubykit.core.platform import TargetPlatform, detect_host_target

    target = TargetPlatform.from_triple("x86_64-pc-windows-msvc")
    target.is_msvc        # True
    target.ruby_target()  # 'x64-mswin64'
"""

import functools
import platform
from dataclasses import dataclass

# Rust-style triple -> Ruby configure target
_RUBY_TARGETS = {
    "x86_64-pc-windows-msvc": "x64-mswin64",
    "x86_64-pc-windows-gnu": "x86_64-pc-mingw32",
    "i686-pc-windows-msvc": "i386-mswin32",
    "i686-pc-windows-gnu": "i686-pc-mingw32",
}


@dataclass(frozen=True)
class TargetPlatform:
    """
    A compilation target.

    Attributes:
        triple: Target triple as given by the embedding build system
    """

    triple: str

    @classmethod
    def from_triple(cls, triple: str) -> "TargetPlatform":
        triple = triple.strip()
        if not triple:
            raise ValueError("Target triple cannot be empty")
        return cls(triple)

    @property
    def is_msvc(self) -> bool:
        """Whether the target uses the MSVC toolchain and '.lib' flag syntax."""
        return is_msvc_target(self.triple)

    @property
    def is_windows(self) -> bool:
        return (
            "windows" in self.triple
            or "mswin" in self.triple
            or "mingw" in self.triple
        )

    def ruby_target(self) -> str:
        """The '--target' value understood by Ruby's configure scripts."""
        return _RUBY_TARGETS.get(self.triple, self.triple)

    def __str__(self) -> str:
        return self.triple


def is_msvc_target(triple: str) -> bool:
    """Whether a target triple (Rust or Ruby style) names an MSVC target."""
    return "msvc" in triple or "mswin" in triple


@functools.lru_cache(maxsize=1)
def detect_host_target() -> TargetPlatform:
    """
    Detect the triple of the machine rubykit runs on.

    This function is cached - it only runs detection once per process.

    Returns:
        TargetPlatform for the host

    Raises:
        RuntimeError: If the host OS is not supported

    Example:
        >>> detect_host_target().triple
        'x86_64-unknown-linux-gnu'
    """
    arch = _detect_architecture()
    system = platform.system().lower()

    if system == "windows":
        return TargetPlatform(f"{arch}-pc-windows-msvc")
    elif system == "darwin":
        return TargetPlatform(f"{arch}-apple-darwin")
    elif system == "linux":
        libc = "musl" if "musl" in platform.libc_ver()[0].lower() else "gnu"
        return TargetPlatform(f"{arch}-unknown-linux-{libc}")
    elif system == "freebsd":
        return TargetPlatform(f"{arch}-unknown-freebsd")
    else:
        raise RuntimeError(f"Unsupported operating system: {system}")


def _detect_architecture() -> str:
    """
    Detect CPU architecture.

    Returns:
        Triple architecture component: 'x86_64', 'aarch64', 'i686', 'arm'
    """
    machine = platform.machine().lower()

    if machine in ("x86_64", "amd64", "x64"):
        return "x86_64"
    elif machine in ("aarch64", "arm64"):
        return "aarch64"
    elif machine in ("i386", "i686", "x86"):
        return "i686"
    elif machine.startswith("arm"):
        return "arm"
    else:
        # Return original for unknown architectures
        return machine


def clear_platform_cache() -> None:
    """Clear the cached host detection (used by tests)."""
    detect_host_target.cache_clear()
