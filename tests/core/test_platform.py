"""
Unit tests for target platform handling.
"""

import pytest
from unittest.mock import patch

from rubykit.core.platform import (
    TargetPlatform,
    detect_host_target,
    is_msvc_target,
)


class TestTargetPlatform:
    """Tests for TargetPlatform."""

    def test_msvc(self):
        target = TargetPlatform.from_triple("x86_64-pc-windows-msvc")
        assert target.is_msvc
        assert target.is_windows
        assert target.ruby_target() == "x64-mswin64"

    def test_mingw(self):
        target = TargetPlatform.from_triple("x86_64-pc-windows-gnu")
        assert not target.is_msvc
        assert target.is_windows
        assert target.ruby_target() == "x86_64-pc-mingw32"

    def test_posix_triple_passes_through(self):
        target = TargetPlatform.from_triple(" x86_64-apple-darwin ")
        assert target.triple == "x86_64-apple-darwin"
        assert not target.is_windows
        assert target.ruby_target() == "x86_64-apple-darwin"

    def test_empty_triple(self):
        with pytest.raises(ValueError):
            TargetPlatform.from_triple("  ")

    @pytest.mark.parametrize(
        "triple,expected",
        [
            ("x86_64-pc-windows-msvc", True),
            ("x64-mswin64_140", True),
            ("x86_64-linux", False),
            ("x64-mingw32", False),
        ],
    )
    def test_is_msvc_target(self, triple, expected):
        assert is_msvc_target(triple) is expected


class TestDetectHostTarget:
    """Tests for detect_host_target()."""

    @patch("rubykit.core.platform.platform.machine", return_value="AMD64")
    @patch("rubykit.core.platform.platform.system", return_value="Windows")
    def test_windows(self, _system, _machine):
        assert detect_host_target().triple == "x86_64-pc-windows-msvc"

    @patch("rubykit.core.platform.platform.machine", return_value="arm64")
    @patch("rubykit.core.platform.platform.system", return_value="Darwin")
    def test_macos(self, _system, _machine):
        assert detect_host_target().triple == "aarch64-apple-darwin"

    @patch("rubykit.core.platform.platform.libc_ver", return_value=("glibc", "2.31"))
    @patch("rubykit.core.platform.platform.machine", return_value="x86_64")
    @patch("rubykit.core.platform.platform.system", return_value="Linux")
    def test_linux(self, _system, _machine, _libc):
        assert detect_host_target().triple == "x86_64-unknown-linux-gnu"

    @patch("rubykit.core.platform.platform.machine", return_value="x86_64")
    @patch("rubykit.core.platform.platform.system", return_value="Plan9")
    def test_unsupported(self, _system, _machine):
        with pytest.raises(RuntimeError, match="Unsupported"):
            detect_host_target()

    def test_cached(self):
        assert detect_host_target() is detect_host_target()
