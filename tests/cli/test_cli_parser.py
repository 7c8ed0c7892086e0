"""
Unit tests for the rubykit command-line interface.
"""

import json

import pytest
from pathlib import Path
from unittest.mock import MagicMock, patch

from rubykit.cli.parser import CLI
from rubykit.config.environment import ENV_OUT_DIR, WATCHED_VARIABLES
from rubykit.config import environment
from rubykit.core.platform import TargetPlatform
from rubykit.core.version import Version
from rubykit.runtime.linking import DynamicLibrary
from rubykit.source.builder import BuildStage

LINUX = "x86_64-unknown-linux-gnu"


@pytest.fixture
def clean_env(tmp_path, monkeypatch):
    """No rubykit variables and no rubykit.yaml in the working directory."""
    for name in dir(environment):
        if name.startswith("ENV_"):
            monkeypatch.delenv(getattr(environment, name), raising=False)
    monkeypatch.chdir(tmp_path)
    return tmp_path


class TestParser:
    """Tests for argument parsing."""

    def test_build_arguments(self):
        args = CLI().parse_args(
            [
                "build",
                "2.6",
                "--work-dir",
                "work",
                "--force",
                "configure",
                "--force",
                "make",
                "-j",
                "4",
                "--static",
            ]
        )

        assert args.command == "build"
        assert args.ruby_version == "2.6"
        assert args.work_dir == Path("work")
        assert args.force == ["configure", "make"]
        assert args.jobs == 4
        assert args.static is True

    def test_build_rejects_unknown_stage(self):
        with pytest.raises(SystemExit):
            CLI().parse_args(["build", "--force", "cmake"])

    def test_link_ruby_and_prefix_exclusive(self):
        with pytest.raises(SystemExit):
            CLI().parse_args(["link", "--ruby", "ruby", "--prefix", "/opt"])

    def test_link_default_format(self):
        assert CLI().parse_args(["link"]).format == "cargo"

    def test_version_requires_versions(self):
        with pytest.raises(SystemExit):
            CLI().parse_args(["version"])

    def test_no_command(self, capsys):
        assert CLI().run([]) == 1
        assert "usage:" in capsys.readouterr().out


class TestVersionCommand:
    """Tests for 'rubykit version'."""

    def test_normalizes(self, capsys):
        assert CLI().run(["version", "2.6", "3"]) == 0
        assert capsys.readouterr().out.split() == ["2.6.0", "3.0.0"]

    def test_sort(self, capsys):
        CLI().run(["version", "--sort", "2.6.0", "2.6.0-rc1", "2.6.0-preview2"])
        assert capsys.readouterr().out.split() == [
            "2.6.0-preview2",
            "2.6.0-rc1",
            "2.6.0",
        ]

    def test_url(self, capsys):
        CLI().run(["version", "--url", "2.6.2"])
        assert capsys.readouterr().out == (
            "2.6.2 https://cache.ruby-lang.org/pub/ruby/2.6/ruby-2.6.2.tar.bz2\n"
        )

    def test_strict_failure(self):
        assert CLI().run(["version", "--strict", "all", "2.6"]) == 1


class TestConfigCommand:
    """Tests for 'rubykit config'."""

    def test_defaults(self, clean_env, capsys):
        assert CLI().run(["config"]) == 0
        out = capsys.readouterr().out
        assert "version: 2.6.2" in out
        assert "force: []" in out

    def test_reads_local_file_and_environment(self, clean_env, capsys, monkeypatch):
        (clean_env / "rubykit.yaml").write_text(
            'version: 1\nruby:\n  version: "2.5"\n'
        )
        monkeypatch.setenv(ENV_OUT_DIR, "/out")

        CLI().run(["config"])

        out = capsys.readouterr().out
        assert "version: 2.5.0" in out
        assert "work_dir: /out" in out

    def test_explicit_missing_file(self, clean_env):
        assert CLI().run(["--config", "missing.yaml", "config"]) == 1


class TestBuildCommand:
    """Tests for 'rubykit build'."""

    @pytest.fixture
    def downloader(self):
        with patch("rubykit.cli.commands.build.RubySourceDownloader") as cls:
            ruby = MagicMock()
            ruby.version = Version.of(2, 6, 2)
            ruby.install_dir = Path("/out")
            source = cls.return_value.download.return_value
            source.builder.return_value.execute.return_value = ruby
            yield cls

    def test_build(self, clean_env, downloader, capsys):
        work = clean_env / "work"

        code = CLI().run(
            ["build", "2.6", "--work-dir", str(work), "--target", LINUX, "-j", "2"]
        )

        assert code == 0
        args, kwargs = downloader.call_args
        assert args == (Version.of(2, 6, 0), work / LINUX)
        assert kwargs["cache"] is True
        assert kwargs["ignore_cache"] is False
        assert kwargs["sha256"] is None

        source = downloader.return_value.download.return_value
        out_dir, target, options = source.builder.call_args.args
        assert out_dir == work / LINUX / "ruby-2.6.0-out"
        assert target == TargetPlatform(LINUX)
        assert options.shared is True
        assert options.jobs == 2
        assert "Ruby 2.6.2 installed in" in capsys.readouterr().out

    def test_static_force_and_cache_flags(self, clean_env, downloader):
        CLI().run(
            [
                "build",
                "--work-dir",
                str(clean_env),
                "--target",
                LINUX,
                "--static",
                "--force",
                "make",
                "--no-cache",
                "--show-output",
                "--sha256",
                "ab" * 32,
            ]
        )

        assert downloader.call_args.kwargs["cache"] is False
        assert downloader.call_args.kwargs["cache_dir"] is None
        assert downloader.call_args.kwargs["sha256"] == "ab" * 32
        source = downloader.return_value.download.return_value
        options = source.builder.call_args.args[2]
        assert options.shared is False
        assert options.force == {BuildStage.COMPILE_AND_INSTALL}
        assert options.capture_output is False

    def test_work_dir_from_out_dir(self, clean_env, downloader, monkeypatch):
        monkeypatch.setenv(ENV_OUT_DIR, str(clean_env / "target"))

        assert CLI().run(["build", "--target", LINUX]) == 0

        assert downloader.call_args.args[1] == clean_env / "target" / LINUX

    def test_missing_work_dir(self, clean_env, downloader):
        assert CLI().run(["build", "--target", LINUX]) == 1
        downloader.assert_not_called()


class TestLinkCommand:
    """Tests for 'rubykit link'."""

    @pytest.fixture
    def runtime(self):
        ruby = MagicMock()
        ruby.link_directives.return_value = [DynamicLibrary("ruby")]
        with patch(
            "rubykit.cli.commands.link.resolve_runtime", return_value=ruby
        ) as resolve:
            yield resolve

    def test_cargo(self, clean_env, runtime, capsys):
        assert CLI().run(["link", "--prefix", "/opt/ruby"]) == 0

        lines = capsys.readouterr().out.splitlines()
        assert lines == [
            *(f"cargo:rerun-if-env-changed={name}" for name in WATCHED_VARIABLES),
            "cargo:rustc-link-lib=dylib=ruby",
        ]
        assert runtime.call_args.kwargs["prefix"] == Path("/opt/ruby")
        runtime.return_value.link_directives.assert_called_once_with(False)

    def test_json_static(self, clean_env, runtime, capsys):
        CLI().run(["link", "--static", "--format", "json"])

        assert json.loads(capsys.readouterr().out) == [
            {"type": "dylib", "name": "ruby"}
        ]
        runtime.return_value.link_directives.assert_called_once_with(True)
