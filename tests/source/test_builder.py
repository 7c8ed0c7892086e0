"""
Unit tests for the staged Ruby build.

Tests cover:
- Marker-based skipping and the run cascade
- Forced stages
- Configure script suppression on MSVC targets
- Stage command composition
- Failure reporting and the terminal version query
"""

import os
import sys

import pytest
from unittest.mock import patch

from rubykit.core.exceptions import (
    BuildError,
    ProcessSpawnError,
    StageExitError,
    StageSpawnError,
    VersionQueryFailedError,
)
from rubykit.core.version import VERSION_SCRIPT, Version
from rubykit.source.builder import (
    BuildOptions,
    BuildOrchestrator,
    BuildStage,
    RubySource,
)

LINUX = "x86_64-unknown-linux-gnu"
MSVC = "x86_64-pc-windows-msvc"

posix_only = pytest.mark.skipif(
    sys.platform == "win32", reason="configure is run through sh on Windows"
)


def is_version_query(command) -> bool:
    return VERSION_SCRIPT in [str(part) for part in command]


def stage_commands(runner):
    """Commands of every stage the runner was asked to run, in order."""
    commands = []
    for call in runner.run.call_args_list:
        command = call.args[0]
        if not is_version_query(command):
            commands.append([str(part) for part in command])
    return commands


def stage_tools(runner):
    return [os.path.basename(command[0]) for command in stage_commands(runner)]


@pytest.fixture
def tree(tmp_path):
    """Source and output directories; creates markers on request."""

    class Tree:
        src = tmp_path / "ruby-2.6.2"
        out = tmp_path / "ruby-2.6.2-out"

        def touch(self, *names):
            paths = {
                "configure": self.src / "configure",
                "Makefile": self.src / "Makefile",
                "ruby": self.out / "bin" / "ruby",
                "ruby.exe": self.out / "bin" / "ruby.exe",
            }
            for name in names:
                paths[name].parent.mkdir(parents=True, exist_ok=True)
                paths[name].write_text("")

    t = Tree()
    t.src.mkdir()
    return t


@pytest.fixture
def runner(fake_ruby):
    return fake_ruby(version="2.6.2")


@pytest.fixture(autouse=True)
def no_nmake():
    with patch("rubykit.source.builder.find_executable", return_value=None):
        yield


class TestBuildStage:
    """Tests for BuildStage lookups."""

    @pytest.mark.parametrize(
        "name", ["make", "COMPILE_AND_INSTALL", "compile_and_install"]
    )
    def test_from_name(self, name):
        assert BuildStage.from_name(name) is BuildStage.COMPILE_AND_INSTALL

    def test_unknown(self):
        with pytest.raises(ValueError, match="autoconf, configure, make"):
            BuildStage.from_name("cmake")

    def test_order(self):
        assert [s.value for s in BuildStage] == ["autoconf", "configure", "make"]


class TestRubySource:
    """Tests for the source directory wrapper."""

    def test_path_conversion(self, tmp_path):
        source = RubySource.from_path(str(tmp_path))
        assert source.path == tmp_path
        assert os.fspath(source) == str(tmp_path)
        assert str(source) == str(tmp_path)

    def test_builder(self, tree):
        builder = RubySource(tree.src).builder(tree.out, LINUX)
        assert isinstance(builder, BuildOrchestrator)
        assert builder.out_dir == tree.out

    def test_make_command(self, tmp_path):
        assert RubySource(tmp_path).make_command(LINUX) == ["make"]


class TestBuildOptions:
    """Tests for configure flag rendering."""

    def test_defaults_render_nothing(self):
        assert BuildOptions().configure_flags(environ={}) == []

    def test_all_flags(self):
        options = BuildOptions(
            enable=["debug-env"],
            disable=["jit-support"],
            with_packages=["openssl-dir=/opt/ssl"],
            without_packages=["gmp"],
            shared=True,
            install_static_library=False,
            install_doc=False,
            arch=["x86_64", "arm64"],
            dynamic_load=False,
            load_relative=True,
            rubygems=False,
            inherit_env=["CC", "CFLAGS"],
            configure_vars={"LDFLAGS": "-L/opt/lib"},
        )

        flags = options.configure_flags(environ={"CC": "clang"})

        assert flags == [
            "--enable-debug-env",
            "--disable-jit-support",
            "--with-openssl-dir=/opt/ssl",
            "--without-gmp",
            "--enable-shared",
            "--disable-install-static-library",
            "--with-arch=x86_64,arm64",
            "--disable-install-doc",
            "--disable-dln",
            "--enable-load-relative",
            "--disable-rubygems",
            "CC=clang",
            "LDFLAGS=-L/opt/lib",
        ]

    def test_static(self):
        assert BuildOptions(shared=False).configure_flags(environ={}) == [
            "--disable-shared"
        ]


class TestSkipRules:
    """Tests for which stages run."""

    def test_everything_built_runs_no_stage(self, tree, runner):
        """A finished tree only has its version read back."""
        tree.touch("configure", "Makefile", "ruby")

        ruby = BuildOrchestrator(tree.src, tree.out, LINUX, runner=runner).execute()

        assert stage_commands(runner) == []
        assert runner.run.call_count == 1
        assert ruby.version == Version.of(2, 6, 2)
        assert ruby.install_dir == tree.out
        assert ruby.executable_path == tree.out / "bin" / "ruby"
        assert ruby.source_dir == tree.src

    def test_only_binary_missing(self, tree, runner):
        tree.touch("configure", "Makefile")

        orchestrator = BuildOrchestrator(tree.src, tree.out, LINUX, runner=runner)
        orchestrator.execute()

        assert stage_tools(runner) == ["make"]
        assert orchestrator.executed_stages == [BuildStage.COMPILE_AND_INSTALL]

    def test_clean_tree_runs_everything(self, tree, runner):
        orchestrator = BuildOrchestrator(tree.src, tree.out, LINUX, runner=runner)
        orchestrator.execute()

        assert orchestrator.executed_stages == list(BuildStage)

    def test_earlier_stage_cascades(self, tree, runner):
        """Makefile and binary exist, but configure must be regenerated."""
        tree.touch("Makefile", "ruby")

        orchestrator = BuildOrchestrator(tree.src, tree.out, LINUX, runner=runner)
        orchestrator.execute()

        assert orchestrator.executed_stages == list(BuildStage)

    def test_middle_stage_cascades(self, tree, runner):
        tree.touch("configure", "ruby")

        orchestrator = BuildOrchestrator(tree.src, tree.out, LINUX, runner=runner)
        orchestrator.execute()

        assert orchestrator.executed_stages == [
            BuildStage.GENERATE_MAKEFILE,
            BuildStage.COMPILE_AND_INSTALL,
        ]

    def test_force(self, tree, runner):
        tree.touch("configure", "Makefile", "ruby")
        options = BuildOptions(force={BuildStage.GENERATE_MAKEFILE})

        orchestrator = BuildOrchestrator(
            tree.src, tree.out, LINUX, options, runner=runner
        )
        orchestrator.execute()

        assert orchestrator.executed_stages == [
            BuildStage.GENERATE_MAKEFILE,
            BuildStage.COMPILE_AND_INSTALL,
        ]

    def test_plan_does_not_run(self, tree, runner):
        tree.touch("configure")

        decisions = BuildOrchestrator(tree.src, tree.out, LINUX, runner=runner).plan()

        assert [d.run for d in decisions] == [False, True, True]
        assert decisions[0].reason == "configure exists"
        assert decisions[1].reason == "Makefile is missing"
        assert decisions[2].reason == "an earlier stage ran"
        runner.run.assert_not_called()


class TestMsvc:
    """Tests for MSVC targets."""

    def test_configure_script_suppressed(self, tree, runner):
        """autoconf never runs on MSVC, even when configure is missing."""
        tree.touch("ruby.exe")

        orchestrator = BuildOrchestrator(tree.src, tree.out, MSVC, runner=runner)
        orchestrator.execute()

        assert orchestrator.executed_stages == [
            BuildStage.GENERATE_MAKEFILE,
            BuildStage.COMPILE_AND_INSTALL,
        ]
        configure = stage_commands(runner)[0]
        assert configure[0] == str(tree.src / "win32" / "configure.bat")
        assert "--target=x64-mswin64" in configure

    def test_suppression_does_not_cascade(self, tree, runner):
        tree.touch("Makefile", "ruby.exe")

        orchestrator = BuildOrchestrator(tree.src, tree.out, MSVC, runner=runner)
        orchestrator.execute()

        assert orchestrator.executed_stages == []

    def test_force_does_not_override_suppression(self, tree, runner):
        tree.touch("Makefile", "ruby.exe")
        options = BuildOptions(force={BuildStage.GENERATE_CONFIGURE_SCRIPT})

        orchestrator = BuildOrchestrator(
            tree.src, tree.out, MSVC, options, runner=runner
        )
        orchestrator.execute()

        assert orchestrator.executed_stages == []

    def test_executable_has_exe_suffix(self, tree):
        orchestrator = BuildOrchestrator(tree.src, tree.out, MSVC)
        assert orchestrator.executable_path == tree.out / "bin" / "ruby.exe"

    def test_nmake_selected_when_available(self, tree):
        with patch(
            "rubykit.source.builder.find_executable", return_value="nmake.exe"
        ):
            orchestrator = BuildOrchestrator(
                tree.src, tree.out, MSVC, BuildOptions(jobs=8)
            )
        make = orchestrator.stages[-1].command
        assert make == ("nmake", "install")

    def test_explicit_suppression_on_posix(self, tree, runner):
        options = BuildOptions(skip_configure_script=True)

        orchestrator = BuildOrchestrator(
            tree.src, tree.out, LINUX, options, runner=runner
        )

        assert orchestrator.plan()[0].run is False


class TestStageCommands:
    """Tests for how each stage is invoked."""

    @posix_only
    def test_configure_command(self, tree):
        options = BuildOptions(shared=True, install_doc=False)
        orchestrator = BuildOrchestrator(tree.src, tree.out, LINUX, options)

        configure = orchestrator.stages[1].command

        assert configure[:3] == (
            str(tree.src / "configure"),
            f"--prefix={tree.out}",
            f"--target={LINUX}",
        )
        assert "--enable-shared" in configure
        assert "--disable-install-doc" in configure

    def test_make_command(self, tree):
        orchestrator = BuildOrchestrator(
            tree.src, tree.out, LINUX, BuildOptions(jobs=4)
        )
        make = orchestrator.stages[2]

        assert make.command == ("make", "-j4", "install")
        assert make.env == {"PREFIX": str(tree.out)}
        assert make.marker == tree.out / "bin" / "ruby"

    def test_make_tool_override(self, tree):
        options = BuildOptions(make_tool="gmake")
        orchestrator = BuildOrchestrator(tree.src, tree.out, LINUX, options)
        assert orchestrator.stages[2].command == ("gmake", "install")

    def test_stage_args_env_and_removal(self, tree, runner, monkeypatch):
        monkeypatch.setenv("RUBYOPT", "-w")
        tree.touch("configure", "Makefile")
        options = BuildOptions(
            stage_args={BuildStage.COMPILE_AND_INSTALL: ["V=1"]},
            stage_env={BuildStage.COMPILE_AND_INSTALL: {"MAKEFLAGS": "-s"}},
            stage_remove_env={BuildStage.COMPILE_AND_INSTALL: ["RUBYOPT"]},
        )

        BuildOrchestrator(tree.src, tree.out, LINUX, options, runner=runner).execute()

        call = runner.run.call_args_list[0]
        assert list(call.args[0]) == ["make", "install", "V=1"]
        assert call.kwargs["cwd"] == tree.src
        assert call.kwargs["env"]["MAKEFLAGS"] == "-s"
        assert call.kwargs["env"]["PREFIX"] == str(tree.out)
        assert "RUBYOPT" not in call.kwargs["env"]
        assert call.kwargs["capture_output"] is True


class TestFailures:
    """Tests for failed builds."""

    @posix_only
    def test_non_zero_exit(self, tree, runner, result_factory):
        def fail_configure(command, **kwargs):
            if str(command[0]).endswith("configure"):
                return result_factory(command, returncode=1, stderr=b"no cc found")
            return result_factory(command)

        runner.run.side_effect = fail_configure
        orchestrator = BuildOrchestrator(tree.src, tree.out, LINUX, runner=runner)

        with pytest.raises(StageExitError, match="no cc found") as exc_info:
            orchestrator.execute()

        assert exc_info.value.stage is BuildStage.GENERATE_MAKEFILE
        assert orchestrator.executed_stages == [BuildStage.GENERATE_CONFIGURE_SCRIPT]

    def test_spawn_failure(self, tree, runner):
        runner.run.side_effect = ProcessSpawnError(
            ["autoconf"], FileNotFoundError("autoconf")
        )

        with pytest.raises(StageSpawnError) as exc_info:
            BuildOrchestrator(tree.src, tree.out, LINUX, runner=runner).execute()

        assert exc_info.value.stage is BuildStage.GENERATE_CONFIGURE_SCRIPT
        assert isinstance(exc_info.value.cause, ProcessSpawnError)

    def test_version_query_failure(self, tree, mock_runner, result_factory):
        tree.touch("configure", "Makefile", "ruby")
        mock_runner.run.side_effect = None
        mock_runner.run.return_value = result_factory(returncode=127)

        with pytest.raises(VersionQueryFailedError):
            BuildOrchestrator(tree.src, tree.out, LINUX, runner=mock_runner).execute()

    def test_execute_once(self, tree, runner):
        tree.touch("configure", "Makefile", "ruby")
        orchestrator = BuildOrchestrator(tree.src, tree.out, LINUX, runner=runner)
        orchestrator.execute()

        with pytest.raises(BuildError, match="already been executed"):
            orchestrator.execute()


@pytest.mark.integration
class TestBuildIntegration:
    """Builds a real Ruby; needs network access and a C toolchain."""

    def test_build_ruby(self, tmp_path):
        from rubykit.source.downloader import RubySourceDownloader

        version = Version.of(2, 6, 2)
        source = RubySourceDownloader(version, tmp_path).download()
        options = BuildOptions(install_doc=False, jobs=os.cpu_count())

        ruby = source.builder(tmp_path / "out", LINUX, options).execute()

        assert ruby.version == version
