"""
Unit tests for the process runner.
"""

import sys
from pathlib import Path

import pytest

from rubykit.core.exceptions import ProcessSpawnError
from rubykit.core.process import (
    ProcessResult,
    ProcessRunner,
    executable_name,
    merged_environment,
)


class TestProcessResult:
    """Test ProcessResult dataclass."""

    def test_success(self):
        assert ProcessResult(("make",), 0).success
        assert not ProcessResult(("make",), 2).success

    def test_stdout_text_is_strict(self):
        result = ProcessResult(("ruby",), 0, stdout=b"\xff")
        with pytest.raises(UnicodeDecodeError):
            result.stdout_text()

    def test_output_text_joins_streams(self):
        result = ProcessResult(("make",), 1, stdout=b"out", stderr=b"err\xff")
        text = result.output_text()
        assert text.startswith("out\nerr")


class TestProcessRunner:
    """Tests running real processes (the current interpreter)."""

    def test_captures_stdout(self):
        result = ProcessRunner().run([sys.executable, "-c", "print('hi')"])
        assert result.success
        assert result.stdout_text().strip() == "hi"

    def test_non_zero_exit_is_a_result(self):
        result = ProcessRunner().run([sys.executable, "-c", "raise SystemExit(3)"])
        assert result.returncode == 3

    def test_cwd_and_env(self, tmp_path):
        script = "import os; print(os.getcwd()); print(os.environ['RUBYKIT_T'])"
        env = merged_environment({"RUBYKIT_T": "value"})
        result = ProcessRunner().run(
            [sys.executable, "-c", script], cwd=tmp_path, env=env
        )
        lines = result.stdout_text().splitlines()
        assert Path(lines[0]).resolve() == tmp_path.resolve()
        assert lines[-1] == "value"

    def test_stdin(self):
        script = "import sys; print(sys.stdin.read().upper())"
        result = ProcessRunner().run([sys.executable, "-c", script], stdin=b"abc")
        assert result.stdout_text().strip() == "ABC"

    def test_missing_program(self, tmp_path):
        with pytest.raises(ProcessSpawnError) as exc_info:
            ProcessRunner().run([tmp_path / "no-such-tool"])
        assert isinstance(exc_info.value.cause, OSError)


class TestHelpers:
    """Tests for environment and naming helpers."""

    def test_merged_environment(self):
        env = merged_environment(
            {"B": "2"}, remove=["A"], base={"A": "1", "C": "3"}
        )
        assert env == {"B": "2", "C": "3"}

    def test_merged_environment_does_not_modify_base(self):
        base = {"A": "1"}
        merged_environment({"A": "2"}, base=base)
        assert base == {"A": "1"}

    def test_executable_name(self):
        assert executable_name("ruby", windows=True) == "ruby.exe"
        assert executable_name("ruby", windows=False) == "ruby"
