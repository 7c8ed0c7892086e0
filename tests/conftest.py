"""
Pytest configuration and shared fixtures for rubykit tests.
"""

import pytest
from typing import Dict, Optional
from unittest.mock import MagicMock, patch

from requests.exceptions import ChunkedEncodingError

from rubykit.core.platform import clear_platform_cache
from rubykit.core.process import ProcessResult, ProcessRunner
from rubykit.core.version import VERSION_SCRIPT
from rubykit.runtime.ruby import PREFIX_SCRIPT


def pytest_addoption(parser):
    """Add custom command line options."""
    parser.addoption(
        "--integration",
        action="store_true",
        default=False,
        help="run integration tests that need network access or a toolchain",
    )


def pytest_collection_modifyitems(config, items):
    """Skip integration tests unless --integration flag is provided."""
    if config.getoption("--integration"):
        return
    skip_integration = pytest.mark.skip(reason="need --integration option to run")
    for item in items:
        if "integration" in item.keywords:
            item.add_marker(skip_integration)


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers",
        "integration: marks tests as integration tests (requires --integration)",
    )


# ============================================================================
# Shared Test Fixtures
# ============================================================================


@pytest.fixture(autouse=True)
def reset_platform_cache():
    """Host detection is cached per process; start each test fresh."""
    clear_platform_cache()
    yield
    clear_platform_cache()


def make_result(command=("tool",), returncode=0, stdout=b"", stderr=b""):
    return ProcessResult(tuple(str(c) for c in command), returncode, stdout, stderr)


@pytest.fixture
def result_factory():
    """Factory for ProcessResult values."""
    return make_result


@pytest.fixture
def mock_runner():
    """A ProcessRunner double that succeeds with empty output by default."""
    runner = MagicMock(spec=ProcessRunner)
    runner.run.side_effect = lambda command, **kwargs: make_result(command)
    return runner


def _script_of(command) -> Optional[str]:
    args = [str(part) for part in command]
    if "-e" in args:
        index = args.index("-e")
        if index + 1 < len(args):
            return args[index + 1]
    return None


@pytest.fixture
def fake_ruby():
    """
    Factory for a ProcessRunner that answers like a ruby interpreter.

    Scripts asking for the version, the prefix, or RbConfig::CONFIG values
    get answers from the given arguments; anything else prints nothing.
    """

    def factory(
        config: Optional[Dict[str, str]] = None,
        version: str = "2.6.2",
        prefix: str = "/opt/ruby",
    ):
        config = config or {}

        def respond(command, **kwargs):
            script = _script_of(command)
            if script == VERSION_SCRIPT:
                return make_result(command, stdout=version.encode())
            if script == PREFIX_SCRIPT:
                return make_result(command, stdout=prefix.encode())
            if script and script.startswith("print RbConfig::CONFIG['"):
                key = script[len("print RbConfig::CONFIG['") : -2]
                return make_result(command, stdout=config.get(key, "").encode())
            return make_result(command)

        runner = MagicMock(spec=ProcessRunner)
        runner.run.side_effect = respond
        return runner

    return factory


@pytest.fixture
def interrupted_get():
    """
    Patch requests.get with responses whose body breaks off.

    Each request streams the given chunks and then fails the way a dropped
    connection does. The patched mock is returned for call counting.
    """

    def respond(*chunks: bytes):
        def iter_content(chunk_size):
            yield from chunks
            raise ChunkedEncodingError("Connection broken: connection reset")

        response = MagicMock()
        response.headers = {}
        response.iter_content.side_effect = iter_content
        response.__enter__.return_value = response
        return response

    def factory(*chunks: bytes):
        return patch(
            "rubykit.core.download.requests.get",
            side_effect=lambda *args, **kwargs: respond(*chunks),
        )

    return factory
