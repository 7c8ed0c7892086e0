"""
Environment-derived configuration.

Build scripts (a Cargo build.rs, a setup.py, a CI job) mostly talk to
rubykit through environment variables:

    TARGET                  Target triple (defaults to the host)
    RUBYKIT_STATIC_RUBY     Link Ruby statically when set and non-empty
    RUBYKIT_RUBY_VERSION    Ruby version ('x.y' or 'x.y.z')
    RUBYKIT_RUBY_CACHE      Archive cache directory
    RUBYKIT_USE_RVM         Use the ruby installed via rvm
    RUBYKIT_USE_RBENV       Use the ruby installed via rbenv
    RUBYKIT_WORK_DIR        Build work directory (falls back to OUT_DIR)
"""

import dataclasses
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from rubykit.config.parser import RubyKitConfig
from rubykit.core.exceptions import ConfigError, MissingEnvironmentError
from rubykit.core.platform import TargetPlatform, detect_host_target
from rubykit.core.version import Strictness, Version

logger = logging.getLogger(__name__)

ENV_TARGET = "TARGET"
ENV_STATIC = "RUBYKIT_STATIC_RUBY"
ENV_VERSION = "RUBYKIT_RUBY_VERSION"
ENV_CACHE = "RUBYKIT_RUBY_CACHE"
ENV_USE_RVM = "RUBYKIT_USE_RVM"
ENV_USE_RBENV = "RUBYKIT_USE_RBENV"
ENV_WORK_DIR = "RUBYKIT_WORK_DIR"
ENV_OUT_DIR = "OUT_DIR"

WATCHED_VARIABLES = (ENV_USE_RVM, ENV_USE_RBENV, ENV_VERSION, ENV_STATIC)


def has_env(environ: Mapping[str, str], key: str) -> bool:
    """Whether key is set to a non-empty value."""
    return bool(environ.get(key))


@dataclass(frozen=True)
class BuildEnvironment:
    """
    Settings read from environment variables.

    A field is None when its variable is not set, so it does not override
    anything.
    """

    target: Optional[str] = None
    static: Optional[bool] = None
    version: Optional[Version] = None
    cache_dir: Optional[Path] = None
    driver: Optional[str] = None
    work_dir: Optional[Path] = None

    @classmethod
    def from_env(
        cls, environ: Optional[Mapping[str, str]] = None
    ) -> "BuildEnvironment":
        """
        Read the environment.

        Args:
            environ: Environment to read (os.environ if None)

        Raises:
            VersionParseError: If RUBYKIT_RUBY_VERSION is not 'x.y' or 'x.y.z'
            ConfigError: If both rvm and rbenv are requested
        """
        environ = os.environ if environ is None else environ

        version = None
        if environ.get(ENV_VERSION):
            version = Version.parse(environ[ENV_VERSION], Strictness.REQUIRE_MINOR)

        use_rvm = has_env(environ, ENV_USE_RVM)
        use_rbenv = has_env(environ, ENV_USE_RBENV)
        if use_rvm and use_rbenv:
            raise ConfigError(
                f"Only one of {ENV_USE_RVM} and {ENV_USE_RBENV} may be set"
            )
        driver = "rvm" if use_rvm else "rbenv" if use_rbenv else None

        work_dir = environ.get(ENV_WORK_DIR) or environ.get(ENV_OUT_DIR)
        cache_dir = environ.get(ENV_CACHE)

        return cls(
            target=environ.get(ENV_TARGET) or None,
            static=True if has_env(environ, ENV_STATIC) else None,
            version=version,
            cache_dir=Path(cache_dir) if cache_dir else None,
            driver=driver,
            work_dir=Path(work_dir) if work_dir else None,
        )

    def target_platform(self, require_target: bool = False) -> TargetPlatform:
        """
        The target to build for.

        Args:
            require_target: Fail instead of falling back to the host

        Raises:
            MissingEnvironmentError: If TARGET is required but not set
        """
        if self.target:
            return TargetPlatform.from_triple(self.target)
        if require_target:
            raise MissingEnvironmentError(ENV_TARGET)
        return detect_host_target()

    def require_work_dir(self) -> Path:
        """
        Raises:
            MissingEnvironmentError: If neither RUBYKIT_WORK_DIR nor OUT_DIR is set
        """
        if self.work_dir is None:
            raise MissingEnvironmentError(ENV_WORK_DIR)
        return self.work_dir


def apply_environment(config: RubyKitConfig, env: BuildEnvironment) -> RubyKitConfig:
    """
    Overlay environment settings on a configuration.

    Returns:
        A new configuration; the input is not modified
    """
    overrides = {}
    if env.version is not None:
        overrides["version"] = env.version
    if env.static is not None:
        overrides["static"] = env.static
    if env.driver is not None:
        overrides["driver"] = env.driver
    if env.cache_dir is not None:
        overrides["cache_dir"] = env.cache_dir
        overrides["cache"] = True
    if env.work_dir is not None:
        overrides["work_dir"] = env.work_dir
    if env.target is not None:
        overrides["target"] = env.target

    if overrides:
        logger.debug(f"Environment overrides: {', '.join(sorted(overrides))}")
    return dataclasses.replace(
        config, ruby=dataclasses.replace(config.ruby, **overrides)
    )
