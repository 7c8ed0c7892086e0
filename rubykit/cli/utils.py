"""
Shared utilities for CLI commands.
"""

import logging
from pathlib import Path
from typing import Any, Dict, Optional

from rubykit.config.environment import BuildEnvironment, apply_environment
from rubykit.config.parser import CONFIG_FILENAME, RubyKitConfig, parse_config
from rubykit.core.process import ProcessRunner
from rubykit.runtime.ruby import InstalledRuntime
from rubykit.source.builder import BuildOptions

logger = logging.getLogger(__name__)


# ============================================================================
# Configuration Management
# ============================================================================


def load_effective_config(
    config_file: Optional[Path] = None, environ: Optional[Dict[str, str]] = None
) -> RubyKitConfig:
    """
    Load configuration and apply environment overrides.

    An explicit config_file must exist. Without one, ./rubykit.yaml is used
    when present and the defaults otherwise.

    Raises:
        ConfigError: If the configuration is invalid
        VersionParseError: If RUBYKIT_RUBY_VERSION is invalid
    """
    if config_file is not None:
        config = parse_config(config_file)
    elif Path(CONFIG_FILENAME).exists():
        logger.debug(f"Using {CONFIG_FILENAME} from current directory")
        config = parse_config(Path(CONFIG_FILENAME))
    else:
        config = RubyKitConfig()

    return apply_environment(config, BuildEnvironment.from_env(environ))


def config_to_dict(config: RubyKitConfig) -> Dict[str, Any]:
    """Plain-data view of a configuration, suitable for YAML output."""
    ruby = config.ruby
    return {
        "version": config.version,
        "ruby": {
            "version": str(ruby.version),
            "static": ruby.static,
            "driver": ruby.driver,
            "cache": ruby.cache,
            "cache_dir": _str_or_none(ruby.cache_dir),
            "work_dir": _str_or_none(ruby.work_dir),
            "target": ruby.target,
        },
        "build": build_options_to_dict(config.build),
    }


def build_options_to_dict(options: BuildOptions) -> Dict[str, Any]:
    return {
        "force": sorted(stage.value for stage in options.force),
        "enable": list(options.enable),
        "disable": list(options.disable),
        "with": list(options.with_packages),
        "without": list(options.without_packages),
        "shared": options.shared,
        "install_static_library": options.install_static_library,
        "install_doc": options.install_doc,
        "arch": list(options.arch),
        "dynamic_load": options.dynamic_load,
        "load_relative": options.load_relative,
        "rubygems": options.rubygems,
        "inherit_env": list(options.inherit_env),
        "configure_vars": dict(options.configure_vars),
        "args": {s.value: list(v) for s, v in options.stage_args.items()},
        "env": {s.value: dict(v) for s, v in options.stage_env.items()},
        "remove_env": {s.value: list(v) for s, v in options.stage_remove_env.items()},
        "capture_output": options.capture_output,
        "jobs": options.jobs,
        "skip_configure_script": options.skip_configure_script,
        "make_tool": options.make_tool,
    }


def _str_or_none(value) -> Optional[str]:
    return None if value is None else str(value)


# ============================================================================
# Runtime Discovery
# ============================================================================


def resolve_runtime(
    config: RubyKitConfig,
    ruby: Optional[Path] = None,
    prefix: Optional[Path] = None,
    runner: Optional[ProcessRunner] = None,
) -> InstalledRuntime:
    """
    Find the Ruby to work with.

    Order: an explicit executable, an explicit prefix, the configured
    driver (rvm/rbenv) with the configured version, the ruby on PATH.

    Raises:
        RuntimeQueryError: If the chosen ruby can't be queried
    """
    if ruby is not None:
        return InstalledRuntime.from_executable(ruby, runner)
    if prefix is not None:
        return InstalledRuntime.from_install_dir(
            prefix, runner, target=config.ruby.target
        )

    driver = config.ruby.driver
    if driver == "rvm":
        return InstalledRuntime.from_rvm(config.ruby.version, runner)
    if driver == "rbenv":
        return InstalledRuntime.from_rbenv(config.ruby.version, runner)
    return InstalledRuntime.current(runner)
