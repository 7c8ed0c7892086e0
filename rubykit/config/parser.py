"""YAML configuration parser for rubykit.

This module provides parsing and validation for rubykit.yaml configuration files.

Example rubykit.yaml:
    version: 1
    ruby:
      version: "2.6"
      static: true
      cache_dir: ~/.cache/rubykit
    build:
      shared: false
      install_doc: false
      inherit_env: [CC, CFLAGS]
      force: [make]
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from rubykit.core.exceptions import ConfigError, VersionParseError
from rubykit.core.version import Strictness, Version
from rubykit.source.builder import BuildOptions, BuildStage

CONFIG_FILENAME = "rubykit.yaml"
DEFAULT_RUBY_VERSION = Version.of(2, 6, 2)
VALID_DRIVERS = ["rvm", "rbenv"]


@dataclass
class RubyConfig:
    """Which Ruby to use and where to put it."""

    version: Version = DEFAULT_RUBY_VERSION
    static: bool = False
    driver: Optional[str] = None  # 'rvm', 'rbenv'
    cache: bool = True  # keep downloaded archives
    cache_dir: Optional[Path] = None
    work_dir: Optional[Path] = None
    target: Optional[str] = None  # target triple, host if None


@dataclass
class RubyKitConfig:
    """Complete rubykit configuration."""

    version: int = 1
    ruby: RubyConfig = field(default_factory=RubyConfig)
    build: BuildOptions = field(default_factory=BuildOptions)


def parse_config(config_path: Path) -> RubyKitConfig:
    """
    Parse rubykit.yaml configuration file.

    Args:
        config_path: Path to rubykit.yaml

    Returns:
        Parsed and validated configuration

    Raises:
        ConfigError: If configuration is invalid
    """
    config_path = Path(config_path)
    if not config_path.exists():
        raise ConfigError(f"Configuration file not found: {config_path}")

    try:
        with open(config_path, "r") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML syntax: {e}") from e

    if data is None:
        raise ConfigError("Configuration file is empty")

    return parse_config_data(data)


def parse_config_data(data: Any) -> RubyKitConfig:
    """Parse and validate already-loaded configuration data."""
    if not isinstance(data, dict):
        raise ConfigError("Configuration must be a mapping")

    if "version" not in data:
        raise ConfigError("Missing required field: version")

    if data["version"] != 1:
        raise ConfigError(f"Unsupported version: {data['version']} (expected 1)")

    unknown = set(data) - {"version", "ruby", "build"}
    if unknown:
        names = ", ".join(sorted(str(name) for name in unknown))
        raise ConfigError(f"Unknown configuration sections: {names}")

    return RubyKitConfig(
        version=data["version"],
        ruby=_parse_ruby_config(_section(data, "ruby")),
        build=_parse_build_options(_section(data, "build")),
    )


def _section(data: dict, name: str) -> dict:
    section = data.get(name) or {}
    if not isinstance(section, dict):
        raise ConfigError(f"'{name}' must be a mapping")
    return section


def _parse_ruby_config(data: dict) -> RubyConfig:
    """Parse the ruby section."""
    version = DEFAULT_RUBY_VERSION
    if "version" in data:
        # YAML reads 2.10 as the float 2.1
        if isinstance(data["version"], float):
            raise ConfigError(
                f"ruby.version must be a quoted string, got {data['version']!r}"
            )
        try:
            version = Version.parse(str(data["version"]), Strictness.REQUIRE_MINOR)
        except VersionParseError as e:
            raise ConfigError(f"ruby.version: {e}") from e

    driver = data.get("driver")
    if driver is not None and driver not in VALID_DRIVERS:
        raise ConfigError(
            f"Invalid ruby.driver: {driver} (expected one of {VALID_DRIVERS})"
        )

    return RubyConfig(
        version=version,
        static=_bool(data, "static", False, "ruby"),
        driver=driver,
        cache=_bool(data, "cache", True, "ruby"),
        cache_dir=_path(data.get("cache_dir")),
        work_dir=_path(data.get("work_dir")),
        target=data.get("target"),
    )


def _parse_build_options(data: dict) -> BuildOptions:
    """Parse the build section into BuildOptions."""
    jobs = data.get("jobs")
    if jobs is not None and (not isinstance(jobs, int) or jobs < 1):
        raise ConfigError(f"build.jobs must be a positive integer, got {jobs!r}")

    configure_vars = data.get("configure_vars", {})
    if not isinstance(configure_vars, dict):
        raise ConfigError("build.configure_vars must be a dictionary")

    return BuildOptions(
        force=set(_stages(data.get("force", []), "build.force")),
        enable=_str_list(data, "enable"),
        disable=_str_list(data, "disable"),
        with_packages=_str_list(data, "with"),
        without_packages=_str_list(data, "without"),
        shared=data.get("shared"),
        install_static_library=data.get("install_static_library"),
        install_doc=_bool(data, "install_doc", True, "build"),
        arch=_str_list(data, "arch"),
        dynamic_load=_bool(data, "dynamic_load", True, "build"),
        load_relative=_bool(data, "load_relative", False, "build"),
        rubygems=_bool(data, "rubygems", True, "build"),
        inherit_env=_str_list(data, "inherit_env"),
        configure_vars={str(k): str(v) for k, v in configure_vars.items()},
        stage_args=_per_stage(data.get("args", {}), "build.args", list),
        stage_env=_per_stage(data.get("env", {}), "build.env", dict),
        stage_remove_env=_per_stage(
            data.get("remove_env", {}), "build.remove_env", list
        ),
        capture_output=_bool(data, "capture_output", True, "build"),
        jobs=jobs,
        skip_configure_script=data.get("skip_configure_script"),
        make_tool=data.get("make_tool"),
    )


def _bool(data: dict, key: str, default: bool, section: str) -> bool:
    value = data.get(key, default)
    if not isinstance(value, bool):
        raise ConfigError(f"{section}.{key} must be true or false, got {value!r}")
    return value


def _str_list(data: dict, key: str) -> List[str]:
    value = data.get(key, [])
    if isinstance(value, str):
        return [value]
    if not isinstance(value, list):
        raise ConfigError(f"build.{key} must be a list")
    return [str(item) for item in value]


def _path(value: Optional[str]) -> Optional[Path]:
    if value is None:
        return None
    return Path(str(value)).expanduser()


def _stages(names: List[str], where: str) -> List[BuildStage]:
    if isinstance(names, str):
        names = [names]
    stages = []
    for name in names:
        try:
            stages.append(BuildStage.from_name(str(name)))
        except ValueError as e:
            raise ConfigError(f"{where}: {e}") from e
    return stages


def _per_stage(data: dict, where: str, value_type: type) -> Dict[BuildStage, Any]:
    if not isinstance(data, dict):
        raise ConfigError(f"{where} must be a mapping of stage to values")

    result = {}
    for name, value in data.items():
        (stage,) = _stages([name], where)
        if not isinstance(value, value_type):
            raise ConfigError(f"{where}.{stage.value} must be a {value_type.__name__}")
        if value_type is dict:
            result[stage] = {str(k): str(v) for k, v in value.items()}
        else:
            result[stage] = [str(v) for v in value]
    return result
