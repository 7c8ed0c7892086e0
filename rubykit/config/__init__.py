"""Configuration module for rubykit.

This module provides YAML configuration parsing for rubykit.yaml and the
environment variable overrides used by build scripts.
"""

from rubykit.config.parser import (
    RubyConfig,
    RubyKitConfig,
    parse_config,
    parse_config_data,
)
from rubykit.config.environment import (
    BuildEnvironment,
    apply_environment,
)

__all__ = [
    "RubyConfig",
    "RubyKitConfig",
    "parse_config",
    "parse_config_data",
    "BuildEnvironment",
    "apply_environment",
]
