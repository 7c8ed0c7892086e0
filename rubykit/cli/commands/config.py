"""
Config command implementation.

Shows the effective configuration after environment overrides.
"""

import logging

import yaml

from rubykit.cli.utils import config_to_dict, load_effective_config

logger = logging.getLogger(__name__)


def run(args) -> int:
    """
    Run the config command.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success)
    """
    config = load_effective_config(args.config)
    print(yaml.safe_dump(config_to_dict(config), sort_keys=False), end="")
    return 0
