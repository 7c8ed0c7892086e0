"""
Link command implementation.

Prints the directives needed to link against a Ruby installation.
"""

import logging
import sys

from rubykit.cli.utils import load_effective_config, resolve_runtime
from rubykit.config.environment import WATCHED_VARIABLES
from rubykit.runtime.emit import emit

logger = logging.getLogger(__name__)


def run(args) -> int:
    """
    Run the link command.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success)
    """
    config = load_effective_config(args.config)
    ruby = resolve_runtime(config, ruby=args.ruby, prefix=args.prefix)
    static = args.static or config.ruby.static

    logger.debug(f"Linking against {ruby!r} (static={static})")
    directives = ruby.link_directives(static)

    if args.format == "cargo":
        for name in WATCHED_VARIABLES:
            print(f"cargo:rerun-if-env-changed={name}")
    emit(directives, args.format, sys.stdout)
    return 0
