"""
Version command implementation.

Parses Ruby versions and prints them in canonical form.
"""

import logging

from rubykit.core.version import Strictness, Version

logger = logging.getLogger(__name__)


def run(args) -> int:
    """
    Run the version command.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success)
    """
    strictness = Strictness(args.strict)
    versions = [Version.parse(text, strictness) for text in args.versions]

    if args.sort:
        versions.sort()

    for version in versions:
        if args.url:
            print(f"{version} {version.download_url()}")
        else:
            print(version)
    return 0
