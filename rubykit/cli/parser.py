"""
rubykit CLI argument parser.

This module implements the command-line interface for rubykit using argparse.
"""

import argparse
import importlib
import logging
import sys
from pathlib import Path
from typing import List, Optional

from rubykit.core.exceptions import RubyKitError
from rubykit.core.version import Strictness
from rubykit.runtime.emit import FORMATS

# Get version from package
try:
    from importlib.metadata import PackageNotFoundError, version

    __version__ = version("rubykit")
except PackageNotFoundError:
    __version__ = "0.1.0"

logger = logging.getLogger(__name__)


class CLI:
    """rubykit command-line interface."""

    def __init__(self):
        """Initialize CLI with argument parser."""
        self.parser = self._create_parser()

    def _create_parser(self) -> argparse.ArgumentParser:
        """
        Create argument parser with all subcommands.

        Returns:
            Configured ArgumentParser instance
        """
        parser = argparse.ArgumentParser(
            prog="rubykit",
            description="rubykit - Download, build and link against Ruby",
            epilog='Use "rubykit COMMAND --help" for command-specific help',
            formatter_class=argparse.RawDescriptionHelpFormatter,
        )

        # Global options
        parser.add_argument(
            "--version", action="version", version=f"rubykit {__version__}"
        )
        parser.add_argument(
            "--verbose", "-v", action="store_true", help="Enable verbose output"
        )
        parser.add_argument(
            "--quiet",
            "-q",
            action="store_true",
            help="Enable minimal output (errors only)",
        )
        parser.add_argument(
            "--config",
            type=Path,
            metavar="PATH",
            help="Path to configuration file (default: ./rubykit.yaml)",
        )

        # Subcommands
        subparsers = parser.add_subparsers(
            dest="command", help="Available commands", metavar="COMMAND"
        )

        self._add_build_command(subparsers)
        self._add_link_command(subparsers)
        self._add_version_command(subparsers)
        self._add_config_command(subparsers)

        return parser

    def _add_build_command(self, subparsers):
        """Add 'build' subcommand."""
        parser = subparsers.add_parser(
            "build",
            help="Download and build a Ruby version",
            description="Download Ruby's sources and build them, skipping "
            "stages whose output already exists",
        )
        parser.add_argument(
            "ruby_version",
            nargs="?",
            metavar="VERSION",
            help="Ruby version, 'x.y' or 'x.y.z' (default: from configuration)",
        )
        parser.add_argument(
            "--out",
            "-o",
            type=Path,
            metavar="DIR",
            help="Installation prefix (default: <work-dir>/<target>/ruby-X.Y.Z-out)",
        )
        parser.add_argument(
            "--work-dir",
            type=Path,
            metavar="DIR",
            help="Directory for sources and builds (default: RUBYKIT_WORK_DIR)",
        )
        parser.add_argument(
            "--target",
            metavar="TRIPLE",
            help="Target triple (default: TARGET or the host)",
        )
        parser.add_argument(
            "--static",
            action="store_true",
            help="Build Ruby as a static library (no --enable-shared)",
        )
        parser.add_argument(
            "--force",
            action="append",
            default=[],
            choices=["autoconf", "configure", "make"],
            metavar="STAGE",
            help="Run STAGE even if its output exists (autoconf, configure, make)",
        )
        parser.add_argument(
            "--jobs", "-j", type=int, metavar="N", help="Parallel make jobs"
        )
        parser.add_argument(
            "--cache-dir",
            type=Path,
            metavar="DIR",
            help="Directory for cached source archives",
        )
        parser.add_argument(
            "--no-cache",
            action="store_true",
            help="Do not keep the downloaded archive",
        )
        parser.add_argument(
            "--refresh",
            action="store_true",
            help="Download the archive even if a cached copy exists",
        )
        parser.add_argument(
            "--sha256",
            metavar="DIGEST",
            help="Expected SHA256 of the source archive (from ruby-lang.org)",
        )
        parser.add_argument(
            "--show-output",
            action="store_true",
            help="Stream build tool output instead of capturing it",
        )

    def _add_link_command(self, subparsers):
        """Add 'link' subcommand."""
        parser = subparsers.add_parser(
            "link",
            help="Print link directives for a Ruby installation",
            description="Translate Ruby's link configuration into directives "
            "for a build system",
        )
        source = parser.add_mutually_exclusive_group()
        source.add_argument(
            "--ruby", type=Path, metavar="PATH", help="ruby executable to query"
        )
        source.add_argument(
            "--prefix",
            type=Path,
            metavar="DIR",
            help="Installation prefix of the Ruby to query",
        )
        parser.add_argument(
            "--static", action="store_true", help="Link Ruby statically"
        )
        parser.add_argument(
            "--format",
            choices=FORMATS,
            default="cargo",
            help="Output format (default: cargo)",
        )

    def _add_version_command(self, subparsers):
        """Add 'version' subcommand."""
        parser = subparsers.add_parser(
            "version",
            help="Parse, normalize and sort Ruby versions",
            description="Parse Ruby versions and print them in canonical form",
        )
        parser.add_argument("versions", nargs="+", metavar="VERSION")
        parser.add_argument(
            "--strict",
            choices=[s.value for s in Strictness],
            default=Strictness.MINIMAL.value,
            help="Required segments: minimal (x), minor (x.y), all (x.y.z)",
        )
        parser.add_argument(
            "--sort", action="store_true", help="Print versions in ascending order"
        )
        parser.add_argument(
            "--url", action="store_true", help="Also print the download URL"
        )

    def _add_config_command(self, subparsers):
        """Add 'config' subcommand."""
        subparsers.add_parser(
            "config",
            help="Show the effective configuration",
            description="Show configuration after applying environment overrides",
        )

    def parse_args(self, args: Optional[List[str]] = None):
        """
        Parse command-line arguments.

        Args:
            args: Arguments to parse (uses sys.argv if None)

        Returns:
            Parsed arguments namespace
        """
        return self.parser.parse_args(args)

    def run(self, args: Optional[List[str]] = None) -> int:
        """
        Run CLI with given arguments.

        Args:
            args: Arguments to parse (uses sys.argv if None)

        Returns:
            Exit code (0 for success, non-zero for error)
        """
        parsed_args = self.parse_args(args)

        self._configure_logging(parsed_args)

        if not parsed_args.command:
            self.parser.print_help()
            return 1

        try:
            return self._dispatch_command(parsed_args)
        except KeyboardInterrupt:
            logger.info("Operation cancelled by user")
            return 130  # Standard exit code for SIGINT
        except RubyKitError as e:
            logger.error(f"Error: {e}")
            if parsed_args.verbose:
                import traceback

                traceback.print_exc()
            return 1

    def _configure_logging(self, args):
        """
        Configure logging based on verbose/quiet flags.

        Args:
            args: Parsed arguments with verbose/quiet flags
        """
        if args.verbose:
            level = logging.DEBUG
            format_str = "%(levelname)s [%(name)s] %(message)s"
        elif args.quiet:
            level = logging.ERROR
            format_str = "%(levelname)s: %(message)s"
        else:
            level = logging.INFO
            format_str = "%(message)s"

        logging.basicConfig(
            level=level,
            format=format_str,
            force=True,  # Reconfigure if already configured
        )

    def _dispatch_command(self, args) -> int:
        """
        Dispatch to appropriate command handler.

        Args:
            args: Parsed arguments with command field

        Returns:
            Exit code from command handler
        """
        command_map = {
            "build": "rubykit.cli.commands.build",
            "link": "rubykit.cli.commands.link",
            "version": "rubykit.cli.commands.version",
            "config": "rubykit.cli.commands.config",
        }

        module_name = command_map.get(args.command)
        if not module_name:
            logger.error(f"Unknown command: {args.command}")
            return 1

        module = importlib.import_module(module_name)
        return module.run(args)


def main():
    """Main entry point for CLI."""
    cli = CLI()
    sys.exit(cli.run())


if __name__ == "__main__":
    main()
