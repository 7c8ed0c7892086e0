"""
Build command implementation.

Downloads Ruby's sources (reusing existing ones) and builds them.
"""

import dataclasses
import logging

from rubykit.cli.utils import load_effective_config
from rubykit.config.environment import ENV_WORK_DIR
from rubykit.core.directory import install_dir_for, target_work_dir
from rubykit.core.exceptions import MissingEnvironmentError
from rubykit.core.platform import TargetPlatform, detect_host_target
from rubykit.core.version import Strictness, Version
from rubykit.source.builder import BuildStage
from rubykit.source.downloader import RubySourceDownloader

logger = logging.getLogger(__name__)


def run(args) -> int:
    """
    Run the build command.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success)
    """
    config = load_effective_config(args.config)

    if args.ruby_version:
        version = Version.parse(args.ruby_version, Strictness.REQUIRE_MINOR)
    else:
        version = config.ruby.version

    triple = args.target or config.ruby.target
    target = TargetPlatform.from_triple(triple) if triple else detect_host_target()

    work_dir = args.work_dir or config.ruby.work_dir
    if work_dir is None:
        raise MissingEnvironmentError(ENV_WORK_DIR)

    target_dir = target_work_dir(work_dir, target.triple)
    out_dir = args.out or install_dir_for(target_dir, version)

    options = config.build
    static = args.static or config.ruby.static
    options = dataclasses.replace(
        options,
        force=options.force | {BuildStage.from_name(name) for name in args.force},
        shared=(not static) if options.shared is None else options.shared,
        jobs=args.jobs or options.jobs,
        capture_output=options.capture_output and not args.show_output,
    )

    cache = config.ruby.cache and not args.no_cache
    cache_dir = args.cache_dir or config.ruby.cache_dir
    downloader = RubySourceDownloader(
        version,
        target_dir,
        ignore_cache=args.refresh,
        sha256=args.sha256,
        cache=cache,
        cache_dir=cache_dir if cache else None,
    )

    logger.info(f"Building Ruby {version} for {target}")
    source = downloader.download()
    ruby = source.builder(out_dir, target, options).execute()

    print(f"Ruby {ruby.version} installed in {ruby.install_dir}")
    return 0
