"""
Staged Ruby build.

A build runs three stages against an unpacked source tree, in this order:

    1. GENERATE_CONFIGURE_SCRIPT  autoconf               -> <src>/configure
    2. GENERATE_MAKEFILE          configure              -> <src>/Makefile
    3. COMPILE_AND_INSTALL        make install           -> <out>/bin/ruby

Each stage is skipped when its marker file exists, unless it is forced or an
earlier stage ran in the same build. Once a stage runs, every later stage
runs too. On MSVC targets the first stage is suppressed: it never runs and
never triggers later stages.

Usage:
    from rubykit.source.builder import BuildOptions, RubySource

    source = RubySource.from_path("work/ruby-2.6.2")
    options = BuildOptions(shared=True, install_doc=False)
    builder = source.builder("work/ruby-2.6.2-out", "x86_64-apple-darwin", options)
    ruby = builder.execute()
"""

import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Set, Tuple, Union

from rubykit.core.exceptions import (
    BuildError,
    ProcessSpawnError,
    RuntimeQueryError,
    StageExitError,
    StageSpawnError,
    VersionQueryFailedError,
)
from rubykit.core.filesystem import find_executable
from rubykit.core.platform import TargetPlatform
from rubykit.core.process import ProcessRunner, merged_environment
from rubykit.core.version import Version
from rubykit.runtime.ruby import InstalledRuntime, installed_executable

logger = logging.getLogger(__name__)

PathLike = Union[str, os.PathLike]


class BuildStage(Enum):
    """The fixed stages of a Ruby build, in execution order."""

    GENERATE_CONFIGURE_SCRIPT = "autoconf"
    GENERATE_MAKEFILE = "configure"
    COMPILE_AND_INSTALL = "make"

    @classmethod
    def from_name(cls, name: str) -> "BuildStage":
        """Look up a stage by its tool name ('autoconf') or enum name."""
        for stage in cls:
            if name in (stage.value, stage.name, stage.name.lower()):
                return stage
        choices = ", ".join(stage.value for stage in cls)
        raise ValueError(f"Unknown build stage '{name}' (expected: {choices})")


@dataclass(frozen=True)
class RubySource:
    """
    A directory holding Ruby's source code.

    Attributes:
        path: Source tree root (e.g. 'work/ruby-2.6.2')
    """

    path: Path

    def __post_init__(self):
        object.__setattr__(self, "path", Path(self.path))

    @classmethod
    def from_path(cls, path: PathLike) -> "RubySource":
        return cls(Path(path))

    def __fspath__(self) -> str:
        return os.fspath(self.path)

    def __str__(self) -> str:
        return str(self.path)

    def builder(
        self,
        out_dir: PathLike,
        target: Union[str, TargetPlatform],
        options: Optional["BuildOptions"] = None,
        runner: Optional[ProcessRunner] = None,
    ) -> "BuildOrchestrator":
        """Create a build orchestrator for this tree."""
        return BuildOrchestrator(self, out_dir, target, options, runner)

    def make_command(self, target: Union[str, TargetPlatform]) -> List[str]:
        """A make invocation suitable for target, to run in this directory."""
        return [select_make_tool(_as_target(target))]


@dataclass
class BuildOptions:
    """
    Everything that can be configured before a build starts.

    Attributes:
        force: Stages to run even when their marker exists
        enable: Features passed as '--enable-<feature>'
        disable: Features passed as '--disable-<feature>'
        with_packages: Packages passed as '--with-<package>'
        without_packages: Packages passed as '--without-<package>'
        shared: Build libruby as a shared library (None leaves the default)
        install_static_library: Install the static library (None leaves the default)
        install_doc: Install rdoc indexes and C API documents
        arch: Architectures for an Apple multi-architecture binary
        dynamic_load: Keep the dynamic link feature (False adds '--disable-dln')
        load_relative: Resolve load paths at run time
        rubygems: Enable rubygems by default
        inherit_env: Variables (e.g. CC, CFLAGS) copied from our environment
            into configure as KEY=value when set
        configure_vars: Explicit KEY=value pairs for configure
        stage_args: Extra arguments appended per stage
        stage_env: Extra environment variables per stage
        stage_remove_env: Environment variables removed per stage
        capture_output: Capture stage output (shown on failure) instead of
            letting it stream to the console
        jobs: Parallel make jobs ('-jN'); ignored by nmake
        skip_configure_script: Suppress GENERATE_CONFIGURE_SCRIPT
            (None means suppress on MSVC targets only)
        make_tool: Make program override
    """

    force: Set[BuildStage] = field(default_factory=set)
    enable: List[str] = field(default_factory=list)
    disable: List[str] = field(default_factory=list)
    with_packages: List[str] = field(default_factory=list)
    without_packages: List[str] = field(default_factory=list)
    shared: Optional[bool] = None
    install_static_library: Optional[bool] = None
    install_doc: bool = True
    arch: List[str] = field(default_factory=list)
    dynamic_load: bool = True
    load_relative: bool = False
    rubygems: bool = True
    inherit_env: List[str] = field(default_factory=list)
    configure_vars: Dict[str, str] = field(default_factory=dict)
    stage_args: Dict[BuildStage, List[str]] = field(default_factory=dict)
    stage_env: Dict[BuildStage, Dict[str, str]] = field(default_factory=dict)
    stage_remove_env: Dict[BuildStage, List[str]] = field(default_factory=dict)
    capture_output: bool = True
    jobs: Optional[int] = None
    skip_configure_script: Optional[bool] = None
    make_tool: Optional[str] = None

    def configure_flags(
        self, environ: Optional[Mapping[str, str]] = None
    ) -> List[str]:
        """
        Render the configure arguments (without --prefix/--target).

        Args:
            environ: Environment to inherit variables from (os.environ if None)
        """
        environ = os.environ if environ is None else environ
        flags = []

        flags.extend(f"--enable-{feature}" for feature in self.enable)
        flags.extend(f"--disable-{feature}" for feature in self.disable)
        flags.extend(f"--with-{package}" for package in self.with_packages)
        flags.extend(f"--without-{package}" for package in self.without_packages)

        if self.shared is not None:
            flags.append("--enable-shared" if self.shared else "--disable-shared")
        if self.install_static_library is not None:
            flags.append(
                "--enable-install-static-library"
                if self.install_static_library
                else "--disable-install-static-library"
            )
        if self.arch:
            flags.append(f"--with-arch={','.join(self.arch)}")
        if not self.install_doc:
            flags.append("--disable-install-doc")
        if not self.dynamic_load:
            flags.append("--disable-dln")
        if self.load_relative:
            flags.append("--enable-load-relative")
        if not self.rubygems:
            flags.append("--disable-rubygems")

        for name in self.inherit_env:
            value = environ.get(name)
            if value is not None:
                flags.append(f"{name}={value}")
        flags.extend(f"{key}={value}" for key, value in self.configure_vars.items())
        return flags


@dataclass(frozen=True)
class StagePlan:
    """How one stage would run, and what proves it already ran."""

    stage: BuildStage
    command: Tuple[str, ...]
    marker: Path
    env: Dict[str, str] = field(default_factory=dict)
    remove_env: Tuple[str, ...] = ()
    force: bool = False
    suppressed: bool = False

    def decide(self, earlier_ran: bool) -> "StageDecision":
        """Apply the skip rules given whether an earlier stage ran."""
        if self.suppressed:
            return StageDecision(self, False, "suppressed for this target")
        if earlier_ran:
            return StageDecision(self, True, "an earlier stage ran")
        if self.force:
            return StageDecision(self, True, "forced")
        if not self.marker.exists():
            return StageDecision(self, True, f"{self.marker.name} is missing")
        return StageDecision(self, False, f"{self.marker.name} exists")


@dataclass(frozen=True)
class StageDecision:
    plan: StagePlan
    run: bool
    reason: str

    @property
    def stage(self) -> BuildStage:
        return self.plan.stage


def select_make_tool(target: TargetPlatform) -> str:
    """nmake on MSVC targets when it is on PATH, make otherwise."""
    if target.is_msvc and find_executable("nmake") is not None:
        return "nmake"
    return "make"


def _as_target(target: Union[str, TargetPlatform]) -> TargetPlatform:
    if isinstance(target, TargetPlatform):
        return target
    return TargetPlatform.from_triple(target)


class BuildOrchestrator:
    """
    Runs the build stages for one source tree, once.

    Example:
        >>> orchestrator = BuildOrchestrator(source, out_dir, "x86_64-apple-darwin")
        >>> [d.stage.value for d in orchestrator.plan() if d.run]
        ['make']
        >>> ruby = orchestrator.execute()
    """

    def __init__(
        self,
        source: Union[RubySource, PathLike],
        out_dir: PathLike,
        target: Union[str, TargetPlatform],
        options: Optional[BuildOptions] = None,
        runner: Optional[ProcessRunner] = None,
    ):
        if not isinstance(source, RubySource):
            source = RubySource.from_path(source)
        self.source = source
        self.out_dir = Path(out_dir)
        self.target = _as_target(target)
        self.options = options or BuildOptions()
        self.runner = runner or ProcessRunner()
        self.executed_stages: List[BuildStage] = []
        self._consumed = False

        self.executable_path = installed_executable(self.out_dir, self.target)
        self._plans = self._build_plans()

    def _build_plans(self) -> List[StagePlan]:
        options = self.options
        src_dir = self.source.path

        skip_script = options.skip_configure_script
        if skip_script is None:
            skip_script = self.target.is_msvc

        if self.target.is_msvc:
            configure = [os.fspath(src_dir / "win32" / "configure.bat")]
        elif os.name == "nt":
            # Windows can't spawn the shell script directly
            configure = ["sh", "configure"]
        else:
            configure = [os.fspath(src_dir / "configure")]
        configure.append(f"--prefix={self.out_dir}")
        configure.append(f"--target={self.target.ruby_target()}")
        configure.extend(options.configure_flags())

        make_tool = options.make_tool or select_make_tool(self.target)
        make = [make_tool]
        if options.jobs and make_tool != "nmake":
            make.append(f"-j{options.jobs}")
        make.append("install")

        commands = {
            BuildStage.GENERATE_CONFIGURE_SCRIPT: ["autoconf"],
            BuildStage.GENERATE_MAKEFILE: configure,
            BuildStage.COMPILE_AND_INSTALL: make,
        }
        markers = {
            BuildStage.GENERATE_CONFIGURE_SCRIPT: src_dir / "configure",
            BuildStage.GENERATE_MAKEFILE: src_dir / "Makefile",
            BuildStage.COMPILE_AND_INSTALL: self.executable_path,
        }

        plans = []
        for stage in BuildStage:
            env = {}
            if stage is BuildStage.COMPILE_AND_INSTALL:
                env["PREFIX"] = os.fspath(self.out_dir)
            env.update(options.stage_env.get(stage, {}))

            plans.append(
                StagePlan(
                    stage=stage,
                    command=tuple(commands[stage] + options.stage_args.get(stage, [])),
                    marker=markers[stage],
                    env=env,
                    remove_env=tuple(options.stage_remove_env.get(stage, [])),
                    force=stage in options.force,
                    suppressed=(
                        stage is BuildStage.GENERATE_CONFIGURE_SCRIPT and skip_script
                    ),
                )
            )
        return plans

    @property
    def stages(self) -> List[StagePlan]:
        return list(self._plans)

    def plan(self) -> List[StageDecision]:
        """
        Decide which stages would run, without running anything.

        Returns:
            One decision per stage, in execution order
        """
        decisions = []
        earlier_ran = False
        for stage_plan in self._plans:
            decision = stage_plan.decide(earlier_ran)
            earlier_ran = earlier_ran or decision.run
            decisions.append(decision)
        return decisions

    def execute(self) -> InstalledRuntime:
        """
        Run the build and read back the installed version.

        Returns:
            InstalledRuntime for the install prefix

        Raises:
            StageSpawnError: If a stage's tool could not be started
            StageExitError: If a stage's tool exited unsuccessfully
            VersionQueryFailedError: If the built ruby can't report its version
            BuildError: If execute() was already called
        """
        if self._consumed:
            raise BuildError("This build has already been executed")
        self._consumed = True

        earlier_ran = False
        for stage_plan in self._plans:
            decision = stage_plan.decide(earlier_ran)
            if not decision.run:
                logger.debug(f"Skipping {stage_plan.stage.value}: {decision.reason}")
                continue

            logger.info(f"Running {stage_plan.stage.value} ({decision.reason})")
            self._run_stage(stage_plan)
            self.executed_stages.append(stage_plan.stage)
            earlier_ran = True

        try:
            version = Version.query_installed(self.executable_path, self.runner)
        except RuntimeQueryError as e:
            raise VersionQueryFailedError(e) from e

        logger.info(f"Ruby {version} installed in {self.out_dir}")
        return InstalledRuntime(
            version,
            self.out_dir,
            executable_path=self.executable_path,
            source_dir=self.source.path,
            runner=self.runner,
        )

    def _run_stage(self, stage_plan: StagePlan) -> None:
        env = merged_environment(stage_plan.env, stage_plan.remove_env)
        try:
            result = self.runner.run(
                stage_plan.command,
                cwd=self.source.path,
                env=env,
                capture_output=self.options.capture_output,
            )
        except ProcessSpawnError as e:
            raise StageSpawnError(stage_plan.stage, e) from e

        if not result.success:
            raise StageExitError(stage_plan.stage, result)
