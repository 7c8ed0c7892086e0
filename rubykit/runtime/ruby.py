"""
Handle to an installed Ruby.

An InstalledRuntime is what a build produces, or what the "Ruby is already
here" shortcuts find (the ruby on PATH, rvm, rbenv). It answers questions
about the installation by running the interpreter itself, most importantly
RbConfig::CONFIG lookups that drive header discovery and linking.

Usage:
    from rubykit.runtime.ruby import InstalledRuntime

    ruby = InstalledRuntime.current()
    print(ruby.version, ruby.header_dir())
    directives = ruby.link_directives(static=False)
"""

import logging
import os
from pathlib import Path
from typing import Callable, Iterable, List, Mapping, Optional, Sequence, Union

from rubykit.core.exceptions import (
    ProcessSpawnError,
    QueryEncodingError,
    QueryExitError,
    QuerySpawnError,
)
from rubykit.core.platform import TargetPlatform, detect_host_target
from rubykit.core.process import ProcessRunner, executable_name, merged_environment
from rubykit.core.version import Version
from rubykit.runtime.linking import LinkDirective, LinkFlagTranslator

logger = logging.getLogger(__name__)

PathLike = Union[str, os.PathLike]

PREFIX_SCRIPT = "print RbConfig::CONFIG['prefix']"


def _capture(
    runner: ProcessRunner,
    command: Sequence[PathLike],
    env: Optional[Mapping[str, str]] = None,
) -> str:
    """Run a ruby command and return its stdout as text."""
    executable = command[0]
    try:
        result = runner.run(command, env=env)
    except ProcessSpawnError as e:
        raise QuerySpawnError(executable, e.cause) from e

    if not result.success:
        raise QueryExitError(executable, result)

    try:
        return result.stdout_text()
    except UnicodeDecodeError as e:
        raise QueryEncodingError(executable, e) from e


def host_executable_name() -> str:
    return executable_name("ruby", detect_host_target().is_windows)


def installed_executable(
    install_dir: PathLike, target: Union[str, TargetPlatform, None] = None
) -> Path:
    """
    Path of the ruby binary under an installation prefix.

    The '.exe' suffix follows the platform the prefix was built for, which
    defaults to the host.
    """
    if target is None:
        target = detect_host_target()
    elif not isinstance(target, TargetPlatform):
        target = TargetPlatform.from_triple(target)
    return Path(install_dir) / "bin" / executable_name("ruby", target.is_windows)



class InstalledRuntime:
    """
    An installed Ruby interpreter.

    Attributes:
        version: Version reported by the interpreter
        install_dir: Installation prefix
        library_dir: Directory holding libruby
        executable_path: Path of the ruby binary
        source_dir: Source tree it was built from (None if not built here)
    """

    def __init__(
        self,
        version: Version,
        install_dir: PathLike,
        executable_path: Optional[PathLike] = None,
        library_dir: Optional[PathLike] = None,
        source_dir: Optional[PathLike] = None,
        runner: Optional[ProcessRunner] = None,
    ):
        install_dir = Path(install_dir)
        self._version = version
        self._install_dir = install_dir
        self._library_dir = Path(library_dir) if library_dir else install_dir / "lib"
        self._executable_path = (
            Path(executable_path)
            if executable_path
            else installed_executable(install_dir)
        )
        self._source_dir = Path(source_dir) if source_dir else None
        self._runner = runner or ProcessRunner()

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def from_install_dir(
        cls,
        install_dir: PathLike,
        runner: Optional[ProcessRunner] = None,
        target: Union[str, TargetPlatform, None] = None,
    ) -> "InstalledRuntime":
        """
        Use the ruby installed under install_dir, asking it for its version.

        target is the platform the prefix was built for (default: the host).

        Raises:
            RuntimeQueryError: If the version can't be read
        """
        runner = runner or ProcessRunner()
        executable = installed_executable(install_dir, target)
        version = Version.query_installed(executable, runner)
        return cls(version, install_dir, executable_path=executable, runner=runner)

    @classmethod
    def from_command(
        cls,
        command: Sequence[str],
        env: Optional[Mapping[str, str]] = None,
        runner: Optional[ProcessRunner] = None,
    ) -> "InstalledRuntime":
        """
        Locate a ruby by asking a command that runs it for its prefix.

        Args:
            command: Invocation of ruby, e.g. ['rvm', '2.6.2', 'do', 'ruby']
            env: Extra environment for the command
            runner: Process runner

        Raises:
            RuntimeQueryError: If the command fails
        """
        runner = runner or ProcessRunner()
        child_env = merged_environment(env) if env else None
        prefix = _capture(runner, [*command, "-e", PREFIX_SCRIPT], child_env)
        logger.debug(f"{' '.join(command)} reports prefix {prefix}")
        return cls.from_install_dir(prefix, runner)

    @classmethod
    def from_executable(
        cls, executable: PathLike, runner: Optional[ProcessRunner] = None
    ) -> "InstalledRuntime":
        return cls.from_command([os.fspath(executable)], runner=runner)

    @classmethod
    def current(cls, runner: Optional[ProcessRunner] = None) -> "InstalledRuntime":
        """The ruby found on PATH."""
        return cls.from_executable(host_executable_name(), runner)

    @classmethod
    def from_rvm(
        cls, version: Version, runner: Optional[ProcessRunner] = None
    ) -> "InstalledRuntime":
        """The ruby installed via rvm for version."""
        return cls.from_command(["rvm", str(version), "do", "ruby"], runner=runner)

    @classmethod
    def from_rbenv(
        cls, version: Version, runner: Optional[ProcessRunner] = None
    ) -> "InstalledRuntime":
        """The ruby installed via rbenv for version."""
        return cls.from_command(
            ["rbenv", "exec", "ruby"],
            env={"RBENV_VERSION": str(version)},
            runner=runner,
        )

    # ------------------------------------------------------------------
    # Attributes
    # ------------------------------------------------------------------

    @property
    def version(self) -> Version:
        return self._version

    @property
    def install_dir(self) -> Path:
        return self._install_dir

    @property
    def library_dir(self) -> Path:
        return self._library_dir

    @property
    def executable_path(self) -> Path:
        return self._executable_path

    @property
    def source_dir(self) -> Optional[Path]:
        return self._source_dir

    def __repr__(self) -> str:
        return (
            f"InstalledRuntime(version={self._version}, "
            f"install_dir={str(self._install_dir)!r})"
        )

    # ------------------------------------------------------------------
    # Running ruby
    # ------------------------------------------------------------------

    def exec(self, args: Iterable[str]) -> str:
        """
        Run the interpreter with args and return its stdout.

        Raises:
            QuerySpawnError: If ruby can't be started
            QueryExitError: If ruby exits unsuccessfully
            QueryEncodingError: If the output is not UTF-8
        """
        return _capture(self._runner, [self._executable_path, *args])

    def run(self, script: str) -> str:
        """Run a script with 'ruby -e'."""
        return self.exec(["-e", script])

    def run_multiple(self, scripts: Iterable[str]) -> str:
        """Run several scripts in one process ('ruby -e a -e b ...')."""
        args = []
        for script in scripts:
            args.extend(["-e", script])
        return self.exec(args)

    def full_version(self) -> str:
        """Output of 'ruby -v'."""
        return self.exec(["-v"])

    # ------------------------------------------------------------------
    # RbConfig
    # ------------------------------------------------------------------

    def get_config(self, key: str) -> str:
        """Value of RbConfig::CONFIG[key] (empty when unset)."""
        return self.run(f"print RbConfig::CONFIG['{key}']")

    def include_dir(self) -> str:
        return self.get_config("includedir")

    def header_dir(self) -> str:
        """Directory containing Ruby's main header files."""
        return self.get_config("rubyhdrdir")

    def arch_header_dir(self) -> str:
        """Directory containing Ruby's architecture-specific headers."""
        return self.get_config("rubyarchhdrdir")

    def library_name(self, static: bool) -> str:
        name = self.get_config("RUBY_SO_NAME")
        if static:
            name += "-static"
        return name

    def lib_args(self) -> str:
        return self.get_config("LIBRUBYARG")

    def libs(self) -> str:
        return self.get_config("LIBS")

    def main_libs(self) -> str:
        return self.get_config("MAINLIBS")

    def so_libs(self) -> str:
        """Shared object libraries libruby depends on."""
        return self.get_config("SOLIBS")

    def aux_libs(self, static: bool) -> str:
        """Libraries that are always linked dynamically."""
        if static:
            # Link to the same libraries as the main `ruby` program
            return self.main_libs()
        return self.libs()

    # ------------------------------------------------------------------
    # Headers
    # ------------------------------------------------------------------

    def headers(self) -> List[Path]:
        """All '.h' files under include_dir, sorted."""
        return sorted(p for p in Path(self.include_dir()).rglob("*.h") if p.is_file())

    def wrapper_header(self) -> str:
        """
        '#include' lines for every header in header_dir, suitable for bindgen.

        Headers in arch_header_dir are left out, since including both sets
        tends to redefine types. Use wrapper_header_filtered() to keep them.
        """
        arch_header_dir = Path(self.arch_header_dir())
        return self.wrapper_header_filtered(
            lambda path: not path.is_relative_to(arch_header_dir)
        )

    def wrapper_header_filtered(self, predicate: Callable[[Path], bool]) -> str:
        """
        '#include' lines for headers in header_dir accepted by predicate.

        Args:
            predicate: Called with each header path; False drops it
        """
        header_dir = Path(self.header_dir())
        lines = []
        for path in sorted(header_dir.rglob("*.h")):
            if not path.is_file() or not predicate(path):
                continue
            relative = path.relative_to(header_dir).as_posix()
            lines.append(f"#include <{relative}>\n")
        return "".join(lines)

    # ------------------------------------------------------------------
    # Linking
    # ------------------------------------------------------------------

    def link_directives(self, static: bool) -> List[LinkDirective]:
        """
        Directives for linking against this Ruby, library_dir first.

        Raises:
            RuntimeQueryError: If a configuration value can't be read
            LinkError: If the link configuration can't be translated
        """
        translator = LinkFlagTranslator(self.get_config)
        return translator.translate(static, library_dir=str(self._library_dir))
