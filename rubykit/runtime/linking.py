"""
Translation of Ruby's link configuration into link directives.

Ruby records how to link against it in RbConfig::CONFIG. Three strings
matter:

- the primary link arguments (LIBRUBYARG_STATIC or LIBRUBYARG_SHARED)
- SOLIBS, shared objects libruby itself depends on
- the auxiliary libraries (MAINLIBS when linking statically, LIBS otherwise),
  which are always linked dynamically

The translator turns them into an ordered list of LinkDirective values.
Emitting those to a particular build system is left to rubykit.runtime.emit.

Usage:
    from rubykit.runtime.linking import translate_link_flags

    directives = translate_link_flags(
        "-lruby -lm -L/usr/lib -framework CoreFoundation",
        solibs="",
        aux_libs="-lm",
        static_requested=False,
        library_name="ruby",
        msvc=False,
    )
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Iterable, Iterator, List, Optional, Union

from rubykit.core.exceptions import (
    MalformedLinkFlagError,
    MissingFrameworkArgumentError,
    NoLinkLibrariesError,
)
from rubykit.core.platform import is_msvc_target

logger = logging.getLogger(__name__)

MSVC_LIBRARY_SUFFIX = ".lib"


class SearchKind(Enum):
    """Where a search path applies."""

    NATIVE = "native"
    FRAMEWORK = "framework"


@dataclass(frozen=True)
class StaticLibrary:
    name: str


@dataclass(frozen=True)
class DynamicLibrary:
    name: str


@dataclass(frozen=True)
class Framework:
    name: str


@dataclass(frozen=True)
class SearchPath:
    kind: SearchKind
    path: str


LinkDirective = Union[StaticLibrary, DynamicLibrary, Framework, SearchPath]


class LinkPlan:
    """
    An ordered collection of link directives where repeats are no-ops.

    A library name is linked at most once, whether static or dynamic; the
    first directive for a name wins. Frameworks are deduplicated by name and
    search paths by kind and path.
    """

    def __init__(self):
        self._directives: List[LinkDirective] = []
        self._libraries = set()
        self._frameworks = set()
        self._search_paths = set()

    def add(self, directive: LinkDirective) -> bool:
        """
        Add a directive unless an equivalent one was already added.

        Returns:
            True if the directive was added
        """
        if isinstance(directive, (StaticLibrary, DynamicLibrary)):
            seen, key = self._libraries, directive.name
        elif isinstance(directive, Framework):
            seen, key = self._frameworks, directive.name
        elif isinstance(directive, SearchPath):
            seen, key = self._search_paths, (directive.kind, directive.path)
        else:
            raise TypeError(f"Not a link directive: {directive!r}")

        if key in seen:
            logger.debug(f"Ignoring repeated link directive: {directive}")
            return False
        seen.add(key)
        self._directives.append(directive)
        return True

    def links_library(self, name: str) -> bool:
        return name in self._libraries

    @property
    def directives(self) -> List[LinkDirective]:
        return list(self._directives)

    def __iter__(self) -> Iterator[LinkDirective]:
        return iter(self._directives)

    def __len__(self) -> int:
        return len(self._directives)


def library_token_name(token: str, msvc: bool) -> Optional[str]:
    """
    Extract a library name from a single link token.

    '-lfoo' gives 'foo' on POSIX and 'foo.lib' gives 'foo' on MSVC. Tokens
    that do not name a library give None.
    """
    if msvc:
        if token.lower().endswith(MSVC_LIBRARY_SUFFIX) and len(token) > 4:
            return token[: -len(MSVC_LIBRARY_SUFFIX)]
        return None
    if token.startswith("-l") and len(token) > 2:
        return token[2:]
    return None


def already_linked_libraries(sources: Iterable[str], msvc: bool) -> List[str]:
    """Unique library names from link strings, in first-seen order."""
    names: Dict[str, None] = {}
    for source in sources:
        for token in source.split():
            name = library_token_name(token, msvc)
            if name is not None:
                names.setdefault(name, None)
    return list(names)


def translate_link_flags(
    primary: str,
    solibs: str,
    aux_libs: str,
    *,
    static_requested: bool,
    library_name: str,
    msvc: bool,
    library_dir: Optional[str] = None,
) -> List[LinkDirective]:
    """
    Turn Ruby's link strings into link directives.

    Order of the result:
        1. SearchPath(native, library_dir), if library_dir is given
        2. Ruby's own library, static or dynamic as requested
        3. Every library named in solibs and aux_libs, dynamic
        4. On POSIX, the directives from the primary string

    On MSVC the primary string is not parsed: its libraries are covered by
    the first three steps.

    Args:
        primary: LIBRUBYARG_STATIC or LIBRUBYARG_SHARED
        solibs: SOLIBS
        aux_libs: MAINLIBS (static) or LIBS (shared)
        static_requested: Link Ruby statically
        library_name: Ruby's library name (RUBY_SO_NAME, plus '-static')
        msvc: Use MSVC '.lib' token syntax
        library_dir: Directory holding Ruby's library

    Returns:
        Deduplicated directives

    Raises:
        NoLinkLibrariesError: If primary is empty
        MissingFrameworkArgumentError: If '-framework' is the last token
        MalformedLinkFlagError: If a token has an unsupported shape
    """
    if not primary.strip():
        raise NoLinkLibrariesError(static_requested)

    already_linked = already_linked_libraries((solibs, aux_libs), msvc)

    plan = LinkPlan()
    if library_dir is not None:
        plan.add(SearchPath(SearchKind.NATIVE, str(library_dir)))

    if static_requested:
        plan.add(StaticLibrary(library_name))
    else:
        plan.add(DynamicLibrary(library_name))

    for name in already_linked:
        plan.add(DynamicLibrary(name))

    if msvc:
        return plan.directives

    tokens = iter(primary.split())
    for token in tokens:
        if token == "-framework":
            framework = next(tokens, None)
            if framework is None:
                raise MissingFrameworkArgumentError(primary)
            plan.add(Framework(framework))
            continue

        option, value = token[:2], token[2:]
        if not value and option != "-W":
            raise MalformedLinkFlagError(token, primary)

        if option == "-l":
            if value not in already_linked:
                plan.add(DynamicLibrary(value))
        elif option == "-L":
            plan.add(SearchPath(SearchKind.NATIVE, value))
        elif option == "-F":
            plan.add(SearchPath(SearchKind.FRAMEWORK, value))
        elif option == "-W":
            continue
        else:
            raise MalformedLinkFlagError(token, primary)

    return plan.directives


class LinkFlagTranslator:
    """
    Reads link strings from a runtime and translates them.

    Args:
        query: Configuration lookup, e.g. InstalledRuntime.get_config
        msvc: Force the flag grammar (None reads RbConfig 'target')

    Example:
        >>> translator = LinkFlagTranslator(ruby.get_config)
        >>> translator.translate(static_requested=True, library_dir=ruby.library_dir)
    """

    def __init__(self, query: Callable[[str], str], msvc: Optional[bool] = None):
        self.query = query
        self.msvc = msvc

    def primary_key(self, static_requested: bool) -> str:
        return "LIBRUBYARG_STATIC" if static_requested else "LIBRUBYARG_SHARED"

    def aux_key(self, static_requested: bool) -> str:
        # Link to the same libraries as the main `ruby` program
        return "MAINLIBS" if static_requested else "LIBS"

    def is_msvc(self) -> bool:
        if self.msvc is not None:
            return self.msvc
        return is_msvc_target(self.query("target"))

    def library_name(self, static_requested: bool) -> str:
        name = self.query("RUBY_SO_NAME")
        if static_requested:
            name += "-static"
        return name

    def translate(
        self, static_requested: bool, library_dir: Optional[str] = None
    ) -> List[LinkDirective]:
        """
        Query the runtime and translate its link strings.

        Raises:
            RuntimeQueryError: If a configuration value can't be read
            LinkError: If the link strings can't be translated
        """
        primary = self.query(self.primary_key(static_requested))
        solibs = self.query("SOLIBS")
        aux_libs = self.query(self.aux_key(static_requested))

        return translate_link_flags(
            primary,
            solibs,
            aux_libs,
            static_requested=static_requested,
            library_name=self.library_name(static_requested),
            msvc=self.is_msvc(),
            library_dir=None if library_dir is None else str(library_dir),
        )
