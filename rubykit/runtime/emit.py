"""
Emission of link directives to build systems.

Each adapter maps directives one at a time and puts search paths before
the libraries that resolve against them.

Supported outputs:
- cargo: 'cargo:rustc-link-*' lines for a Cargo build script
- setuptools: keyword arguments for setuptools.Extension
- json: a machine-readable list
"""

import json
import sys
from typing import Dict, Iterable, List, Optional, TextIO

from rubykit.runtime.linking import (
    DynamicLibrary,
    Framework,
    LinkDirective,
    SearchKind,
    SearchPath,
    StaticLibrary,
)

FORMATS = ("cargo", "setuptools", "json")


def search_paths_first(directives: Iterable[LinkDirective]) -> List[LinkDirective]:
    """Stable reordering with every SearchPath ahead of everything else."""
    directives = list(directives)
    paths = [d for d in directives if isinstance(d, SearchPath)]
    others = [d for d in directives if not isinstance(d, SearchPath)]
    return paths + others


def cargo_line(directive: LinkDirective) -> str:
    """
    Format one directive as a Cargo build script instruction.

    Example:
        >>> cargo_line(StaticLibrary("ruby-static"))
        'cargo:rustc-link-lib=static=ruby-static'
    """
    if isinstance(directive, SearchPath):
        return f"cargo:rustc-link-search={directive.kind.value}={directive.path}"
    if isinstance(directive, StaticLibrary):
        return f"cargo:rustc-link-lib=static={directive.name}"
    if isinstance(directive, DynamicLibrary):
        return f"cargo:rustc-link-lib=dylib={directive.name}"
    if isinstance(directive, Framework):
        return f"cargo:rustc-link-lib=framework={directive.name}"
    raise TypeError(f"Not a link directive: {directive!r}")


def cargo_lines(directives: Iterable[LinkDirective]) -> List[str]:
    return [cargo_line(d) for d in search_paths_first(directives)]


def setuptools_kwargs(directives: Iterable[LinkDirective]) -> Dict[str, List[str]]:
    """
    Map directives onto setuptools.Extension keyword arguments.

    Static and dynamic libraries both land in 'libraries': the linker picks
    whichever file it finds first. Frameworks and framework search paths go
    to 'extra_link_args'.

    Example:
        >>> Extension("ext", ["ext.c"], **setuptools_kwargs(directives))
    """
    kwargs = {"libraries": [], "library_dirs": [], "extra_link_args": []}
    for directive in search_paths_first(directives):
        if isinstance(directive, SearchPath):
            if directive.kind is SearchKind.NATIVE:
                kwargs["library_dirs"].append(directive.path)
            else:
                kwargs["extra_link_args"].append(f"-F{directive.path}")
        elif isinstance(directive, (StaticLibrary, DynamicLibrary)):
            kwargs["libraries"].append(directive.name)
        elif isinstance(directive, Framework):
            kwargs["extra_link_args"].extend(["-framework", directive.name])
        else:
            raise TypeError(f"Not a link directive: {directive!r}")
    return kwargs


def directive_to_dict(directive: LinkDirective) -> Dict[str, str]:
    if isinstance(directive, SearchPath):
        return {"type": "search", "kind": directive.kind.value, "path": directive.path}
    if isinstance(directive, StaticLibrary):
        return {"type": "static", "name": directive.name}
    if isinstance(directive, DynamicLibrary):
        return {"type": "dylib", "name": directive.name}
    if isinstance(directive, Framework):
        return {"type": "framework", "name": directive.name}
    raise TypeError(f"Not a link directive: {directive!r}")


def to_json(directives: Iterable[LinkDirective]) -> str:
    return json.dumps(
        [directive_to_dict(d) for d in search_paths_first(directives)], indent=2
    )


def emit(
    directives: Iterable[LinkDirective],
    format: str = "cargo",
    stream: Optional[TextIO] = None,
) -> None:
    """
    Write directives to a stream in the given format.

    Args:
        directives: Directives to emit
        format: One of 'cargo', 'setuptools', 'json'
        stream: Output stream (sys.stdout if None)

    Raises:
        ValueError: If format is unknown
    """
    stream = stream or sys.stdout

    if format == "cargo":
        for line in cargo_lines(directives):
            stream.write(line + "\n")
    elif format == "setuptools":
        stream.write(json.dumps(setuptools_kwargs(directives), indent=2) + "\n")
    elif format == "json":
        stream.write(to_json(directives) + "\n")
    else:
        raise ValueError(
            f"Unknown output format '{format}' (expected one of: {', '.join(FORMATS)})"
        )
