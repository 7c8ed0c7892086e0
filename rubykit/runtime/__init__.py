"""
Installed Ruby runtimes and linking against them.
"""

from rubykit.runtime.linking import (
    DynamicLibrary,
    Framework,
    LinkDirective,
    LinkFlagTranslator,
    LinkPlan,
    SearchKind,
    SearchPath,
    StaticLibrary,
    translate_link_flags,
)
from rubykit.runtime.emit import cargo_lines, emit, setuptools_kwargs
from rubykit.runtime.ruby import InstalledRuntime, installed_executable

__all__ = [
    "DynamicLibrary",
    "Framework",
    "LinkDirective",
    "LinkFlagTranslator",
    "LinkPlan",
    "SearchKind",
    "SearchPath",
    "StaticLibrary",
    "translate_link_flags",
    "cargo_lines",
    "emit",
    "setuptools_kwargs",
    "InstalledRuntime",
    "installed_executable",
]
