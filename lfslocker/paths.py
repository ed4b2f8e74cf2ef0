"""Pure conversions between absolute, repository-relative and referenced paths.

Nothing in this module touches the filesystem or the process working
directory. The path flavour (POSIX or Windows) follows the shape of the root
that is passed in, so a Windows repository root is handled the same way on
every host.
"""

from __future__ import annotations

import ntpath
import posixpath
import re
from types import ModuleType

from .errors import PathDomainError

LAYOUT_KEYS = ("LayoutFile", "RDLCLayout")

_REFERENCE_PATTERN = re.compile(
    r"\b(?:" + "|".join(re.escape(key) for key in LAYOUT_KEYS) + r")\s*=\s*'([^']+)'\s*;",
    re.IGNORECASE,
)
_WINDOWS_ROOT = re.compile(r"^(?:[A-Za-z]:[\\/]|\\\\)")
_SEPARATORS = re.compile(r"[\\/]+")


def _flavour(path: str) -> ModuleType:
    return ntpath if _WINDOWS_ROOT.match(path) else posixpath


def _segments(path: str) -> list[str]:
    return [segment for segment in _SEPARATORS.split(path) if segment and segment != "."]


def to_repo_relative(root: str, absolute_path: str) -> str:
    """Return ``absolute_path`` relative to ``root`` using ``/`` separators.

    Raises PathDomainError when the two paths cannot be related, for example
    when they live on different drives or one of them is not absolute.
    """

    mod = _flavour(root)
    if not mod.isabs(root) or not mod.isabs(absolute_path):
        raise PathDomainError(f"Cannot relate {absolute_path!r} to repository root {root!r}")

    try:
        relative = mod.relpath(absolute_path, root)
    except ValueError as exc:
        raise PathDomainError(f"{absolute_path!r} has no common root with {root!r}") from exc

    return relative.replace("\\", "/")


def to_absolute(root: str, relative_path: str) -> str:
    """Join a repository-relative path onto ``root``."""

    mod = _flavour(root)
    return mod.normpath(mod.join(root, *_segments(relative_path)))


def combine_paths(base: str, supplied: str) -> str:
    """Join ``supplied`` onto ``base`` without repeating overlapping segments.

    The longest suffix of ``base`` that equals a prefix of ``supplied`` is
    collapsed, so ``/a/b/c`` and ``b/c/d/x.txt`` give ``/a/b/c/d/x.txt``.
    Without any overlap this is a plain join.
    """

    mod = _flavour(base)
    base_path = mod.normpath(base)
    base_segments = [mod.normcase(s) for s in _segments(base_path)]
    supplied_segments = _segments(supplied)
    folded = [mod.normcase(s) for s in supplied_segments]

    overlap = 0
    for size in range(min(len(base_segments), len(folded)), 0, -1):
        if base_segments[-size:] == folded[:size]:
            overlap = size
            break

    remainder = supplied_segments[overlap:]
    if not remainder:
        return base_path
    return mod.normpath(mod.join(base_path, *remainder))


def resolve_indirect_reference(contents: str) -> str | None:
    """Return the first layout reference declared in ``contents``.

    Recognised forms are ``LayoutFile = '<path>';`` and
    ``RDLCLayout = '<path>';``, with the key matched case-insensitively.
    The referenced file is not checked for existence.
    """

    match = _REFERENCE_PATTERN.search(contents)
    if match is None:
        return None
    return match.group(1)


def is_layout_source(path: str, extension: str) -> bool:
    """Whether ``path`` has the extension of files that carry layout references."""

    if not extension.startswith("."):
        extension = "." + extension
    return ntpath.splitext(path)[1].lower() == extension.lower()


def display_name(path: str) -> str:
    segments = _segments(path)
    return segments[-1] if segments else path
