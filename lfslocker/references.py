"""Filesystem-backed resolution of layout references.

A source file with the layout extension is never locked itself; the file
named by its layout reference is locked instead. This module reads source
files, checks that referenced files exist, and answers the reverse question
of which sources point at a given file.
"""

from __future__ import annotations

import asyncio
import logging
import os
from pathlib import Path

from .errors import NotRedirectedError, PathDomainError, ReferenceMissingError
from .models import IndirectReference, LockTarget
from .paths import combine_paths, display_name, is_layout_source, resolve_indirect_reference, to_repo_relative

logger = logging.getLogger(__name__)

_SKIPPED_DIRS = {".git"}


def _read_text(path: str) -> str:
    return Path(path).read_text(encoding="utf-8", errors="replace")


async def read_reference(root: str, source: str) -> IndirectReference | None:
    """Read ``source`` and return the layout reference it declares, if any."""

    try:
        contents = await asyncio.to_thread(_read_text, source)
    except OSError as exc:
        raise PathDomainError(f"Cannot read {source}: {exc}") from exc

    value = resolve_indirect_reference(contents)
    if value is None:
        return None
    return IndirectReference(source=source, value=value, target=combine_paths(root, value))


async def resolve_lock_target(root: str, file_path: str, extension: str) -> LockTarget:
    """Work out which file a lock request against ``file_path`` applies to."""

    if not is_layout_source(file_path, extension):
        return LockTarget(absolute=file_path, relative=to_repo_relative(root, file_path))

    reference = await read_reference(root, file_path)
    if reference is None:
        raise NotRedirectedError(
            f"No layout file found for {display_name(file_path)}. "
            f"Files ending in {extension} are only locked through their layout file."
        )

    exists = await asyncio.to_thread(os.path.isfile, reference.target)
    if not exists:
        raise ReferenceMissingError(
            f"Layout file {reference.value!r} referenced by {display_name(file_path)} does not exist.",
            reference=reference.value,
        )

    logger.debug("Redirected %s to layout file %s", file_path, reference.target)
    return LockTarget(
        absolute=reference.target,
        relative=to_repo_relative(root, reference.target),
        reference=reference,
    )


def _layout_sources(root: str, extension: str) -> list[str]:
    sources = []
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(d for d in dirnames if d not in _SKIPPED_DIRS)
        for name in filenames:
            if is_layout_source(name, extension):
                sources.append(os.path.join(dirpath, name))
    return sources


async def find_referencing_sources(root: str, target_relative: str, extension: str) -> list[str]:
    """Return repository-relative paths of sources whose layout reference is ``target_relative``."""

    wanted = os.path.normcase(combine_paths(root, target_relative))
    found = []
    for source in await asyncio.to_thread(_layout_sources, root, extension):
        try:
            reference = await read_reference(root, source)
        except PathDomainError as exc:
            logger.warning("Skipping unreadable source: %s", exc)
            continue
        if reference is not None and os.path.normcase(reference.target) == wanted:
            found.append(to_repo_relative(root, source))
    return sorted(found)
