"""Source resolution — map a handler file to the project that owns it.

A *source root* is the nearest ancestor directory of the handler that
contains one of the configured marker files (``requirements.txt``,
``Pipfile``, ``poetry.lock``).  The closest directory always wins; all
markers are checked at a level before moving up.
"""

from __future__ import annotations

import asyncio
import os
from pathlib import Path
from typing import Iterable

from pyhandler.errors import ResolutionError


def find_source_root(handler: str | Path, markers: Iterable[str]) -> Path | None:
    """Walk up from the handler's directory looking for a marker file.

    Returns the absolute directory, or ``None`` when the filesystem root
    is passed without a match.
    """
    markers = tuple(markers)
    current = Path(os.path.abspath(handler)).parent
    while True:
        if any((current / marker).exists() for marker in markers):
            return current
        if current.parent == current:
            return None
        current = current.parent


async def resolve_source_root(handler: str | Path, markers: Iterable[str]) -> Path:
    """Async ``find_source_root`` that raises ``ResolutionError`` on a miss.

    The directory walk runs in the default executor so the event loop
    is never blocked on filesystem checks.
    """
    markers = tuple(markers)
    loop = asyncio.get_running_loop()
    root = await loop.run_in_executor(None, find_source_root, handler, markers)
    if root is None:
        raise ResolutionError(str(handler), markers)
    return root


def is_child(parent: str | Path, path: str | Path) -> bool:
    """True when *path* equals *parent* or lies beneath it (no I/O).

    Uses ``os.path.normpath`` + prefix comparison on separator
    boundaries, so ``/src/app`` does not contain ``/src/app2``.
    """
    parent_norm = os.path.normpath(os.path.abspath(parent))
    path_norm = os.path.normpath(os.path.abspath(path))
    if path_norm == parent_norm:
        return True
    return path_norm.startswith(parent_norm.rstrip(os.sep) + os.sep)


def invocation_target(root: str | Path, handler: str | Path) -> tuple[str, str]:
    """Return ``(dotted_module, extension)`` for *handler* under *root*.

    ``<root>/functions/api/handler.py`` → ``("functions.api.handler", "py")``.
    For the ``file.function`` handler form the "extension" is the exported
    function name: ``<root>/src/lambda.main`` → ``("src.lambda", "main")``.
    The extension is returned without its leading dot.
    """
    rel = Path(os.path.relpath(os.path.abspath(handler), os.path.abspath(root)))
    parts = [*rel.parent.parts, rel.stem]
    return ".".join(p for p in parts if p not in ("", ".")), rel.suffix[1:]
