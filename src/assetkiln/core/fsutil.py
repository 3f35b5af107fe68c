"""Directory helpers shared by the stages.

Stages own their output directories: they are created on demand and emptied
before each run so outputs of removed or renamed sources never survive.
"""

from __future__ import annotations

import contextlib
import shutil
import sys
from collections import deque
from pathlib import Path

from assetkiln.core.errors import NotFoundError, StageSetupError


def ensure_dir(path: Path) -> Path:
    """Create a directory and missing ancestors. No error if it exists."""
    path.mkdir(parents=True, exist_ok=True)
    return path


def _ignore_missing(func, path, exc) -> None:
    """rmtree error handler: a vanished entry is fine, anything else is raised."""
    if isinstance(exc, tuple):
        # onerror passes sys.exc_info()
        exc = exc[1]
    if not isinstance(exc, FileNotFoundError):
        raise exc


def _rmtree(path: Path) -> None:
    if sys.version_info >= (3, 12):
        shutil.rmtree(path, onexc=_ignore_missing)
    else:
        shutil.rmtree(path, onerror=_ignore_missing)


def clear_dir(path: Path) -> None:
    """Delete every direct child of an existing directory.

    The directory itself is kept. Children that disappear while we delete
    (another process, a racing watcher) are ignored; any other failure is
    raised, so a stale output never survives silently.

    Args:
        path: Directory to empty

    Raises:
        OSError: If a child cannot be removed
    """
    for child in list(path.iterdir()):
        if child.is_dir() and not child.is_symlink():
            _rmtree(child)
        else:
            with contextlib.suppress(FileNotFoundError):
                child.unlink()


def list_all_files(root: Path) -> list[Path]:
    """List every regular file under root, relative to root.

    Breadth-first: directories are queued as they are discovered and each
    directory level is read in sorted order.

    Args:
        root: Absolute directory to walk

    Returns:
        Relative paths, each file exactly once

    Raises:
        NotFoundError: If root does not exist
    """
    if not root.is_dir():
        raise NotFoundError(root)

    files: list[Path] = []
    pending: deque[Path] = deque([Path()])

    while pending:
        rel_dir = pending.popleft()
        for entry in sorted((root / rel_dir).iterdir(), key=lambda p: p.name):
            rel = rel_dir / entry.name
            if entry.is_dir():
                pending.append(rel)
            elif entry.is_file():
                files.append(rel)

    return files


def list_top_level_files(root: Path) -> list[str]:
    """Sorted names of regular files directly inside root.

    Raises:
        NotFoundError: If root does not exist
    """
    if not root.is_dir():
        raise NotFoundError(root)
    return sorted(entry.name for entry in root.iterdir() if entry.is_file())


def prepare_output_dir(out_dir: Path) -> None:
    """Create and empty a stage output directory.

    Raises:
        StageSetupError: If the directory cannot be created or cleared
    """
    try:
        ensure_dir(out_dir)
        clear_dir(out_dir)
    except OSError as e:
        raise StageSetupError(f"Cannot prepare output directory {out_dir}: {e}") from e
