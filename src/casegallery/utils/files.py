"""Utility helpers for working with files."""

from __future__ import annotations

import hashlib
import os
from pathlib import Path
from typing import Iterator

ID_LENGTH = 16


def iter_named_files(root: Path, filename: str) -> Iterator[Path]:
    """Yield files under ``root`` whose name matches ``filename`` ignoring case.

    Directory symlinks are not followed. Any error while listing a directory
    propagates to the caller.
    """
    root = Path(root)
    if not root.is_dir():
        raise NotADirectoryError(f"Content root is not a directory: {root}")

    wanted = filename.lower()

    def _raise(error: OSError) -> None:
        raise error

    for dirpath, dirnames, filenames in os.walk(root, onerror=_raise):
        dirnames.sort()
        for name in sorted(filenames):
            if name.lower() != wanted:
                continue
            candidate = Path(dirpath) / name
            if candidate.is_file():
                yield candidate


def compute_path_id(path: Path, *, length: int = ID_LENGTH) -> str:
    """Derive a short stable identifier from the absolute form of ``path``."""
    absolute = os.path.abspath(os.fspath(path))
    return hashlib.sha256(absolute.encode("utf-8", "surrogateescape")).hexdigest()[:length]
