"""Containment checks for caller supplied paths."""

from __future__ import annotations

import os
from pathlib import Path

IMAGE_MIME_TYPES = {
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".bmp": "image/bmp",
    ".gif": "image/gif",
}


class AccessDeniedError(PermissionError):
    """The requested path falls outside the content root.

    The message is fixed so the offending path never leaks into responses.
    """

    def __init__(self) -> None:
        super().__init__("Access denied")


def is_within(candidate: str, root: str) -> bool:
    """Both arguments must already be canonical."""
    if candidate == root:
        return True
    prefix = root if root.endswith(os.sep) else root + os.sep
    return candidate.startswith(prefix)


def resolve_within_root(user_path: str, root: Path) -> Path:
    """Resolve ``user_path`` against ``root`` and return the canonical path.

    Symlinks are resolved on both sides before the containment check, so a
    link inside the root that points elsewhere is rejected. Raises
    :class:`AccessDeniedError` when the result escapes the root.
    """
    if "\0" in user_path:
        raise AccessDeniedError()

    safe_root = os.path.realpath(os.fspath(root))
    try:
        real_path = os.path.realpath(os.path.join(safe_root, user_path))
    except (OSError, ValueError) as exc:
        raise AccessDeniedError() from exc

    if not is_within(real_path, safe_root):
        raise AccessDeniedError()
    return Path(real_path)


def resolve_image(user_path: str, root: Path) -> tuple[Path, str]:
    """Return the canonical image path and its MIME type.

    Raises :class:`AccessDeniedError` for escapes and non-image extensions,
    :class:`FileNotFoundError` when nothing servable exists there.
    """
    resolved = resolve_within_root(user_path, root)
    mime_type = IMAGE_MIME_TYPES.get(resolved.suffix.lower())
    if mime_type is None:
        raise AccessDeniedError()
    if not resolved.is_file():
        raise FileNotFoundError("Image not found")
    return resolved, mime_type
