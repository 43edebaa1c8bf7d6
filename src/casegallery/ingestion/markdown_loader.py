"""Markdown case study loading.

Turns a single ``CASESTUDY.md`` file into a :class:`CaseStudyRecord`.
Every call touches only its own file and the sibling image candidates.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Sequence

from casegallery.models import CaseStudyRecord
from casegallery.utils.files import compute_path_id

LOGGER = logging.getLogger(__name__)

CASE_STUDY_FILENAME = "CASESTUDY.md"
IMAGE_STEM = "CASESTUDY"
IMAGE_EXTENSIONS = (".png", ".jpg", ".jpeg", ".bmp", ".gif")

_HEADING_RE = re.compile(r"^#[ \t]+(.+)$", re.MULTILINE)


class ExtractionError(RuntimeError):
    """A case study file could not be turned into a record."""

    def __init__(self, path: Path, reason: str) -> None:
        super().__init__(f"Failed to extract {path}: {reason}")
        self.path = path
        self.reason = reason


def extract_title(content: str, fallback: str) -> str:
    """Return the first level-1 heading, or ``fallback`` if there is none."""
    match = _HEADING_RE.search(content)
    if match:
        title = match.group(1).strip()
        if title:
            return title
    return fallback


def find_companion_image(
    directory: Path,
    *,
    stem: str = IMAGE_STEM,
    extensions: Sequence[str] = IMAGE_EXTENSIONS,
) -> Path | None:
    """Probe ``directory`` for ``stem`` plus each extension, in order."""
    for ext in extensions:
        candidate = directory / f"{stem}{ext}"
        try:
            if candidate.is_file():
                return candidate
        except OSError:
            continue
    return None


def extract_case_study(path: Path, root: Path) -> CaseStudyRecord:
    """Read ``path`` and build its record.

    Image references are stored relative to ``root`` with forward slashes
    so they can be handed back to the image endpoint unchanged.
    """
    path = Path(path)
    try:
        content = path.read_text(encoding="utf-8-sig", errors="replace")
    except OSError as exc:
        raise ExtractionError(path, exc.strerror or str(exc)) from exc

    directory = path.parent
    title = extract_title(content, directory.name)

    image = find_companion_image(directory)
    image_path = image.relative_to(root).as_posix() if image is not None else None

    return CaseStudyRecord(
        id=compute_path_id(path),
        title=title,
        source_path=path,
        image_path=image_path,
        content=content,
    )
