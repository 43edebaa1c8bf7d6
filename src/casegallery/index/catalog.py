"""Read-side interface over the published case study snapshot."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List

from casegallery.filters import load_filter_rules
from casegallery.index.scanner import DEFAULT_MAX_WORKERS, Scanner
from casegallery.models import CaseStudyRecord, ScanStatus
from casegallery.utils.paths import resolve_image

LOGGER = logging.getLogger(__name__)


class Catalog:
    """High-level API used by the web and CLI layers.

    Reads never block on a running scan; they see whichever snapshot is
    currently published.
    """

    def __init__(self, scanner: Scanner) -> None:
        self.scanner = scanner

    @classmethod
    def initialize(cls, root: Path, *, max_workers: int = DEFAULT_MAX_WORKERS) -> "Catalog":
        """Load the filter rules for ``root`` once and wire up a scanner."""
        LOGGER.info("Content root set to: %s", root)
        rules = load_filter_rules(Path(root))
        return cls(Scanner(root, rules, max_workers=max_workers))

    @property
    def root(self) -> Path:
        return self.scanner.root

    def list_records(self) -> List[Dict[str, Any]]:
        return [record.summary() for record in self.scanner.snapshot.records]

    def get_record(self, record_id: str) -> CaseStudyRecord | None:
        return self.scanner.snapshot.find(record_id)

    def request_scan(self) -> bool:
        return self.scanner.request_scan()

    def get_status(self) -> ScanStatus:
        return self.scanner.status()

    def resolve_image(self, relative_path: str) -> tuple[Path, str]:
        return resolve_image(relative_path, self.root)
