"""Core case gallery data models."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Mapping, Tuple
from urllib.parse import quote

IMAGE_ENDPOINT = "/api/image"


@dataclass(frozen=True, slots=True)
class CaseStudyRecord:
    """A single case study document captured at scan time."""

    id: str
    title: str
    source_path: Path
    image_path: str | None
    content: str

    @property
    def image_url(self) -> str | None:
        if self.image_path is None:
            return None
        return f"{IMAGE_ENDPOINT}?path={quote(self.image_path, safe='')}"

    def summary(self) -> Dict[str, Any]:
        """Listing projection: no content, no filesystem path."""
        return {"id": self.id, "title": self.title, "imageUrl": self.image_url}

    def detail(self) -> Dict[str, Any]:
        payload = self.summary()
        payload["imagePath"] = self.image_path
        payload["content"] = self.content
        return payload


@dataclass(frozen=True, slots=True)
class FilterRules:
    """Glob exclusion rules, general and per-filename."""

    exclude_paths: Tuple[str, ...] = ()
    exclude_patterns: Mapping[str, Tuple[str, ...]] = field(default_factory=dict)

    def __post_init__(self) -> None:
        frozen = {name: tuple(patterns) for name, patterns in self.exclude_patterns.items()}
        object.__setattr__(self, "exclude_paths", tuple(self.exclude_paths))
        object.__setattr__(self, "exclude_patterns", MappingProxyType(frozen))

    def patterns_for(self, filename: str | None) -> Tuple[str, ...]:
        if not filename:
            return ()
        return self.exclude_patterns.get(filename, ())


@dataclass(frozen=True, slots=True)
class Snapshot:
    """Published collection of records; replaced whole, never mutated."""

    records: Tuple[CaseStudyRecord, ...] = ()
    completed_at: datetime | None = None

    def find(self, record_id: str) -> CaseStudyRecord | None:
        for record in self.records:
            if record.id == record_id:
                return record
        return None

    def __len__(self) -> int:
        return len(self.records)


@dataclass(slots=True)
class ScanStatus:
    scanning: bool
    last_scan_completed_at: datetime | None
    record_count: int
    last_error: str | None = None
    last_duration_ms: int | None = None

    def as_dict(self) -> Dict[str, Any]:
        completed = self.last_scan_completed_at
        return {
            "scanning": self.scanning,
            "lastScanCompletedAt": completed.isoformat() if completed else None,
            "recordCount": self.record_count,
            "lastError": self.last_error,
            "lastDurationMs": self.last_duration_ms,
        }
