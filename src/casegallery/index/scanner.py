"""Case study scanning pipeline.

A :class:`Scanner` walks the content root, drops excluded entries, extracts
the rest on a bounded thread pool and publishes the result as a new
:class:`Snapshot`. At most one scan runs at a time; triggers that arrive
while a scan is in flight are dropped.
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Sequence

from casegallery.filters import should_exclude
from casegallery.ingestion.markdown_loader import (
    CASE_STUDY_FILENAME,
    ExtractionError,
    extract_case_study,
)
from casegallery.models import CaseStudyRecord, FilterRules, ScanStatus, Snapshot
from casegallery.utils.files import iter_named_files

LOGGER = logging.getLogger(__name__)

DEFAULT_MAX_WORKERS = 8


class EnumerationError(RuntimeError):
    """The content root could not be walked."""


@dataclass(slots=True)
class ScanStats:
    found: int = 0
    excluded: int = 0
    extracted: int = 0
    failed: int = 0
    duration_ms: int = 0


def find_case_studies(
    root: Path,
    rules: FilterRules,
    *,
    filename: str = CASE_STUDY_FILENAME,
    stats: ScanStats | None = None,
) -> List[Path]:
    """Return case study files under ``root`` that survive the filter rules."""
    stats = stats if stats is not None else ScanStats()
    candidates: List[Path] = []
    try:
        for path in iter_named_files(root, filename):
            stats.found += 1
            relative = path.relative_to(root).as_posix()
            if should_exclude(relative, rules, filename):
                LOGGER.debug("Filtered: %s", relative)
                stats.excluded += 1
                continue
            candidates.append(path)
    except OSError as exc:
        raise EnumerationError(f"Unable to walk content root: {exc}") from exc
    return candidates


class Scanner:
    """Owns the published snapshot and serializes scans."""

    def __init__(
        self,
        root: Path,
        rules: FilterRules,
        *,
        filename: str = CASE_STUDY_FILENAME,
        max_workers: int = DEFAULT_MAX_WORKERS,
    ) -> None:
        self.root = Path(root).absolute()
        self.rules = rules
        self.filename = filename
        self.max_workers = max(1, max_workers)
        self._snapshot = Snapshot()
        self._gate = threading.Lock()
        self._last_error: str | None = None
        self._last_duration_ms: int | None = None
        self._stop = threading.Event()
        self._timer: threading.Thread | None = None

    @property
    def snapshot(self) -> Snapshot:
        return self._snapshot

    @property
    def scanning(self) -> bool:
        return self._gate.locked()

    def scan(self) -> ScanStats | None:
        """Run a scan in the calling thread.

        Returns ``None`` without doing anything if another scan is running.
        """
        if not self._gate.acquire(blocking=False):
            LOGGER.info("Scan already in progress, skipping")
            return None
        try:
            return self._run()
        finally:
            self._gate.release()

    def request_scan(self) -> bool:
        """Start a scan on a worker thread; False if one is already running."""
        if not self._gate.acquire(blocking=False):
            LOGGER.info("Scan already in progress, skipping")
            return False

        def _worker() -> None:
            try:
                self._run()
            finally:
                self._gate.release()

        try:
            threading.Thread(target=_worker, name="casegallery-scan", daemon=True).start()
        except RuntimeError:
            self._gate.release()
            raise
        return True

    def _run(self) -> ScanStats:
        started = time.monotonic()
        stats = ScanStats()
        LOGGER.info("Starting directory scan of %s", self.root)

        try:
            candidates = find_case_studies(
                self.root, self.rules, filename=self.filename, stats=stats
            )
        except EnumerationError as exc:
            LOGGER.exception("Error during directory scan")
            self._last_error = str(exc)
            stats.duration_ms = int((time.monotonic() - started) * 1000)
            return stats

        records = self._extract_all(candidates, stats)

        self._snapshot = Snapshot(
            records=tuple(records),
            completed_at=datetime.now(timezone.utc),
        )
        self._last_error = None
        stats.duration_ms = int((time.monotonic() - started) * 1000)
        self._last_duration_ms = stats.duration_ms
        LOGGER.info(
            "Scan completed in %dms. Found %d case studies.",
            stats.duration_ms,
            len(records),
        )
        return stats

    def _extract_one(self, path: Path) -> CaseStudyRecord | None:
        try:
            return extract_case_study(path, self.root)
        except ExtractionError as exc:
            LOGGER.warning("%s", exc)
            return None

    def _extract_all(self, candidates: Sequence[Path], stats: ScanStats) -> List[CaseStudyRecord]:
        if not candidates:
            return []
        workers = min(self.max_workers, len(candidates))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="casegallery-extract") as pool:
            results = list(pool.map(self._extract_one, candidates))

        records: List[CaseStudyRecord] = []
        for record in results:
            if record is None:
                stats.failed += 1
            else:
                records.append(record)
        stats.extracted = len(records)
        return records

    def status(self) -> ScanStatus:
        snapshot = self._snapshot
        return ScanStatus(
            scanning=self.scanning,
            last_scan_completed_at=snapshot.completed_at,
            record_count=len(snapshot),
            last_error=self._last_error,
            last_duration_ms=self._last_duration_ms,
        )

    def start(self, interval: float) -> None:
        """Scan every ``interval`` seconds on a daemon thread."""
        if interval <= 0 or self._timer is not None:
            return
        self._stop.clear()

        def _loop() -> None:
            while not self._stop.wait(interval):
                try:
                    self.scan()
                except Exception:  # pragma: no cover - defensive
                    LOGGER.exception("Background scan failed")

        self._timer = threading.Thread(target=_loop, name="casegallery-timer", daemon=True)
        self._timer.start()
        LOGGER.info("Background scanning every %ss", interval)

    def stop(self, timeout: float | None = 5.0) -> None:
        self._stop.set()
        timer, self._timer = self._timer, None
        if timer is not None:
            timer.join(timeout)
