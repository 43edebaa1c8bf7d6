"""Tests for the scan orchestrator."""

from __future__ import annotations

import shutil
import threading
import time
from pathlib import Path
from unittest.mock import patch

import pytest

from casegallery.index.scanner import EnumerationError, ScanStats, Scanner, find_case_studies
from casegallery.ingestion.markdown_loader import ExtractionError, extract_case_study
from casegallery.models import FilterRules


def _write_study(root: Path, relative: str, title: str | None = None) -> Path:
    directory = root / relative
    directory.mkdir(parents=True, exist_ok=True)
    doc = directory / "CASESTUDY.md"
    doc.write_text(f"# {title}\n\nBody" if title else "Body only")
    return doc


def _wait_until_idle(scanner: Scanner, timeout: float = 5.0) -> None:
    deadline = time.monotonic() + timeout
    while scanner.scanning:
        if time.monotonic() > deadline:
            raise AssertionError("scan did not finish in time")
        time.sleep(0.01)


@pytest.fixture
def content_root(tmp_path: Path) -> Path:
    root = tmp_path / "content"
    _write_study(root, "alpha", "Alpha")
    _write_study(root, "beta/nested", "Beta")
    _write_study(root, "node_modules/pkg", "Vendored")
    return root


class TestFindCaseStudies:
    """Test the walk and filter step."""

    def test_applies_rules(self, content_root: Path) -> None:
        stats = ScanStats()
        rules = FilterRules(exclude_paths=("**/node_modules/**",))

        paths = find_case_studies(content_root, rules, stats=stats)

        assert [p.parent.name for p in paths] == ["alpha", "nested"]
        assert stats.found == 3
        assert stats.excluded == 1

    def test_filename_scoped_rules(self, content_root: Path) -> None:
        rules = FilterRules(exclude_patterns={"CASESTUDY.md": ("beta/**",)})

        paths = find_case_studies(content_root, rules)

        assert "nested" not in {p.parent.name for p in paths}

    def test_missing_root_raises(self, tmp_path: Path) -> None:
        with pytest.raises(EnumerationError):
            find_case_studies(tmp_path / "missing", FilterRules())


class TestScanner:
    """Test Scanner scan, publish and status behaviour."""

    def test_initial_state(self, content_root: Path) -> None:
        scanner = Scanner(content_root, FilterRules())
        status = scanner.status()

        assert status.scanning is False
        assert status.record_count == 0
        assert status.last_scan_completed_at is None

    def test_scan_publishes_snapshot(self, content_root: Path) -> None:
        scanner = Scanner(content_root, FilterRules(exclude_paths=("**/node_modules/**",)))

        stats = scanner.scan()

        assert stats is not None
        assert stats.extracted == 2
        titles = [record.title for record in scanner.snapshot.records]
        assert titles == ["Alpha", "Beta"]
        status = scanner.status()
        assert status.record_count == 2
        assert status.last_scan_completed_at is not None
        assert status.last_error is None

    def test_extraction_failures_are_dropped(self, content_root: Path) -> None:
        scanner = Scanner(content_root, FilterRules(exclude_paths=("**/node_modules/**",)))

        def _flaky(path: Path, root: Path):
            if path.parent.name == "alpha":
                raise ExtractionError(path, "vanished")
            return extract_case_study(path, root)

        with patch("casegallery.index.scanner.extract_case_study", side_effect=_flaky):
            stats = scanner.scan()

        assert stats is not None
        assert stats.failed == 1
        assert [r.title for r in scanner.snapshot.records] == ["Beta"]
        assert scanner.scanning is False

    def test_enumeration_failure_keeps_prior_snapshot(self, content_root: Path) -> None:
        scanner = Scanner(content_root, FilterRules())
        scanner.scan()
        previous = scanner.snapshot

        shutil.rmtree(content_root)
        scanner.scan()

        assert scanner.snapshot is previous
        status = scanner.status()
        assert status.record_count == 3
        assert status.last_error is not None
        assert status.scanning is False

    def test_successful_scan_clears_error(self, content_root: Path, tmp_path: Path) -> None:
        scanner = Scanner(tmp_path / "not-yet", FilterRules())
        scanner.scan()
        assert scanner.status().last_error is not None

        _write_study(tmp_path / "not-yet", "x", "X")
        scanner.scan()

        assert scanner.status().last_error is None
        assert scanner.status().record_count == 1

    def test_rescan_drops_newly_excluded(self, content_root: Path) -> None:
        scanner = Scanner(content_root, FilterRules())
        scanner.scan()
        assert any(r.title == "Vendored" for r in scanner.snapshot.records)

        scanner.rules = FilterRules(exclude_paths=("node_modules/**",))
        scanner.scan()

        assert all("node_modules" not in str(r.source_path) for r in scanner.snapshot.records)

    def test_ids_stable_across_scans(self, content_root: Path) -> None:
        first = Scanner(content_root, FilterRules())
        second = Scanner(content_root, FilterRules())
        first.scan()
        second.scan()

        assert [r.id for r in first.snapshot.records] == [r.id for r in second.snapshot.records]

    def test_worker_cap_is_at_least_one(self, content_root: Path) -> None:
        scanner = Scanner(content_root, FilterRules(), max_workers=0)

        assert scanner.max_workers == 1
        assert scanner.scan() is not None


class TestScanSerialization:
    """Overlapping triggers collapse into one scan."""

    def test_overlapping_requests_run_one_scan(self, content_root: Path) -> None:
        scanner = Scanner(content_root, FilterRules(exclude_paths=("**/node_modules/**",)))
        release = threading.Event()
        calls: list[Path] = []
        lock = threading.Lock()

        def _blocking(path: Path, root: Path):
            with lock:
                calls.append(path)
            release.wait(5)
            return extract_case_study(path, root)

        with patch("casegallery.index.scanner.extract_case_study", side_effect=_blocking):
            assert scanner.request_scan() is True
            assert scanner.scanning is True

            results = []
            threads = [
                threading.Thread(target=lambda: results.append(scanner.request_scan()))
                for _ in range(5)
            ]
            for thread in threads:
                thread.start()
            for thread in threads:
                thread.join()
            assert results == [False] * 5
            assert scanner.scan() is None

            release.set()
            _wait_until_idle(scanner)

        assert len(calls) == 2
        assert [r.title for r in scanner.snapshot.records] == ["Alpha", "Beta"]
        assert scanner.status().scanning is False

    def test_readers_see_prior_snapshot_during_scan(self, content_root: Path) -> None:
        scanner = Scanner(content_root, FilterRules())
        scanner.scan()
        before = scanner.snapshot
        release = threading.Event()

        def _blocking(path: Path, root: Path):
            release.wait(5)
            return extract_case_study(path, root)

        with patch("casegallery.index.scanner.extract_case_study", side_effect=_blocking):
            scanner.request_scan()
            assert scanner.snapshot is before
            release.set()
            _wait_until_idle(scanner)

        assert scanner.snapshot is not before
        assert len(scanner.snapshot) == len(before)


class TestBackgroundTimer:
    """Test start/stop of the recurring scan."""

    def test_timer_rescans(self, content_root: Path) -> None:
        scanner = Scanner(content_root, FilterRules())
        scanner.start(0.05)
        try:
            deadline = time.monotonic() + 5
            while scanner.status().last_scan_completed_at is None:
                assert time.monotonic() < deadline
                time.sleep(0.01)
        finally:
            scanner.stop()

        assert scanner.status().record_count == 3

    def test_non_positive_interval_disables_timer(self, content_root: Path) -> None:
        scanner = Scanner(content_root, FilterRules())
        scanner.start(0)

        assert scanner._timer is None
        scanner.stop()
