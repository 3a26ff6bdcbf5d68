"""Persistence of test verdicts and the fingerprint to name index."""

import logging
import threading
from collections import Counter
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path

from pertestcov.models.identity import sanitize_name
from pertestcov.models.record import TestRecord
from pertestcov.models.snapshot import CaptureOutcome, CoverageUnavailable
from pertestcov.models.status import FinalStatus

log = logging.getLogger(__name__)

DEFAULT_RUN_ID = "0"
RESULTS_FILE = "TestResults"
MAP_FILE = "HashToTest"
COVERAGE_LOSS_FILE = "CoverageLoss"
COVERING_TESTS_FILE = "TestCoverage.csv"
MAP_FILE_SEPARATOR = "\t"


def _one_line(text: str) -> str:
    return " ".join(text.split())


def normalize_run_id(run_id: str | None) -> str:
    """Make a run id safe for file names, defaulting to a stable placeholder."""
    if not run_id:
        return DEFAULT_RUN_ID
    return sanitize_name(run_id)


@dataclass(frozen=True, kw_only=True)
class AggregatedResult:
    """A closed test record and what its coverage capture produced."""

    record: TestRecord
    outcome: CaptureOutcome | None


class ResultsAggregator:
    """Collects closed records and appends them to per-run result files.

    Files are only ever appended to, so several aggregators (one per host
    framework) can share a run directory. A flush writes the records queued
    since the previous flush and nothing else.
    """

    def __init__(self, base_dir: Path) -> None:
        self.base_dir = base_dir
        self._lock = threading.Lock()
        self._pending: list[AggregatedResult] = []
        self._outcomes: Counter[FinalStatus] = Counter()
        self._coverage_unavailable = 0

    def run_dir(self, run_id: str | None = None) -> Path:
        return self.base_dir / normalize_run_id(run_id)

    def results_path(self, run_id: str | None = None) -> Path:
        run_id = normalize_run_id(run_id)
        return self.run_dir(run_id) / f"{RESULTS_FILE}.r{run_id}"

    def map_path(self, run_id: str | None = None) -> Path:
        run_id = normalize_run_id(run_id)
        return self.run_dir(run_id) / f"{MAP_FILE}.r{run_id}"

    def coverage_loss_path(self, run_id: str | None = None) -> Path:
        run_id = normalize_run_id(run_id)
        return self.run_dir(run_id) / f"{COVERAGE_LOSS_FILE}.r{run_id}"

    @property
    def covering_tests_path(self) -> Path:
        return self.base_dir / COVERING_TESTS_FILE

    def record(self, record: TestRecord, outcome: CaptureOutcome | None) -> None:
        """Queue a closed record with its capture outcome."""
        with self._lock:
            self._pending.append(AggregatedResult(record=record, outcome=outcome))

    @property
    def pending(self) -> Sequence[AggregatedResult]:
        with self._lock:
            return tuple(self._pending)

    @property
    def outcomes(self) -> Mapping[str, int]:
        with self._lock:
            return {status.value: self._outcomes[status] for status in FinalStatus}

    @property
    def coverage_unavailable(self) -> int:
        with self._lock:
            return self._coverage_unavailable

    def flush(self, run_id: str | None = None) -> Sequence[AggregatedResult]:
        """Seal queued records and append them to the run's files.

        Storage failures are logged and the queued records are dropped; losing
        results must never fail the test run.

        Returns:
            The records written by this flush

        """
        run_id = normalize_run_id(run_id)
        with self._lock:
            pending, self._pending = self._pending, []
            for entry in pending:
                self._outcomes[entry.record.final_status] += 1
                if isinstance(entry.outcome, CoverageUnavailable):
                    self._coverage_unavailable += 1

        if not pending:
            return pending

        results_lines = [
            f"{entry.record.final_status.value}: {entry.record.qualified_name}\n"
            for entry in pending
        ]
        map_lines = [
            f"{entry.record.identity.fingerprint}{MAP_FILE_SEPARATOR}"
            f"{entry.record.qualified_name}\n"
            for entry in pending
        ]
        loss_lines = [
            MAP_FILE_SEPARATOR.join(
                (
                    entry.record.identity.fingerprint,
                    entry.record.qualified_name,
                    _one_line(entry.outcome.reason),
                )
            )
            + "\n"
            for entry in pending
            if isinstance(entry.outcome, CoverageUnavailable)
        ]

        self._append(self.results_path(run_id), results_lines)
        self._append(self.map_path(run_id), map_lines)
        if loss_lines:
            self._append(self.coverage_loss_path(run_id), loss_lines)

        log.info("Dumped %d test result(s) for run %s", len(pending), run_id)
        return pending

    def write_covering_tests(self, names: Sequence[str]) -> None:
        """Replace the list of tests that reported reaching instrumented code."""
        path = self.covering_tests_path
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text("".join(f"{name}\n" for name in names), encoding="utf-8")
        except OSError as exc:
            log.warning("Cannot dump covering tests to %s because: %s", path, exc)
            return

        log.info("Dumped %d covering test(s) to %s", len(names), path)

    def _append(self, path: Path, lines: Sequence[str]) -> None:
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with path.open("a", encoding="utf-8") as output:
                output.write("".join(lines))
        except OSError as exc:
            log.warning("Cannot dump test results to %s because: %s", path, exc)
