"""Coordination of host lifecycle events, coverage captures and results."""

import logging
import threading
from collections import Counter, defaultdict
from collections.abc import Iterable

from pertestcov.aggregator import ResultsAggregator, normalize_run_id
from pertestcov.hosts.vocabulary import EventVocabulary
from pertestcov.ledger import RecordSealedError, RunStatistics, UnknownEventError
from pertestcov.models.identity import TestId, TestIdentity, identify_test
from pertestcov.models.record import TestRecord
from pertestcov.models.snapshot import CaptureOutcome, CoverageUnavailable
from pertestcov.models.status import StatusEvent
from pertestcov.models.summary import RunSummary
from pertestcov.snapshot import SnapshotClient

log = logging.getLogger(__name__)

type LateFailure = tuple[TestId, str | None]


class TestCoordinator:
    """Drives the status ledgers and coverage captures of one process.

    Host adapters report events through ``notify`` or the typed helpers. The
    coverage of a test is captured synchronously inside ``test_finished``,
    before control returns to the host, so the next test cannot start while
    the agent still holds the previous test's counters.

    One coordinator is meant to be shared by every host adapter of a process.
    Its lock guards the in-flight record table and the statistics; captures
    run outside of it and are serialized by the snapshot client.
    """

    __test__ = False

    def __init__(
        self,
        *,
        aggregator: ResultsAggregator,
        snapshot_client: SnapshotClient | None = None,
        run_id: str | None = None,
    ) -> None:
        self.aggregator = aggregator
        self.snapshot_client = snapshot_client
        self.run_id = normalize_run_id(run_id)
        self.statistics = RunStatistics()
        self._lock = threading.Lock()
        self._open: dict[str, TestRecord] = {}
        self._latest: dict[str, TestRecord] = {}
        self._occurrences: Counter[str] = Counter()
        self._failures: Counter[str] = Counter()
        self._running: dict[int, str] = {}
        self._covering: set[str] = set()

    def notify(
        self,
        vocabulary: EventVocabulary,
        test_id: TestId,
        name: str,
        cause: str | None = None,
    ) -> None:
        """Handle an event named in a host framework's own vocabulary.

        A name outside the vocabulary fails that test's record and the run
        goes on.
        """
        try:
            event = vocabulary.translate(name)
        except UnknownEventError as exc:
            log.error(
                "Protocol mismatch for %s.%s: %s", test_id.container, test_id.case, exc
            )
            with self._lock:
                self.statistics.protocol_errors += 1
            self.test_failed(test_id, cause=f"protocol mismatch: {exc}")
            return

        self.dispatch(test_id, event, cause)

    def dispatch(
        self, test_id: TestId, event: StatusEvent, cause: str | None = None
    ) -> None:
        match event:
            case StatusEvent.STARTED:
                self.test_started(test_id)
            case StatusEvent.IGNORED:
                self.test_ignored(test_id, cause)
            case StatusEvent.FAILED:
                self.test_failed(test_id, cause)
            case StatusEvent.ASSUMPTION_FAILED:
                self.test_assumption_failed(test_id, cause)
            case StatusEvent.FINISHED:
                self.test_finished(test_id)
            case _:
                raise UnknownEventError(f"Unknown lifecycle event: {event!r}")

    def run_started(self) -> None:
        log.info("TEST RUN STARTED (run %s)", self.run_id)

    def test_started(self, test_id: TestId) -> None:
        identity = identify_test(test_id)
        with self._lock:
            stale = self._open.pop(identity.qualified_name, None)
            if stale is not None:
                log.warning("%s started again before finishing", stale.qualified_name)
                self._register(
                    stale, StatusEvent.FAILED, "started again before finishing"
                )
                stale.ledger.finish()

            record = self._new_record(identity)
            self._register(record, StatusEvent.STARTED)
            self._open[identity.qualified_name] = record
            self._running[threading.get_ident()] = identity.qualified_name

        if stale is not None:
            self._close(stale)

    def test_ignored(self, test_id: TestId, reason: str | None = None) -> None:
        """Ignore a running test, or record a test skipped without starting."""
        identity = identify_test(test_id)
        with self._lock:
            self._running.pop(threading.get_ident(), None)
            record = self._open.get(identity.qualified_name)
            if record is not None:
                self._register(record, StatusEvent.IGNORED, reason)
                return

            record = self._new_record(identity)
            self._register(record, StatusEvent.IGNORED, reason)

        self._close(record)

    def test_failed(self, test_id: TestId, cause: str | None = None) -> None:
        self._fail(test_id, StatusEvent.FAILED, cause)

    def test_assumption_failed(self, test_id: TestId, cause: str | None = None) -> None:
        with self._lock:
            self._running.pop(threading.get_ident(), None)
        self._fail(test_id, StatusEvent.ASSUMPTION_FAILED, cause)

    def test_finished(self, test_id: TestId) -> None:
        """Close the running record and capture its coverage."""
        identity = identify_test(test_id)
        with self._lock:
            self._running.pop(threading.get_ident(), None)
            record = self._open.pop(identity.qualified_name, None)
            if record is None:
                log.error("%s finished without being started", identity.qualified_name)
                self.statistics.protocol_errors += 1
                record = self._new_record(identity)
                self._register(
                    record, StatusEvent.FAILED, "finished without being started"
                )
            self._register(record, StatusEvent.FINISHED)

        self._close(record)

    def record_coverage(self) -> None:
        """Mark the test running on the calling thread as a covering test."""
        with self._lock:
            name = self._running.get(threading.get_ident())
            if name is not None:
                self._covering.add(name)

    @property
    def covering_tests(self) -> frozenset[str]:
        with self._lock:
            return frozenset(self._covering)

    def run_finished(self, late_failures: Iterable[LateFailure] = ()) -> RunSummary:
        """Apply failures reported at the end of the run, then flush.

        Args:
            late_failures: Every failure the host collected during the run.
                Per test name, only the entries beyond the failures already
                reported as they happened are applied, each to the most recent
                unflushed record of that test unless it already holds one

        Returns:
            Totals of the run so far

        """
        for test_id, cause in self._unreported(late_failures):
            self._fail(test_id, StatusEvent.FAILED, cause, late=True)

        with self._lock:
            unfinished = list(self._open.values())
            self._open.clear()
            for record in unfinished:
                log.warning("%s did not finish before the run", record.qualified_name)
                self._register(
                    record, StatusEvent.FAILED, "run finished before the test"
                )
                self._register(record, StatusEvent.FINISHED)

        for record in unfinished:
            self._close(record)

        self.aggregator.flush(self.run_id)
        self.aggregator.write_covering_tests(sorted(self.covering_tests))

        summary = self.summary()
        log.info("TEST RUN FINISHED (run %s, tests=%d)", self.run_id, summary.tests)
        log.info("Listener stats: %s", dict(summary.events))
        return summary

    def summary(self) -> RunSummary:
        with self._lock:
            events = self.statistics.as_dict()
            coverage_unavailable = self.statistics.coverage_unavailable
            protocol_errors = self.statistics.protocol_errors

        outcomes = self.aggregator.outcomes
        return RunSummary(
            run_id=self.run_id,
            tests=sum(outcomes.values()),
            outcomes=outcomes,
            events=events,
            coverage_unavailable=coverage_unavailable,
            protocol_errors=protocol_errors,
        )

    def _fail(
        self,
        test_id: TestId,
        event: StatusEvent,
        cause: str | None,
        *,
        late: bool = False,
    ) -> None:
        identity = identify_test(test_id)
        with self._lock:
            record = self._open.get(identity.qualified_name) or self._latest.get(
                identity.qualified_name
            )
            if record is not None:
                if late and record.ledger.has_failure:
                    return
                try:
                    self._register(record, event, cause)
                except RecordSealedError:
                    log.warning(
                        "Dropping %s for %s, its result was already dumped",
                        event.value,
                        identity.qualified_name,
                    )
                return

            log.warning(
                "%s reported for %s, which never started",
                event.value,
                identity.qualified_name,
            )
            record = self._new_record(identity)
            self._register(record, event, cause)
            record.ledger.finish()

        # nothing ran for this record, the agent keeps its counters for the next test
        self.aggregator.record(record, None)

    def _unreported(self, late_failures: Iterable[LateFailure]) -> list[LateFailure]:
        by_name: defaultdict[str, list[LateFailure]] = defaultdict(list)
        for failure in late_failures:
            by_name[identify_test(failure[0]).qualified_name].append(failure)

        with self._lock:
            return [
                failure
                for name, failures in by_name.items()
                for failure in failures[self._failures[name] :]
            ]

    def _new_record(self, identity: TestIdentity) -> TestRecord:
        name = identity.qualified_name
        record = TestRecord(identity=identity, occurrence=self._occurrences[name])
        self._occurrences[name] += 1
        self._latest[name] = record
        return record

    def _register(
        self, record: TestRecord, event: StatusEvent, cause: str | None = None
    ) -> None:
        record.ledger.register(event, cause)
        self.statistics.count(event)
        if event is StatusEvent.FAILED:
            self._failures[record.qualified_name] += 1
        log.debug("%s %s", record.qualified_name, event.value)

    def _close(self, record: TestRecord) -> None:
        outcome: CaptureOutcome | None = None
        if self.snapshot_client is not None:
            outcome = self.snapshot_client.capture(record.identity, record.occurrence)
            if isinstance(outcome, CoverageUnavailable):
                with self._lock:
                    self.statistics.coverage_unavailable += 1

        self.aggregator.record(record, outcome)
