"""Per-test status state machine and run-wide event counters."""

from collections import Counter
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum

from pertestcov.models.status import FAILURE_EVENTS, FinalStatus, StatusEvent

PRECEDENCE: Sequence[tuple[StatusEvent, FinalStatus]] = (
    (StatusEvent.IGNORED, FinalStatus.IGNORED),
    (StatusEvent.ASSUMPTION_FAILED, FinalStatus.ASSUMPTION_FAILED),
    (StatusEvent.FAILED, FinalStatus.FAILED),
)


class UnknownEventError(Exception):
    """Raised when an event is not part of the lifecycle vocabulary."""


class RecordSealedError(Exception):
    """Raised when an event arrives for a ledger whose verdict is final."""


def resolve_final_status(events: Iterable[StatusEvent]) -> FinalStatus:
    """Fold lifecycle events into a verdict.

    Precedence, highest first: Ignored, AssumptionFailed, Failed, Succeeded.
    Arrival order does not matter.
    """
    seen: set[StatusEvent] = set()
    for event in events:
        if not isinstance(event, StatusEvent):
            raise UnknownEventError(f"Unknown lifecycle event: {event!r}")
        seen.add(event)

    for event, status in PRECEDENCE:
        if event in seen:
            return status
    return FinalStatus.SUCCEEDED


class LedgerPhase(Enum):
    """Phase of a StatusLedger."""

    OPEN = "open"
    FINISHED = "finished"
    SEALED = "sealed"


@dataclass(kw_only=True)
class StatusLedger:
    """Append-only event history of one test occurrence.

    An open ledger accepts any event. Once finished it only accepts failures,
    so failures reported after nominal completion still land in the same
    record. Sealing computes the final status once; after that the ledger is
    immutable.
    """

    events: list[StatusEvent] = field(default_factory=list)
    causes: list[str] = field(default_factory=list)
    phase: LedgerPhase = LedgerPhase.OPEN
    _final_status: FinalStatus | None = field(default=None, repr=False)

    def register(self, event: StatusEvent, cause: str | None = None) -> None:
        """Append an event in arrival order."""
        if not isinstance(event, StatusEvent):
            raise UnknownEventError(f"Unknown lifecycle event: {event!r}")
        if self.phase is LedgerPhase.SEALED:
            raise RecordSealedError(f"Cannot register {event} on a sealed ledger")
        if self.phase is LedgerPhase.FINISHED and event not in FAILURE_EVENTS:
            raise RecordSealedError(
                f"Only failures may follow completion, got {event}"
            )

        self.events.append(event)
        if cause:
            self.causes.append(cause)

        if event is StatusEvent.FINISHED or (
            event is StatusEvent.IGNORED and StatusEvent.STARTED not in self.events
        ):
            self.phase = LedgerPhase.FINISHED

    def finish(self) -> None:
        """Stop accepting anything but late failures."""
        if self.phase is LedgerPhase.OPEN:
            self.phase = LedgerPhase.FINISHED

    def seal(self) -> FinalStatus:
        """Compute the final status once and freeze the ledger."""
        if self._final_status is None:
            self._final_status = resolve_final_status(self.events)
            self.phase = LedgerPhase.SEALED
        return self._final_status

    @property
    def is_open(self) -> bool:
        return self.phase is LedgerPhase.OPEN

    @property
    def is_sealed(self) -> bool:
        return self.phase is LedgerPhase.SEALED

    @property
    def has_failure(self) -> bool:
        return any(event in FAILURE_EVENTS for event in self.events)


@dataclass(kw_only=True)
class RunStatistics:
    """Process-wide tallies per event kind, plus capture and protocol losses."""

    events: Counter[StatusEvent] = field(
        default_factory=lambda: Counter({event: 0 for event in StatusEvent})
    )
    coverage_unavailable: int = 0
    protocol_errors: int = 0

    def count(self, event: StatusEvent) -> None:
        self.events[event] += 1

    def as_dict(self) -> Mapping[str, int]:
        """Counters keyed by event code."""
        return {event.value: self.events[event] for event in StatusEvent}
