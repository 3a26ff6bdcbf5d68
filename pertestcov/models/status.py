"""Lifecycle events and final statuses of a test."""

from enum import StrEnum


class StatusEvent(StrEnum):
    """Lifecycle event reported by a host framework, valued by its short code."""

    STARTED = "STRT"
    IGNORED = "IGNR"
    FAILED = "FAIL"
    ASSUMPTION_FAILED = "AFAIL"
    FINISHED = "FNSH"


class FinalStatus(StrEnum):
    """Verdict folded from the events of one test, valued by its results code."""

    SUCCEEDED = "PASS"
    FAILED = "FAIL"
    IGNORED = "IGNR"
    ASSUMPTION_FAILED = "AFAIL"


FAILURE_EVENTS = frozenset({StatusEvent.FAILED, StatusEvent.ASSUMPTION_FAILED})
