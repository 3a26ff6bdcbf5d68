"""Summary of an instrumented test run."""

from collections.abc import Mapping
from dataclasses import dataclass


@dataclass(frozen=True, kw_only=True)
class RunSummary:
    """Totals of a run, as counted by the coordinator and the aggregator."""

    run_id: str
    tests: int
    outcomes: Mapping[str, int]
    events: Mapping[str, int]
    coverage_unavailable: int
    protocol_errors: int
