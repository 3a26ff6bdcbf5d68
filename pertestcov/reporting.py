"""Human and machine readable run summaries."""

import logging
from typing import Any

from pertestcov.models.status import FinalStatus
from pertestcov.models.summary import RunSummary

STATUS_SYMBOLS = {
    FinalStatus.SUCCEEDED: "✅",
    FinalStatus.FAILED: "❌",
    FinalStatus.IGNORED: "⏭️",
    FinalStatus.ASSUMPTION_FAILED: "❔",
}


def summary_lines(summary: RunSummary) -> list[str]:
    """Format a summary as short lines, one per final status plus losses."""
    lines = [f"Per-test coverage results (run {summary.run_id}):"]
    for status in FinalStatus:
        lines.append(
            f"{STATUS_SYMBOLS[status]} {status.value}: "
            f"{summary.outcomes.get(status.value, 0)}"
        )
    lines.append(f"Coverage unavailable: {summary.coverage_unavailable}")
    if summary.protocol_errors:
        lines.append(f"Protocol mismatches: {summary.protocol_errors}")
    return lines


def log_run_summary(log: logging.Logger, summary: RunSummary) -> None:
    """Log a formatted summary of the run."""
    log.info("=" * 80)
    for line in summary_lines(summary):
        log.info("%s", line)
    log.info("=" * 80)
    if summary.coverage_unavailable:
        log.warning(
            "%d test(s) have no coverage snapshot; see the CoverageLoss file",
            summary.coverage_unavailable,
        )


def format_summary(summary: RunSummary) -> dict[str, Any]:
    """Format a run summary for JSON output."""
    return {
        "run_id": summary.run_id,
        "total": summary.tests,
        "passed": summary.outcomes.get(FinalStatus.SUCCEEDED.value, 0),
        "failed": summary.outcomes.get(FinalStatus.FAILED.value, 0),
        "ignored": summary.outcomes.get(FinalStatus.IGNORED.value, 0),
        "assumption_failed": summary.outcomes.get(
            FinalStatus.ASSUMPTION_FAILED.value, 0
        ),
        "coverage_unavailable": summary.coverage_unavailable,
        "protocol_errors": summary.protocol_errors,
        "events": dict(summary.events),
    }
