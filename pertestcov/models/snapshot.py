"""Outcomes of a coverage capture."""

from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True, kw_only=True)
class CoverageSnapshot:
    """Coverage dump written to disk for one test occurrence."""

    path: Path
    size: int


@dataclass(frozen=True, kw_only=True)
class CoverageUnavailable:
    """Capture failed; the test has no coverage, which is not zero coverage."""

    reason: str


type CaptureOutcome = CoverageSnapshot | CoverageUnavailable
