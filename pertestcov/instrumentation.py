"""Manual coverage hook callable from the code under test.

Code that cannot be instrumented by an agent can still tell which tests
reach it::

    from pertestcov.instrumentation import record_coverage

    def legacy_entry_point():
        record_coverage()
        ...

The names of the tests that called the hook are written to
``<base_dir>/TestCoverage.csv`` when the run finishes.
"""

import threading

from pertestcov.coordinator import TestCoordinator

_lock = threading.Lock()
_active: TestCoordinator | None = None


def activate(coordinator: TestCoordinator | None) -> None:
    """Route ``record_coverage`` calls to a coordinator, or nowhere."""
    global _active
    with _lock:
        _active = coordinator


def active_coordinator() -> TestCoordinator | None:
    with _lock:
        return _active


def record_coverage() -> None:
    """Add the currently running test to the covering tests of the run.

    Does nothing outside of an instrumented run or between tests.
    """
    coordinator = active_coordinator()
    if coordinator is not None:
        coordinator.record_coverage()
