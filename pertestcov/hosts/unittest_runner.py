"""unittest integration: a result class reporting to a TestCoordinator."""

import re
import unittest
from collections.abc import Iterable
from types import TracebackType
from typing import Any, TextIO

from pertestcov.coordinator import LateFailure, TestCoordinator
from pertestcov.hosts.vocabulary import EventVocabulary
from pertestcov.models.identity import TestId
from pertestcov.models.status import StatusEvent
from pertestcov.models.summary import RunSummary

type ExcInfo = (
    tuple[type[BaseException], BaseException, TracebackType]
    | tuple[None, None, None]
)

UNITTEST_VOCABULARY = EventVocabulary(
    flavor="unittest",
    events={
        "startTest": StatusEvent.STARTED,
        "addSkip": StatusEvent.IGNORED,
        "addFailure": StatusEvent.FAILED,
        "addError": StatusEvent.FAILED,
        "addUnexpectedSuccess": StatusEvent.FAILED,
        "addSubTest": StatusEvent.FAILED,
        "stopTest": StatusEvent.FINISHED,
    },
)

# errors of class and module fixtures are reported as "<fixture> (<scope>)"
FIXTURE_ERROR = re.compile(r"(?P<fixture>\w+) \((?P<scope>[\w.]+)\)")


def unittest_test_id(test: unittest.TestCase) -> TestId:
    """Identify a test case.

    Sub-tests resolve to their parent test, and a class or module fixture
    error to ``<scope>.<fixture>``, e.g. ``mod.Class.setUpClass``.
    """
    parent = getattr(test, "test_case", test)
    test_id = parent.id()
    if not isinstance(parent, unittest.TestCase):
        match = FIXTURE_ERROR.fullmatch(test_id)
        if match is not None:
            return TestId(container=match["scope"], case=match["fixture"])
    return TestId.from_dotted(test_id)


def _cause(err: ExcInfo | None) -> str | None:
    if err is None or err[1] is None:
        return None
    return f"{type(err[1]).__name__}: {err[1]}"


def _last_line(text: str) -> str | None:
    lines = text.strip().splitlines()
    return lines[-1] if lines else None


class CoverageTestResult(unittest.TextTestResult):
    """Text result that also feeds every lifecycle event to a coordinator."""

    def __init__(
        self,
        stream: TextIO,
        descriptions: bool,
        verbosity: int,
        *,
        coordinator: TestCoordinator,
        durations: int | None = None,
    ) -> None:
        super().__init__(stream, descriptions, verbosity, durations=durations)
        self.coordinator = coordinator
        self.coverage_summary: RunSummary | None = None

    def _notify(
        self, test: unittest.TestCase, name: str, cause: str | None = None
    ) -> None:
        self.coordinator.notify(
            UNITTEST_VOCABULARY, unittest_test_id(test), name, cause
        )

    def startTestRun(self) -> None:
        super().startTestRun()
        self.coordinator.run_started()

    def startTest(self, test: unittest.TestCase) -> None:
        super().startTest(test)
        self._notify(test, "startTest")

    def addSkip(self, test: unittest.TestCase, reason: str) -> None:
        super().addSkip(test, reason)
        # a skipped sub-test does not skip its parent
        if getattr(test, "test_case", None) is None:
            self._notify(test, "addSkip", reason)

    def addFailure(self, test: unittest.TestCase, err: Any) -> None:
        super().addFailure(test, err)
        self._notify(test, "addFailure", _cause(err))

    def addError(self, test: unittest.TestCase, err: Any) -> None:
        super().addError(test, err)
        self._notify(test, "addError", _cause(err))

    def addUnexpectedSuccess(self, test: unittest.TestCase) -> None:
        super().addUnexpectedSuccess(test)
        self._notify(test, "addUnexpectedSuccess", "unexpected success")

    def addSubTest(
        self, test: unittest.TestCase, subtest: unittest.TestCase, err: Any
    ) -> None:
        super().addSubTest(test, subtest, err)
        if err is not None:
            self._notify(test, "addSubTest", f"{subtest}: {_cause(err)}")

    def stopTest(self, test: unittest.TestCase) -> None:
        super().stopTest(test)
        self._notify(test, "stopTest")

    def stopTestRun(self) -> None:
        super().stopTestRun()
        self.coverage_summary = self.coordinator.run_finished(self.late_failures())

    def late_failures(self) -> Iterable[LateFailure]:
        """Failures and errors collected by unittest itself during the run."""
        return [
            (unittest_test_id(test), _last_line(message))
            for test, message in [*self.failures, *self.errors]
        ]


class CoverageTestRunner(unittest.TextTestRunner):
    """Text runner whose results report to a shared coordinator."""

    resultclass = CoverageTestResult

    def __init__(self, coordinator: TestCoordinator, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.coordinator = coordinator

    def _makeResult(self) -> CoverageTestResult:
        return CoverageTestResult(
            self.stream,
            self.descriptions,
            self.verbosity,
            coordinator=self.coordinator,
            durations=self.durations,
        )
