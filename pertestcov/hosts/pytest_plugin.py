"""pytest integration: forwards test lifecycle hooks to a TestCoordinator."""

import json
import logging
from pathlib import Path

import pytest

from pertestcov.agents.loading import AgentLoadingError
from pertestcov.config import CoordinatorConfig
from pertestcov.config_loader import build_config, load_config
from pertestcov.coordinator import TestCoordinator
from pertestcov.factory import build_coordinator
from pertestcov.hosts.vocabulary import EventVocabulary
from pertestcov.instrumentation import activate, active_coordinator
from pertestcov.models.identity import TestId
from pertestcov.models.status import StatusEvent
from pertestcov.models.summary import RunSummary
from pertestcov.reporting import summary_lines

log = logging.getLogger(__name__)

PYTEST_VOCABULARY = EventVocabulary(
    flavor="pytest",
    events={
        "logstart": StatusEvent.STARTED,
        "skipped": StatusEvent.IGNORED,
        "skipped-in-call": StatusEvent.ASSUMPTION_FAILED,
        "failed": StatusEvent.FAILED,
        "logfinish": StatusEvent.FINISHED,
    },
)

coordinator_key = pytest.StashKey[TestCoordinator]()


def pytest_addoption(parser: pytest.Parser) -> None:
    group = parser.getgroup("pertestcov", "per-test coverage attribution")
    group.addoption(
        "--pertestcov",
        action="store_true",
        default=False,
        help="Capture the coverage of every test into its own snapshot",
    )
    group.addoption(
        "--pertestcov-config",
        default=None,
        help="YAML file with the run configuration",
    )
    group.addoption(
        "--pertestcov-base-dir",
        default=None,
        help="Directory receiving snapshots and results",
    )
    group.addoption(
        "--pertestcov-run-id",
        default=None,
        help="Revision or build identifier of the run",
    )
    group.addoption(
        "--pertestcov-agent",
        default=None,
        help="Coverage agent key (jacoco, http, none)",
    )
    group.addoption(
        "--pertestcov-agent-config",
        default=None,
        help="JSON configuration for the coverage agent",
    )
    group.addoption(
        "--pertestcov-timeout",
        type=float,
        default=None,
        help="Seconds to wait for the agent on each capture",
    )
    group.addoption(
        "--pertestcov-no-log-file",
        action="store_true",
        default=False,
        help="Do not write pertestcov.log into the base directory",
    )
    parser.addini(
        "pertestcov",
        type="bool",
        default=False,
        help="Enable per-test coverage capture",
    )


def config_from_options(config: pytest.Config) -> CoordinatorConfig:
    """Merge the YAML configuration file with command line options."""
    agent_config = config.getoption("pertestcov_agent_config")
    overrides = {
        "base_dir": config.getoption("pertestcov_base_dir"),
        "run_id": config.getoption("pertestcov_run_id"),
        "agent": config.getoption("pertestcov_agent"),
        "agent_config": json.loads(agent_config) if agent_config else None,
        "timeout": config.getoption("pertestcov_timeout"),
        "log_file": False if config.getoption("pertestcov_no_log_file") else None,
    }

    path = config.getoption("pertestcov_config")
    if path is not None:
        return load_config(Path(path), overrides)
    return build_config({}, overrides)


def pytest_configure(config: pytest.Config) -> None:
    if not (config.getoption("pertestcov") or config.getini("pertestcov")):
        return

    if hasattr(config, "workerinput"):
        log.warning("Per-test coverage is disabled on pytest-xdist workers")
        return

    try:
        coordinator = build_coordinator(config_from_options(config))
    except (AgentLoadingError, FileNotFoundError, ValueError) as exc:
        raise pytest.UsageError(f"Invalid per-test coverage setup: {exc}") from exc

    config.stash[coordinator_key] = coordinator
    config.pluginmanager.register(
        PytestEventSource(coordinator), "pertestcov-event-source"
    )


def pytest_unconfigure(config: pytest.Config) -> None:
    coordinator = config.stash.get(coordinator_key, None)
    if coordinator is not None and active_coordinator() is coordinator:
        activate(None)


def _reason(report: pytest.TestReport) -> str | None:
    if isinstance(report.longrepr, tuple):
        return str(report.longrepr[2])
    lines = report.longreprtext.strip().splitlines()
    return lines[-1] if lines else None


class PytestEventSource:
    """Maps pytest's runtest hooks onto coordinator events."""

    def __init__(self, coordinator: TestCoordinator) -> None:
        self.coordinator = coordinator
        self.summary: RunSummary | None = None

    def _notify(self, nodeid: str, name: str, cause: str | None = None) -> None:
        self.coordinator.notify(
            PYTEST_VOCABULARY, TestId.from_nodeid(nodeid), name, cause
        )

    def pytest_sessionstart(self, session: pytest.Session) -> None:
        self.coordinator.run_started()

    def pytest_runtest_logstart(
        self, nodeid: str, location: tuple[str, int | None, str]
    ) -> None:
        self._notify(nodeid, "logstart")

    def pytest_runtest_logreport(self, report: pytest.TestReport) -> None:
        if report.failed:
            self._notify(report.nodeid, "failed", _reason(report))
        elif report.skipped:
            # expected failures are reported as skips
            if hasattr(report, "wasxfail"):
                return
            name = "skipped-in-call" if report.when == "call" else "skipped"
            self._notify(report.nodeid, name, _reason(report))

    def pytest_runtest_logfinish(
        self, nodeid: str, location: tuple[str, int | None, str]
    ) -> None:
        self._notify(nodeid, "logfinish")

    def pytest_sessionfinish(
        self, session: pytest.Session, exitstatus: int | pytest.ExitCode
    ) -> None:
        self.summary = self.coordinator.run_finished()

    def pytest_terminal_summary(
        self, terminalreporter: pytest.TerminalReporter
    ) -> None:
        if self.summary is None:
            return
        terminalreporter.section("per-test coverage")
        for line in summary_lines(self.summary):
            terminalreporter.write_line(line)
