"""CLI entry point running a unittest suite with per-test coverage."""

import argparse
import json
import logging
import sys
import unittest
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from pertestcov.agents.loading import AgentLoadingError
from pertestcov.config import CoordinatorConfig
from pertestcov.config_loader import build_config, load_config
from pertestcov.coordinator import TestCoordinator
from pertestcov.factory import LOG_FORMAT, build_coordinator
from pertestcov.hosts.unittest_runner import CoverageTestRunner
from pertestcov.reporting import format_summary, log_run_summary


def parse_agent_config(agent_config: str | None) -> dict[str, Any] | None:
    """Parse the JSON agent configuration given on the command line."""
    if agent_config is None or not agent_config.strip():
        return None
    parsed = json.loads(agent_config)
    if not isinstance(parsed, dict):
        raise ValueError("Agent configuration must be a JSON object")
    return parsed


def resolve_config(args: argparse.Namespace) -> CoordinatorConfig:
    """Build the run configuration; command line values win over the file."""
    overrides = {
        "base_dir": args.base_dir,
        "run_id": args.run_id,
        "agent": args.agent,
        "agent_config": parse_agent_config(args.agent_config),
        "timeout": args.timeout,
        "log_file": False if args.no_log_file else None,
    }
    if args.config is not None:
        return load_config(args.config, overrides)
    return build_config({}, overrides)


def run(
    coordinator: TestCoordinator,
    start_dir: str,
    pattern: str = "test*.py",
    top_level_dir: str | None = None,
    verbosity: int = 1,
) -> int:
    """Run the discovered tests and return the exit code of the suite."""
    log = logging.getLogger("pertestcov")

    log.info("Discovering tests in %s (pattern=%s)", start_dir, pattern)
    suite = unittest.defaultTestLoader.discover(
        start_dir, pattern=pattern, top_level_dir=top_level_dir
    )

    runner = CoverageTestRunner(coordinator, verbosity=verbosity)
    result = runner.run(suite)

    summary = coordinator.summary()
    log_run_summary(log, summary)
    print(json.dumps(format_summary(summary), indent=2))

    return 0 if result.wasSuccessful() else 1


def main(argv: Sequence[str] | None = None) -> None:
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Run unittest tests, capturing coverage per test"
    )
    parser.add_argument(
        "start_dir",
        nargs="?",
        default=".",
        help="Directory to start test discovery from",
    )
    parser.add_argument(
        "--pattern",
        default="test*.py",
        help="Pattern of test module names",
    )
    parser.add_argument(
        "--top-level-dir",
        default=None,
        help="Top level directory of the project",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="YAML file with the run configuration",
    )
    parser.add_argument(
        "--base-dir",
        type=Path,
        default=None,
        help="Directory receiving snapshots and results",
    )
    parser.add_argument(
        "--run-id",
        default=None,
        help="Revision or build identifier of the run",
    )
    parser.add_argument(
        "--agent",
        default=None,
        help="Coverage agent key (jacoco, http, none)",
    )
    parser.add_argument(
        "--agent-config",
        default=None,
        help="JSON configuration for the coverage agent",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Seconds to wait for the agent on each capture",
    )
    parser.add_argument(
        "--no-log-file",
        action="store_true",
        help="Do not write pertestcov.log into the base directory",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=1,
        help="Increase unittest verbosity",
    )

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO,
        format=LOG_FORMAT,
        stream=sys.stderr,
    )

    try:
        coordinator = build_coordinator(resolve_config(args))
    except (AgentLoadingError, FileNotFoundError, ValueError) as exc:
        parser.error(str(exc))

    exit_code = run(
        coordinator,
        start_dir=args.start_dir,
        pattern=args.pattern,
        top_level_dir=args.top_level_dir,
        verbosity=args.verbose,
    )
    sys.exit(exit_code)


if __name__ == "__main__":  # pragma: no cover
    main()
