"""Assembly of a coordinator from its configuration."""

import logging
from pathlib import Path

from pertestcov.agents.loading import load_agent_manifest
from pertestcov.aggregator import ResultsAggregator
from pertestcov.config import CoordinatorConfig
from pertestcov.coordinator import TestCoordinator
from pertestcov.instrumentation import activate
from pertestcov.snapshot import SnapshotClient

log = logging.getLogger(__name__)

LOG_FILE = "pertestcov.log"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_file_logging(base_dir: Path) -> None:
    """Attach a file handler for the package logger, once per file."""
    logger = logging.getLogger("pertestcov")
    log_path = (base_dir / LOG_FILE).absolute()

    for handler in logger.handlers:
        if isinstance(handler, logging.FileHandler) and handler.baseFilename == str(
            log_path
        ):
            return

    try:
        base_dir.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(log_path, encoding="utf-8")
    except OSError as exc:
        log.warning("Cannot log to %s because: %s", log_path, exc)
        return

    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(handler)
    if logger.level == logging.NOTSET or logger.level > logging.INFO:
        logger.setLevel(logging.INFO)


def build_snapshot_client(config: CoordinatorConfig) -> SnapshotClient | None:
    """Create the snapshot client for the configured agent.

    Returns:
        None when the agent is disabled and only results are recorded

    """
    manifest = load_agent_manifest(config.agent)
    if manifest is None:
        return None

    agent_config = manifest.config_cls(**config.agent_config)
    return SnapshotClient(
        agent=manifest.agent_factory(agent_config),
        raw_dir=config.raw_dir,
        timeout=config.timeout,
    )


def build_coordinator(config: CoordinatorConfig) -> TestCoordinator:
    """Create the coordinator shared by every host adapter of this process."""
    if config.log_file:
        configure_file_logging(config.base_dir)

    coordinator = TestCoordinator(
        aggregator=ResultsAggregator(config.base_dir),
        snapshot_client=build_snapshot_client(config),
        run_id=config.run_id,
    )
    activate(coordinator)
    log.info(
        "Per-test coverage initialized (agent=%s, base_dir=%s, run=%s)",
        config.agent,
        config.base_dir,
        coordinator.run_id,
    )
    return coordinator
