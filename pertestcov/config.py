"""Configuration of an instrumented test run."""

from collections.abc import Mapping
from pathlib import Path
from typing import Any

from pydantic import Field

from pertestcov.agents.loading import NO_AGENT
from pertestcov.aggregator import DEFAULT_RUN_ID
from pertestcov.models.base import Model
from pertestcov.snapshot import DEFAULT_TIMEOUT

DEFAULT_BASE_DIR = Path("target/pertestcov")
COVERAGE_DIR = Path("coverage", "raw")


class CoordinatorConfig(Model):
    """Where results go, which agent to talk to and how long to wait for it."""

    base_dir: Path = Field(
        default=DEFAULT_BASE_DIR, description="Root directory of all artifacts"
    )
    run_id: str = Field(
        default=DEFAULT_RUN_ID, description="Revision or build identifier"
    )
    agent: str = Field(
        default="jacoco",
        description=f"Coverage agent key, or '{NO_AGENT}' to only record results",
    )
    agent_config: Mapping[str, Any] = Field(
        default_factory=dict, description="Agent settings, validated by the agent"
    )
    timeout: float = Field(
        default=DEFAULT_TIMEOUT, gt=0, description="Capture timeout in seconds"
    )
    log_file: bool = Field(
        default=True, description="Also log to <base_dir>/pertestcov.log"
    )

    @property
    def raw_dir(self) -> Path:
        return self.base_dir / COVERAGE_DIR
