"""Agent manifest definition for the plugin system."""

from collections.abc import Callable
from dataclasses import dataclass

from pydantic import BaseModel

from pertestcov.agents.base import CoverageAgent


@dataclass(frozen=True, kw_only=True)
class AgentManifest[ConfigT: BaseModel]:
    """Manifest describing a coverage agent plugin.

    The manifest contains references to the configuration class and the
    agent factory for lazy loading of agents based on their key.
    """

    config_cls: type[ConfigT]
    agent_factory: Callable[[ConfigT], CoverageAgent]
