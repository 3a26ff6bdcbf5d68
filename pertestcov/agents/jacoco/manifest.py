"""JaCoCo agent manifest."""

from pertestcov.agents.jacoco.agent import JaCoCoAgent
from pertestcov.agents.jacoco.config import JaCoCoConfig
from pertestcov.agents.manifest import AgentManifest

jacoco_manifest = AgentManifest(
    config_cls=JaCoCoConfig,
    agent_factory=JaCoCoAgent.from_config,
)
