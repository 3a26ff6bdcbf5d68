"""HTTP coverage agent manifest."""

from pertestcov.agents.http.agent import HttpAgent
from pertestcov.agents.http.config import HttpAgentConfig
from pertestcov.agents.manifest import AgentManifest

http_manifest = AgentManifest(
    config_cls=HttpAgentConfig,
    agent_factory=HttpAgent.from_config,
)
