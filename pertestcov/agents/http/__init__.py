"""HTTP coverage agent module."""

from pertestcov.agents.http.agent import HttpAgent
from pertestcov.agents.http.config import HttpAgentConfig
from pertestcov.agents.http.manifest import http_manifest

__all__ = ["HttpAgent", "HttpAgentConfig", "http_manifest"]
