"""JaCoCo agent module."""

from pertestcov.agents.jacoco.agent import JaCoCoAgent
from pertestcov.agents.jacoco.config import JaCoCoConfig
from pertestcov.agents.jacoco.manifest import jacoco_manifest

__all__ = ["JaCoCoAgent", "JaCoCoConfig", "jacoco_manifest"]
