"""Resolution of agent keys to the manifests registered as entry points."""

from importlib.metadata import entry_points
from typing import Any

from pertestcov.agents.manifest import AgentManifest

ENTRY_POINT_GROUP = "pertestcov.agents"
NO_AGENT = "none"


class AgentLoadingError(Exception):
    """Raised when an agent key cannot be turned into a usable agent."""


class AgentNotFoundError(AgentLoadingError):
    """Raised when no entry point is registered under an agent key."""


class InvalidAgentManifestError(AgentLoadingError):
    """Raised when an entry point does not resolve to an AgentManifest."""


def available_agents() -> list[str]:
    """Keys accepted by ``load_agent_manifest``, results-only key included."""
    registered = {entry.name for entry in entry_points(group=ENTRY_POINT_GROUP)}
    return sorted(registered | {NO_AGENT})


def load_agent_manifest(key: str) -> AgentManifest[Any] | None:
    """Load the manifest of the coverage agent registered under ``key``.

    Args:
        key: Entry point name in the ``pertestcov.agents`` group
             (e.g., "jacoco", "http"), or "none" to record results only

    Returns:
        The agent manifest, or None for the results-only key

    Raises:
        AgentNotFoundError: If nothing is registered under the key
        InvalidAgentManifestError: If the entry point loads something else

    """
    if key == NO_AGENT:
        return None

    matches = entry_points(group=ENTRY_POINT_GROUP, name=key)
    if not matches:
        raise AgentNotFoundError(
            f"Unknown coverage agent {key!r}, expected one of: "
            + ", ".join(available_agents())
        )

    # several distributions may register the same key; the first one wins
    entry = next(iter(matches))
    manifest = entry.load()
    if not isinstance(manifest, AgentManifest):
        raise InvalidAgentManifestError(
            f"Entry point {entry.value!r} of coverage agent {key!r} is a "
            f"{type(manifest).__name__}, not an AgentManifest"
        )
    return manifest
