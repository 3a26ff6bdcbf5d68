"""Abstract base class for coverage agents."""

from abc import ABC, abstractmethod
from dataclasses import dataclass


class CoverageAgentError(Exception):
    """Raised when an agent answers with an error or a malformed response."""


@dataclass(frozen=True, kw_only=True)
class CoverageAgent(ABC):
    """Capability of an external process that accumulates execution counters.

    The counters are shared global state: callers must serialize one
    ``dump_and_reset`` at a time, otherwise coverage is attributed to the
    wrong test.
    """

    @property
    @abstractmethod
    def file_extension(self) -> str:
        """Extension of the snapshot files written for this agent."""

    @abstractmethod
    async def dump_and_reset(self) -> bytes:
        """Dump the current counters and reset them to zero.

        Returns:
            The dump, verbatim, ready to be written to a snapshot file

        Raises:
            CoverageAgentError: If the agent reports an error or the response
                is malformed
            OSError: If the agent cannot be reached

        """
