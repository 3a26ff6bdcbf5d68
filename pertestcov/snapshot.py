"""Synchronous dump-and-reset captures attributed to a single test."""

import asyncio
import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path

from pertestcov.agents.base import CoverageAgent, CoverageAgentError
from pertestcov.models.identity import TestIdentity
from pertestcov.models.snapshot import (
    CaptureOutcome,
    CoverageSnapshot,
    CoverageUnavailable,
)

log = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0


@dataclass(frozen=True, kw_only=True)
class SnapshotClient:
    """Captures the agent's counters into one snapshot file per test occurrence.

    ``capture`` blocks until the agent has answered or the timeout expired, so
    the host framework cannot start the next test before the counters are
    reset. Captures are serialized by a lock; the agent's counters are one
    shared resource. Failed captures are never retried: a retry could reset
    counters that already belong to the next test.
    """

    agent: CoverageAgent
    raw_dir: Path
    timeout: float = DEFAULT_TIMEOUT
    _lock: threading.Lock = field(
        default_factory=threading.Lock, repr=False, compare=False
    )

    def snapshot_path(self, identity: TestIdentity, occurrence: int = 0) -> Path:
        return self.raw_dir / identity.snapshot_name(
            occurrence, self.agent.file_extension
        )

    def capture(self, identity: TestIdentity, occurrence: int = 0) -> CaptureOutcome:
        """Dump and reset the agent, then write the dump for this test.

        Returns:
            The written snapshot, or the reason coverage is unavailable

        """
        target = self.snapshot_path(identity, occurrence)

        with self._lock:
            try:
                with asyncio.Runner(loop_factory=asyncio.new_event_loop) as runner:
                    payload = runner.run(self._dump())
            except TimeoutError:
                return self._unavailable(
                    identity, f"agent did not answer within {self.timeout}s"
                )
            except CoverageAgentError as exc:
                return self._unavailable(identity, str(exc))
            except OSError as exc:
                return self._unavailable(identity, f"agent unreachable: {exc}")

            try:
                target.parent.mkdir(parents=True, exist_ok=True)
                target.write_bytes(payload)
            except OSError as exc:
                return self._unavailable(identity, f"cannot write snapshot: {exc}")

        log.debug(
            "Coverage of %s written to %s (%d bytes)",
            identity.qualified_name,
            target,
            len(payload),
        )
        return CoverageSnapshot(path=target, size=len(payload))

    async def _dump(self) -> bytes:
        async with asyncio.timeout(self.timeout):
            return await self.agent.dump_and_reset()

    def _unavailable(self, identity: TestIdentity, reason: str) -> CoverageUnavailable:
        log.warning(
            "Cannot dump and reset coverage for %s because: %s",
            identity.qualified_name,
            reason,
        )
        return CoverageUnavailable(reason=reason)
