"""HTTP coverage agent implementation."""

import logging
from collections.abc import AsyncGenerator, Mapping
from contextlib import asynccontextmanager
from dataclasses import dataclass

import aiohttp

from pertestcov.agents.base import CoverageAgent, CoverageAgentError
from pertestcov.agents.http.config import HttpAgentConfig

log = logging.getLogger(__name__)


@dataclass(frozen=True, kw_only=True)
class HttpAgent(CoverageAgent):
    """Coverage agent reached through a dump endpoint and a reset endpoint."""

    config: HttpAgentConfig

    @classmethod
    def from_config(cls, config: HttpAgentConfig) -> "HttpAgent":
        return cls(config=config)

    @property
    def file_extension(self) -> str:
        return self.config.file_extension

    @property
    def headers(self) -> Mapping[str, str]:
        if self.config.token is None:
            return {}
        return {"Authorization": f"Bearer {self.config.token.get_secret_value()}"}

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[aiohttp.ClientSession, None]:
        """Create a session scoped to a single capture."""
        async with aiohttp.ClientSession(
            base_url=self.config.base_url,
            headers=self.headers,
        ) as session:
            yield session

    async def dump_and_reset(self) -> bytes:
        """Fetch the counters, then reset them."""
        try:
            async with self.session() as session:
                async with session.get(self.config.dump_path) as response:
                    if response.status != 200:
                        text = await response.text()
                        raise CoverageAgentError(
                            f"Failed to dump coverage: {response.status} {text}"
                        )
                    payload = await response.read()

                async with session.post(self.config.reset_path) as response:
                    if response.status not in {200, 204}:
                        text = await response.text()
                        raise CoverageAgentError(
                            f"Failed to reset coverage: {response.status} {text}"
                        )
        except aiohttp.ClientError as exc:
            raise CoverageAgentError(f"Coverage agent request failed: {exc}") from exc

        log.debug("Fetched %d bytes from %s", len(payload), self.config.base_url)
        return payload
