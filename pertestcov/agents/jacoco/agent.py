"""JaCoCo agent implementation."""

import asyncio
import contextlib
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from dataclasses import dataclass

from pertestcov.agents.base import CoverageAgent
from pertestcov.agents.jacoco.config import JaCoCoConfig
from pertestcov.agents.jacoco.protocol import encode_dump_command, read_dump_response

log = logging.getLogger(__name__)


@dataclass(frozen=True, kw_only=True)
class JaCoCoAgent(CoverageAgent):
    """Coverage agent speaking JaCoCo's remote-control protocol."""

    config: JaCoCoConfig

    @classmethod
    def from_config(cls, config: JaCoCoConfig) -> "JaCoCoAgent":
        return cls(config=config)

    @property
    def file_extension(self) -> str:
        return self.config.file_extension

    @asynccontextmanager
    async def connect(
        self,
    ) -> AsyncGenerator[tuple[asyncio.StreamReader, asyncio.StreamWriter], None]:
        """Open a connection that is closed on every exit path."""
        reader, writer = await asyncio.open_connection(
            self.config.address, self.config.port
        )
        try:
            yield reader, writer
        finally:
            writer.close()
            with contextlib.suppress(ConnectionError):
                await writer.wait_closed()

    async def dump_and_reset(self) -> bytes:
        """Send a dump command with session info and reset, read the dump."""
        log.debug(
            "Requesting dump from JaCoCo agent at %s:%d",
            self.config.address,
            self.config.port,
        )
        async with self.connect() as (reader, writer):
            writer.write(encode_dump_command(retrieve=True, reset=True))
            await writer.drain()
            return await read_dump_response(reader)
