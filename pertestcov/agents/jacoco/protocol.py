"""Wire codec for the JaCoCo agent's TCP remote-control protocol.

Both directions use the execution data format: a header block followed by
typed blocks. Multi-byte values are big-endian, strings are Java modified
UTF-8 with an unsigned 16-bit length prefix, and probe arrays are a var-int
length followed by the bits packed eight per byte.
"""

import asyncio
import struct

from pertestcov.agents.base import CoverageAgentError

BLOCK_HEADER = 0x01
BLOCK_SESSIONINFO = 0x10
BLOCK_EXECUTIONDATA = 0x11
BLOCK_CMDOK = 0x20
BLOCK_CMDDUMP = 0x40

MAGIC_NUMBER = 0xC0C0
FORMAT_VERSION = 0x1007

HEADER = struct.pack(">BHH", BLOCK_HEADER, MAGIC_NUMBER, FORMAT_VERSION)


def encode_dump_command(*, retrieve: bool = True, reset: bool = True) -> bytes:
    """Encode the header and a dump command as sent by a remote-control client."""
    return HEADER + struct.pack(">B??", BLOCK_CMDDUMP, retrieve, reset)


class _BlockReader:
    """Reads from the agent stream while keeping a verbatim copy."""

    def __init__(self, reader: asyncio.StreamReader) -> None:
        self._reader = reader
        self.buffer = bytearray()

    async def read_raw(self, size: int) -> bytes:
        try:
            return await self._reader.readexactly(size)
        except asyncio.IncompleteReadError as exc:
            raise CoverageAgentError(
                f"Agent closed the connection mid-response "
                f"({len(exc.partial)} of {size} bytes read)"
            ) from exc

    async def read(self, size: int) -> bytes:
        data = await self.read_raw(size)
        self.buffer += data
        return data

    async def read_unsigned_short(self) -> int:
        (value,) = struct.unpack(">H", await self.read(2))
        return int(value)

    async def skip_utf(self) -> None:
        await self.read(await self.read_unsigned_short())

    async def read_var_int(self) -> int:
        value = 0
        shift = 0
        while True:
            byte = (await self.read(1))[0]
            value |= (byte & 0x7F) << shift
            if not byte & 0x80:
                return value
            shift += 7
            if shift > 28:
                raise CoverageAgentError("Var-int in probe array is too long")


async def _read_header(stream: _BlockReader) -> None:
    magic = await stream.read_unsigned_short()
    if magic != MAGIC_NUMBER:
        raise CoverageAgentError(f"Invalid execution data stream (magic {magic:#x})")
    version = await stream.read_unsigned_short()
    if version != FORMAT_VERSION:
        raise CoverageAgentError(
            f"Incompatible execution data version {version:#x}, "
            f"expected {FORMAT_VERSION:#x}"
        )


async def _skip_session_info(stream: _BlockReader) -> None:
    await stream.skip_utf()  # session id
    await stream.read(16)  # start and dump timestamps


async def _skip_execution_data(stream: _BlockReader) -> None:
    await stream.read(8)  # class id
    await stream.skip_utf()  # class name
    probes = await stream.read_var_int()
    await stream.read((probes + 7) // 8)


async def read_dump_response(reader: asyncio.StreamReader) -> bytes:
    """Read the agent's answer to a dump command.

    Returns:
        Every byte up to, but excluding, the command-OK block; a valid
        execution data file on its own

    Raises:
        CoverageAgentError: If the stream ends early or is malformed

    """
    stream = _BlockReader(reader)

    first = (await stream.read(1))[0]
    if first != BLOCK_HEADER:
        raise CoverageAgentError(f"Invalid execution data stream (block {first:#x})")
    await _read_header(stream)

    while True:
        block = (await stream.read_raw(1))[0]
        if block == BLOCK_CMDOK:
            return bytes(stream.buffer)

        stream.buffer.append(block)
        if block == BLOCK_HEADER:
            await _read_header(stream)
        elif block == BLOCK_SESSIONINFO:
            await _skip_session_info(stream)
        elif block == BLOCK_EXECUTIONDATA:
            await _skip_execution_data(stream)
        else:
            raise CoverageAgentError(f"Unknown block type {block:#x}")
