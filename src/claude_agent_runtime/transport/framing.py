"""Newline-delimited JSON framing.

Turns a byte stream into one record per line (read side) and records into
single flushed lines (write side).

Wire format:
    - One UTF-8 JSON object per line, LF terminated
    - Input tolerates CRLF (the trailing CR is dropped)
    - Output always uses LF
"""

from __future__ import annotations

from typing import Protocol

from ..errors import FramingError

# Default maximum size for a single record (1 MiB)
DEFAULT_MAX_BUFFER_SIZE = 1024 * 1024

# Bytes requested from the stream per read
READ_CHUNK_SIZE = 64 * 1024

NEWLINE = b"\n"


class ByteSource(Protocol):
    """Anything with an awaitable ``read(n)`` (e.g. asyncio.StreamReader)."""

    async def read(self, n: int = -1) -> bytes: ...


class ByteSink(Protocol):
    """Anything with ``write()`` and an awaitable ``drain()`` (e.g. asyncio.StreamWriter)."""

    def write(self, data: bytes) -> None: ...

    async def drain(self) -> None: ...


class JSONLineReader:
    """Reads newline-terminated records with a hard size limit.

    Each call to read_line() returns the next line without its terminator.
    A record longer than ``max_size`` raises FramingError instead of being
    truncated, so a runaway producer is surfaced rather than masked.
    """

    def __init__(self, stream: ByteSource, max_size: int = DEFAULT_MAX_BUFFER_SIZE):
        if max_size <= 0:
            raise ValueError("max_size must be positive")
        self._stream = stream
        self._max_size = max_size
        self._buffer = bytearray()
        self._scanned = 0  # bytes of _buffer already known to hold no newline
        self._eof = False

    @property
    def max_size(self) -> int:
        return self._max_size

    async def read_line(self) -> bytes | None:
        """Read the next record.

        Returns:
            The line content (possibly empty), or None at end of stream

        Raises:
            FramingError: If the line exceeds the maximum record size
        """
        while True:
            idx = self._buffer.find(NEWLINE, self._scanned)
            if idx != -1:
                if idx > self._max_size:
                    raise FramingError("JSON line exceeded maximum buffer size")
                line = bytes(self._buffer[:idx])
                del self._buffer[: idx + 1]
                self._scanned = 0
                return _strip_cr(line)

            self._scanned = len(self._buffer)
            if self._scanned > self._max_size:
                raise FramingError("JSON line exceeded maximum buffer size")

            if self._eof:
                if not self._buffer:
                    return None
                # Final line without a terminator
                line = bytes(self._buffer)
                self._buffer.clear()
                self._scanned = 0
                return _strip_cr(line)

            chunk = await self._stream.read(READ_CHUNK_SIZE)
            if not chunk:
                self._eof = True
            else:
                self._buffer.extend(chunk)


class JSONLineWriter:
    """Writes one record per line and flushes it before returning.

    Not safe for concurrent use on its own; the owning transport serializes
    callers.
    """

    def __init__(self, stream: ByteSink):
        self._stream = stream

    async def write_line(self, payload: bytes | str) -> None:
        """Write ``payload`` followed by exactly one newline, then drain."""
        if isinstance(payload, str):
            payload = payload.encode("utf-8")
        if NEWLINE in payload:
            raise FramingError("record contains an embedded newline")
        self._stream.write(payload + NEWLINE)
        await self._stream.drain()


def _strip_cr(line: bytes) -> bytes:
    if line.endswith(b"\r"):
        return line[:-1]
    return line
