"""Transport interface consumed by the control protocol and client.

SubprocessCLITransport is the production implementation; tests inject
in-memory transports that satisfy the same protocol.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class Transport(Protocol):
    """Line-oriented, bidirectional link to the agent process.

    Implementations handle:
    - Process (or connection) lifecycle
    - Framing of records into lines
    - Serializing concurrent writers
    """

    @property
    def is_ready(self) -> bool:
        """True while writes are accepted."""
        ...

    @property
    def error(self) -> BaseException | None:
        """Latest recorded background error."""
        ...

    async def connect(self) -> None:
        """Establish the link. Must be idempotent.

        Raises:
            CLIConnectionError: If the link cannot be established
        """
        ...

    async def read_line(self) -> bytes | None:
        """Next record without its terminator, or None at end of stream."""
        ...

    async def write(self, data: str) -> None:
        """Write one record as a single line."""
        ...

    async def close(self, timeout: float | None = None) -> None:
        """Tear down the link. Must be idempotent."""
        ...

    def on_error(self, error: BaseException) -> None:
        """Record a background error."""
        ...
