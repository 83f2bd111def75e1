"""Exception hierarchy for the agent runtime.

Every error raised by the transport, decoder and control protocol derives
from AgentRuntimeError, so callers can catch broadly or narrowly:

    AgentRuntimeError
    ├── FramingError          line-level transport failure (oversized record)
    ├── DecodeError           line is not a usable JSON record
    ├── MessageParseError     valid JSON, unknown discriminator value
    ├── CLIConnectionError    child process could not be spawned or written to
    │   └── CLINotFoundError
    ├── ProcessError          child exited non-zero or had to be killed
    ├── ProtocolError         control correlation invariant violated
    │   └── ControlRequestError
    └── CancellationError     pending operation aborted (timeout or teardown)
"""

from __future__ import annotations


class AgentRuntimeError(Exception):
    """Base exception for all runtime errors."""


class FramingError(AgentRuntimeError):
    """A record could not be framed from the byte stream."""


class _IndexedError(AgentRuntimeError):
    """Error that can be pinned to a position inside a record array."""

    def __init__(self, message: str, *, index: int | None = None) -> None:
        super().__init__(message)
        self.index = index

    def at_index(self, index: int) -> _IndexedError:
        """Return a copy of this error located at ``index`` of its source array."""
        clone = self.__class__.__new__(self.__class__)
        clone.__dict__.update(self.__dict__)
        clone.index = index
        clone.args = (f"failed to parse content block at index {index}: {self}",)
        return clone


class DecodeError(_IndexedError):
    """A line is not valid JSON, not an object, or lacks a usable ``type``.

    Args:
        message: Human readable description
        raw: The offending record, truncated for logging
        index: Position inside a content block array, if any
    """

    def __init__(self, message: str, raw: str | None = None, *, index: int | None = None) -> None:
        super().__init__(message, index=index)
        self.raw = raw


class MessageParseError(_IndexedError):
    """A record carries a discriminator value outside the known set."""

    def __init__(
        self,
        message: str,
        message_type: str | None = None,
        *,
        index: int | None = None,
    ) -> None:
        super().__init__(message, index=index)
        self.message_type = message_type

    def __str__(self) -> str:
        text = super().__str__()
        if self.message_type is not None and self.index is None:
            return f"{text}: {self.message_type}"
        return text


class CLIConnectionError(AgentRuntimeError):
    """The agent process could not be started, or its pipes are unusable."""


class CLINotFoundError(CLIConnectionError):
    """The agent executable could not be located."""


class ProcessError(AgentRuntimeError):
    """The agent process exited with a failure, or was killed on close.

    Attributes:
        exit_code: Process return code, if it exited on its own
        killed: True if the process was forcibly terminated after the deadline
    """

    def __init__(
        self,
        message: str,
        *,
        exit_code: int | None = None,
        killed: bool = False,
    ) -> None:
        super().__init__(message)
        self.exit_code = exit_code
        self.killed = killed

    def __str__(self) -> str:
        text = super().__str__()
        if self.exit_code is not None:
            return f"{text} (exit code {self.exit_code})"
        return text


class ProtocolError(AgentRuntimeError):
    """Control protocol misuse or a broken correlation invariant."""


class ControlRequestError(ProtocolError):
    """The agent answered a control request with an error response."""

    def __init__(self, message: str, *, request_id: str | None = None, subtype: str | None = None):
        super().__init__(message)
        self.request_id = request_id
        self.subtype = subtype


class CancellationError(AgentRuntimeError):
    """A pending operation was abandoned by timeout or session teardown."""
