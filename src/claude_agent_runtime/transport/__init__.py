"""Process and wire transport for the agent CLI."""

from .base import Transport
from .discovery import find_cli
from .framing import DEFAULT_MAX_BUFFER_SIZE, JSONLineReader, JSONLineWriter
from .subprocess_cli import SubprocessCLITransport, TransportConfig

__all__ = [
    "DEFAULT_MAX_BUFFER_SIZE",
    "JSONLineReader",
    "JSONLineWriter",
    "SubprocessCLITransport",
    "Transport",
    "TransportConfig",
    "find_cli",
]
