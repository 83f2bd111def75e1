"""Claude Agent Runtime.

Python client runtime for the agent CLI. Spawns the agent as a
subprocess and speaks its newline-delimited JSON protocol over stdio:
conversational messages flow one way, control requests (permission
checks, hook callbacks, interrupts) flow both ways.

    from claude_agent_runtime import AgentClient, AgentOptions

    async with AgentClient(AgentOptions()) as client:
        await client.send_turn("Hello")
        async for message in client.receive():
            print(message)
"""

from .client import AgentClient, SessionState
from .control_protocol import ControlProtocol, ProtocolState
from .errors import (
    AgentRuntimeError,
    CancellationError,
    CLIConnectionError,
    CLINotFoundError,
    ControlRequestError,
    DecodeError,
    FramingError,
    MessageParseError,
    ProcessError,
    ProtocolError,
)
from .hooks import HookContext, HookEvent, HookMatcher, HookRegistry
from .options import AgentOptions, PermissionMode
from .permissions import (
    PermissionResultAllow,
    PermissionResultDeny,
    PermissionUpdate,
    ToolPermissionContext,
)
from .protocol import (
    AssistantMessage,
    ResultMessage,
    StreamEvent,
    SystemMessage,
    TextBlock,
    ThinkingBlock,
    ToolResultBlock,
    ToolUseBlock,
    UserMessage,
    decode_message,
)
from .query import query
from .transport import SubprocessCLITransport, TransportConfig, find_cli

__version__ = "0.1.0"

__all__ = [
    "AgentClient",
    "AgentOptions",
    "AgentRuntimeError",
    "AssistantMessage",
    "CLIConnectionError",
    "CLINotFoundError",
    "CancellationError",
    "ControlProtocol",
    "ControlRequestError",
    "DecodeError",
    "FramingError",
    "HookContext",
    "HookEvent",
    "HookMatcher",
    "HookRegistry",
    "MessageParseError",
    "PermissionMode",
    "PermissionResultAllow",
    "PermissionResultDeny",
    "PermissionUpdate",
    "ProcessError",
    "ProtocolError",
    "ProtocolState",
    "ResultMessage",
    "SessionState",
    "StreamEvent",
    "SubprocessCLITransport",
    "SystemMessage",
    "TextBlock",
    "ThinkingBlock",
    "ToolPermissionContext",
    "ToolResultBlock",
    "ToolUseBlock",
    "TransportConfig",
    "UserMessage",
    "decode_message",
    "find_cli",
    "query",
]
