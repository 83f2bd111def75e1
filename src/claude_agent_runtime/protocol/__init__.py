"""Wire protocol layer.

Defines the records exchanged with the agent over newline-delimited JSON
and the pure functions that decode them.

Key concepts:
- Content messages: user/assistant/system/result/stream_event records
- Content blocks: text/thinking/tool_use/tool_result parts of a message
- Control messages: request/response records correlated by request_id
"""

from .control import (
    ControlErrorResponse,
    ControlRequest,
    ControlResponse,
    ControlSubtype,
    ControlSuccessResponse,
    HookCallbackRequest,
    InitializeRequest,
    InterruptRequest,
    McpMessageRequest,
    PermissionRequest,
    SetPermissionModeRequest,
)
from .decoder import (
    Message,
    decode_content_block,
    decode_content_blocks,
    decode_message,
    decode_type,
)
from .messages import (
    AssistantMessage,
    ContentBlock,
    ContentMessage,
    MessageType,
    ResultMessage,
    StreamEvent,
    SystemMessage,
    TextBlock,
    ThinkingBlock,
    ToolResultBlock,
    ToolUseBlock,
    UserMessage,
)

__all__ = [
    "AssistantMessage",
    "ContentBlock",
    "ContentMessage",
    "ControlErrorResponse",
    "ControlRequest",
    "ControlResponse",
    "ControlSubtype",
    "ControlSuccessResponse",
    "HookCallbackRequest",
    "InitializeRequest",
    "InterruptRequest",
    "McpMessageRequest",
    "Message",
    "MessageType",
    "PermissionRequest",
    "ResultMessage",
    "SetPermissionModeRequest",
    "StreamEvent",
    "SystemMessage",
    "TextBlock",
    "ThinkingBlock",
    "ToolResultBlock",
    "ToolUseBlock",
    "UserMessage",
    "decode_content_block",
    "decode_content_blocks",
    "decode_message",
    "decode_type",
]
