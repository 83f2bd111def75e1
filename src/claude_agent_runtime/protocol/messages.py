"""Content message definitions for the protocol layer.

Content messages are the conversational records the agent streams on
stdout. Each record is one JSON object tagged by ``type``:

    {"type": "user", "content": "hi"}
    {"type": "assistant", "content": [{"type": "text", "text": "Hello"}], "model": "..."}
    {"type": "system", "subtype": "init", "data": {...}}
    {"type": "result", "subtype": "success", "is_error": false, "duration_ms": 812, ...}
    {"type": "stream_event", "uuid": "...", "session_id": "...", "event": {...}}

User and assistant messages carry content blocks, themselves tagged by
``type`` (text, thinking, tool_use, tool_result).

Records are immutable once decoded. Fields the schema does not know about
are ignored so that newer agents can add fields freely.
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class MessageType(str, Enum):
    """Top-level record discriminators."""

    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"
    RESULT = "result"
    STREAM_EVENT = "stream_event"
    CONTROL_REQUEST = "control_request"
    CONTROL_RESPONSE = "control_response"


class ContentBlockType(str, Enum):
    """Content block discriminators."""

    TEXT = "text"
    THINKING = "thinking"
    TOOL_USE = "tool_use"
    TOOL_RESULT = "tool_result"


class Record(BaseModel):
    """Base for every wire record."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    def to_wire(self) -> dict[str, Any]:
        """Serialize to the dict written on the wire."""
        return self.model_dump(mode="json", exclude_none=True)


# =============================================================================
# Content blocks
# =============================================================================


class TextBlock(Record):
    """Plain text produced by the model."""

    type: Literal["text"] = "text"
    text: str


class ThinkingBlock(Record):
    """Internal reasoning with its verification signature."""

    type: Literal["thinking"] = "thinking"
    thinking: str
    signature: str = ""


class ToolUseBlock(Record):
    """A request from the model to invoke a tool."""

    type: Literal["tool_use"] = "tool_use"
    id: str
    name: str
    input: dict[str, Any] = Field(default_factory=dict)


class ToolResultBlock(Record):
    """The outcome of a tool invocation, correlated by ``tool_use_id``.

    ``content`` is either text or a list of structured content parts.
    ``is_error`` stays None when the agent did not say either way.
    """

    type: Literal["tool_result"] = "tool_result"
    tool_use_id: str
    content: str | list[dict[str, Any]] | None = None
    is_error: bool | None = None


ContentBlock = Annotated[
    TextBlock | ThinkingBlock | ToolUseBlock | ToolResultBlock,
    Field(discriminator="type"),
]


# =============================================================================
# Content messages
# =============================================================================


class UserMessage(Record):
    """A user turn. Content is a plain string or a list of blocks."""

    type: Literal["user"] = "user"
    content: str | list[ContentBlock]
    parent_tool_use_id: str | None = None


class AssistantMessage(Record):
    """An assistant turn made of ordered content blocks."""

    type: Literal["assistant"] = "assistant"
    content: str | list[ContentBlock]
    model: str = ""
    parent_tool_use_id: str | None = None

    @property
    def text(self) -> str:
        """Concatenated text of all text blocks."""
        if isinstance(self.content, str):
            return self.content
        return "".join(block.text for block in self.content if isinstance(block, TextBlock))


class SystemMessage(Record):
    """A system notice (init, compaction, status, ...)."""

    type: Literal["system"] = "system"
    subtype: str = ""
    data: dict[str, Any] = Field(default_factory=dict)


class ResultMessage(Record):
    """Terminal record of a turn with outcome, usage and cost."""

    type: Literal["result"] = "result"
    subtype: str = ""
    duration_ms: int = 0
    duration_api_ms: int = 0
    is_error: bool = False
    num_turns: int = 0
    session_id: str = ""
    total_cost_usd: float | None = None
    usage: dict[str, Any] | None = None
    result: str | None = None


class StreamEvent(Record):
    """A partial streaming update wrapping a raw model API event."""

    type: Literal["stream_event"] = "stream_event"
    uuid: str = ""
    session_id: str = ""
    event: dict[str, Any] = Field(default_factory=dict)
    parent_tool_use_id: str | None = None

    @property
    def event_type(self) -> str | None:
        """The nested event's own ``type``, if present."""
        value = self.event.get("type")
        return value if isinstance(value, str) else None


ContentMessage = UserMessage | AssistantMessage | SystemMessage | ResultMessage | StreamEvent
