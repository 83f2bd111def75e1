"""Control message definitions for the protocol layer.

Control messages share the stdio channel with content messages but form a
request/response sub-protocol. Either side may originate a request; the
answer echoes its ``request_id``:

    → {"type": "control_request", "request_id": "req_1_ab12", "request": {"subtype": "interrupt"}}
    ← {"type": "control_response", "response": {"subtype": "success", "request_id": "req_1_ab12", "response": {}}}
    ← {"type": "control_response", "response": {"subtype": "error", "request_id": "req_1_ab12", "error": "..."}}

The request payload is tagged by ``subtype``.
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Any, Literal

from pydantic import Field

from .messages import Record


class ControlSubtype(str, Enum):
    """Control request subtypes understood by the runtime."""

    INTERRUPT = "interrupt"
    CAN_USE_TOOL = "can_use_tool"
    INITIALIZE = "initialize"
    SET_PERMISSION_MODE = "set_permission_mode"
    HOOK_CALLBACK = "hook_callback"
    MCP_MESSAGE = "mcp_message"


# =============================================================================
# Request payloads
# =============================================================================


class InterruptRequest(Record):
    """Ask the agent to stop the current turn."""

    subtype: Literal["interrupt"] = "interrupt"


class PermissionRequest(Record):
    """Agent asks whether a tool may run."""

    subtype: Literal["can_use_tool"] = "can_use_tool"
    tool_name: str
    input: dict[str, Any] = Field(default_factory=dict)
    permission_suggestions: list[dict[str, Any]] | None = None
    blocked_path: str | None = None


class InitializeRequest(Record):
    """Handshake sent once after the process starts.

    ``hooks`` maps a hook event name to its matcher configs.
    """

    subtype: Literal["initialize"] = "initialize"
    hooks: dict[str, list[dict[str, Any]]] | None = None


class SetPermissionModeRequest(Record):
    """Switch the agent's permission mode."""

    subtype: Literal["set_permission_mode"] = "set_permission_mode"
    mode: str


class HookCallbackRequest(Record):
    """Agent invokes a hook callback registered during initialize."""

    subtype: Literal["hook_callback"] = "hook_callback"
    callback_id: str
    input: dict[str, Any] = Field(default_factory=dict)
    tool_use_id: str | None = None


class McpMessageRequest(Record):
    """Agent relays a JSON-RPC message to an in-process MCP server."""

    subtype: Literal["mcp_message"] = "mcp_message"
    server_name: str
    message: dict[str, Any] = Field(default_factory=dict)


ControlRequestPayload = Annotated[
    InterruptRequest
    | PermissionRequest
    | InitializeRequest
    | SetPermissionModeRequest
    | HookCallbackRequest
    | McpMessageRequest,
    Field(discriminator="subtype"),
]


class ControlRequest(Record):
    """Envelope for a control request in either direction."""

    type: Literal["control_request"] = "control_request"
    request_id: str
    request: ControlRequestPayload


# =============================================================================
# Responses
# =============================================================================


class ControlSuccessResponse(Record):
    subtype: Literal["success"] = "success"
    request_id: str
    response: dict[str, Any] | None = None


class ControlErrorResponse(Record):
    subtype: Literal["error"] = "error"
    request_id: str
    error: str = ""


ControlResponsePayload = Annotated[
    ControlSuccessResponse | ControlErrorResponse,
    Field(discriminator="subtype"),
]


class ControlResponse(Record):
    """Envelope for a control response in either direction."""

    type: Literal["control_response"] = "control_response"
    response: ControlResponsePayload

    @property
    def request_id(self) -> str:
        return self.response.request_id

    @property
    def is_error(self) -> bool:
        return isinstance(self.response, ControlErrorResponse)

    @classmethod
    def success(cls, request_id: str, response: dict[str, Any] | None = None) -> ControlResponse:
        return cls(response=ControlSuccessResponse(request_id=request_id, response=response or {}))

    @classmethod
    def error(cls, request_id: str, message: str) -> ControlResponse:
        return cls(response=ControlErrorResponse(request_id=request_id, error=message))


CONTROL_REQUEST_TYPES: dict[str, type[Record]] = {
    ControlSubtype.INTERRUPT.value: InterruptRequest,
    ControlSubtype.CAN_USE_TOOL.value: PermissionRequest,
    ControlSubtype.INITIALIZE.value: InitializeRequest,
    ControlSubtype.SET_PERMISSION_MODE.value: SetPermissionModeRequest,
    ControlSubtype.HOOK_CALLBACK.value: HookCallbackRequest,
    ControlSubtype.MCP_MESSAGE.value: McpMessageRequest,
}

CONTROL_RESPONSE_TYPES: dict[str, type[Record]] = {
    "success": ControlSuccessResponse,
    "error": ControlErrorResponse,
}
