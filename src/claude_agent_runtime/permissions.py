"""Tool permission callback plumbing.

When the agent is configured to ask the host before running a tool it sends
a ``can_use_tool`` control request. permission_handler() adapts a user
callback into the control handler that answers it:

    async def can_use_tool(tool_name, tool_input, context):
        if tool_name == "Bash":
            return PermissionResultDeny(message="no shell access")
        return PermissionResultAllow()

The runtime carries the decision; it does not make one.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from .control_protocol import ControlHandler
from .errors import ProtocolError
from .protocol.control import ControlRequest, PermissionRequest

logger = logging.getLogger(__name__)


class PermissionBehavior(str, Enum):
    ALLOW = "allow"
    DENY = "deny"
    ASK = "ask"


class PermissionUpdateDestination(str, Enum):
    USER_SETTINGS = "userSettings"
    PROJECT_SETTINGS = "projectSettings"
    LOCAL_SETTINGS = "localSettings"
    SESSION = "session"


class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class PermissionRuleValue(_WireModel):
    tool_name: str = Field(alias="toolName")
    rule_content: str | None = Field(default=None, alias="ruleContent")


class PermissionUpdate(_WireModel):
    """A change to the agent's permission rules.

    ``type`` is one of addRules, replaceRules, removeRules, setMode,
    addDirectories, removeDirectories.
    """

    type: str
    rules: list[PermissionRuleValue] | None = None
    behavior: PermissionBehavior | None = None
    mode: str | None = None
    directories: list[str] | None = None
    destination: PermissionUpdateDestination | None = None


class PermissionResultAllow(_WireModel):
    """Let the tool run, optionally with rewritten input."""

    behavior: Literal["allow"] = "allow"
    updated_input: dict[str, Any] | None = None
    updated_permissions: list[PermissionUpdate] | None = None


class PermissionResultDeny(_WireModel):
    """Refuse the tool call. ``interrupt`` also stops the current turn."""

    behavior: Literal["deny"] = "deny"
    message: str = ""
    interrupt: bool = False


PermissionResult = PermissionResultAllow | PermissionResultDeny


@dataclass
class ToolPermissionContext:
    """Extra information passed to the permission callback."""

    suggestions: list[PermissionUpdate] = field(default_factory=list)
    blocked_path: str | None = None


CanUseTool = Callable[[str, dict[str, Any], ToolPermissionContext], Awaitable[PermissionResult]]


def permission_handler(can_use_tool: CanUseTool) -> ControlHandler:
    """Adapt a permission callback to a ``can_use_tool`` control handler."""

    async def handle(request: ControlRequest) -> dict[str, Any]:
        payload = request.request
        if not isinstance(payload, PermissionRequest):
            raise ProtocolError(f"expected can_use_tool request, got {payload.subtype}")

        context = ToolPermissionContext(
            suggestions=[
                PermissionUpdate.model_validate(suggestion)
                for suggestion in payload.permission_suggestions or []
            ],
            blocked_path=payload.blocked_path,
        )
        result = await can_use_tool(payload.tool_name, payload.input, context)

        if not isinstance(result, (PermissionResultAllow, PermissionResultDeny)):
            raise TypeError(
                f"permission callback must return PermissionResultAllow or "
                f"PermissionResultDeny, got {type(result).__name__}"
            )
        logger.debug(f"Permission for {payload.tool_name}: {result.behavior}")
        return result.to_wire()

    return handle
