"""Unit tests for the tool permission callback adapter."""

import pytest

from claude_agent_runtime.errors import ProtocolError
from claude_agent_runtime.permissions import (
    PermissionResultAllow,
    PermissionResultDeny,
    PermissionUpdate,
    ToolPermissionContext,
    permission_handler,
)
from claude_agent_runtime.protocol import decode_message


def permission_request(**fields) -> object:
    request = {"subtype": "can_use_tool", "tool_name": "Bash", "input": {"command": "ls"}}
    request.update(fields)
    return decode_message({"type": "control_request", "request_id": "agent_1", "request": request})


class TestPermissionResults:
    """Test wire form of permission decisions."""

    def test_allow_minimal(self):
        assert PermissionResultAllow().to_wire() == {"behavior": "allow"}

    def test_allow_with_updates(self):
        result = PermissionResultAllow(
            updated_input={"command": "ls -la"},
            updated_permissions=[
                PermissionUpdate(
                    type="addRules",
                    rules=[{"toolName": "Bash", "ruleContent": "ls:*"}],
                    behavior="allow",
                    destination="session",
                )
            ],
        )

        assert result.to_wire() == {
            "behavior": "allow",
            "updated_input": {"command": "ls -la"},
            "updated_permissions": [
                {
                    "type": "addRules",
                    "rules": [{"toolName": "Bash", "ruleContent": "ls:*"}],
                    "behavior": "allow",
                    "destination": "session",
                }
            ],
        }

    def test_deny(self):
        result = PermissionResultDeny(message="not allowed", interrupt=True)

        assert result.to_wire() == {"behavior": "deny", "message": "not allowed", "interrupt": True}


class TestPermissionHandler:
    """Test adapting a callback into a can_use_tool handler."""

    @pytest.mark.asyncio
    async def test_callback_receives_request(self):
        calls = []

        async def can_use_tool(tool_name, tool_input, context):
            calls.append((tool_name, tool_input, context))
            return PermissionResultAllow()

        handle = permission_handler(can_use_tool)
        response = await handle(
            permission_request(
                permission_suggestions=[{"type": "setMode", "mode": "acceptEdits"}],
                blocked_path="/etc/passwd",
            )
        )

        assert response == {"behavior": "allow"}
        tool_name, tool_input, context = calls[0]
        assert tool_name == "Bash"
        assert tool_input == {"command": "ls"}
        assert isinstance(context, ToolPermissionContext)
        assert context.blocked_path == "/etc/passwd"
        assert context.suggestions == [PermissionUpdate(type="setMode", mode="acceptEdits")]

    @pytest.mark.asyncio
    async def test_deny_decision(self):
        async def can_use_tool(tool_name, tool_input, context):
            return PermissionResultDeny(message=f"{tool_name} is disabled")

        response = await permission_handler(can_use_tool)(permission_request())

        assert response == {"behavior": "deny", "message": "Bash is disabled", "interrupt": False}

    @pytest.mark.asyncio
    async def test_invalid_return_value(self):
        async def can_use_tool(tool_name, tool_input, context):
            return {"behavior": "allow"}

        with pytest.raises(TypeError, match="PermissionResultAllow"):
            await permission_handler(can_use_tool)(permission_request())

    @pytest.mark.asyncio
    async def test_wrong_request_subtype(self):
        async def can_use_tool(tool_name, tool_input, context):
            return PermissionResultAllow()

        request = decode_message(
            {"type": "control_request", "request_id": "r", "request": {"subtype": "interrupt"}}
        )

        with pytest.raises(ProtocolError):
            await permission_handler(can_use_tool)(request)
