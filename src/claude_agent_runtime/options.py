"""Session configuration."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from .control_protocol import DEFAULT_MESSAGE_BUFFER_SIZE, ControlHandler
from .hooks import HookEvent, HookMatcher
from .permissions import CanUseTool
from .transport.framing import DEFAULT_MAX_BUFFER_SIZE
from .transport.subprocess_cli import TransportConfig

# Environment variable the agent reads its model from
MODEL_ENV = "ANTHROPIC_MODEL"


class PermissionMode(str, Enum):
    """How the agent treats tool permission checks."""

    DEFAULT = "default"
    ACCEPT_EDITS = "acceptEdits"
    PLAN = "plan"
    BYPASS_PERMISSIONS = "bypassPermissions"


@dataclass
class AgentOptions:
    """Options for an AgentClient session.

    Attributes:
        cli_path: Agent executable; discovered on PATH when None
        cwd: Working directory for the agent process
        env: Extra environment variables (win over everything else)
        model: Model name, exported as ANTHROPIC_MODEL
        permission_mode: Applied right after the initialize handshake
        permission_prompt_tool_name: Tool the agent uses to ask for
            permission; set to "stdio" automatically when can_use_tool is given
        can_use_tool: Callback answering can_use_tool control requests
        hooks: Hook matchers by event, announced during initialize
        mcp_message_handler: Handler for mcp_message control requests
        control_handlers: Extra control handlers by subtype
        max_buffer_size: Largest accepted stdout record in bytes
        message_buffer_size: Content messages buffered ahead of the consumer
        initialize_timeout: Seconds to wait for the initialize response
        close_timeout: Seconds to wait for the agent to exit on close
        sdk_version: Reported to the agent as CLAUDE_AGENT_SDK_VERSION
    """

    cli_path: str | None = None
    cwd: str | None = None
    env: dict[str, str] = field(default_factory=dict)
    model: str | None = None

    permission_mode: PermissionMode | str | None = None
    permission_prompt_tool_name: str | None = None
    can_use_tool: CanUseTool | None = None
    hooks: dict[HookEvent | str, list[HookMatcher]] | None = None
    mcp_message_handler: ControlHandler | None = None
    control_handlers: dict[str, ControlHandler] = field(default_factory=dict)

    max_buffer_size: int = DEFAULT_MAX_BUFFER_SIZE
    message_buffer_size: int = DEFAULT_MESSAGE_BUFFER_SIZE
    initialize_timeout: float | None = 60.0
    close_timeout: float = 5.0
    sdk_version: str = "0.1.0"

    def validate(self) -> None:
        """Check option combinations.

        Raises:
            ValueError: On conflicting or out-of-range options
        """
        if self.can_use_tool is not None and self.permission_prompt_tool_name is not None:
            raise ValueError("can_use_tool callback cannot be used with permission_prompt_tool_name")
        if self.max_buffer_size <= 0:
            raise ValueError("max_buffer_size must be positive")
        if self.message_buffer_size <= 0:
            raise ValueError("message_buffer_size must be positive")
        if self.close_timeout < 0:
            raise ValueError("close_timeout must not be negative")
        if self.permission_mode is not None:
            # Raises ValueError for unknown modes
            PermissionMode(self.permission_mode)

    @property
    def permission_prompt_tool(self) -> str | None:
        """Effective permission prompt tool name."""
        if self.can_use_tool is not None:
            return "stdio"
        return self.permission_prompt_tool_name

    def build_env(self) -> dict[str, str]:
        """Environment overrides handed to the transport."""
        env: dict[str, str] = {}
        if self.model:
            env[MODEL_ENV] = self.model
        env.update(self.env)
        return env

    def build_args(self) -> list[str]:
        """Command line arguments after the executable path."""
        args = ["agent", "--stdio"]
        if self.permission_prompt_tool:
            args.extend(["--permission-prompt-tool", self.permission_prompt_tool])
        return args

    def transport_config(self) -> TransportConfig:
        return TransportConfig(
            args=self.build_args(),
            cwd=self.cwd,
            env=self.build_env(),
            sdk_version=self.sdk_version,
            max_buffer_size=self.max_buffer_size,
            close_timeout=self.close_timeout,
        )
