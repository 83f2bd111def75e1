"""Session client for the agent CLI.

AgentClient is the object applications use:

    async with AgentClient(AgentOptions(model="...")) as client:
        await client.send_turn("What files are in this directory?")
        async for message in client.receive():
            if isinstance(message, AssistantMessage):
                print(message.text)

One client drives one agent process. Turns are sequential: send a turn,
consume receive() up to its ResultMessage, then send the next one.

States:
    created -> connecting -> ready -> closing -> closed

Transitions only move forward; a closed client cannot be reconnected.
"""

from __future__ import annotations

import contextlib
import json
import logging
from collections.abc import AsyncIterator
from enum import Enum
from typing import Any

from .control_protocol import ControlProtocol
from .errors import AgentRuntimeError, CancellationError, CLIConnectionError, ProtocolError
from .hooks import HookRegistry
from .options import AgentOptions, PermissionMode
from .permissions import permission_handler
from .protocol.control import (
    ControlSubtype,
    InitializeRequest,
    InterruptRequest,
    SetPermissionModeRequest,
)
from .protocol.messages import ContentMessage, ResultMessage
from .transport.base import Transport
from .transport.discovery import find_cli
from .transport.subprocess_cli import SubprocessCLITransport

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    """Client lifecycle."""

    CREATED = "created"
    CONNECTING = "connecting"
    READY = "ready"
    CLOSING = "closing"
    CLOSED = "closed"


class AgentClient:
    """Bidirectional session with the agent CLI.

    Args:
        options: Session options; defaults are used when None
        transport: Pre-built transport. When None a SubprocessCLITransport is
            created on connect, locating the executable if
            ``options.cli_path`` is unset.

    Raises:
        ValueError: If the options are inconsistent
    """

    def __init__(
        self,
        options: AgentOptions | None = None,
        *,
        transport: Transport | None = None,
    ) -> None:
        self.options = options or AgentOptions()
        self.options.validate()
        self._transport = transport
        self._protocol: ControlProtocol | None = None
        self._hooks = HookRegistry(self.options.hooks)
        self._state = SessionState.CREATED
        self._server_info: dict[str, Any] | None = None

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state is SessionState.READY

    @property
    def server_info(self) -> dict[str, Any] | None:
        """Payload of the agent's initialize response."""
        return self._server_info

    @property
    def transport(self) -> Transport | None:
        return self._transport

    @property
    def last_error(self) -> BaseException | None:
        """Most recent error recorded by the read loop or transport."""
        if self._protocol and self._protocol.last_error is not None:
            return self._protocol.last_error
        return self._transport.error if self._transport else None

    async def connect(self) -> None:
        """Start the agent and complete the initialize handshake.

        Raises:
            ProtocolError: If already connected, or the handshake fails
            CLINotFoundError: If the executable cannot be located
            CLIConnectionError: If the process cannot be started
        """
        if self._state is SessionState.READY:
            raise ProtocolError("client already connected")
        if self._state is not SessionState.CREATED:
            raise ProtocolError(f"cannot connect a client in state {self._state.value}")
        self._state = SessionState.CONNECTING

        try:
            if self._transport is None:
                self._transport = self._create_transport()
            await self._transport.connect()
            self._check_connecting()

            protocol = ControlProtocol(
                self._transport,
                message_buffer_size=self.options.message_buffer_size,
            )
            self._register_handlers(protocol)
            self._protocol = protocol
            protocol.start()

            self._server_info = await self._initialize(protocol)
            if self.options.permission_mode is not None:
                await self._apply_permission_mode(protocol, self.options.permission_mode)
            self._check_connecting()
        except BaseException:
            await self._abort()
            raise

        self._state = SessionState.READY
        logger.info("Agent session ready")

    async def send_turn(self, prompt: str, session_id: str = "default") -> None:
        """Send a user turn. Returns once the record is written.

        Raises:
            CLIConnectionError: If not connected or the write fails
            ValueError: If the prompt is empty
        """
        if self._state is not SessionState.READY or self._transport is None:
            raise CLIConnectionError("not connected - call connect() first")
        if not prompt:
            raise ValueError("prompt cannot be empty")

        record = {
            "type": "user",
            "message": {"role": "user", "content": prompt},
            "parent_tool_use_id": None,
            "session_id": session_id,
        }
        await self._transport.write(json.dumps(record))

    async def receive(self) -> AsyncIterator[ContentMessage]:
        """Yield content messages up to and including the next ResultMessage.

        Ends early if the stream closes; raises the stream's terminal error if
        it closed abnormally.
        """
        protocol = self._require_protocol()
        async with contextlib.aclosing(protocol.receive_messages()) as messages:
            async for message in messages:
                yield message
                if isinstance(message, ResultMessage):
                    return

    async def receive_messages(self) -> AsyncIterator[ContentMessage]:
        """Yield every content message until the stream closes."""
        protocol = self._require_protocol()
        async with contextlib.aclosing(protocol.receive_messages()) as messages:
            async for message in messages:
                yield message

    async def interrupt(self, timeout: float | None = None) -> dict[str, Any]:
        """Ask the agent to stop the current turn."""
        protocol = self._require_protocol()
        return await protocol.send_control_request(InterruptRequest(), timeout=timeout)

    async def set_permission_mode(
        self,
        mode: PermissionMode | str,
        timeout: float | None = None,
    ) -> dict[str, Any]:
        """Switch the agent's permission mode for the rest of the session."""
        protocol = self._require_protocol()
        return await self._apply_permission_mode(protocol, mode, timeout)

    async def close(self, timeout: float | None = None) -> None:
        """Shut the session down. Safe to call more than once.

        Stops the read loop (releasing any waiter with CancellationError),
        then closes the transport.

        Args:
            timeout: Seconds to wait for the agent to exit before killing it;
                defaults to ``options.close_timeout``

        Raises:
            ProcessError: If the agent exited non-zero or had to be killed
        """
        if self._state in (SessionState.CLOSING, SessionState.CLOSED):
            return
        if self._state is SessionState.CREATED:
            self._state = SessionState.CLOSED
            return

        self._state = SessionState.CLOSING
        try:
            await self._shutdown(timeout)
        finally:
            self._state = SessionState.CLOSED
            logger.info("Agent session closed")

    # =========================================================================
    # Internals
    # =========================================================================

    def _create_transport(self) -> SubprocessCLITransport:
        cli_path = self.options.cli_path or find_cli()
        return SubprocessCLITransport(cli_path, self.options.transport_config())

    def _register_handlers(self, protocol: ControlProtocol) -> None:
        if self.options.can_use_tool is not None:
            protocol.register_handler(
                ControlSubtype.CAN_USE_TOOL.value, permission_handler(self.options.can_use_tool)
            )
        if len(self._hooks):
            protocol.register_handler(ControlSubtype.HOOK_CALLBACK.value, self._hooks.handler())
        if self.options.mcp_message_handler is not None:
            protocol.register_handler(
                ControlSubtype.MCP_MESSAGE.value, self.options.mcp_message_handler
            )
        for subtype, handler in self.options.control_handlers.items():
            protocol.register_handler(subtype, handler)

    async def _initialize(self, protocol: ControlProtocol) -> dict[str, Any]:
        request = InitializeRequest(hooks=self._hooks.initialize_config())
        try:
            response = await protocol.send_control_request(
                request, timeout=self.options.initialize_timeout
            )
        except AgentRuntimeError as e:
            raise ProtocolError(f"failed to initialize control protocol: {e}") from e
        logger.debug(f"Initialize response: {response}")
        return response

    async def _apply_permission_mode(
        self,
        protocol: ControlProtocol,
        mode: PermissionMode | str,
        timeout: float | None = None,
    ) -> dict[str, Any]:
        request = SetPermissionModeRequest(mode=PermissionMode(mode).value)
        return await protocol.send_control_request(request, timeout=timeout)

    def _require_protocol(self) -> ControlProtocol:
        if self._state is not SessionState.READY or self._protocol is None:
            raise CLIConnectionError("not connected - call connect() first")
        return self._protocol

    def _check_connecting(self) -> None:
        if self._state is not SessionState.CONNECTING:
            raise CancellationError("session closed during connect")

    async def _shutdown(self, timeout: float | None) -> None:
        if self._protocol is not None:
            await self._protocol.stop()
        if self._transport is not None:
            await self._transport.close(timeout if timeout is not None else self.options.close_timeout)

    async def _abort(self) -> None:
        """Tear down after a failed connect without masking the failure."""
        self._state = SessionState.CLOSING
        try:
            await self._shutdown(None)
        except AgentRuntimeError as e:
            logger.warning(f"Error while cleaning up failed connect: {e}")
        finally:
            self._state = SessionState.CLOSED

    async def __aenter__(self) -> AgentClient:
        await self.connect()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()
