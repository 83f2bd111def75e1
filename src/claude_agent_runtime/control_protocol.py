"""Control protocol: routing and request/response correlation.

A single read loop owns the transport's stdout and routes every record:

    content message   -> bounded message queue (consumer: receive_messages)
    control_response  -> pending request table, matched by request_id
    control_request   -> registered handler by subtype, answered with a
                         control_response carrying the same request_id

Handlers run in their own tasks so a slow callback never stalls routing.

States:
    idle -> reading -> draining -> stopped

Pending table entries are inserted and removed without an intervening
await, so the event loop serializes every access.
"""

from __future__ import annotations

import asyncio
import json
import logging
import uuid
from collections.abc import AsyncIterator, Awaitable, Callable, Coroutine
from dataclasses import dataclass
from enum import Enum
from typing import Any

from .errors import (
    AgentRuntimeError,
    CancellationError,
    CLIConnectionError,
    ControlRequestError,
    DecodeError,
    MessageParseError,
    ProtocolError,
)
from .protocol.control import ControlErrorResponse, ControlRequest, ControlResponse
from .protocol.decoder import decode_message, decode_type, request_id_of
from .protocol.messages import ContentMessage, MessageType, Record
from .transport.base import Transport

logger = logging.getLogger(__name__)

ControlHandler = Callable[[ControlRequest], Awaitable[dict[str, Any] | None]]

DEFAULT_MESSAGE_BUFFER_SIZE = 10

_END_OF_STREAM = object()


class ProtocolState(str, Enum):
    """Read loop state machine."""

    IDLE = "idle"
    READING = "reading"
    DRAINING = "draining"
    STOPPED = "stopped"


@dataclass
class PendingRequest:
    """An outbound control request waiting for its response."""

    request_id: str
    subtype: str
    future: asyncio.Future[dict[str, Any]]


class ControlProtocol:
    """Multiplexes content messages and control traffic over one transport."""

    def __init__(
        self,
        transport: Transport,
        *,
        message_buffer_size: int = DEFAULT_MESSAGE_BUFFER_SIZE,
    ) -> None:
        self._transport = transport
        self._messages: asyncio.Queue[Any] = asyncio.Queue(maxsize=message_buffer_size)
        self._pending: dict[str, PendingRequest] = {}
        self._handlers: dict[str, ControlHandler] = {}
        self._handler_tasks: set[asyncio.Task[None]] = set()
        self._read_task: asyncio.Task[None] | None = None
        self._state = ProtocolState.IDLE
        self._counter = 0
        self._stream_closed = False
        self._terminal_error: BaseException | None = None
        self._last_error: BaseException | None = None

    @property
    def state(self) -> ProtocolState:
        return self._state

    @property
    def pending_count(self) -> int:
        """Number of outbound control requests awaiting a response."""
        return len(self._pending)

    @property
    def last_error(self) -> BaseException | None:
        """Most recent non-fatal or terminal error seen by the read loop."""
        return self._last_error

    def register_handler(self, subtype: str, handler: ControlHandler) -> None:
        """Register the handler for inbound control requests of ``subtype``.

        The handler returns the success payload (or None for an empty one).
        Raising turns the reply into an error response.
        """
        self._handlers[subtype] = handler

    def start(self) -> None:
        """Launch the read loop."""
        if self._state is not ProtocolState.IDLE:
            raise ProtocolError(f"control protocol already started (state={self._state.value})")
        self._state = ProtocolState.READING
        self._read_task = asyncio.create_task(self._read_loop())

    async def send_control_request(
        self,
        request: Record | dict[str, Any],
        timeout: float | None = None,
    ) -> dict[str, Any]:
        """Send a control request and wait for its response payload.

        Args:
            request: Request payload model or dict with a ``subtype``
            timeout: Seconds to wait for the response, or None to wait
                until the response arrives or the session closes

        Returns:
            The success response payload

        Raises:
            ControlRequestError: If the agent answered with an error
            CancellationError: On timeout or session close
            CLIConnectionError: If the protocol is not running or the write fails
            ProtocolError: If the stream failed while waiting
        """
        payload = request.to_wire() if isinstance(request, Record) else dict(request)
        subtype = payload.get("subtype")
        if not isinstance(subtype, str) or not subtype:
            raise ValueError("control request payload requires a subtype")
        if self._state is not ProtocolState.READING:
            raise CLIConnectionError(f"control protocol is not running (state={self._state.value})")

        request_id = self._next_request_id()
        future: asyncio.Future[dict[str, Any]] = asyncio.get_running_loop().create_future()
        self._pending[request_id] = PendingRequest(request_id, subtype, future)

        try:
            record = {
                "type": MessageType.CONTROL_REQUEST.value,
                "request_id": request_id,
                "request": payload,
            }
            await self._transport.write(json.dumps(record))
            logger.debug(f"Sent control request {subtype} ({request_id})")

            if timeout is None:
                return await future
            try:
                return await asyncio.wait_for(future, timeout=timeout)
            except TimeoutError as e:
                raise CancellationError(
                    f"control request {subtype} ({request_id}) timed out after {timeout}s"
                ) from e
        finally:
            self._pending.pop(request_id, None)

    async def receive_messages(self) -> AsyncIterator[ContentMessage]:
        """Yield content messages in arrival order until the stream closes.

        Raises:
            The terminal error if the stream ended abnormally (framing
            failure, or CancellationError when the session was stopped)
        """
        while True:
            if self._stream_closed and self._messages.empty():
                break
            item = await self._messages.get()
            if item is _END_OF_STREAM:
                break
            yield item

        if self._terminal_error is not None:
            raise self._terminal_error

    async def stop(self) -> None:
        """Stop routing and release every waiter. Safe to call more than once."""
        if self._state is ProtocolState.STOPPED:
            return
        self._state = ProtocolState.DRAINING

        tasks = [t for t in (self._read_task, *self._handler_tasks) if t is not None]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._read_task = None
        self._handler_tasks.clear()

        self._fail_pending(lambda: CancellationError("session closed"))
        if not self._stream_closed:
            self._close_stream(CancellationError("session closed"))
        self._state = ProtocolState.STOPPED
        logger.debug("Control protocol stopped")

    # =========================================================================
    # Read loop
    # =========================================================================

    async def _read_loop(self) -> None:
        """Background task reading records and routing them."""
        try:
            while True:
                line = await self._transport.read_line()
                if line is None:
                    logger.debug("Agent stream ended")
                    self._finish(None)
                    return
                if not line.strip():
                    continue
                await self._route(line)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Read loop error: {e}")
            self._record(e)
            self._finish(e)

    async def _route(self, line: bytes) -> None:
        try:
            message = decode_message(line)
        except (DecodeError, MessageParseError) as e:
            logger.warning(f"Skipping undecodable record: {e}")
            self._record(e)
            self._reject_undecodable(line, e)
            return

        if isinstance(message, ControlResponse):
            self._resolve(message)
        elif isinstance(message, ControlRequest):
            self._dispatch(message)
        else:
            # Blocks while the consumer is behind; messages are never dropped
            await self._messages.put(message)

    def _resolve(self, response: ControlResponse) -> None:
        pending = self._pending.pop(response.request_id, None)
        if pending is None:
            logger.warning(f"Control response for unknown request {response.request_id}, ignoring")
            self._record(ProtocolError(f"unmatched control response {response.request_id}"))
            return
        if pending.future.done():
            return

        payload = response.response
        if isinstance(payload, ControlErrorResponse):
            pending.future.set_exception(
                ControlRequestError(
                    payload.error or "control request failed",
                    request_id=pending.request_id,
                    subtype=pending.subtype,
                )
            )
        else:
            pending.future.set_result(payload.response or {})

    def _dispatch(self, request: ControlRequest) -> None:
        self._spawn(self._handle_request(request))

    async def _handle_request(self, request: ControlRequest) -> None:
        subtype = request.request.subtype
        handler = self._handlers.get(subtype)
        if handler is None:
            logger.warning(f"No handler for control request {subtype} ({request.request_id})")
            response = ControlResponse.error(
                request.request_id, f"unsupported control request subtype: {subtype}"
            )
        else:
            try:
                result = await handler(request)
                response = ControlResponse.success(request.request_id, result)
            except Exception as e:
                logger.warning(f"Control handler for {subtype} failed: {e}")
                response = ControlResponse.error(request.request_id, str(e) or type(e).__name__)
        await self._send_response(response)

    def _reject_undecodable(self, line: bytes, error: AgentRuntimeError) -> None:
        """Answer a control request that could not be decoded, when possible."""
        try:
            record_type = decode_type(line)
        except DecodeError:
            return
        if record_type != MessageType.CONTROL_REQUEST.value:
            return
        request_id = request_id_of(line)
        if request_id is None:
            return
        self._spawn(
            self._send_response(
                ControlResponse.error(request_id, f"invalid control request: {error}")
            )
        )

    async def _send_response(self, response: ControlResponse) -> None:
        try:
            await self._transport.write(json.dumps(response.to_wire()))
        except AgentRuntimeError as e:
            logger.warning(f"Failed to send control response {response.request_id}: {e}")
            self._record(e)

    # =========================================================================
    # Helpers
    # =========================================================================

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> None:
        task = asyncio.create_task(coro)
        self._handler_tasks.add(task)
        task.add_done_callback(self._handler_tasks.discard)

    def _next_request_id(self) -> str:
        self._counter += 1
        return f"req_{self._counter}_{uuid.uuid4().hex[:8]}"

    def _record(self, error: BaseException) -> None:
        self._last_error = error
        self._transport.on_error(error)

    def _finish(self, error: BaseException | None) -> None:
        """Terminal end of the stream, clean (None) or failed."""
        if self._state is ProtocolState.READING:
            self._state = ProtocolState.DRAINING

        def pending_error() -> BaseException:
            if error is None:
                return CLIConnectionError("stream ended")
            failure = ProtocolError(f"stream failed: {error}")
            failure.__cause__ = error
            return failure

        self._fail_pending(pending_error)
        self._close_stream(error)

    def _fail_pending(self, make_error: Callable[[], BaseException]) -> None:
        pending = list(self._pending.values())
        self._pending.clear()
        for entry in pending:
            if not entry.future.done():
                entry.future.set_exception(make_error())

    def _close_stream(self, error: BaseException | None) -> None:
        self._stream_closed = True
        self._terminal_error = error
        try:
            self._messages.put_nowait(_END_OF_STREAM)
        except asyncio.QueueFull:
            # The consumer sees the closed flag once it drains the queue
            pass
