"""Hook callback plumbing.

Hooks are registered up front and announced to the agent in the
``initialize`` request. Each callback gets an opaque id; when a hook fires
the agent sends a ``hook_callback`` control request naming that id:

    initialize.hooks = {
        "PreToolUse": [{"matcher": "Bash", "hookCallbackIds": ["hook_0"], "timeout": 30}],
    }
    <- {"subtype": "hook_callback", "callback_id": "hook_0", "input": {...}, "tool_use_id": "..."}
    -> {"continue": true}

The callback's return value is passed back verbatim.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .control_protocol import ControlHandler
from .errors import ProtocolError
from .protocol.control import ControlRequest, HookCallbackRequest

logger = logging.getLogger(__name__)


class HookEvent(str, Enum):
    """Hook points exposed by the agent."""

    PRE_TOOL_USE = "PreToolUse"
    POST_TOOL_USE = "PostToolUse"
    USER_PROMPT_SUBMIT = "UserPromptSubmit"
    STOP = "Stop"
    SUBAGENT_STOP = "SubagentStop"
    PRE_COMPACT = "PreCompact"


@dataclass
class HookContext:
    """Context passed to every hook callback."""

    callback_id: str
    tool_use_id: str | None = None


HookCallback = Callable[[dict[str, Any], str | None, HookContext], Awaitable[dict[str, Any] | None]]


@dataclass
class HookMatcher:
    """Callbacks for one hook event, filtered by ``matcher``.

    ``matcher`` is a tool name pattern (e.g. "Bash" or "Write|Edit");
    None matches everything. ``timeout`` is in seconds.
    """

    matcher: str | None = None
    hooks: list[HookCallback] = field(default_factory=list)
    timeout: float | None = None


class HookRegistry:
    """Assigns callback ids and answers ``hook_callback`` requests."""

    def __init__(self, hooks: dict[HookEvent | str, list[HookMatcher]] | None = None):
        self._callbacks: dict[str, HookCallback] = {}
        self._config: dict[str, list[dict[str, Any]]] = {}
        for event, matchers in (hooks or {}).items():
            for matcher in matchers:
                self.add(event, matcher)

    def __len__(self) -> int:
        return len(self._callbacks)

    def add(self, event: HookEvent | str, matcher: HookMatcher) -> list[str]:
        """Register the callbacks of ``matcher`` under ``event``.

        Returns:
            The callback ids assigned, in order
        """
        event_name = event.value if isinstance(event, HookEvent) else event
        callback_ids = []
        for callback in matcher.hooks:
            callback_id = f"hook_{len(self._callbacks)}"
            self._callbacks[callback_id] = callback
            callback_ids.append(callback_id)

        entry: dict[str, Any] = {"matcher": matcher.matcher, "hookCallbackIds": callback_ids}
        if matcher.timeout is not None:
            entry["timeout"] = matcher.timeout
        self._config.setdefault(event_name, []).append(entry)
        return callback_ids

    def initialize_config(self) -> dict[str, list[dict[str, Any]]] | None:
        """The ``hooks`` section of the initialize request, or None if empty."""
        if not self._config:
            return None
        return {event: [dict(entry) for entry in entries] for event, entries in self._config.items()}

    def handler(self) -> ControlHandler:
        """Control handler for ``hook_callback`` requests."""

        async def handle(request: ControlRequest) -> dict[str, Any]:
            payload = request.request
            if not isinstance(payload, HookCallbackRequest):
                raise ProtocolError(f"expected hook_callback request, got {payload.subtype}")

            callback = self._callbacks.get(payload.callback_id)
            if callback is None:
                raise ProtocolError(f"no hook callback found for id: {payload.callback_id}")

            context = HookContext(callback_id=payload.callback_id, tool_use_id=payload.tool_use_id)
            logger.debug(f"Running hook callback {payload.callback_id}")
            return await callback(payload.input, payload.tool_use_id, context) or {}

        return handle
