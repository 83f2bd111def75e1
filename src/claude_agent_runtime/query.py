"""One-shot query helper."""

from __future__ import annotations

from collections.abc import AsyncIterator

from .client import AgentClient
from .options import AgentOptions
from .protocol.messages import ContentMessage
from .transport.base import Transport


async def query(
    prompt: str,
    options: AgentOptions | None = None,
    *,
    transport: Transport | None = None,
) -> AsyncIterator[ContentMessage]:
    """Run a single turn and yield its messages, ending with the ResultMessage.

    The agent process is started for this call and always shut down before
    the generator finishes.

    Example:
        async for message in query("What is 2 + 2?"):
            if isinstance(message, AssistantMessage):
                print(message.text)

    Raises:
        ValueError: If the prompt is empty
    """
    if not prompt:
        raise ValueError("prompt cannot be empty")

    client = AgentClient(options, transport=transport)
    try:
        await client.connect()
        await client.send_turn(prompt)
        async for message in client.receive():
            yield message
    finally:
        await client.close()
