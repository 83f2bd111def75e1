"""Pytest configuration and shared fixtures."""

import asyncio
import json

import pytest

from claude_agent_runtime.errors import CLIConnectionError


class FakeTransport:
    """In-memory transport.

    Records fed with feed() are returned by read_line(); records written by
    the code under test are parsed and kept in ``written``. An optional
    ``responder`` is called with every written record and may return
    records to feed back, simulating the agent.
    """

    def __init__(self, responder=None):
        self.responder = responder
        self.written: list[dict] = []
        self.connected = False
        self.closed = False
        self.close_calls = 0
        self.close_timeout = None
        self.connect_error: BaseException | None = None
        self.close_error: BaseException | None = None
        self._ready = True
        self._error: BaseException | None = None
        self._incoming: asyncio.Queue = asyncio.Queue()
        self._writes: asyncio.Queue = asyncio.Queue()

    @property
    def is_ready(self) -> bool:
        return self._ready

    @property
    def error(self):
        return self._error

    def on_error(self, error: BaseException) -> None:
        self._error = error

    def feed(self, record) -> None:
        if isinstance(record, dict):
            record = json.dumps(record)
        if isinstance(record, str):
            record = record.encode("utf-8")
        self._incoming.put_nowait(record)

    def feed_eof(self) -> None:
        self._incoming.put_nowait(None)

    def feed_error(self, error: BaseException) -> None:
        self._incoming.put_nowait(error)

    async def next_write(self, timeout: float = 1.0) -> dict:
        return await asyncio.wait_for(self._writes.get(), timeout=timeout)

    async def connect(self) -> None:
        if self.connect_error is not None:
            raise self.connect_error
        self.connected = True
        self._ready = True

    async def read_line(self):
        item = await self._incoming.get()
        if isinstance(item, BaseException):
            raise item
        return item

    async def write(self, data: str) -> None:
        if not self._ready:
            raise CLIConnectionError("transport is not ready for writing")
        record = json.loads(data)
        self.written.append(record)
        self._writes.put_nowait(record)
        if self.responder is not None:
            for reply in self.responder(record) or []:
                self.feed(reply)

    async def close(self, timeout=None) -> None:
        self.close_calls += 1
        self.close_timeout = timeout
        self._ready = False
        if self.closed:
            return
        self.closed = True
        if self.close_error is not None:
            raise self.close_error


def answer_control_requests(record: dict) -> list[dict]:
    """Reply success to every control request, echoing its subtype."""
    if record.get("type") != "control_request":
        return []
    return [
        {
            "type": "control_response",
            "response": {
                "subtype": "success",
                "request_id": record["request_id"],
                "response": {"acknowledged": record["request"]["subtype"]},
            },
        }
    ]


@pytest.fixture(scope="module")
def anyio_backend():
    """Configure anyio to use asyncio backend."""
    return "asyncio"


@pytest.fixture
def fake_transport():
    """Transport that only returns what the test feeds it."""
    return FakeTransport()


@pytest.fixture
def agent_transport():
    """Transport whose fake agent acknowledges every control request."""
    return FakeTransport(responder=answer_control_requests)
