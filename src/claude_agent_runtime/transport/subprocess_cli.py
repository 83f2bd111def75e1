"""Subprocess transport for the agent CLI.

Launches the agent executable (``<cli> agent --stdio``) and exchanges
newline-delimited JSON over its stdin/stdout. Stderr is drained in the
background and logged at DEBUG so the child can never block on a full pipe.

Lifecycle:
    created -> connect() -> ready -> close() -> closed

close() never leaves a zombie: the child is asked to exit by closing its
stdin, and is killed if it is still running when the deadline elapses.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import os
from dataclasses import dataclass, field
from typing import Any

from ..errors import CLIConnectionError, ProcessError
from .framing import DEFAULT_MAX_BUFFER_SIZE, JSONLineReader, JSONLineWriter

logger = logging.getLogger(__name__)

ENTRYPOINT_ENV = "CLAUDE_CODE_ENTRYPOINT"
SDK_VERSION_ENV = "CLAUDE_AGENT_SDK_VERSION"


@dataclass
class TransportConfig:
    """Configuration for the subprocess transport."""

    # Arguments after the executable path
    args: list[str] = field(default_factory=lambda: ["agent", "--stdio"])
    cwd: str | None = None

    # Overrides applied on top of the inherited environment
    env: dict[str, str] = field(default_factory=dict)
    entrypoint: str = "agent"
    sdk_version: str = "0.1.0"

    max_buffer_size: int = DEFAULT_MAX_BUFFER_SIZE
    close_timeout: float = 5.0


class SubprocessCLITransport:
    """Transport over the agent subprocess stdin/stdout.

    Writes are serialized with a lock so concurrent callers never interleave
    partial lines. Reads are expected from a single task (the control
    protocol's read loop).
    """

    def __init__(self, cli_path: str, config: TransportConfig | None = None):
        self.cli_path = cli_path
        self.config = config or TransportConfig()
        self._process: asyncio.subprocess.Process | None = None
        self._reader: JSONLineReader | None = None
        self._writer: JSONLineWriter | None = None
        self._stderr_task: asyncio.Task[None] | None = None
        self._connect_lock = asyncio.Lock()
        self._write_lock = asyncio.Lock()
        self._ready = False
        self._closed = False
        self._error: BaseException | None = None

    @property
    def is_ready(self) -> bool:
        """True while the transport accepts writes."""
        return self._ready

    @property
    def pid(self) -> int | None:
        return self._process.pid if self._process else None

    @property
    def returncode(self) -> int | None:
        return self._process.returncode if self._process else None

    @property
    def error(self) -> BaseException | None:
        """Latest error recorded by the background reader, if any."""
        return self._error

    def on_error(self, error: BaseException) -> None:
        """Record a background error for later inspection."""
        self._error = error

    def build_env(self) -> dict[str, str]:
        """Inherited environment + protocol variables + caller overrides."""
        env = dict(os.environ)
        env[ENTRYPOINT_ENV] = self.config.entrypoint
        env[SDK_VERSION_ENV] = self.config.sdk_version
        env.update(self.config.env)
        return env

    async def connect(self) -> None:
        """Spawn the agent process. Calling again while running is a no-op.

        Raises:
            CLIConnectionError: If the process or its pipes cannot be created
        """
        async with self._connect_lock:
            if self._process is not None:
                return
            if self._closed:
                raise CLIConnectionError("transport is closed")

            cmd = [self.cli_path, *self.config.args]
            try:
                process = await asyncio.create_subprocess_exec(
                    *cmd,
                    stdin=asyncio.subprocess.PIPE,
                    stdout=asyncio.subprocess.PIPE,
                    stderr=asyncio.subprocess.PIPE,
                    cwd=self.config.cwd,
                    env=self.build_env(),
                )
            except OSError as e:
                raise CLIConnectionError(f"failed to start subprocess {self.cli_path}: {e}") from e

            if process.stdin is None or process.stdout is None or process.stderr is None:
                process.kill()
                await process.wait()
                raise CLIConnectionError("failed to create subprocess pipes")

            self._process = process
            self._reader = JSONLineReader(process.stdout, self.config.max_buffer_size)
            self._writer = JSONLineWriter(process.stdin)
            self._stderr_task = asyncio.create_task(self._drain_stderr())
            self._ready = True

            logger.info(f"Launched agent: {' '.join(cmd)} (pid={process.pid})")

    async def read_line(self) -> bytes | None:
        """Read the next stdout record, or None at end of stream.

        Raises:
            FramingError: If the record exceeds the configured maximum size
            CLIConnectionError: If the transport was never connected
        """
        if self._reader is None:
            raise CLIConnectionError("transport is not connected")
        try:
            return await self._reader.read_line()
        except OSError as e:
            raise CLIConnectionError(f"failed to read from subprocess stdout: {e}") from e

    async def write(self, data: str) -> None:
        """Write one record to the agent's stdin.

        Raises:
            CLIConnectionError: If the transport is not ready or the write fails
        """
        async with self._write_lock:
            if not self._ready or self._writer is None:
                raise CLIConnectionError("transport is not ready for writing")
            try:
                await self._writer.write_line(data)
            except OSError as e:
                self._ready = False
                error = CLIConnectionError(f"failed to write to subprocess stdin: {e}")
                self._error = error
                raise error from e
            logger.debug(f"→ {data[:200]}")

    async def close(self, timeout: float | None = None) -> None:
        """Terminate the agent process. Safe to call more than once.

        Closes stdin, waits up to ``timeout`` seconds (default from config)
        for the process to exit, and kills it otherwise. The process is
        always reaped before this returns.

        Raises:
            ProcessError: If the process exited non-zero or had to be killed
        """
        # Waits for an in-flight connect so a spawn cannot outlive close()
        async with self._connect_lock:
            if self._closed:
                return
            self._closed = True
            self._ready = False
            process = self._process

        if process is None:
            return
        if timeout is None:
            timeout = self.config.close_timeout

        killed = False
        try:
            # One deadline covers flushing stdin and waiting for the exit
            await asyncio.wait_for(self._end_input_and_wait(process), timeout=timeout)
        except TimeoutError:
            logger.warning(f"Agent did not exit within {timeout}s, killing (pid={process.pid})")
            killed = True
            self._kill(process)
            await process.wait()
        except asyncio.CancelledError:
            self._kill(process)
            raise
        finally:
            await self._stop_stderr()

        logger.info(f"Agent exited (pid={process.pid}, returncode={process.returncode})")

        if killed:
            raise ProcessError("subprocess did not exit gracefully, killed", killed=True)
        if process.returncode:
            raise ProcessError("subprocess exited with error", exit_code=process.returncode)

    async def _end_input_and_wait(self, process: asyncio.subprocess.Process) -> None:
        if process.stdin is not None:
            process.stdin.close()
            # The child may already be gone
            with contextlib.suppress(OSError):
                await process.stdin.wait_closed()
        await process.wait()

    def _kill(self, process: asyncio.subprocess.Process) -> None:
        with contextlib.suppress(ProcessLookupError):
            process.kill()

    async def _stop_stderr(self) -> None:
        if self._stderr_task:
            self._stderr_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._stderr_task
            self._stderr_task = None

    async def _drain_stderr(self) -> None:
        """Read and log stderr output."""
        if not self._process or not self._process.stderr:
            return
        stream = self._process.stderr
        while True:
            try:
                line = await stream.readline()
            except ValueError:
                # readline() discards an over-long line before raising
                logger.debug("[agent stderr] <line too long, skipped>")
                continue
            if not line:
                break
            logger.debug(f"[agent stderr] {line.decode('utf-8', errors='replace').rstrip()}")

    async def __aenter__(self) -> SubprocessCLITransport:
        await self.connect()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()
