"""Integration tests for the subprocess transport.

Runs small Python scripts as stand-in agent executables, verifying:
- Spawn arguments and environment
- Line framing over real pipes
- Graceful exit, non-zero exit and kill-after-deadline on close
"""

import asyncio
import json
import sys
import textwrap

import pytest

from claude_agent_runtime.errors import CLIConnectionError, FramingError, ProcessError
from claude_agent_runtime.transport.subprocess_cli import SubprocessCLITransport, TransportConfig

pytestmark = pytest.mark.integration

# =============================================================================
# Helpers
# =============================================================================


def make_agent(tmp_path, body: str) -> SubprocessCLITransport:
    """Transport running ``body`` as the agent via the current interpreter."""
    script = tmp_path / "fake_agent.py"
    script.write_text(textwrap.dedent(body))
    return SubprocessCLITransport(
        sys.executable,
        TransportConfig(args=[str(script), "agent", "--stdio"], close_timeout=5.0),
    )


ENV_REPORTER = """
    import json, os, sys

    record = {
        "type": "system",
        "subtype": "env",
        "data": {
            "argv": sys.argv[1:],
            "entrypoint": os.environ.get("CLAUDE_CODE_ENTRYPOINT"),
            "sdk_version": os.environ.get("CLAUDE_AGENT_SDK_VERSION"),
            "custom": os.environ.get("CUSTOM_VAR"),
            "cwd": os.getcwd(),
        },
    }
    print(json.dumps(record), flush=True)
    sys.stdin.read()
"""

ECHO = """
    import sys

    while True:
        line = sys.stdin.readline()
        if not line:
            break
        sys.stdout.write(line)
        sys.stdout.flush()
"""


# =============================================================================
# Tests: Spawn
# =============================================================================


class TestSpawn:
    """Test process startup."""

    @pytest.mark.anyio
    async def test_arguments_and_environment(self, tmp_path):
        transport = make_agent(tmp_path, ENV_REPORTER)
        transport.config.env = {"CUSTOM_VAR": "custom-value"}
        transport.config.sdk_version = "4.5.6"
        transport.config.cwd = str(tmp_path)

        await transport.connect()
        record = json.loads(await transport.read_line())
        await transport.close()

        data = record["data"]
        assert data["argv"] == ["agent", "--stdio"]
        assert data["entrypoint"] == "agent"
        assert data["sdk_version"] == "4.5.6"
        assert data["custom"] == "custom-value"
        assert data["cwd"] == str(tmp_path.resolve())

    @pytest.mark.anyio
    async def test_connect_is_idempotent(self, tmp_path):
        transport = make_agent(tmp_path, ECHO)

        await transport.connect()
        pid = transport.pid
        await transport.connect()

        assert transport.pid == pid
        assert transport.is_ready
        await transport.close()

    @pytest.mark.anyio
    async def test_missing_executable(self, tmp_path):
        transport = SubprocessCLITransport(str(tmp_path / "no-such-agent"))

        with pytest.raises(CLIConnectionError, match="failed to start subprocess"):
            await transport.connect()
        assert not transport.is_ready


# =============================================================================
# Tests: Read/Write
# =============================================================================


class TestReadWrite:
    """Test record exchange over real pipes."""

    @pytest.mark.anyio
    async def test_write_then_read_back(self, tmp_path):
        transport = make_agent(tmp_path, ECHO)
        await transport.connect()

        await transport.write('{"type": "user", "content": "ping"}')
        await transport.write('{"type": "user", "content": "pong"}')

        assert await transport.read_line() == b'{"type": "user", "content": "ping"}'
        assert await transport.read_line() == b'{"type": "user", "content": "pong"}'
        await transport.close()

    @pytest.mark.anyio
    async def test_end_of_stream(self, tmp_path):
        transport = make_agent(tmp_path, 'print(\'{"type": "result"}\')\n')
        await transport.connect()

        assert await transport.read_line() == b'{"type": "result"}'
        assert await transport.read_line() is None
        await transport.close()

    @pytest.mark.anyio
    async def test_oversized_record(self, tmp_path):
        transport = make_agent(tmp_path, "print('x' * 5000, flush=True)\n")
        transport.config.max_buffer_size = 1000
        await transport.connect()

        with pytest.raises(FramingError):
            await transport.read_line()
        await transport.close()

    @pytest.mark.anyio
    async def test_write_after_close(self, tmp_path):
        transport = make_agent(tmp_path, ECHO)
        await transport.connect()
        await transport.close()

        with pytest.raises(CLIConnectionError, match="not ready"):
            await transport.write("{}")

    @pytest.mark.anyio
    async def test_write_before_connect(self, tmp_path):
        transport = make_agent(tmp_path, ECHO)

        with pytest.raises(CLIConnectionError):
            await transport.write("{}")

    @pytest.mark.anyio
    async def test_stderr_does_not_block(self, tmp_path):
        """A chatty stderr is drained so stdout keeps flowing."""
        transport = make_agent(
            tmp_path,
            """
            import sys
            for i in range(2000):
                sys.stderr.write("diagnostic line %d %s\\n" % (i, "." * 100))
            sys.stderr.flush()
            print('{"type": "result"}', flush=True)
            """,
        )
        await transport.connect()

        assert await transport.read_line() == b'{"type": "result"}'
        await transport.close()


# =============================================================================
# Tests: Close
# =============================================================================


class TestClose:
    """Test process teardown."""

    @pytest.mark.anyio
    async def test_graceful_exit(self, tmp_path):
        transport = make_agent(tmp_path, ECHO)
        await transport.connect()

        await transport.close()

        assert transport.returncode == 0
        assert not transport.is_ready

    @pytest.mark.anyio
    async def test_non_zero_exit(self, tmp_path):
        transport = make_agent(tmp_path, "import sys\nsys.stdin.read()\nsys.exit(3)\n")
        await transport.connect()

        with pytest.raises(ProcessError) as exc_info:
            await transport.close()

        assert exc_info.value.exit_code == 3
        assert "exit code 3" in str(exc_info.value)

    @pytest.mark.anyio
    async def test_killed_after_deadline(self, tmp_path):
        """A child that ignores end-of-input is killed and reaped."""
        transport = make_agent(tmp_path, "import time\ntime.sleep(60)\n")
        await transport.connect()

        with pytest.raises(ProcessError, match="killed") as exc_info:
            await transport.close(timeout=0.5)

        assert exc_info.value.killed
        assert transport.returncode is not None

    @pytest.mark.anyio
    async def test_deadline_covers_unflushed_input(self, tmp_path):
        """Input the child never reads does not hold close() past its deadline."""
        transport = make_agent(tmp_path, "import time\ntime.sleep(60)\n")
        await transport.connect()
        await transport.write('"' + "x" * 100_000 + '"')

        with pytest.raises(ProcessError, match="killed") as exc_info:
            await asyncio.wait_for(transport.close(timeout=0.5), timeout=5.0)

        assert exc_info.value.killed
        assert transport.returncode is not None

    @pytest.mark.anyio
    async def test_close_is_idempotent(self, tmp_path):
        transport = make_agent(tmp_path, ECHO)
        await transport.connect()

        await transport.close()
        await transport.close()

    @pytest.mark.anyio
    async def test_close_without_connect(self, tmp_path):
        transport = make_agent(tmp_path, ECHO)

        await transport.close()

        with pytest.raises(CLIConnectionError, match="closed"):
            await transport.connect()
