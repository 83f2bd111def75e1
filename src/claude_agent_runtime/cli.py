"""Claude Agent Runtime CLI.

Usage:
    claude-agent-runtime ask "What is 2 + 2?"            # Print the answer
    claude-agent-runtime ask --json "List the files"      # One JSON record per line
    claude-agent-runtime ask --model <m> --cwd <dir> ...  # Session options
    claude-agent-runtime which                            # Show the agent executable
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys

import click

from .errors import AgentRuntimeError
from .options import AgentOptions, PermissionMode
from .protocol.messages import AssistantMessage, ResultMessage, SystemMessage
from .query import query
from .transport.discovery import find_cli


def _configure_logging(verbose: bool) -> None:
    # Records go to stdout, diagnostics to stderr
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s: %(message)s",
        stream=sys.stderr,
    )


def format_cost(cost: float | None) -> str:
    """Format a USD cost for display."""
    if cost is None:
        return "n/a"
    return f"${cost:.4f}"


@click.group()
def main() -> None:
    """Claude Agent Runtime - drive the agent CLI over stdio."""


@main.command()
@click.argument("prompt")
@click.option("--cli-path", help="Path to the agent executable (default: discovered)")
@click.option("--cwd", type=click.Path(exists=True, file_okay=False), help="Working directory")
@click.option("--model", help="Model to use")
@click.option(
    "--permission-mode",
    type=click.Choice([mode.value for mode in PermissionMode]),
    help="Permission mode for the session",
)
@click.option("--json", "as_json", is_flag=True, help="Print every record as JSON")
@click.option("--verbose", "-v", is_flag=True, help="Log wire traffic to stderr")
def ask(
    prompt: str,
    cli_path: str | None,
    cwd: str | None,
    model: str | None,
    permission_mode: str | None,
    as_json: bool,
    verbose: bool,
) -> None:
    """Send PROMPT as a single turn and print the response."""
    _configure_logging(verbose)

    options = AgentOptions(
        cli_path=cli_path,
        cwd=cwd,
        model=model,
        permission_mode=permission_mode,
    )

    try:
        result = asyncio.run(_ask(prompt, options, as_json))
    except AgentRuntimeError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    except KeyboardInterrupt:
        click.echo("\nInterrupted", err=True)
        sys.exit(130)

    if result is not None and result.is_error:
        sys.exit(1)


async def _ask(prompt: str, options: AgentOptions, as_json: bool) -> ResultMessage | None:
    result = None
    async for message in query(prompt, options):
        if as_json:
            click.echo(json.dumps(message.to_wire(), ensure_ascii=False))
        elif isinstance(message, AssistantMessage):
            text = message.text
            if text:
                click.echo(text)
        elif isinstance(message, SystemMessage):
            click.echo(f"[system:{message.subtype}]", err=True)

        if isinstance(message, ResultMessage):
            result = message

    if result is not None and not as_json:
        click.echo(
            f"\n[{result.subtype or 'result'}] turns={result.num_turns} "
            f"duration={result.duration_ms}ms cost={format_cost(result.total_cost_usd)}",
            err=True,
        )
    return result


@main.command()
def which() -> None:
    """Print the path of the agent executable."""
    try:
        click.echo(find_cli())
    except AgentRuntimeError as e:
        click.echo(str(e), err=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
