"""Locate the agent executable."""

from __future__ import annotations

import logging
import os
import shutil

from ..errors import CLINotFoundError

logger = logging.getLogger(__name__)

CLI_NAME = "claude"

# Checked in order after PATH
FALLBACK_LOCATIONS = [
    "~/.npm-global/bin/claude",
    "/usr/local/bin/claude",
    "~/.local/bin/claude",
    "~/node_modules/.bin/claude",
    "~/.yarn/bin/claude",
]

INSTALL_HINT = (
    "Claude Code not found. Install with:\n"
    "  npm install -g @anthropic-ai/claude-code\n"
    "\n"
    "If already installed locally, try:\n"
    '  export PATH="$HOME/node_modules/.bin:$PATH"\n'
    "\n"
    "Or provide the path explicitly:\n"
    '  AgentOptions(cli_path="/path/to/claude")'
)


def find_cli(locations: list[str] | None = None) -> str:
    """Return the path of the agent executable.

    Searches PATH first, then the usual npm/yarn install locations.

    Raises:
        CLINotFoundError: If no executable is found
    """
    path = shutil.which(CLI_NAME)
    if path:
        return path

    for location in locations if locations is not None else FALLBACK_LOCATIONS:
        candidate = os.path.expanduser(location)
        if os.path.isfile(candidate):
            logger.debug(f"Found agent CLI at fallback location {candidate}")
            return candidate

    raise CLINotFoundError(INSTALL_HINT)
