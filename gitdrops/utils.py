"""Shared utility functions."""

import json
import logging
import re
import subprocess
import sys
from typing import NoReturn

from rich.console import Console
from rich.logging import RichHandler

from .errors import ProviderError, TransientProviderError

logger = logging.getLogger("gitdrops")

# doctl reports the HTTP status of the failing API call in its error output,
# e.g. "Error: GET https://api.digitalocean.com/v2/droplets: 429 Too many requests"
TRANSIENT_PATTERN = re.compile(r"\b(429|5\d\d)\b|rate limit|timed out", re.IGNORECASE)


def setup_logging(level: int | str = logging.INFO) -> None:
    """Set up logging with Rich handler to stderr."""
    if isinstance(level, str):
        level = getattr(logging, level.upper())
    rich_handler = RichHandler(
        console=Console(stderr=True),
        log_time_format="[%X]",
        show_path=False,
        markup=True,
    )
    rich_handler.setLevel(level)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    for handler in root_logger.handlers[:]:
        handler.close()
        root_logger.removeHandler(handler)
    root_logger.addHandler(rich_handler)

    tenacity_logger = logging.getLogger("tenacity")
    for h in tenacity_logger.handlers[:]:
        tenacity_logger.removeHandler(h)
    tenacity_logger.setLevel(logging.WARNING)
    tenacity_logger.propagate = True


def log(msg: str) -> None:
    """Log info message."""
    logger.info(msg)


def warn(msg: str) -> None:
    """Log warning message."""
    logger.warning(msg)


def error(msg: str) -> NoReturn:
    """Log error message and exit."""
    logger.error(msg)
    sys.exit(1)


def run_cmd(*args: str) -> str:
    """Execute local command and return stdout.

    :raises TransientProviderError: If the failure looks like a rate limit or server error
    :raises ProviderError: If the command fails for any other reason
    """
    shown = _redact(args)
    logger.debug("Running: %s", " ".join(shown))
    try:
        # own session: Ctrl-C cancels between calls, never mid-call
        result = subprocess.run(
            args, capture_output=True, text=True, start_new_session=True
        )
    except FileNotFoundError as e:
        raise ProviderError(f"Command not found: '{args[0]}'", command=shown) from e
    if result.returncode != 0:
        stderr = result.stderr.strip()
        exc_type = (
            TransientProviderError if TRANSIENT_PATTERN.search(stderr) else ProviderError
        )
        raise exc_type(f"Command failed: {stderr}", command=shown, stderr=stderr)
    return result.stdout.strip()


def run_cmd_json(*args: str) -> dict | list:
    """Execute command with -o json flag and parse output."""
    output = run_cmd(*args, "-o", "json")
    if not output:
        return []
    try:
        return json.loads(output)
    except json.JSONDecodeError as e:
        raise ProviderError(
            f"Could not parse JSON output of '{args[0]}': {e}", command=_redact(args)
        ) from e


def _redact(args: tuple[str, ...]) -> tuple[str, ...]:
    """Hide the value following --access-token in logged commands."""
    redacted = list(args)
    for i, arg in enumerate(redacted[:-1]):
        if arg == "--access-token":
            redacted[i + 1] = "***"
    return tuple(redacted)
