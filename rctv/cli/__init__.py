"""CLI module for RCTV.

Parses arguments, resolves the TV login token, applies command-line
overrides to the settings and runs the appliance.
"""

import logging
from pathlib import Path
from typing import Any, Optional

from ..config.settings import RctvSettings
from ..utils.logging import apply_command_line_overrides, setup_logging
from .parser import create_parser

logger = logging.getLogger(__name__)


class TokenError(Exception):
    """No usable token from the command line, settings or token file."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


def resolve_token(
    cli_token: Optional[str], settings: RctvSettings, token_file: Optional[Path] = None
) -> str:
    """Find the TV login token.

    Priority: command line > settings (environment or YAML) > token file.

    Args:
        cli_token: Value of ``--token``
        settings: Application settings
        token_file: Value of ``--token-file`` (defaults to ``settings.token_file``)

    Returns:
        The token, stripped of surrounding whitespace

    Raises:
        TokenError: If no non-empty token can be found
    """
    for candidate in (cli_token, settings.token):
        if candidate and candidate.strip():
            return candidate.strip()

    path = Path(token_file).expanduser() if token_file else settings.token_file
    try:
        token = path.read_text(encoding="utf-8").strip()
    except FileNotFoundError as e:
        raise TokenError(f"--token argument is required or {path} must exist") from e
    except OSError as e:
        raise TokenError(f"Cannot read token file {path}: {e}") from e

    if not token:
        raise TokenError(f"Token file {path} is empty")
    return token


def build_settings(args: Any) -> RctvSettings:
    """Create settings and apply command-line overrides."""
    kwargs: dict[str, Any] = {}
    if getattr(args, "config", None):
        kwargs["config_path"] = args.config
    settings = RctvSettings(**kwargs)

    if getattr(args, "meeting_url", None):
        settings.session.meeting_url = args.meeting_url
    if getattr(args, "no_signals", False):
        settings.signals.enabled = False

    return apply_command_line_overrides(settings, args)


async def main_entry(argv: Optional[list[str]] = None) -> int:
    """Main entry point with argument parsing.

    Returns:
        Exit code (0 for success, 1 for failure)
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    # Import here to keep --help and argument errors fast
    from ..main import run_app  # noqa: PLC0415

    settings = build_settings(args)
    setup_logging(settings)

    try:
        token = resolve_token(args.token, settings, args.token_file)
    except TokenError as e:
        logger.error(f"Error: {e.message}")
        return 1

    return await run_app(settings, token, trigger_on_start=args.trigger)


__all__ = [
    "TokenError",
    "build_settings",
    "create_parser",
    "main_entry",
    "resolve_token",
]
