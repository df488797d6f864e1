"""Command-line argument parsing for RCTV.

This module handles all command-line argument parsing functionality,
including setup of argument groups.
"""

import argparse
from pathlib import Path

from .. import __version__

LOG_LEVELS = ["DEBUG", "VERBOSE", "INFO", "WARNING", "ERROR", "CRITICAL"]


def create_parser() -> argparse.ArgumentParser:
    """Create the RCTV argument parser.

    Returns:
        Configured ArgumentParser
    """
    parser = argparse.ArgumentParser(
        prog="rctv",
        description="RCTV appliance: kiosk playlist display with hardware-triggered meeting sessions",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  rctv --token abc123               # Run with an explicit TV login token
  rctv                              # Read the token from ~/.rctvtoken
  rctv --no-signals --trigger       # Bench test: join the meeting right away
  rctv --config ./rctv.yaml -v      # Custom config file with verbose logging
        """,
    )

    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}", help="Show version information"
    )

    # Authentication and configuration
    parser.add_argument("--token", help="TV login token for the playlist service")
    parser.add_argument(
        "--token-file", type=Path, help="File holding the token (default: ~/.rctvtoken)"
    )
    parser.add_argument("--config", type=Path, help="Path to YAML configuration file")

    session_group = parser.add_argument_group("session", "Remote session options")
    session_group.add_argument("--meeting-url", help="Web client URL opened for the meeting")
    session_group.add_argument(
        "--no-signals", action="store_true", help="Do not listen for hardware triggers"
    )
    session_group.add_argument(
        "--trigger",
        action="store_true",
        help="Fire one trigger right after startup (for bench testing)",
    )

    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Enable verbose logging and detailed output"
    )

    # Logging arguments
    logging_group = parser.add_argument_group("logging", "Logging configuration options")
    logging_group.add_argument(
        "--log-level", choices=LOG_LEVELS, help="Set both console and file log levels"
    )
    logging_group.add_argument(
        "--quiet",
        "-q",
        action="store_true",
        help="Only show errors on console (sets console level to ERROR)",
    )
    logging_group.add_argument(
        "--log-dir", type=Path, help="Write log files to this directory (enables file logging)"
    )
    logging_group.add_argument(
        "--no-log-colors", action="store_true", help="Disable colored console output"
    )

    return parser


__all__ = ["create_parser"]
