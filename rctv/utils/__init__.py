"""Utility modules for RCTV."""

from .logging import VERBOSE, get_log_level, setup_logging
from .process import ProcessInfo, find_matching_processes, kill_matching_processes

__all__ = [
    "VERBOSE",
    "ProcessInfo",
    "find_matching_processes",
    "get_log_level",
    "kill_matching_processes",
    "setup_logging",
]
