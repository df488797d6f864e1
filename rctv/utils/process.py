"""Process management utilities for RCTV."""

import logging
import os
import signal
import time
from collections.abc import Iterable

import psutil

logger = logging.getLogger(__name__)


class ProcessInfo:
    """Information about a running process."""

    def __init__(self, pid: int, command: str, full_command: str):
        self.pid = pid
        self.command = command
        self.full_command = full_command

    def __str__(self) -> str:
        return f"PID {self.pid}: {self.command}"


def _matches(name: str, full_command: str, patterns: Iterable[str]) -> bool:
    """Check a process name or command line against ``pkill -f`` style patterns."""
    return any(pattern in name or pattern in full_command for pattern in patterns)


def find_matching_processes(patterns: Iterable[str], exclude_self: bool = True) -> list[ProcessInfo]:
    """Find running processes whose name or command line contains any pattern.

    Args:
        patterns: Substrings matched against the process name and full command line
        exclude_self: Whether to leave the current process out of the result

    Returns:
        List of ProcessInfo objects for matching processes
    """
    patterns = [p for p in patterns if p]
    if not patterns:
        return []

    current_pid = os.getpid()
    processes = []

    try:
        for proc in psutil.process_iter(["pid", "name", "cmdline"]):
            try:
                info = proc.info
                pid = info.get("pid")
                if exclude_self and pid == current_pid:
                    continue

                name = info.get("name") or ""
                raw_cmd = info.get("cmdline") or []
                full_command = " ".join(raw_cmd) if isinstance(raw_cmd, (list, tuple)) else str(raw_cmd)

                if _matches(name, full_command, patterns):
                    command = raw_cmd[0] if raw_cmd else name
                    processes.append(ProcessInfo(pid, command, full_command))
            except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
                continue
    except Exception:
        logger.exception(f"Error scanning process table for {patterns}")

    return processes


def kill_matching_processes(
    patterns: Iterable[str], timeout: float = 2.0, exclude_self: bool = True
) -> tuple[int, list[str]]:
    """Terminate every process matching the patterns.

    Sends SIGTERM first, waits up to ``timeout`` seconds, then sends SIGKILL to
    anything still running.

    Args:
        patterns: Substrings matched against the process name and full command line
        timeout: Grace period between SIGTERM and SIGKILL
        exclude_self: Whether to leave the current process alone

    Returns:
        Tuple of (killed_count, error_messages)
    """
    patterns = list(patterns)
    processes = find_matching_processes(patterns, exclude_self=exclude_self)
    killed_count = 0
    errors: list[str] = []

    if not processes:
        logger.debug(f"No processes matching {patterns} found to kill")
        return 0, []

    logger.info(f"Found {len(processes)} processes matching {patterns} to terminate")

    # First pass: SIGTERM
    for process in processes:
        try:
            logger.debug(f"Sending SIGTERM to process {process.pid}: {process.command}")
            os.kill(process.pid, signal.SIGTERM)
        except ProcessLookupError:
            logger.debug(f"Process {process.pid} already terminated")
        except PermissionError:
            error_msg = f"Permission denied killing process {process.pid}"
            logger.warning(error_msg)
            errors.append(error_msg)
        except Exception as e:
            error_msg = f"Error killing process {process.pid}: {e}"
            logger.exception(error_msg)
            errors.append(error_msg)

    if timeout > 0:
        logger.debug(f"Waiting {timeout}s for processes to terminate gracefully")
        time.sleep(timeout)

    # Second pass: SIGKILL for anything that ignored SIGTERM
    signalled = {p.pid for p in processes}
    remaining = [
        p for p in find_matching_processes(patterns, exclude_self=exclude_self) if p.pid in signalled
    ]
    remaining_pids = {p.pid for p in remaining}
    killed_count += len(signalled - remaining_pids)

    for process in remaining:
        try:
            logger.warning(f"Process {process.pid} still running, sending SIGKILL")
            os.kill(process.pid, signal.SIGKILL)
            killed_count += 1
        except ProcessLookupError:
            killed_count += 1
        except Exception as e:
            error_msg = f"Error force-killing process {process.pid}: {e}"
            logger.exception(error_msg)
            errors.append(error_msg)

    logger.info(f"Terminated {killed_count} processes matching {patterns}")
    return killed_count, errors
