"""Appliance mode and the thread-safe cell holding it."""

import logging
import threading
from collections import deque
from datetime import datetime
from enum import Enum
from typing import NamedTuple, Optional

logger = logging.getLogger(__name__)


class Mode(Enum):
    """Top-level operating states of the appliance.

    Attributes:
        KIOSK: Cycling the playlist
        SESSION_STARTING: Launching the session browser and joining the meeting
        SESSION_ACTIVE: In the meeting
        STOPPING: Tearing the session down
    """

    KIOSK = "kiosk"
    SESSION_STARTING = "session_starting"
    SESSION_ACTIVE = "session_active"
    STOPPING = "stopping"


VALID_TRANSITIONS: frozenset[tuple[Mode, Mode]] = frozenset(
    {
        (Mode.KIOSK, Mode.SESSION_STARTING),
        (Mode.SESSION_STARTING, Mode.SESSION_ACTIVE),
        (Mode.SESSION_STARTING, Mode.KIOSK),
        (Mode.SESSION_ACTIVE, Mode.STOPPING),
        (Mode.STOPPING, Mode.KIOSK),
    }
)


class InvalidTransitionError(Exception):
    """Raised for a mode change outside the transition table."""

    def __init__(self, current: Mode, target: Mode) -> None:
        self.message = f"Invalid mode transition {current.name} -> {target.name}"
        super().__init__(self.message)
        self.current = current
        self.target = target


class Transition(NamedTuple):
    source: Mode
    target: Mode
    timestamp: datetime


class ModeState:
    """Single lock-guarded cell holding the current mode.

    Every read and write goes through the lock, so the cell can be used from
    the signal listener thread and the event loop at the same time.
    """

    def __init__(self, initial: Mode = Mode.KIOSK, history_size: int = 50) -> None:
        self._mode = initial
        self._lock = threading.Lock()
        self._history: deque[Transition] = deque(maxlen=history_size)
        self._transition_count = 0

    @property
    def mode(self) -> Mode:
        with self._lock:
            return self._mode

    @property
    def transition_count(self) -> int:
        with self._lock:
            return self._transition_count

    @property
    def last_transition(self) -> Optional[Transition]:
        with self._lock:
            return self._history[-1] if self._history else None

    def history(self) -> list[Transition]:
        with self._lock:
            return list(self._history)

    def compare_and_set(self, expected: Mode, target: Mode) -> bool:
        """Move to ``target`` only if the current mode is ``expected``.

        Returns:
            True if the transition happened, False if the mode was something else

        Raises:
            InvalidTransitionError: If ``expected -> target`` is not a valid edge
        """
        if (expected, target) not in VALID_TRANSITIONS:
            raise InvalidTransitionError(expected, target)

        with self._lock:
            if self._mode is not expected:
                return False
            self._mode = target
            self._transition_count += 1
            self._history.append(Transition(expected, target, datetime.now()))

        logger.info(f"Mode {expected.name} -> {target.name}")
        return True
