"""Mode controller switching between kiosk mode and the remote session."""

from .controller import ControllerStatus, ModeController
from .state import InvalidTransitionError, Mode, ModeState, Transition

__all__ = [
    "ControllerStatus",
    "InvalidTransitionError",
    "Mode",
    "ModeController",
    "ModeState",
    "Transition",
]
