"""RCTV - kiosk playlist display with a hardware-triggered remote meeting mode."""

__version__ = "1.0.0"
__author__ = "RCTV Team"
__description__ = "Kiosk display appliance with hardware-triggered video meeting sessions"

# Package metadata
__all__ = [
    "__author__",
    "__description__",
    "__version__",
]
