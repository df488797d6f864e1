"""Configuration package for RCTV."""

from .settings import (
    BrowserSettings,
    BridgeSettings,
    KioskSettings,
    LoggingSettings,
    RctvSettings,
    SessionSettings,
    SignalSettings,
)

__all__ = [
    "BridgeSettings",
    "BrowserSettings",
    "KioskSettings",
    "LoggingSettings",
    "RctvSettings",
    "SessionSettings",
    "SignalSettings",
]
