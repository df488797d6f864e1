"""
RCTV Kiosk Module.

Kiosk mode playlist cycling and the processes behind the remote session.

Components:
    KioskCycler: Shows playlist entries for their dwell time
    PlaylistClient: Fetches the playlist from the RCTV service
    ChromiumKioskSurface: Full screen browser showing kiosk content
    ProcessLifecycleManager: Remote-session browser and chromedriver bridge
"""

from .cycler import KioskCycler
from .lifecycle import (
    BridgeConnectFailedError,
    BridgeHandle,
    LaunchFailedError,
    LifecycleStatus,
    ManagedProcess,
    PortUnavailableError,
    ProcessError,
    ProcessLifecycleManager,
)
from .playlist import PlaylistClient, PlaylistEntry, PlaylistError, PlaylistFetchError
from .surface import ChromiumKioskSurface, KioskSurface, NullSurface, create_surface

__all__ = [
    "BridgeConnectFailedError",
    "BridgeHandle",
    "ChromiumKioskSurface",
    "KioskCycler",
    "KioskSurface",
    "LaunchFailedError",
    "LifecycleStatus",
    "ManagedProcess",
    "NullSurface",
    "PlaylistClient",
    "PlaylistEntry",
    "PlaylistError",
    "PlaylistFetchError",
    "PortUnavailableError",
    "ProcessError",
    "ProcessLifecycleManager",
    "create_surface",
]
