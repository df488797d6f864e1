"""Kiosk display surface showing playlist entries full screen."""

import asyncio
import logging
import os
import subprocess
from pathlib import Path
from typing import Optional, Protocol

from ..config.settings import KioskSettings

logger = logging.getLogger(__name__)


class KioskSurface(Protocol):
    """Interface for the window that shows kiosk content."""

    async def display(self, url: str) -> None:
        """Show ``url`` full screen."""
        ...

    async def hide(self) -> None:
        """Take the surface off screen so the remote session can use the display."""
        ...

    async def show(self) -> None:
        """Bring the surface back, showing the last displayed URL."""
        ...

    async def close(self) -> None:
        """Release the surface for good."""
        ...


class NullSurface:
    """Surface that only logs, for headless deployments and tests."""

    def __init__(self) -> None:
        self.current_url: Optional[str] = None
        self.hidden = False
        self.logger = logging.getLogger(f"{__name__}.NullSurface")

    async def display(self, url: str) -> None:
        self.current_url = url
        self.logger.info(f"Displaying {url}")

    async def hide(self) -> None:
        self.hidden = True
        self.logger.info("Surface hidden")

    async def show(self) -> None:
        self.hidden = False
        self.logger.info(f"Surface shown ({self.current_url})")

    async def close(self) -> None:
        self.hidden = True
        self.logger.info("Surface closed")


class ChromiumKioskSurface:
    """Runs a separate full screen Chromium process for kiosk content.

    Each ``display`` relaunches the browser on the new URL. While hidden the
    process is not running at all, so the remote-session browser owns the
    screen.
    """

    def __init__(
        self,
        executable_path: str,
        profile_dir: Path,
        shutdown_timeout: float = 5.0,
    ) -> None:
        self.executable_path = executable_path
        self.profile_dir = profile_dir
        self.shutdown_timeout = shutdown_timeout
        self.logger = logging.getLogger(f"{__name__}.ChromiumKioskSurface")

        self._process: Optional[subprocess.Popen] = None
        self._current_url: Optional[str] = None
        self._hidden = False
        self._lock = asyncio.Lock()

    @classmethod
    def from_settings(cls, settings: KioskSettings) -> "ChromiumKioskSurface":
        return cls(settings.surface_executable, settings.surface_profile_dir)

    @property
    def current_url(self) -> Optional[str]:
        return self._current_url

    @property
    def is_running(self) -> bool:
        return self._process is not None and self._process.poll() is None

    async def display(self, url: str) -> None:
        async with self._lock:
            self._current_url = url
            if self._hidden:
                self.logger.debug(f"Surface hidden, deferring display of {url}")
                return
            await self._terminate()
            await self._launch(url)

    async def hide(self) -> None:
        async with self._lock:
            self._hidden = True
            await self._terminate()
            self.logger.info("Kiosk surface hidden")

    async def show(self) -> None:
        async with self._lock:
            self._hidden = False
            if self._current_url and not self.is_running:
                await self._launch(self._current_url)
            self.logger.info("Kiosk surface shown")

    async def close(self) -> None:
        async with self._lock:
            self._hidden = True
            await self._terminate()

    def _build_args(self, url: str) -> list[str]:
        return [
            self.executable_path,
            "--kiosk",
            "--start-fullscreen",
            f"--user-data-dir={self.profile_dir}",
            "--autoplay-policy=no-user-gesture-required",
            "--no-first-run",
            "--no-default-browser-check",
            "--noerrdialogs",
            "--disable-infobars",
            "--disable-session-crashed-bubble",
            "--disable-translate",
            url,
        ]

    async def _launch(self, url: str) -> None:
        env = os.environ.copy()
        env.setdefault("DISPLAY", ":0")
        try:
            self.profile_dir.mkdir(parents=True, exist_ok=True)
            self._process = await asyncio.to_thread(
                subprocess.Popen,
                self._build_args(url),
                env=env,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                start_new_session=True,
            )
            self.logger.info(f"Kiosk surface showing {url} (PID: {self._process.pid})")
        except OSError:
            self.logger.exception(f"Failed to launch kiosk surface for {url}")
            self._process = None

    async def _terminate(self) -> None:
        process, self._process = self._process, None
        if process is None or process.poll() is not None:
            return

        try:
            process.terminate()
            await asyncio.to_thread(process.wait, self.shutdown_timeout)
        except subprocess.TimeoutExpired:
            self.logger.warning("Kiosk surface did not exit gracefully, killing")
            process.kill()
            await asyncio.to_thread(process.wait)
        except Exception:
            self.logger.exception("Error stopping kiosk surface")


def create_surface(settings: KioskSettings) -> KioskSurface:
    """Create the surface selected by ``settings.surface``."""
    if settings.surface == "none":
        return NullSurface()
    return ChromiumKioskSurface.from_settings(settings)
