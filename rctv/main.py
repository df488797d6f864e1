"""Main application wiring for the RCTV appliance."""

import asyncio
import logging
import signal
from typing import Any, Optional

from .config.settings import RctvSettings
from .controller import ModeController
from .kiosk import KioskCycler, PlaylistClient, ProcessLifecycleManager, create_surface
from .kiosk.surface import KioskSurface
from .session import SessionAutomationEngine
from .signals import SignalListener

logger = logging.getLogger(__name__)


class RctvApp:
    """Builds the appliance components and runs them until asked to stop."""

    def __init__(self, settings: RctvSettings, token: str, trigger_on_start: bool = False) -> None:
        """Initialize the application.

        Args:
            settings: Application settings
            token: TV login token for the playlist service
            trigger_on_start: Fire one trigger right after startup (bench testing)
        """
        self.settings = settings
        self.token = token
        self.trigger_on_start = trigger_on_start
        self.running = False
        self.shutdown_event = asyncio.Event()

        self.playlist: Optional[PlaylistClient] = None
        self.surface: Optional[KioskSurface] = None
        self.cycler: Optional[KioskCycler] = None
        self.lifecycle: Optional[ProcessLifecycleManager] = None
        self.controller: Optional[ModeController] = None
        self.listener: Optional[SignalListener] = None

        self._cycler_task: Optional[asyncio.Task] = None

        logger.info("RCTV initialized (lazy components)")

    def initialize(self) -> None:
        """Create all components. No I/O happens here."""
        settings = self.settings

        self.playlist = PlaylistClient(settings.kiosk, self.token)
        self.surface = create_surface(settings.kiosk)
        self.cycler = KioskCycler(
            self.playlist,
            self.surface,
            fetch_backoff=settings.kiosk.fetch_backoff,
            empty_playlist_wait=settings.kiosk.empty_playlist_wait,
        )
        self.lifecycle = ProcessLifecycleManager(settings.browser, settings.bridge)
        self.controller = ModeController(
            lifecycle=self.lifecycle,
            automation=SessionAutomationEngine.from_settings(
                settings.session, session_alive=self.lifecycle.is_session_healthy
            ),
            cycler=self.cycler,
            surface=self.surface,
        )

        if settings.signals.enabled:
            self.listener = SignalListener(
                device_path=settings.signals.device_path,
                on_trigger=self.controller.on_trigger,
                pattern=settings.signals.trigger_pattern.encode(),
                reopen_delay=settings.signals.reopen_delay,
            )
        else:
            logger.info("Hardware signal listener disabled")

    async def start(self) -> bool:
        """Run the appliance until ``stop`` is called.

        Returns:
            True on clean shutdown, False on fatal error
        """
        try:
            logger.info("Starting RCTV...")
            self.initialize()
            assert self.cycler is not None
            assert self.controller is not None

            self.controller.attach(asyncio.get_running_loop())
            self._cycler_task = asyncio.create_task(self.cycler.run(), name="kiosk-cycler")
            if self.listener is not None:
                self.listener.start()

            self.running = True
            if self.trigger_on_start:
                logger.info("Firing startup trigger")
                self.controller.on_trigger()

            await self.shutdown_event.wait()
            return True

        except Exception:
            logger.exception("Error running RCTV")
            return False
        finally:
            await self.cleanup()

    async def stop(self) -> None:
        """Ask the application to shut down."""
        logger.info("Stopping RCTV...")
        self.running = False
        self.shutdown_event.set()

    async def cleanup(self) -> None:
        """Tear everything down. Errors are logged, never raised."""
        logger.info("Cleaning up resources...")

        if self.listener is not None:
            self.listener.stop()

        if self.controller is not None:
            await self.controller.shutdown()

        if self.cycler is not None:
            self.cycler.close()
        if self._cycler_task is not None:
            try:
                await asyncio.wait_for(self._cycler_task, timeout=5.0)
            except asyncio.TimeoutError:
                self._cycler_task.cancel()
            except Exception:
                logger.exception("Kiosk cycler ended with an error")

        for name, closer in (("surface", self.surface), ("playlist client", self.playlist)):
            if closer is None:
                continue
            try:
                await closer.close()
            except Exception:
                logger.exception(f"Error closing {name}")

        logger.info("Cleanup completed")

    def status(self) -> dict[str, Any]:
        """Get current application status."""
        status: dict[str, Any] = {"running": self.running}
        if self.controller is not None:
            controller_status = self.controller.get_status()
            status.update(
                {
                    "mode": controller_status.mode.value,
                    "transitions": controller_status.transition_count,
                    "session_healthy": controller_status.session_healthy,
                    "last_error": controller_status.last_error,
                }
            )
        if self.cycler is not None:
            entry = self.cycler.current_entry
            status["kiosk_paused"] = self.cycler.is_paused
            status["current_url"] = entry.target if entry else None
        if self.listener is not None:
            status["triggers_received"] = self.listener.trigger_count
        return status


def setup_signal_handlers(app: RctvApp) -> None:
    """Set up signal handlers for graceful shutdown."""

    background_tasks = set()

    def signal_handler(signum: int, frame: Any) -> None:  # noqa: ARG001
        logger.info(f"Received signal {signum}")
        task = asyncio.create_task(app.stop())
        background_tasks.add(task)
        task.add_done_callback(background_tasks.discard)

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)


async def run_app(settings: RctvSettings, token: str, trigger_on_start: bool = False) -> int:
    """Create and run the application.

    Returns:
        Exit code (0 for success, 1 for failure)
    """
    app = RctvApp(settings, token, trigger_on_start=trigger_on_start)
    setup_signal_handlers(app)
    success = await app.start()
    return 0 if success else 1
