"""
Mode controller - switches the appliance between kiosk mode and the remote session.

Triggers arrive on the signal listener thread. ``on_trigger`` decides the
transition synchronously under the mode lock and hands the slow work (process
spawn, join automation, teardown) to the event loop, so a bouncing button or a
trigger during a transition is simply dropped.

Classes:
    ControllerStatus: Snapshot of controller state for monitoring
    ModeController: The state machine and its side effects

Example:
    >>> controller = ModeController(lifecycle, automation, cycler, surface)
    >>> controller.attach(asyncio.get_running_loop())
    >>> controller.on_trigger()  # from any thread
    True
    >>> await controller.wait_idle()
    >>> controller.current_mode()
    <Mode.SESSION_ACTIVE: 'session_active'>
"""

import asyncio
import concurrent.futures
import logging
import threading
from collections.abc import Coroutine
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from ..kiosk.cycler import KioskCycler
from ..kiosk.lifecycle import BridgeHandle, ProcessError, ProcessLifecycleManager
from ..kiosk.surface import KioskSurface
from ..session.automation import AutomationError, SessionAutomationEngine
from .state import Mode, ModeState

logger = logging.getLogger(__name__)


@dataclass
class ControllerStatus:
    """Controller state for status reporting.

    Attributes:
        mode: Current mode
        transition_count: Number of mode changes since start
        last_transition_time: When the mode last changed (None if never)
        session_healthy: Whether the session browser and bridge are alive
        pending_pipelines: Start/stop pipelines still running
        last_error: Last session failure (None if no errors)
        error_time: When the last failure occurred
    """

    mode: Mode
    transition_count: int
    last_transition_time: Optional[datetime]
    session_healthy: bool
    pending_pipelines: int
    last_error: Optional[str]
    error_time: Optional[datetime]


class ModeController:
    """Concurrency-safe state machine owning kiosk/session transitions."""

    def __init__(
        self,
        lifecycle: ProcessLifecycleManager,
        automation: SessionAutomationEngine,
        cycler: KioskCycler,
        surface: KioskSurface,
        state: Optional[ModeState] = None,
    ) -> None:
        self.lifecycle = lifecycle
        self.automation = automation
        self.cycler = cycler
        self.surface = surface
        self.logger = logging.getLogger(f"{__name__}.ModeController")

        self._state = state or ModeState()
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._handle: Optional[BridgeHandle] = None

        self._pending: set[concurrent.futures.Future] = set()
        self._pending_lock = threading.Lock()

        self._last_error: Optional[str] = None
        self._error_time: Optional[datetime] = None

    @property
    def state(self) -> ModeState:
        return self._state

    def attach(self, loop: asyncio.AbstractEventLoop) -> None:
        """Bind the event loop that runs session pipelines."""
        self._loop = loop

    def current_mode(self) -> Mode:
        return self._state.mode

    def on_trigger(self) -> bool:
        """Handle a hardware trigger. Safe to call from any thread.

        Returns:
            True if the trigger started a transition, False if it was ignored
        """
        if self._loop is None:
            self.logger.warning("Trigger received before controller was attached to a loop")
            return False

        if self._state.compare_and_set(Mode.KIOSK, Mode.SESSION_STARTING):
            self.logger.info("Trigger: starting remote session")
            return self._schedule(self._start_session(), revert_from=Mode.SESSION_STARTING)

        if self._state.compare_and_set(Mode.SESSION_ACTIVE, Mode.STOPPING):
            self.logger.info("Trigger: stopping remote session")
            return self._schedule(self._stop_session(), revert_from=Mode.STOPPING)

        self.logger.info(f"Trigger ignored in mode {self._state.mode.name}")
        return False

    async def wait_idle(self) -> None:
        """Wait until no start or stop pipeline is running."""
        while True:
            with self._pending_lock:
                pending = list(self._pending)
            if not pending:
                return
            await asyncio.gather(
                *(asyncio.wrap_future(future) for future in pending), return_exceptions=True
            )

    async def shutdown(self) -> None:
        """Cancel running pipelines and tear down any live session. Never raises."""
        with self._pending_lock:
            pending = list(self._pending)
        for future in pending:
            future.cancel()
        if pending:
            await asyncio.gather(
                *(asyncio.wrap_future(future) for future in pending), return_exceptions=True
            )

        if self._handle is not None or self._state.mode is not Mode.KIOSK:
            self.logger.info("Shutting down live remote session")
            await self._stop_processes()

    def get_status(self) -> ControllerStatus:
        last = self._state.last_transition
        with self._pending_lock:
            pending_count = len(self._pending)
        return ControllerStatus(
            mode=self._state.mode,
            transition_count=self._state.transition_count,
            last_transition_time=last.timestamp if last else None,
            session_healthy=self.lifecycle.is_session_healthy(),
            pending_pipelines=pending_count,
            last_error=self._last_error,
            error_time=self._error_time,
        )

    def _schedule(self, coro: Coroutine[Any, Any, None], revert_from: Mode) -> bool:
        assert self._loop is not None
        try:
            future = asyncio.run_coroutine_threadsafe(coro, self._loop)
        except RuntimeError:
            coro.close()
            self.logger.exception("Event loop unavailable, reverting to kiosk mode")
            self._state.compare_and_set(revert_from, Mode.KIOSK)
            return False

        with self._pending_lock:
            self._pending.add(future)
        future.add_done_callback(self._pipeline_done)
        return True

    def _pipeline_done(self, future: concurrent.futures.Future) -> None:
        with self._pending_lock:
            self._pending.discard(future)
        if future.cancelled():
            self.logger.info("Session pipeline cancelled")
            return
        error = future.exception()
        if error is not None:
            self.logger.error(f"Session pipeline failed unexpectedly: {error}")

    async def _start_session(self) -> None:
        self.cycler.pause()
        await self._hide_surface()

        try:
            self._handle = await self.lifecycle.start_session()
        except ProcessError as e:
            self._record_error(f"Session start failed: {e.message}")
            await self._revert_to_kiosk()
            return
        except Exception as e:
            self.logger.exception("Unexpected error starting session processes")
            self._record_error(f"Session start failed: {e}")
            await self._stop_processes()
            await self._revert_to_kiosk()
            return

        try:
            result = await self.automation.run(self._handle.document)
        except AutomationError as e:
            self._record_error(f"Join failed at step '{e.step}': {e.message}")
            await self._stop_processes()
            await self._revert_to_kiosk()
            return
        except Exception as e:
            self.logger.exception("Unexpected error during join automation")
            self._record_error(f"Join failed: {e}")
            await self._stop_processes()
            await self._revert_to_kiosk()
            return

        if result.skipped_steps:
            self.logger.warning(f"Joined with optional steps skipped: {result.skipped_steps}")
        if result.unconfirmed_steps:
            self.logger.warning(
                f"Join not confirmed by success check ({result.unconfirmed_steps}), keeping session open"
            )
        self._state.compare_and_set(Mode.SESSION_STARTING, Mode.SESSION_ACTIVE)
        self.logger.info("Remote session active")

    async def _stop_session(self) -> None:
        await self._stop_processes()
        await self._return_to_kiosk()
        self._state.compare_and_set(Mode.STOPPING, Mode.KIOSK)
        self.logger.info("Back in kiosk mode")

    async def _revert_to_kiosk(self) -> None:
        await self._return_to_kiosk()
        self._state.compare_and_set(Mode.SESSION_STARTING, Mode.KIOSK)
        self.logger.info("Reverted to kiosk mode")

    async def _return_to_kiosk(self) -> None:
        # Mode changes only after this returns, so a new trigger cannot interleave
        try:
            await self.surface.show()
        except Exception:
            self.logger.exception("Error showing kiosk surface")
        self.cycler.resume()

    async def _hide_surface(self) -> None:
        try:
            await self.surface.hide()
        except Exception:
            self.logger.exception("Error hiding kiosk surface")

    async def _stop_processes(self) -> None:
        self._handle = None
        try:
            await self.lifecycle.stop_session()
        except Exception:
            self.logger.exception("Error stopping session processes")

    def _record_error(self, message: str) -> None:
        self.logger.error(message)
        self._last_error = message
        self._error_time = datetime.now()
