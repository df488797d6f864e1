"""
Process lifecycle manager for the remote-session browser and its chromedriver bridge.

Starting a session kills leftover browser and bridge processes by name,
launches Chromium with remote debugging enabled, waits for the debug endpoint,
launches chromedriver and attaches a Selenium session to the running browser.
Stopping a session tears all of that down again, also by name, because the
browser spawns helper processes this manager never sees.

Classes:
    ManagedProcess: A spawned browser or bridge process
    BridgeHandle: Open driver session plus the processes backing it
    LifecycleStatus: Snapshot of process health for monitoring
    ProcessLifecycleManager: Start/stop orchestration
    ProcessError: Base exception for start failures

Example:
    >>> manager = ProcessLifecycleManager(settings.browser, settings.bridge)
    >>> handle = await manager.start_session()
    >>> await engine.run(handle.document)
    >>> await manager.stop_session()
"""

import asyncio
import logging
import os
import subprocess
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from pathlib import Path
from typing import Optional

import httpx
from selenium import webdriver
from selenium.common.exceptions import WebDriverException
from selenium.webdriver.chrome.options import Options
from selenium.webdriver.remote.webdriver import WebDriver

from ..config.settings import BridgeSettings, BrowserSettings
from ..session.document import SeleniumDocument
from ..utils.process import kill_matching_processes

logger = logging.getLogger(__name__)

REAP_TIMEOUT = 1.0


class ProcessError(Exception):
    """Exception raised when a session's processes cannot be started.

    Attributes:
        message: Error description
        error_code: Short code for categorization
    """

    def __init__(self, message: str, error_code: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.error_code = error_code


class LaunchFailedError(ProcessError):
    """A browser or bridge binary could not be spawned."""

    def __init__(self, message: str) -> None:
        super().__init__(message, "LAUNCH_FAILED")


class PortUnavailableError(ProcessError):
    """The browser debug endpoint never became ready."""

    def __init__(self, message: str) -> None:
        super().__init__(message, "PORT_UNAVAILABLE")


class BridgeConnectFailedError(ProcessError):
    """A driver session could not be opened through the bridge."""

    def __init__(self, message: str) -> None:
        super().__init__(message, "BRIDGE_CONNECT_FAILED")


@dataclass
class ManagedProcess:
    """A browser or bridge process spawned by the lifecycle manager."""

    kind: str
    process: subprocess.Popen
    start_time: datetime = field(default_factory=datetime.now)

    @property
    def pid(self) -> int:
        return self.process.pid

    @property
    def uptime(self) -> timedelta:
        return datetime.now() - self.start_time

    def is_alive(self) -> bool:
        return self.process.poll() is None


@dataclass
class BridgeHandle:
    """Open driver session and the processes behind it."""

    driver: WebDriver
    document: SeleniumDocument
    browser: ManagedProcess
    bridge: ManagedProcess


@dataclass
class LifecycleStatus:
    """Process health information for status reporting.

    Attributes:
        browser_pid: Browser PID (None if not running)
        bridge_pid: Bridge PID (None if not running)
        browser_alive: Whether the browser process is alive
        bridge_alive: Whether the bridge process is alive
        uptime: Time since the browser was started (None if not running)
        session_open: Whether a driver session is attached
        start_count: Number of successful session starts
        last_error: Last start failure (None if no errors)
        error_time: When the last failure occurred
    """

    browser_pid: Optional[int]
    bridge_pid: Optional[int]
    browser_alive: bool
    bridge_alive: bool
    uptime: Optional[timedelta]
    session_open: bool
    start_count: int
    last_error: Optional[str]
    error_time: Optional[datetime]


class ProcessLifecycleManager:
    """Starts and stops the remote-session browser and chromedriver bridge."""

    def __init__(self, browser: BrowserSettings, bridge: BridgeSettings) -> None:
        self.browser_config = browser
        self.bridge_config = bridge
        self.logger = logging.getLogger(f"{__name__}.ProcessLifecycleManager")

        self._browser: Optional[ManagedProcess] = None
        self._bridge: Optional[ManagedProcess] = None
        self._document: Optional[SeleniumDocument] = None

        self._start_count = 0
        self._last_error: Optional[str] = None
        self._error_time: Optional[datetime] = None

    @property
    def process_patterns(self) -> list[str]:
        """Command line patterns identifying browser and bridge processes."""
        return [*self.browser_config.process_patterns, *self.bridge_config.process_patterns]

    async def start_session(
        self,
        profile_dir: Optional[Path] = None,
        debug_port: Optional[int] = None,
        bridge_port: Optional[int] = None,
    ) -> BridgeHandle:
        """Launch the browser and bridge and open a driver session.

        Args:
            profile_dir: Browser profile directory (defaults to configuration)
            debug_port: Remote debugging port (defaults to configuration)
            bridge_port: Chromedriver port (defaults to configuration)

        Returns:
            BridgeHandle for the connected session

        Raises:
            LaunchFailedError: If a binary cannot be spawned
            PortUnavailableError: If the debug endpoint never responds
            BridgeConnectFailedError: If the driver session cannot be opened
        """
        profile_dir = profile_dir or self.browser_config.profile_dir
        debug_port = debug_port or self.browser_config.debug_port
        bridge_port = bridge_port or self.bridge_config.port

        self.logger.info(
            f"Starting remote session browser (debug port {debug_port}, bridge port {bridge_port})"
        )

        try:
            await self._close_driver()
            await self._kill_by_name(self.browser_config.cleanup_grace)
            self._browser = None
            self._bridge = None

            try:
                Path(profile_dir).mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise LaunchFailedError(f"Cannot create profile directory {profile_dir}: {e}") from e

            self._browser = await self._launch_process(
                "browser", self._build_browser_args(Path(profile_dir), debug_port)
            )
            await self._wait_for_debug_endpoint(debug_port)

            self._bridge = await self._launch_process("bridge", self._build_bridge_args(bridge_port))
            if self.bridge_config.settle_time > 0:
                await asyncio.sleep(self.bridge_config.settle_time)

            driver = await self._connect_bridge(bridge_port, debug_port)
            self._document = SeleniumDocument(driver)

        except ProcessError as e:
            await self._handle_start_failure(e)
            raise

        self._start_count += 1
        self.logger.info(
            f"Remote session ready (browser PID: {self._browser.pid}, bridge PID: {self._bridge.pid})"
        )
        return BridgeHandle(
            driver=self._document.driver,
            document=self._document,
            browser=self._browser,
            bridge=self._bridge,
        )

    async def stop_session(self) -> None:
        """Quit the driver session and kill browser and bridge processes.

        Teardown is best-effort and never raises.
        """
        self.logger.info("Stopping remote session browser")
        try:
            await self._close_driver()
            await self._kill_by_name(self.browser_config.stop_grace)
            await self._reap()
        except Exception:
            self.logger.exception("Error stopping remote session browser")
        finally:
            self._browser = None
            self._bridge = None
            self._document = None

    def is_session_healthy(self) -> bool:
        """Check that both the browser and bridge processes are alive."""
        try:
            return (
                self._browser is not None
                and self._bridge is not None
                and self._browser.is_alive()
                and self._bridge.is_alive()
            )
        except Exception:
            self.logger.exception("Error checking session health")
            return False

    def get_status(self) -> LifecycleStatus:
        """Get a snapshot of process health."""
        browser_alive = self._browser is not None and self._browser.is_alive()
        bridge_alive = self._bridge is not None and self._bridge.is_alive()
        return LifecycleStatus(
            browser_pid=self._browser.pid if self._browser else None,
            bridge_pid=self._bridge.pid if self._bridge else None,
            browser_alive=browser_alive,
            bridge_alive=bridge_alive,
            uptime=self._browser.uptime if self._browser else None,
            session_open=self._document is not None,
            start_count=self._start_count,
            last_error=self._last_error,
            error_time=self._error_time,
        )

    def _build_browser_args(self, profile_dir: Path, debug_port: int) -> list[str]:
        """Build Chromium command line arguments for a debuggable session browser."""
        args = [
            self.browser_config.executable_path,
            f"--remote-debugging-port={debug_port}",
            f"--user-data-dir={profile_dir}",
            # Meeting audio/video without user interaction
            "--autoplay-policy=no-user-gesture-required",
            "--use-fake-ui-for-media-stream",
            # Logging suppression
            "--disable-logging",
            "--log-level=3",
            *self.browser_config.extra_flags,
        ]
        return [arg for arg in args if arg]

    def _build_bridge_args(self, bridge_port: int) -> list[str]:
        return [
            self.bridge_config.executable_path,
            f"--port={bridge_port}",
            "--allowed-ips=",
            "--silent",
        ]

    async def _launch_process(self, kind: str, cmd_args: list[str]) -> ManagedProcess:
        """Spawn a process with output discarded.

        Raises:
            LaunchFailedError: If the executable cannot be started
        """
        env = os.environ.copy()
        env.setdefault("DISPLAY", ":0")

        self.logger.debug(f"Launching {kind}: {' '.join(cmd_args)}")
        try:
            process = await asyncio.to_thread(
                subprocess.Popen,
                cmd_args,
                env=env,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                start_new_session=True,  # Own process group, survives our signal handling
            )
        except OSError as e:
            raise LaunchFailedError(f"Failed to launch {kind} '{cmd_args[0]}': {e}") from e

        self.logger.info(f"Launched {kind} (PID: {process.pid})")
        return ManagedProcess(kind=kind, process=process)

    async def _wait_for_debug_endpoint(self, debug_port: int) -> None:
        """Poll the browser's debug endpoint until it answers.

        Any HTTP response counts as ready.

        Raises:
            PortUnavailableError: If no response arrives within the configured attempts
        """
        url = f"http://localhost:{debug_port}/json"
        attempts = self.browser_config.endpoint_attempts
        interval = self.browser_config.endpoint_interval

        async with httpx.AsyncClient(timeout=httpx.Timeout(max(interval, 1.0))) as client:
            for attempt in range(1, attempts + 1):
                try:
                    response = await client.get(url)
                    self.logger.info(
                        f"Debug endpoint ready on attempt {attempt} (HTTP {response.status_code})"
                    )
                    return
                except httpx.HTTPError as e:
                    self.logger.debug(f"Debug endpoint not ready ({attempt}/{attempts}): {e}")

                if attempt < attempts:
                    await asyncio.sleep(interval)

        raise PortUnavailableError(
            f"Debug endpoint {url} did not respond after {attempts} attempts"
        )

    async def _connect_bridge(self, bridge_port: int, debug_port: int) -> WebDriver:
        """Open a Selenium session attached to the already running browser.

        Raises:
            BridgeConnectFailedError: If the bridge refuses or cannot reach the browser
        """
        try:
            return await asyncio.to_thread(self._create_driver, bridge_port, debug_port)
        except (WebDriverException, OSError) as e:
            raise BridgeConnectFailedError(
                f"Could not open driver session via bridge on port {bridge_port}: {e}"
            ) from e

    def _create_driver(self, bridge_port: int, debug_port: int) -> WebDriver:
        options = Options()
        options.add_experimental_option("debuggerAddress", f"localhost:{debug_port}")
        return webdriver.Remote(command_executor=f"http://localhost:{bridge_port}", options=options)

    async def _close_driver(self) -> None:
        if self._document is None:
            return
        document, self._document = self._document, None
        try:
            await document.quit()
        except Exception as e:
            self.logger.debug(f"Ignoring error while quitting driver session: {e}")

    async def _kill_by_name(self, grace: float) -> None:
        killed, errors = await asyncio.to_thread(
            kill_matching_processes, self.process_patterns, grace
        )
        if killed:
            self.logger.info(f"Killed {killed} browser/bridge processes")
        for error in errors:
            self.logger.warning(f"Process cleanup: {error}")

    async def _reap(self) -> None:
        """Wait for the processes we spawned so they do not linger as zombies."""
        for managed in (self._browser, self._bridge):
            if managed is None:
                continue
            try:
                await asyncio.to_thread(managed.process.wait, REAP_TIMEOUT)
            except subprocess.TimeoutExpired:
                self.logger.warning(f"{managed.kind} (PID: {managed.pid}) still running after kill")

    async def _handle_start_failure(self, error: ProcessError) -> None:
        self.logger.error(f"Session start failed: {error.message}")
        self._last_error = error.message
        self._error_time = datetime.now()

        await self._close_driver()
        try:
            await self._kill_by_name(self.browser_config.stop_grace)
            await self._reap()
        except Exception:
            self.logger.exception("Error cleaning up after failed session start")
        self._browser = None
        self._bridge = None
