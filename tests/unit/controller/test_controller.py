"""Unit tests for ModeController transitions and their side effects."""

import asyncio
import threading
from unittest.mock import AsyncMock, Mock, patch

import httpx
import pytest
import pytest_asyncio

from rctv.controller.controller import ModeController
from rctv.controller.state import Mode, ModeState
from rctv.kiosk.cycler import KioskCycler
from rctv.kiosk.lifecycle import LaunchFailedError, PortUnavailableError, ProcessLifecycleManager
from rctv.kiosk.playlist import PlaylistEntry
from rctv.kiosk.surface import NullSurface
from rctv.session.automation import AutomationError, SessionAutomationEngine, SessionResult


@pytest.fixture
def handle() -> Mock:
    return Mock(name="handle")


@pytest.fixture
def lifecycle(handle) -> Mock:
    mock = Mock(spec=ProcessLifecycleManager)
    mock.start_session = AsyncMock(return_value=handle)
    mock.stop_session = AsyncMock()
    mock.is_session_healthy.return_value = True
    return mock


@pytest.fixture
def automation() -> Mock:
    mock = Mock()
    mock.run = AsyncMock(return_value=SessionResult(completed_steps=["join"]))
    return mock


@pytest.fixture
def cycler() -> Mock:
    return Mock(spec=KioskCycler)


@pytest.fixture
def surface() -> Mock:
    mock = Mock(spec=NullSurface)
    mock.hide = AsyncMock()
    mock.show = AsyncMock()
    return mock


@pytest_asyncio.fixture
async def controller(lifecycle, automation, cycler, surface) -> ModeController:
    mode_controller = ModeController(lifecycle, automation, cycler, surface)
    mode_controller.attach(asyncio.get_running_loop())
    return mode_controller


async def activate(controller: ModeController) -> None:
    assert controller.on_trigger() is True
    await controller.wait_idle()
    assert controller.current_mode() is Mode.SESSION_ACTIVE


class TestTriggerFromKiosk:
    """Test the KIOSK -> SESSION_STARTING -> SESSION_ACTIVE path."""

    @pytest.mark.asyncio
    async def test_on_trigger_when_kiosk_then_session_starting_synchronously(self, controller) -> None:
        assert controller.on_trigger() is True
        assert controller.current_mode() is Mode.SESSION_STARTING

        await controller.wait_idle()

    @pytest.mark.asyncio
    async def test_on_trigger_when_join_succeeds_then_session_active(
        self, controller, lifecycle, automation, cycler, surface, handle
    ) -> None:
        await activate(controller)

        cycler.pause.assert_called_once_with()
        surface.hide.assert_awaited_once_with()
        lifecycle.start_session.assert_awaited_once_with()
        automation.run.assert_awaited_once_with(handle.document)
        cycler.resume.assert_not_called()
        assert [(t.source, t.target) for t in controller.state.history()] == [
            (Mode.KIOSK, Mode.SESSION_STARTING),
            (Mode.SESSION_STARTING, Mode.SESSION_ACTIVE),
        ]

    @pytest.mark.asyncio
    async def test_on_trigger_when_not_attached_then_ignored(self, lifecycle, automation, cycler, surface) -> None:
        controller = ModeController(lifecycle, automation, cycler, surface)

        assert controller.on_trigger() is False
        assert controller.current_mode() is Mode.KIOSK

    @pytest.mark.asyncio
    async def test_on_trigger_when_session_starting_then_ignored(self, controller, lifecycle) -> None:
        release = asyncio.Event()

        async def slow_start():
            await release.wait()
            return Mock()

        lifecycle.start_session.side_effect = slow_start

        assert controller.on_trigger() is True
        await asyncio.sleep(0.01)
        assert controller.on_trigger() is False
        assert controller.on_trigger() is False
        assert controller.current_mode() is Mode.SESSION_STARTING

        release.set()
        await controller.wait_idle()

        assert lifecycle.start_session.await_count == 1
        assert controller.current_mode() is Mode.SESSION_ACTIVE

    @pytest.mark.asyncio
    async def test_on_trigger_when_called_from_listener_thread_then_pipeline_runs_on_loop(
        self, controller
    ) -> None:
        results: list[bool] = []
        thread = threading.Thread(target=lambda: results.append(controller.on_trigger()))
        thread.start()
        await asyncio.to_thread(thread.join)

        await controller.wait_idle()

        assert results == [True]
        assert controller.current_mode() is Mode.SESSION_ACTIVE


class TestStartFailures:
    """Test that failed starts revert to kiosk mode."""

    @pytest.mark.asyncio
    async def test_start_when_process_error_then_reverted_to_kiosk(
        self, controller, lifecycle, automation, cycler, surface
    ) -> None:
        lifecycle.start_session.side_effect = PortUnavailableError("debug endpoint never answered")

        controller.on_trigger()
        await controller.wait_idle()

        assert controller.current_mode() is Mode.KIOSK
        automation.run.assert_not_awaited()
        surface.show.assert_awaited_once_with()
        cycler.resume.assert_called_once_with()
        status = controller.get_status()
        assert "debug endpoint never answered" in status.last_error
        assert status.error_time is not None

    @pytest.mark.asyncio
    async def test_start_when_mandatory_step_fails_then_processes_stopped_and_kiosk(
        self, controller, lifecycle, automation, cycler
    ) -> None:
        automation.run.side_effect = AutomationError("sign_in", "Session processes died during step 'sign_in'")

        controller.on_trigger()
        await controller.wait_idle()

        assert controller.current_mode() is Mode.KIOSK
        lifecycle.stop_session.assert_awaited_once_with()
        cycler.resume.assert_called_once_with()
        assert "sign_in" in controller.get_status().last_error

    @pytest.mark.asyncio
    async def test_start_when_join_never_confirmed_then_session_active_and_browser_kept(
        self, lifecycle, handle, cycler, surface, session_settings, make_document, make_element
    ) -> None:
        session_settings.join_rounds = 2
        session_settings.optional_locate_attempts = 1
        document = make_document(frames=[{"//a[contains(text(), 'sign in')]": [make_element("sign-in")]}])
        document.add("//a[@aria-label='Sign in with Google']", make_element("google"))
        document.add("//div[contains(text(), 'Recurse RCTV')]", make_element("account"))
        join = document.add("//button[contains(text(), 'Join')]", make_element("join"))
        handle.document = document
        engine = SessionAutomationEngine.from_settings(
            session_settings, session_alive=lifecycle.is_session_healthy
        )
        mode_controller = ModeController(lifecycle, engine, cycler, surface)
        mode_controller.attach(asyncio.get_running_loop())

        mode_controller.on_trigger()
        await mode_controller.wait_idle()

        assert mode_controller.current_mode() is Mode.SESSION_ACTIVE
        lifecycle.stop_session.assert_not_awaited()
        cycler.resume.assert_not_called()
        assert join.calls == ["click", "press_enter", "force_click"] * 4
        assert mode_controller.get_status().last_error is None

    @pytest.mark.asyncio
    async def test_start_when_unexpected_error_then_processes_stopped_and_kiosk(
        self, controller, lifecycle
    ) -> None:
        lifecycle.start_session.side_effect = RuntimeError("boom")

        controller.on_trigger()
        await controller.wait_idle()

        assert controller.current_mode() is Mode.KIOSK
        lifecycle.stop_session.assert_awaited_once_with()

    @pytest.mark.asyncio
    async def test_start_when_surface_fails_to_show_then_still_back_in_kiosk(
        self, controller, lifecycle, surface, cycler
    ) -> None:
        lifecycle.start_session.side_effect = LaunchFailedError("chromium-browser not found")
        surface.show.side_effect = RuntimeError("display gone")

        controller.on_trigger()
        await controller.wait_idle()

        assert controller.current_mode() is Mode.KIOSK
        cycler.resume.assert_called_once_with()

    @pytest.mark.asyncio
    async def test_start_when_debug_endpoint_never_ready_then_kiosk_and_no_bridge(
        self, browser_settings, bridge_settings, automation, cycler, surface
    ) -> None:
        launched: list[str] = []

        def popen(args, **kwargs):
            launched.append(args[0])
            process = Mock()
            process.pid = 100 + len(launched)
            process.poll.return_value = None
            return process

        lifecycle = ProcessLifecycleManager(browser_settings, bridge_settings)
        controller = ModeController(lifecycle, automation, cycler, surface)
        controller.attach(asyncio.get_running_loop())

        with patch("rctv.kiosk.lifecycle.kill_matching_processes", return_value=(0, [])) as mock_kill, patch(
            "rctv.kiosk.lifecycle.subprocess.Popen", side_effect=popen
        ), patch.object(httpx.AsyncClient, "get", side_effect=httpx.ConnectError("refused")):
            controller.on_trigger()
            await controller.wait_idle()

        assert controller.current_mode() is Mode.KIOSK
        assert launched == [browser_settings.executable_path]
        assert mock_kill.call_count == 2
        assert lifecycle.get_status().bridge_pid is None
        assert "did not respond" in controller.get_status().last_error
        automation.run.assert_not_awaited()


class TestTriggerFromSession:
    """Test the SESSION_ACTIVE -> STOPPING -> KIOSK path."""

    @pytest.mark.asyncio
    async def test_on_trigger_when_session_active_then_stopped_and_kiosk(
        self, controller, lifecycle, cycler, surface
    ) -> None:
        await activate(controller)

        assert controller.on_trigger() is True
        assert controller.current_mode() is Mode.STOPPING
        await controller.wait_idle()

        assert controller.current_mode() is Mode.KIOSK
        lifecycle.stop_session.assert_awaited_once_with()
        surface.show.assert_awaited_once_with()
        cycler.resume.assert_called_once_with()

    @pytest.mark.asyncio
    async def test_on_trigger_when_stopping_then_ignored(self, controller, lifecycle) -> None:
        await activate(controller)
        release = asyncio.Event()
        lifecycle.stop_session.side_effect = release.wait

        assert controller.on_trigger() is True
        await asyncio.sleep(0.01)
        assert controller.on_trigger() is False
        assert controller.current_mode() is Mode.STOPPING

        release.set()
        await controller.wait_idle()

        assert controller.current_mode() is Mode.KIOSK
        assert lifecycle.start_session.await_count == 1

    @pytest.mark.asyncio
    async def test_on_trigger_when_back_in_kiosk_then_new_session_starts(self, controller, lifecycle) -> None:
        await activate(controller)
        controller.on_trigger()
        await controller.wait_idle()

        await activate(controller)

        assert lifecycle.start_session.await_count == 2
        assert controller.state.transition_count == 6


class TestShutdown:
    """Test controller shutdown."""

    @pytest.mark.asyncio
    async def test_shutdown_when_session_active_then_processes_stopped(self, controller, lifecycle) -> None:
        await activate(controller)

        await controller.shutdown()

        lifecycle.stop_session.assert_awaited_once_with()

    @pytest.mark.asyncio
    async def test_shutdown_when_kiosk_then_nothing_stopped(self, controller, lifecycle) -> None:
        await controller.shutdown()

        lifecycle.stop_session.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_shutdown_when_join_stuck_then_pipeline_cancelled_and_processes_stopped(
        self, controller, lifecycle, automation
    ) -> None:
        async def stuck(document):
            await asyncio.Event().wait()

        automation.run.side_effect = stuck

        controller.on_trigger()
        await asyncio.sleep(0.01)
        await asyncio.wait_for(controller.shutdown(), 2.0)

        lifecycle.stop_session.assert_awaited_once_with()
        assert controller.get_status().pending_pipelines == 0


class TestPlaylistInterruption:
    """Test a trigger arriving while the kiosk dwells on an entry."""

    @pytest.mark.asyncio
    async def test_on_trigger_when_dwelling_on_entry_then_dwell_aborted_and_session_starting(
        self, lifecycle, automation
    ) -> None:
        class Playlist:
            async def fetch(self):
                return [
                    PlaylistEntry(target="https://a.example", dwell_seconds=5),
                    PlaylistEntry(target="https://b.example", dwell_seconds=3),
                ]

        surface = NullSurface()
        cycler = KioskCycler(Playlist(), surface)
        release = asyncio.Event()
        lifecycle.start_session.side_effect = release.wait
        controller = ModeController(lifecycle, automation, cycler, surface, state=ModeState())
        controller.attach(asyncio.get_running_loop())

        cycler_task = asyncio.create_task(cycler.run())
        await asyncio.sleep(0.05)
        assert surface.current_url == "https://a.example"

        assert controller.on_trigger() is True
        await asyncio.sleep(0.05)

        assert controller.current_mode() is Mode.SESSION_STARTING
        assert cycler.is_paused is True
        assert surface.hidden is True
        assert surface.current_url == "https://a.example"

        await controller.shutdown()
        cycler.close()
        await asyncio.wait_for(cycler_task, 2.0)
