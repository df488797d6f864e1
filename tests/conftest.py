"""Shared test fixtures: in-memory fakes for the browser document and fast settings."""

from collections.abc import Iterable
from typing import Any, Callable, Optional

import pytest

from rctv.config.settings import BridgeSettings, BrowserSettings, KioskSettings, SessionSettings
from rctv.session.document import DocumentError, Query


class FakeElement:
    """Element double recording every activation attempt."""

    def __init__(
        self,
        name: str = "element",
        tag: str = "button",
        displayed: bool = True,
        enabled: bool = True,
        css: Optional[dict[str, str]] = None,
        fail_on: Iterable[str] = (),
        on_activate: Optional[Callable[[str], None]] = None,
    ) -> None:
        self.name = name
        self.tag = tag
        self.displayed = displayed
        self.enabled = enabled
        self.css = css or {}
        self.fail_on = set(fail_on)
        self.on_activate = on_activate
        self.calls: list[str] = []

    async def _activate(self, method: str) -> None:
        self.calls.append(method)
        if method in self.fail_on:
            raise DocumentError(f"{method} failed on {self.name}")
        if self.on_activate is not None:
            self.on_activate(method)

    async def click(self) -> None:
        await self._activate("click")

    async def press_enter(self) -> None:
        await self._activate("press_enter")

    async def force_click(self) -> None:
        await self._activate("force_click")

    async def is_displayed(self) -> bool:
        if "is_displayed" in self.fail_on:
            raise DocumentError("stale element")
        return self.displayed

    async def is_enabled(self) -> bool:
        return self.enabled

    async def tag_name(self) -> str:
        return self.tag

    async def css_value(self, name: str) -> str:
        defaults = {"display": "block", "visibility": "visible"}
        return self.css.get(name, defaults.get(name, ""))

    def __repr__(self) -> str:
        return f"FakeElement({self.name})"


class FakeDocument:
    """Multi-frame document double.

    ``main`` and each entry of ``frames`` map a query value (XPath or tag
    name) to the elements it matches in that context.
    """

    def __init__(
        self,
        main: Optional[dict[str, list[Any]]] = None,
        frames: Optional[list[dict[str, list[Any]]]] = None,
        broken_frames: Iterable[int] = (),
        url: str = "https://app.zoom.us/wc/join",
    ) -> None:
        self.main = main if main is not None else {}
        self.frames = frames if frames is not None else []
        self.broken_frames = set(broken_frames)
        self.failing_queries: set[str] = set()
        self.url = url
        self.navigations: list[str] = []
        self.frame_entries: list[int] = []
        self.lookups: list[tuple[Optional[int], str]] = []
        self.navigate_error: Optional[DocumentError] = None
        self._active_frame: Optional[int] = None

    @property
    def active_frame(self) -> Optional[int]:
        return self._active_frame

    def _context(self) -> dict[str, list[Any]]:
        if self._active_frame is None:
            return self.main
        return self.frames[self._active_frame]

    def add(self, query_value: str, element: Any, frame: Optional[int] = None) -> Any:
        context = self.main if frame is None else self.frames[frame]
        context.setdefault(query_value, []).append(element)
        return element

    async def find_all(self, query: Query) -> list[Any]:
        self.lookups.append((self._active_frame, query.value))
        if query.value in self.failing_queries:
            raise DocumentError(f"lookup {query.value} failed")
        return list(self._context().get(query.value, []))

    async def frame_count(self) -> int:
        return len(self.frames) if self._active_frame is None else 0

    async def enter_frame(self, index: int) -> None:
        self.frame_entries.append(index)
        if index in self.broken_frames or index >= len(self.frames):
            raise DocumentError(f"no such frame {index}")
        self._active_frame = index

    async def enter_default_frame(self) -> None:
        self._active_frame = None

    async def navigate(self, url: str) -> None:
        if self.navigate_error is not None:
            raise self.navigate_error
        self.navigations.append(url)
        self.url = url

    async def current_url(self) -> str:
        return self.url

    async def title(self) -> str:
        return "Zoom"

    async def page_source_length(self) -> int:
        return 4096


@pytest.fixture
def make_element() -> Callable[..., FakeElement]:
    """Factory for fake elements."""
    return FakeElement


@pytest.fixture
def make_document() -> Callable[..., FakeDocument]:
    """Factory for fake documents."""
    return FakeDocument


@pytest.fixture
def fake_document() -> FakeDocument:
    """Empty single-context document."""
    return FakeDocument()


@pytest.fixture
def session_settings() -> SessionSettings:
    """Session settings with every delay removed."""
    return SessionSettings(
        page_load_delay=0,
        locate_delay=0,
        settle_time=0,
        join_retry_delay=0,
    )


@pytest.fixture
def browser_settings(tmp_path: Any) -> BrowserSettings:
    """Browser settings with a temporary profile and no waits."""
    return BrowserSettings(
        executable_path="/usr/bin/chromium-browser",
        profile_dir=tmp_path / "profile",
        endpoint_attempts=10,
        endpoint_interval=0,
        cleanup_grace=0,
        stop_grace=0,
    )


@pytest.fixture
def bridge_settings() -> BridgeSettings:
    """Bridge settings with no settle time."""
    return BridgeSettings(settle_time=0)


@pytest.fixture
def kiosk_settings(tmp_path: Any) -> KioskSettings:
    """Kiosk settings pointing at a fake service with short waits."""
    return KioskSettings(
        api_base_url="https://rctv.example.com",
        fetch_backoff=0.05,
        empty_playlist_wait=0.05,
        surface="none",
        surface_profile_dir=tmp_path / "kiosk-profile",
    )
