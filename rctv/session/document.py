"""Async adapter over a live browser document driven through Selenium.

The locator and interaction engine only talk to the ``Document`` and
``Element`` protocols defined here, so they can be exercised against fakes.
``SeleniumDocument`` is the production implementation: every WebDriver call
runs in a worker thread and driver failures surface as ``DocumentError``.
"""

import asyncio
import logging
from typing import Any, Callable, NamedTuple, Optional, Protocol, TypeVar

from selenium.common.exceptions import WebDriverException
from selenium.webdriver.common.by import By
from selenium.webdriver.common.keys import Keys
from selenium.webdriver.remote.webdriver import WebDriver
from selenium.webdriver.remote.webelement import WebElement

logger = logging.getLogger(__name__)

T = TypeVar("T")

FORCED_CLICK_SCRIPT = "arguments[0].click();"


class DocumentError(Exception):
    """A single driver call against the document failed."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.message = message
        self.cause = cause


class Query(NamedTuple):
    """One concrete lookup: a Selenium locator strategy and its value."""

    by: str
    value: str

    def __str__(self) -> str:
        return f"{self.by}={self.value}"


class Element(Protocol):
    """Interface for a located element."""

    async def click(self) -> None: ...

    async def press_enter(self) -> None: ...

    async def force_click(self) -> None: ...

    async def is_displayed(self) -> bool: ...

    async def is_enabled(self) -> bool: ...

    async def tag_name(self) -> str: ...

    async def css_value(self, name: str) -> str: ...


class Document(Protocol):
    """Interface for the multi-frame web document being automated."""

    @property
    def active_frame(self) -> Optional[int]: ...

    async def find_all(self, query: Query) -> list[Any]: ...

    async def frame_count(self) -> int: ...

    async def enter_frame(self, index: int) -> None: ...

    async def enter_default_frame(self) -> None: ...

    async def navigate(self, url: str) -> None: ...

    async def current_url(self) -> str: ...

    async def title(self) -> str: ...

    async def page_source_length(self) -> int: ...


async def _run(description: str, func: Callable[..., T], *args: Any) -> T:
    """Run a blocking driver call in a worker thread, mapping driver errors."""
    try:
        return await asyncio.to_thread(func, *args)
    except WebDriverException as e:
        raise DocumentError(f"{description} failed: {e.msg or e.__class__.__name__}", e) from e


class SeleniumElement:
    """Element wrapper executing WebElement calls off the event loop."""

    def __init__(self, element: WebElement, driver: WebDriver):
        self.raw = element
        self._driver = driver

    async def click(self) -> None:
        await _run("click", self.raw.click)

    async def press_enter(self) -> None:
        await _run("send Enter", self.raw.send_keys, Keys.ENTER)

    async def force_click(self) -> None:
        await _run("scripted click", self._driver.execute_script, FORCED_CLICK_SCRIPT, self.raw)

    async def is_displayed(self) -> bool:
        return bool(await _run("is_displayed", self.raw.is_displayed))

    async def is_enabled(self) -> bool:
        return bool(await _run("is_enabled", self.raw.is_enabled))

    async def tag_name(self) -> str:
        return str(await _run("tag_name", lambda: self.raw.tag_name))

    async def css_value(self, name: str) -> str:
        return str(await _run(f"css value {name}", self.raw.value_of_css_property, name))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SeleniumElement):
            return NotImplemented
        return self.raw == other.raw

    def __hash__(self) -> int:
        return hash(self.raw)

    def __repr__(self) -> str:
        return f"SeleniumElement({getattr(self.raw, 'id', '?')})"


class SeleniumDocument:
    """Document implementation backed by a connected Selenium WebDriver."""

    def __init__(self, driver: WebDriver):
        self.driver = driver
        self._active_frame: Optional[int] = None

    @property
    def active_frame(self) -> Optional[int]:
        """Index of the iframe the driver is switched into, None for the main document."""
        return self._active_frame

    async def find_all(self, query: Query) -> list[SeleniumElement]:
        found = await _run(f"find {query}", self.driver.find_elements, query.by, query.value)
        return [SeleniumElement(element, self.driver) for element in found]

    async def frame_count(self) -> int:
        frames = await _run("count frames", self.driver.find_elements, By.TAG_NAME, "iframe")
        return len(frames)

    async def enter_frame(self, index: int) -> None:
        await _run(f"enter frame {index}", self.driver.switch_to.frame, index)
        self._active_frame = index

    async def enter_default_frame(self) -> None:
        await _run("enter default content", self.driver.switch_to.default_content)
        self._active_frame = None

    async def navigate(self, url: str) -> None:
        await _run(f"navigate to {url}", self.driver.get, url)

    async def current_url(self) -> str:
        return str(await _run("read current url", lambda: self.driver.current_url))

    async def title(self) -> str:
        return str(await _run("read title", lambda: self.driver.title))

    async def page_source_length(self) -> int:
        source = await _run("read page source", lambda: self.driver.page_source)
        return len(source or "")

    async def quit(self) -> None:
        await _run("quit driver", self.driver.quit)
