"""Declarative element predicates and the multi-frame element locator."""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from .document import Document, DocumentError, Query

logger = logging.getLogger(__name__)

XPATH = "xpath"
TAG_NAME = "tag name"


def _xpath_literal(text: str) -> str:
    """Quote a string for use inside an XPath expression."""
    if "'" not in text:
        return f"'{text}'"
    if '"' not in text:
        return f'"{text}"'
    parts = text.split("'")
    return "concat(" + ", \"'\", ".join(f"'{part}'" for part in parts) + ")"


class FrameSearch(Enum):
    """Where the locator looks when the active context has no match."""

    NONE = "none"
    ALL_FRAMES = "all_frames"


@dataclass(frozen=True)
class ElementPredicate:
    """Base class for declarative descriptions of which element to find."""

    def compile(self) -> list[Query]:
        raise NotImplementedError


@dataclass(frozen=True)
class ByTag(ElementPredicate):
    tag: str

    def compile(self) -> list[Query]:
        return [Query(TAG_NAME, self.tag)]


@dataclass(frozen=True)
class ByTextContains(ElementPredicate):
    text: str
    tag: str = "*"

    def compile(self) -> list[Query]:
        return [Query(XPATH, f"//{self.tag}[contains(text(), {_xpath_literal(self.text)})]")]


@dataclass(frozen=True)
class ByAttribute(ElementPredicate):
    name: str
    value: str
    tag: str = "*"

    def compile(self) -> list[Query]:
        return [Query(XPATH, f"//{self.tag}[@{self.name}={_xpath_literal(self.value)}]")]


@dataclass(frozen=True)
class FirstOf(ElementPredicate):
    """Ordered XPath alternatives, the first one matching wins."""

    queries: tuple[str, ...]

    def compile(self) -> list[Query]:
        return [Query(XPATH, xpath) for xpath in self.queries]


@dataclass
class LocatedElement:
    """An element found by the locator and where it was found."""

    element: Any
    frame_index: Optional[int]
    query: Query

    @property
    def in_frame(self) -> bool:
        return self.frame_index is not None


class ElementLocator:
    """Finds the first element matching a predicate across the document and its frames."""

    def __init__(self) -> None:
        self.logger = logging.getLogger(f"{__name__}.ElementLocator")

    async def locate(
        self,
        document: Document,
        predicate: ElementPredicate,
        frame_search: FrameSearch = FrameSearch.NONE,
        visible_only: bool = False,
    ) -> Optional[LocatedElement]:
        """Locate the first element matching ``predicate``.

        The active context is searched first. With ``FrameSearch.ALL_FRAMES``
        each iframe is then entered in document order. When a match is found
        inside a frame, the document is left in that frame's context.

        Args:
            document: Document to search
            predicate: What to find
            frame_search: Whether to descend into iframes
            visible_only: Skip elements that are hidden or not displayed

        Returns:
            LocatedElement for the first match, or None if nothing matches
        """
        started_in = document.active_frame
        found = await self._search_context(document, predicate, visible_only, frame_index=started_in)
        if found is not None or frame_search is FrameSearch.NONE:
            return found

        try:
            await document.enter_default_frame()
            if started_in is not None:
                found = await self._search_context(document, predicate, visible_only, frame_index=None)
                if found is not None:
                    return found
            frame_count = await document.frame_count()
        except DocumentError as e:
            self.logger.warning(f"Could not enumerate frames: {e.message}")
            return None

        self.logger.debug(f"No match in main document, searching {frame_count} frames")

        for index in range(frame_count):
            try:
                await document.enter_frame(index)
            except DocumentError as e:
                self.logger.warning(f"Skipping frame {index}: {e.message}")
                await self._restore_default(document)
                continue

            found = await self._search_context(document, predicate, visible_only, frame_index=index)
            if found is not None:
                self.logger.debug(f"Found {found.query} in frame {index}")
                return found

            await self._restore_default(document)

        return None

    async def _search_context(
        self,
        document: Document,
        predicate: ElementPredicate,
        visible_only: bool,
        frame_index: Optional[int],
    ) -> Optional[LocatedElement]:
        for query in predicate.compile():
            try:
                candidates = await document.find_all(query)
            except DocumentError as e:
                self.logger.debug(f"Lookup {query} failed, treating as no match: {e.message}")
                continue

            for candidate in candidates:
                if visible_only and not await self._is_visible(candidate):
                    continue
                return LocatedElement(element=candidate, frame_index=frame_index, query=query)

        return None

    async def _is_visible(self, element: Any) -> bool:
        try:
            if await element.css_value("display") == "none":
                return False
            if await element.css_value("visibility") == "hidden":
                return False
            return bool(await element.is_displayed())
        except DocumentError:
            return False

    async def _restore_default(self, document: Document) -> None:
        try:
            await document.enter_default_frame()
        except DocumentError as e:
            self.logger.warning(f"Could not return to default content: {e.message}")
