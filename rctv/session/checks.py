"""Success checks confirming that an interaction had its intended effect."""

import logging
from collections.abc import Sequence
from typing import TYPE_CHECKING

from .document import Document, DocumentError
from .interaction import SuccessCheck
from .locator import ByTextContains, ElementLocator, ElementPredicate, FrameSearch

if TYPE_CHECKING:
    from ..config.settings import SessionSettings

logger = logging.getLogger(__name__)

MEETING_URL_MARKERS = ("zoomgov.com", "meeting", "launch", "/j/")
WEB_CLIENT_MARKER = "/wc/"


def control_present(
    predicate: ElementPredicate, frame_search: FrameSearch = FrameSearch.ALL_FRAMES
) -> SuccessCheck:
    """Succeed once an element matching ``predicate`` exists in the document."""
    locator = ElementLocator()

    async def check(document: Document) -> bool:
        # The element under interaction may live in a frame; come back to it
        original_frame = document.active_frame
        found = await locator.locate(document, predicate, frame_search=frame_search)
        if document.active_frame != original_frame:
            try:
                await document.enter_default_frame()
                if original_frame is not None:
                    await document.enter_frame(original_frame)
            except DocumentError as e:
                logger.warning(f"Could not restore frame {original_frame}: {e.message}")
        if found is not None:
            logger.debug(f"Success control found via {found.query}")
        return found is not None

    return check


def url_indicates_meeting(
    markers: Sequence[str] = MEETING_URL_MARKERS, left_marker: str = WEB_CLIENT_MARKER
) -> SuccessCheck:
    """Succeed if the URL shows a meeting, or no longer shows the join page."""

    async def check(document: Document) -> bool:
        url = await document.current_url()
        logger.debug(f"Checking URL for meeting markers: {url}")
        if any(marker in url for marker in markers):
            return True
        return left_marker not in url

    return check


def any_of(*checks: SuccessCheck) -> SuccessCheck:
    """Succeed if any of ``checks`` succeeds, evaluated in order."""

    async def check(document: Document) -> bool:
        for inner in checks:
            try:
                if await inner(document):
                    return True
            except DocumentError as e:
                logger.debug(f"Success check failed to evaluate: {e.message}")
        return False

    return check


def build_success_check(settings: "SessionSettings") -> SuccessCheck:
    """Build the join confirmation selected by ``settings.success_check``."""
    leave = control_present(ByTextContains(settings.leave_control_text))
    if settings.success_check == "url":
        return url_indicates_meeting()
    if settings.success_check == "either":
        return any_of(leave, url_indicates_meeting())
    return leave
