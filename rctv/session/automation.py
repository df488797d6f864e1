"""Session automation engine running the sign-in and join flow as a table of steps."""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Optional

from ..utils.logging import VERBOSE
from .checks import build_success_check
from .document import Document, DocumentError
from .interaction import InteractionEngine, InteractionExhaustedError, InteractionStrategy, SuccessCheck
from .locator import (
    ByAttribute,
    ByTextContains,
    ElementLocator,
    ElementPredicate,
    FirstOf,
    FrameSearch,
    LocatedElement,
)

if TYPE_CHECKING:
    from ..config.settings import SessionSettings

logger = logging.getLogger(__name__)


class AutomationError(Exception):
    """A mandatory step could not be completed."""

    def __init__(self, step: str, message: Optional[str] = None):
        self.step = step
        self.message = message or f"Mandatory step '{step}' failed"
        super().__init__(self.message)


@dataclass(frozen=True)
class AutomationStep:
    """Stateless template for one locate-then-interact step."""

    name: str
    predicate: ElementPredicate
    required: bool = True
    strategies: tuple[InteractionStrategy, ...] = (InteractionStrategy.NATIVE,)
    success_check: Optional[SuccessCheck] = None
    max_attempts: int = 3
    retry_delay: float = 1.0
    frame_search: FrameSearch = FrameSearch.NONE
    visible_only: bool = False
    locate_attempts: Optional[int] = None  # None retries forever
    locate_delay: float = 2.0
    relocate_attempts: int = 0
    # False: running out of interaction rounds leaves the step unconfirmed instead of failing
    fail_on_exhaustion: bool = True


class StepOutcome(Enum):
    """How a single step ended."""

    COMPLETED = "completed"
    SKIPPED = "skipped"
    UNCONFIRMED = "unconfirmed"


@dataclass
class SessionResult:
    """Outcome of a pipeline run.

    Attributes:
        completed_steps: Steps whose interaction succeeded
        skipped_steps: Optional steps that were given up on
        unconfirmed_steps: Steps activated without their success check ever passing
    """

    completed_steps: list[str] = field(default_factory=list)
    skipped_steps: list[str] = field(default_factory=list)
    unconfirmed_steps: list[str] = field(default_factory=list)

    @property
    def fully_completed(self) -> bool:
        return not self.skipped_steps and not self.unconfirmed_steps


class SessionAutomationEngine:
    """Navigates to the meeting page and runs each step in order."""

    def __init__(
        self,
        steps: list[AutomationStep],
        meeting_url: str,
        page_load_delay: float = 3.0,
        locator: Optional[ElementLocator] = None,
        interaction: Optional[InteractionEngine] = None,
        session_alive: Optional[Callable[[], bool]] = None,
    ) -> None:
        self.steps = steps
        self.meeting_url = meeting_url
        self.page_load_delay = page_load_delay
        self.locator = locator or ElementLocator()
        self.interaction = interaction or InteractionEngine()
        self.session_alive = session_alive
        self.logger = logging.getLogger(f"{__name__}.SessionAutomationEngine")

    @classmethod
    def from_settings(
        cls, settings: "SessionSettings", session_alive: Optional[Callable[[], bool]] = None
    ) -> "SessionAutomationEngine":
        """Create an engine running the join pipeline configured in ``settings``.

        Args:
            settings: Session settings
            session_alive: Reports whether the browser and bridge are still running
        """
        return cls(
            steps=build_join_pipeline(settings),
            meeting_url=settings.meeting_url,
            page_load_delay=settings.page_load_delay,
            interaction=InteractionEngine(settle_time=settings.settle_time),
            session_alive=session_alive,
        )

    async def run(self, document: Document) -> SessionResult:
        """Run the pipeline against ``document``.

        Returns:
            SessionResult listing completed, skipped and unconfirmed steps

        Raises:
            AutomationError: If navigation fails, a mandatory step exhausts its
                retries or the session processes die
        """
        await self._open_meeting_page(document)

        result = SessionResult()
        for step in self.steps:
            self.logger.info(f"Running step '{step.name}'")
            try:
                outcome = await self._run_step(document, step)
            finally:
                await self._reset_context(document)

            if outcome is StepOutcome.COMPLETED:
                result.completed_steps.append(step.name)
            elif outcome is StepOutcome.UNCONFIRMED:
                result.unconfirmed_steps.append(step.name)
            else:
                result.skipped_steps.append(step.name)

        self.logger.info(
            f"Pipeline finished: completed={result.completed_steps} "
            f"skipped={result.skipped_steps} unconfirmed={result.unconfirmed_steps}"
        )
        return result

    async def _open_meeting_page(self, document: Document) -> None:
        self.logger.info(f"Navigating to {self.meeting_url}")
        try:
            await document.navigate(self.meeting_url)
        except DocumentError as e:
            raise AutomationError("navigate", e.message) from e

        if self.page_load_delay > 0:
            await asyncio.sleep(self.page_load_delay)

        try:
            url = await document.current_url()
            title = await document.title()
            size = await document.page_source_length()
            self.logger.debug(f"Loaded {url} title={title!r} source_length={size}")
        except DocumentError as e:
            self.logger.debug(f"Could not read page details: {e.message}")

    async def _run_step(self, document: Document, step: AutomationStep) -> StepOutcome:
        located = await self._locate(document, step)
        relocations_left = step.relocate_attempts

        while located is not None:
            try:
                await self.interaction.interact(
                    document,
                    located.element,
                    step.strategies,
                    success_check=step.success_check,
                    max_attempts=step.max_attempts,
                    retry_delay=step.retry_delay,
                )
                self.logger.info(f"Step '{step.name}' completed")
                return StepOutcome.COMPLETED
            except InteractionExhaustedError as e:
                if relocations_left <= 0:
                    if not step.fail_on_exhaustion:
                        return self._leave_unconfirmed(step, e.message)
                    return self._give_up(step, e.message)
                relocations_left -= 1
                self.logger.warning(f"Step '{step.name}' exhausted, locating the element again")
                await self._reset_context(document)
                located = await self._locate(document, step)

        return self._give_up(step, "element not found")

    def _give_up(self, step: AutomationStep, reason: str) -> StepOutcome:
        if step.required:
            raise AutomationError(step.name, f"Mandatory step '{step.name}' failed: {reason}")
        self.logger.warning(f"Skipping optional step '{step.name}': {reason}")
        return StepOutcome.SKIPPED

    def _leave_unconfirmed(self, step: AutomationStep, reason: str) -> StepOutcome:
        self._check_session_alive(step)
        self.logger.warning(f"Giving up on confirming step '{step.name}' ({reason}), keeping the session")
        return StepOutcome.UNCONFIRMED

    def _check_session_alive(self, step: AutomationStep) -> None:
        if self.session_alive is not None and not self.session_alive():
            raise AutomationError(
                step.name, f"Session processes died during step '{step.name}'"
            )

    async def _locate(self, document: Document, step: AutomationStep) -> Optional[LocatedElement]:
        attempt = 0
        while step.locate_attempts is None or attempt < step.locate_attempts:
            self._check_session_alive(step)
            attempt += 1
            found = await self.locator.locate(
                document,
                step.predicate,
                frame_search=step.frame_search,
                visible_only=step.visible_only,
            )
            if found is not None:
                where = f"frame {found.frame_index}" if found.in_frame else "main document"
                self.logger.info(f"Found '{step.name}' in {where} via {found.query}")
                return found

            limit = "unbounded" if step.locate_attempts is None else step.locate_attempts
            self.logger.log(
                VERBOSE,
                f"'{step.name}' not found (attempt {attempt}/{limit}), retrying in {step.locate_delay}s",
            )
            if step.locate_attempts is not None and attempt >= step.locate_attempts:
                break
            await self._reset_context(document)
            await asyncio.sleep(step.locate_delay)

        return None

    async def _reset_context(self, document: Document) -> None:
        try:
            await document.enter_default_frame()
        except DocumentError as e:
            self.logger.debug(f"Could not reset to default content: {e.message}")


def build_join_pipeline(settings: "SessionSettings") -> list[AutomationStep]:
    """Build the fixed sign-in and join flow for the meeting web client."""
    optional_attempts = settings.optional_locate_attempts
    locate_delay = settings.locate_delay

    return [
        AutomationStep(
            name="sign_in",
            predicate=ByTextContains("sign in", tag="a"),
            frame_search=FrameSearch.ALL_FRAMES,
            locate_delay=locate_delay,
        ),
        AutomationStep(
            name="google_provider",
            predicate=ByAttribute("aria-label", "Sign in with Google", tag="a"),
            locate_delay=locate_delay,
        ),
        AutomationStep(
            name="account",
            predicate=ByTextContains(settings.account_name, tag="div"),
            locate_delay=locate_delay,
        ),
        AutomationStep(
            name="media_permission",
            predicate=FirstOf(
                (
                    "//button[contains(text(), 'Use microphone and camera')]",
                    "//*[contains(text(), 'Use microphone and camera')]",
                )
            ),
            required=False,
            locate_attempts=optional_attempts,
            locate_delay=locate_delay,
        ),
        AutomationStep(
            name="join",
            predicate=FirstOf(
                (
                    "//button[contains(text(), 'Join')]",
                    "//input[@value='Join']",
                    "//*[contains(text(), 'Join')]",
                )
            ),
            strategies=(
                InteractionStrategy.NATIVE,
                InteractionStrategy.KEY_SUBMIT,
                InteractionStrategy.FORCED,
            ),
            success_check=build_success_check(settings),
            max_attempts=settings.join_rounds,
            retry_delay=settings.join_retry_delay,
            frame_search=FrameSearch.ALL_FRAMES,
            visible_only=True,
            locate_delay=locate_delay,
            relocate_attempts=settings.join_relocations,
            fail_on_exhaustion=False,
        ),
    ]
