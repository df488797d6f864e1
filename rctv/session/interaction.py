"""Element activation with fallback strategies and bounded retries."""

import asyncio
import logging
from collections.abc import Awaitable, Sequence
from enum import Enum
from typing import Any, Callable, Optional

from .document import Document, DocumentError

logger = logging.getLogger(__name__)

SuccessCheck = Callable[[Document], Awaitable[bool]]


class InteractionStrategy(Enum):
    """Ways of activating an element, tried in order each round."""

    NATIVE = "native"
    KEY_SUBMIT = "key_submit"
    FORCED = "forced"


class InteractionError(Exception):
    """Base exception for interaction failures."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InteractionExhaustedError(InteractionError):
    """Every strategy failed in every round."""

    def __init__(self, rounds: int):
        super().__init__(f"Interaction did not succeed after {rounds} rounds")
        self.rounds = rounds


class InteractionEngine:
    """Activates an element until a success check confirms the effect."""

    def __init__(self, settle_time: float = 3.0) -> None:
        self.settle_time = settle_time
        self.logger = logging.getLogger(f"{__name__}.InteractionEngine")

    async def interact(
        self,
        document: Document,
        element: Any,
        strategies: Sequence[InteractionStrategy],
        success_check: Optional[SuccessCheck] = None,
        max_attempts: int = 3,
        retry_delay: float = 1.0,
    ) -> None:
        """Activate ``element``, cycling through ``strategies`` for up to ``max_attempts`` rounds.

        Args:
            document: Document the element belongs to (passed to the success check)
            element: Element to activate
            strategies: Activation strategies, tried in order within each round
            success_check: Predicate confirming the activation took effect.
                Without one, a strategy call that does not fail counts as success.
            max_attempts: Number of rounds
            retry_delay: Seconds to wait between rounds

        Raises:
            InteractionExhaustedError: If no round succeeded
        """
        for round_number in range(1, max_attempts + 1):
            await self._log_element_state(element, round_number, max_attempts)

            for strategy in strategies:
                try:
                    await self._apply(element, strategy)
                except DocumentError as e:
                    self.logger.debug(f"Strategy {strategy.value} failed: {e.message}")
                    continue

                if success_check is None:
                    self.logger.debug(f"Strategy {strategy.value} succeeded")
                    return

                if self.settle_time > 0:
                    await asyncio.sleep(self.settle_time)

                if await self._check(success_check, document):
                    self.logger.info(
                        f"Strategy {strategy.value} confirmed on round {round_number}/{max_attempts}"
                    )
                    return

                self.logger.debug(f"Strategy {strategy.value} ran but success check failed")

            if round_number < max_attempts and retry_delay > 0:
                await asyncio.sleep(retry_delay)

        raise InteractionExhaustedError(rounds=max_attempts)

    async def _apply(self, element: Any, strategy: InteractionStrategy) -> None:
        if strategy is InteractionStrategy.NATIVE:
            await element.click()
        elif strategy is InteractionStrategy.KEY_SUBMIT:
            await element.press_enter()
        elif strategy is InteractionStrategy.FORCED:
            await element.force_click()
        else:
            raise ValueError(f"Unknown interaction strategy: {strategy}")

    async def _check(self, success_check: SuccessCheck, document: Document) -> bool:
        try:
            return bool(await success_check(document))
        except DocumentError as e:
            self.logger.debug(f"Success check could not read document: {e.message}")
            return False

    async def _log_element_state(self, element: Any, round_number: int, max_attempts: int) -> None:
        if not self.logger.isEnabledFor(logging.DEBUG):
            return
        try:
            tag = await element.tag_name()
            enabled = await element.is_enabled()
            displayed = await element.is_displayed()
            self.logger.debug(
                f"Round {round_number}/{max_attempts}: <{tag}> enabled={enabled} displayed={displayed}"
            )
        except DocumentError as e:
            self.logger.debug(f"Round {round_number}/{max_attempts}: element state unavailable ({e.message})")
