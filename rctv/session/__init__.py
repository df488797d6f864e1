"""
RCTV Remote Session Module.

Drives the video meeting web client through sign-in and join once the
remote-session browser is up.

Components:
    ElementLocator: Finds elements across the document and its iframes
    InteractionEngine: Activates elements with fallback strategies
    SessionAutomationEngine: Runs the join pipeline step by step
    SeleniumDocument: Async adapter over a Selenium WebDriver
"""

from .automation import (
    AutomationError,
    AutomationStep,
    SessionAutomationEngine,
    SessionResult,
    StepOutcome,
    build_join_pipeline,
)
from .checks import any_of, build_success_check, control_present, url_indicates_meeting
from .document import DocumentError, Query, SeleniumDocument, SeleniumElement
from .interaction import (
    InteractionEngine,
    InteractionError,
    InteractionExhaustedError,
    InteractionStrategy,
)
from .locator import (
    ByAttribute,
    ByTag,
    ByTextContains,
    ElementLocator,
    ElementPredicate,
    FirstOf,
    FrameSearch,
    LocatedElement,
)

__all__ = [
    "AutomationError",
    "AutomationStep",
    "ByAttribute",
    "ByTag",
    "ByTextContains",
    "DocumentError",
    "ElementLocator",
    "ElementPredicate",
    "FirstOf",
    "FrameSearch",
    "InteractionEngine",
    "InteractionError",
    "InteractionExhaustedError",
    "InteractionStrategy",
    "LocatedElement",
    "Query",
    "SeleniumDocument",
    "SeleniumElement",
    "SessionAutomationEngine",
    "SessionResult",
    "StepOutcome",
    "any_of",
    "build_join_pipeline",
    "build_success_check",
    "control_present",
    "url_indicates_meeting",
]
