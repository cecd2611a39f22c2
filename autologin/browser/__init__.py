"""Browser-side login core.

This module provides:
- RenderedPage: abstract page capability (PlaywrightPage implements it)
- ElementResolver / FormDiscovery: locate login form controls
- SelectorStore: process-wide cache of discovered selectors
- LoginOrchestrator: the login state machine
- SessionStateClassifier: post-submit verdict
"""

from autologin.browser.classifier import ClassifierConfig, SessionStateClassifier
from autologin.browser.discovery import FormDiscovery, candidates_for
from autologin.browser.models import (
    Locator,
    LocatorStrategy,
    LoginAttempt,
    LoginState,
    Selector,
    SelectorHints,
    SessionOutcome,
    SessionStatus,
)
from autologin.browser.orchestrator import LoginOrchestrator
from autologin.browser.page import RenderedPage
from autologin.browser.resolver import ElementResolver, ResolvedElement
from autologin.browser.scope import AttemptScope
from autologin.browser.selector_store import SelectorStore, get_selector_store, site_key

__all__ = [
    # Models
    "Locator",
    "LocatorStrategy",
    "LoginAttempt",
    "LoginState",
    "Selector",
    "SelectorHints",
    "SessionOutcome",
    "SessionStatus",
    # Page
    "RenderedPage",
    # Core
    "AttemptScope",
    "ClassifierConfig",
    "ElementResolver",
    "FormDiscovery",
    "LoginOrchestrator",
    "ResolvedElement",
    "SessionStateClassifier",
    "SelectorStore",
    "candidates_for",
    "get_selector_store",
    "site_key",
]
