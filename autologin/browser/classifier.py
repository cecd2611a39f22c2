"""Classify the page reached after submitting a login form."""

import logging
import re
import time
from urllib.parse import urlsplit

from pydantic import BaseModel, Field

from autologin.browser.models import Locator, LoginState, SessionOutcome, SessionStatus
from autologin.browser.page import RenderedPage
from autologin.errors import PageError

logger = logging.getLogger(__name__)


class ClassifierConfig(BaseModel):
    """Markers used to decide whether a login succeeded.

    Sites with unusual markup should supply their own markers instead of
    relying on ``default_success``.
    """

    logged_in_markers: list[str] = Field(
        default_factory=lambda: [
            ".logout-btn",
            "#logout",
            'a[href*="logout" i]',
            'a[href*="signout" i]',
            'a[href*="sign-out" i]',
            'button:has-text("Log out")',
            'button:has-text("Sign out")',
            '[class*="user-avatar" i]',
        ]
    )
    login_url_patterns: list[str] = Field(
        default_factory=lambda: [
            r"/sign[-_]?in",
            r"/log[-_]?in",
            r"/auth/",
            r"/sso",
        ]
    )
    error_markers: list[str] = Field(
        default_factory=lambda: [
            ".alert-danger",
            ".alert-error",
            ".error-message",
            ".login-error",
            '[role="alert"]',
            '[class*="error-tip" i]',
            '[class*="errormsg" i]',
        ]
    )
    # No positive or negative signal means success unless disabled
    default_success: bool = True
    capture_html: bool = True


class SessionStateClassifier:
    """Decide between logged in, still at login and indeterminate.

    Rules, first match wins:
    1. A visible logged-in marker -> LOGGED_IN
    2. URL path or fragment looks like a login page -> AT_LOGIN_PAGE
    3. A visible error marker -> AT_LOGIN_PAGE
    4. Otherwise LOGGED_IN, or INDETERMINATE when default_success is off

    Success markers are checked first because they may coexist with the
    login URL or error banners during a redirect.
    """

    def __init__(self, config: ClassifierConfig | None = None) -> None:
        self.config = config or ClassifierConfig()
        self._url_patterns = [re.compile(p, re.IGNORECASE) for p in self.config.login_url_patterns]

    async def classify(
        self,
        page: RenderedPage,
        started_at: float | None = None,
        states: list[LoginState] | None = None,
    ) -> SessionOutcome:
        """Classify the current page.

        Args:
            page: Page after the login form was submitted
            started_at: ``time.monotonic()`` of the attempt start, for elapsed time
            states: States visited so far, copied into the outcome

        Returns:
            SessionOutcome with the verdict and the rule that produced it
        """
        url: str | None = None
        html: str | None = None

        try:
            url = await page.current_url()
            status, reason = await self._decide(page, url)
        except PageError as e:
            logger.warning(f"Classification failed: {e}")
            status, reason = SessionStatus.INDETERMINATE, f"page error: {e}"

        if self.config.capture_html:
            # Captured after the verdict, a failure leaves html empty
            try:
                html = await page.full_html()
            except PageError as e:
                logger.warning(f"Could not capture page HTML: {e}")

        elapsed = time.monotonic() - started_at if started_at is not None else 0.0
        logger.info(f"Session classified as {status.value} ({reason})")

        return SessionOutcome(
            status=status,
            elapsed=elapsed,
            url=url,
            html=html,
            reason=reason,
            states=list(states or []),
        )

    async def _decide(self, page: RenderedPage, url: str) -> tuple[SessionStatus, str]:
        marker = await self._visible_marker(page, self.config.logged_in_markers)
        if marker:
            return SessionStatus.LOGGED_IN, f"logged-in marker {marker}"

        pattern = self._login_url_match(url)
        if pattern:
            return SessionStatus.AT_LOGIN_PAGE, f"login URL pattern {pattern}"

        marker = await self._visible_marker(page, self.config.error_markers)
        if marker:
            return SessionStatus.AT_LOGIN_PAGE, f"error marker {marker}"

        if self.config.default_success:
            return SessionStatus.LOGGED_IN, "no negative signal"
        return SessionStatus.INDETERMINATE, "no signal"

    def _login_url_match(self, url: str) -> str | None:
        parts = urlsplit(url)
        target = f"{parts.path}#{parts.fragment}" if parts.fragment else parts.path
        for pattern in self._url_patterns:
            if pattern.search(target):
                return pattern.pattern
        return None

    async def _visible_marker(self, page: RenderedPage, markers: list[str]) -> str | None:
        for raw in markers:
            locator = Locator.parse(raw)
            try:
                element = await page.find(locator)
                if element is not None and await page.is_visible(element):
                    return raw
            except PageError as e:
                logger.debug(f"Marker {raw} unusable: {e}")
        return None
