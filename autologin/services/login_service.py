"""
Login service: the entry point used by the CLI and embedding applications.

Per call it:
1. Opens a fresh page and navigates to the login URL
2. Reuses the cached Selector for the site or discovers one
3. Runs the login state machine and returns the classified outcome

A cached Selector that no longer matches the page is invalidated and the
form is rediscovered once.
"""

import logging
from collections.abc import Awaitable, Callable
from typing import Any

from pydantic import SecretStr

from autologin.browser.classifier import ClassifierConfig, SessionStateClassifier
from autologin.browser.discovery import FormDiscovery
from autologin.browser.models import Selector, SelectorHints, SessionOutcome
from autologin.browser.orchestrator import LoginOrchestrator
from autologin.browser.page import RenderedPage
from autologin.browser.resolver import ElementResolver
from autologin.browser.scope import AttemptScope
from autologin.browser.selector_store import SelectorStore, get_selector_store, site_key
from autologin.config import Settings, settings as default_settings
from autologin.errors import ElementLookupError, NavigationError, PageError
from autologin.integrations.ocr.client import OCRClient
from autologin.integrations.ocr.recognizer import CaptchaRecognizer, OCRCaptchaRecognizer

logger = logging.getLogger(__name__)

PageFactory = Callable[[], Awaitable[RenderedPage]]


class LoginService:
    """Log into arbitrary web login forms.

    Usage:
        async with LoginService.from_settings() as service:
            outcome = await service.login(url, None, "user", "secret")
    """

    def __init__(
        self,
        page_factory: PageFactory,
        store: SelectorStore | None = None,
        recognizer: CaptchaRecognizer | None = None,
        config: Settings | None = None,
    ) -> None:
        """Initialize the service.

        Args:
            page_factory: Coroutine function returning a new page per attempt
            store: Selector cache (defaults to the process-wide store)
            recognizer: Captcha recognizer, captcha forms fail without one
            config: Settings (defaults to the environment)
        """
        self.page_factory = page_factory
        self.store = store if store is not None else get_selector_store()
        self.recognizer = recognizer
        self.config = config or default_settings
        self._browser: Any = None

    @classmethod
    def from_settings(cls, config: Settings | None = None) -> "LoginService":
        """Build a service backed by Playwright and, if configured, the OCR service."""
        from autologin.browser.playwright_page import PlaywrightBrowser

        config = config or default_settings
        browser = PlaywrightBrowser(config)
        recognizer = None
        if config.captcha_enabled:
            recognizer = OCRCaptchaRecognizer(
                OCRClient(base_url=config.ocr_base_url, timeout=config.ocr_timeout),
                min_size=config.ocr_min_image_size,
                max_size=config.ocr_max_image_size,
            )

        service = cls(browser.new_page, recognizer=recognizer, config=config)
        service._browser = browser
        return service

    async def __aenter__(self) -> "LoginService":
        if self._browser is not None:
            await self._browser.start()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        if self.recognizer is not None:
            await self.recognizer.aclose()
        if self._browser is not None:
            await self._browser.close()

    async def login(
        self,
        url: str,
        hints: SelectorHints | None,
        username: str,
        password: str | SecretStr,
        timeout: float | None = None,
        classifier_config: ClassifierConfig | None = None,
        remember_me: bool = False,
        scope: AttemptScope | None = None,
    ) -> SessionOutcome:
        """Log into the site behind a URL.

        Args:
            url: Login page URL
            hints: Candidate locators per role (None for defaults)
            username: Account name
            password: Account password
            timeout: Deadline of the whole attempt in seconds
            classifier_config: Site-specific outcome markers
            remember_me: Tick the remember-me box when present
            scope: Externally cancellable scope (overrides ``timeout``)

        Returns:
            SessionOutcome of the attempt

        Raises:
            AutologinError: Any typed failure of navigation, discovery or login
        """
        self._check_url(url)
        scope = scope or AttemptScope(timeout or self.config.login_timeout)
        orchestrator = LoginOrchestrator(
            recognizer=self.recognizer,
            classifier=SessionStateClassifier(classifier_config),
            config=self.config,
        )

        page = await self.page_factory()
        try:
            cached = self.store.get(url)
            try:
                selector = await self._prepare(page, url, hints, scope, cached, remember_me)
                return await orchestrator.login(
                    page, selector, username, password, scope=scope, remember_me=remember_me
                )
            except ElementLookupError as e:
                if cached is None:
                    raise
                logger.warning(f"Cached selector for {url} is stale ({e}), rediscovering")
                await self.store.invalidate(url)

            selector = await self._prepare(page, url, hints, scope, None, remember_me)
            return await orchestrator.login(
                page, selector, username, password, scope=scope, remember_me=remember_me
            )
        finally:
            await self._release(page)

    async def discover(
        self,
        url: str,
        hints: SelectorHints | None = None,
        timeout: float | None = None,
    ) -> Selector:
        """Discover and cache the login form of a site without logging in."""
        self._check_url(url)
        scope = AttemptScope(timeout or self.config.login_timeout)
        page = await self.page_factory()
        try:
            return await self._prepare(page, url, hints, scope, None)
        finally:
            await self._release(page)

    @staticmethod
    def _check_url(url: str) -> None:
        try:
            site_key(url)
        except ValueError as e:
            raise NavigationError(url, str(e)) from e

    async def _prepare(
        self,
        page: RenderedPage,
        url: str,
        hints: SelectorHints | None,
        scope: AttemptScope,
        cached: Selector | None,
        remember_me: bool = False,
    ) -> Selector:
        async with page.exclusive():
            await self._open(page, url, scope)

            if cached is not None:
                logger.info(f"Using cached selector for {url}")
                return cached

            discovery = FormDiscovery(
                ElementResolver(page, self.config),
                page,
                captcha_enabled=self.recognizer is not None,
            )
            selector = await scope.run(
                discovery.discover_from_hints(hints, remember_me), timeout=None, name="discover"
            )

        return await self.store.put(url, selector)

    async def _open(self, page: RenderedPage, url: str, scope: AttemptScope) -> None:
        timeout = self.config.navigation_timeout
        try:
            await scope.run(page.navigate(url), timeout=timeout, name="navigate")
            await scope.run(page.wait_loaded(timeout), timeout=timeout, name="wait_loaded")
        except PageError as e:
            raise NavigationError(url, str(e)) from e
        logger.info("Navigation completed successfully")

    async def _release(self, page: RenderedPage) -> None:
        try:
            await page.close()
        except PageError as e:
            logger.warning(f"Error closing page: {e}")
