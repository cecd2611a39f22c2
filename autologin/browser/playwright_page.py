"""Playwright implementation of the rendered page capability."""

import logging
from typing import Any

from playwright.async_api import Browser, BrowserContext, ElementHandle, Page, async_playwright
from playwright.async_api import Error as PlaywrightError

from autologin.browser.models import Locator
from autologin.browser.page import ABSOLUTE_XPATH_SCRIPT, CLICK_SCRIPT, RenderedPage
from autologin.config import Settings, settings as default_settings
from autologin.errors import PageError

logger = logging.getLogger(__name__)

# Chromium switches that hide the automation fingerprint and keep pages quiet
LAUNCH_ARGS = [
    "--disable-blink-features=AutomationControlled",
    "--ignore-certificate-errors",
    "--disable-extensions",
    "--disable-features=BlinkGenPropertyTrees",
    "--hide-scrollbars",
    "--mute-audio",
    "--no-default-browser-check",
    "--password-store=basic",
    "--disable-gpu",
    "--no-sandbox",
]


class PlaywrightPage(RenderedPage):
    """Rendered page backed by a single Playwright page."""

    def __init__(self, page: Page, navigation_timeout: float = 30.0) -> None:
        super().__init__()
        self._page = page
        self._navigation_timeout = navigation_timeout

    @property
    def page(self) -> Page:
        """Get the underlying Playwright page."""
        return self._page

    async def find(self, locator: Locator) -> ElementHandle | None:
        try:
            return await self._page.query_selector(str(locator))
        except PlaywrightError as e:
            raise PageError("find", f"{locator}: {e}") from e

    async def is_visible(self, element: ElementHandle) -> bool:
        try:
            return await element.is_visible()
        except PlaywrightError as e:
            raise PageError("is_visible", str(e)) from e

    async def set_input_value(self, element: ElementHandle, text: str) -> None:
        try:
            await element.fill(text)
        except PlaywrightError as e:
            raise PageError("set_input_value", str(e)) from e

    async def is_checked(self, element: ElementHandle) -> bool:
        try:
            return await element.is_checked()
        except PlaywrightError as e:
            raise PageError("is_checked", str(e)) from e

    async def click(self, element: ElementHandle) -> None:
        try:
            await element.click()
        except PlaywrightError as e:
            raise PageError("click", str(e)) from e

    async def evaluate_click(self, locator: Locator) -> bool:
        try:
            result = await self._page.evaluate(
                CLICK_SCRIPT, {"strategy": locator.strategy.value, "value": locator.value}
            )
        except PlaywrightError as e:
            raise PageError("evaluate_click", f"{locator}: {e}") from e
        return bool(result)

    async def screenshot(self, element: ElementHandle) -> bytes:
        try:
            return await element.screenshot(type="png")
        except PlaywrightError as e:
            raise PageError("screenshot", str(e)) from e

    async def absolute_xpath(self, element: ElementHandle) -> str:
        try:
            return await element.evaluate(ABSOLUTE_XPATH_SCRIPT)
        except PlaywrightError as e:
            raise PageError("absolute_xpath", str(e)) from e

    async def current_url(self) -> str:
        return self._page.url

    async def full_html(self) -> str:
        try:
            return await self._page.content()
        except PlaywrightError as e:
            raise PageError("full_html", str(e)) from e

    async def navigate(self, url: str) -> None:
        target = url.rstrip("/")
        logger.info(f"Starting navigation {target}")
        try:
            response = await self._page.goto(
                target,
                wait_until="domcontentloaded",
                timeout=self._navigation_timeout * 1000,
            )
        except PlaywrightError as e:
            raise PageError("navigate", f"{target}: {e}") from e

        if response is not None and not response.ok:
            # Login pages behind WAFs often answer 4xx with a usable form
            logger.warning(f"Navigation to {target} returned HTTP {response.status}")

    async def wait_loaded(self, timeout: float) -> None:
        try:
            await self._page.wait_for_load_state("load", timeout=timeout * 1000)
        except PlaywrightError as e:
            raise PageError("wait_loaded", str(e)) from e

    async def close(self) -> None:
        if self._page.is_closed():
            return
        try:
            await self._page.close()
        except PlaywrightError as e:
            raise PageError("close", str(e)) from e


class PlaywrightBrowser:
    """Chromium instance shared by login attempts.

    Each attempt gets its own page through ``new_page()``, so attempts can
    run in parallel without sharing a page handle.

    Usage:
        async with PlaywrightBrowser() as browser:
            page = await browser.new_page()
    """

    def __init__(self, config: Settings | None = None) -> None:
        self.config = config or default_settings
        self._playwright: Any = None
        self._browser: Browser | None = None
        self._context: BrowserContext | None = None

    async def __aenter__(self) -> "PlaywrightBrowser":
        await self.start()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    @property
    def context(self) -> BrowserContext:
        """Get the browser context, raising if not started."""
        if self._context is None:
            raise RuntimeError("Browser not started. Call start() first.")
        return self._context

    async def start(self) -> None:
        """Launch Chromium and create the browser context."""
        logger.info(
            f"Launching browser (headless={self.config.browser_headless}, "
            f"proxy={'yes' if self.config.browser_proxy else 'no'})"
        )

        self._playwright = await async_playwright().start()

        launch_options: dict[str, Any] = {
            "headless": self.config.browser_headless,
            "args": LAUNCH_ARGS,
            "ignore_default_args": ["--enable-automation"],
        }
        if self.config.browser_proxy:
            launch_options["proxy"] = {"server": self.config.browser_proxy}

        self._browser = await self._playwright.chromium.launch(**launch_options)
        self._context = await self._browser.new_context(
            viewport={
                "width": self.config.browser_viewport_width,
                "height": self.config.browser_viewport_height,
            },
            user_agent=self.config.browser_user_agent,
            ignore_https_errors=self.config.browser_ignore_https_errors,
            locale="en-US",
        )

        logger.info("Browser launched")

    async def new_page(self) -> PlaywrightPage:
        """Open a fresh page for one login attempt."""
        page = await self.context.new_page()
        return PlaywrightPage(page, navigation_timeout=self.config.navigation_timeout)

    async def close(self) -> None:
        """Close context, browser and driver."""
        logger.info("Closing browser")

        if self._context:
            await self._context.close()
            self._context = None

        if self._browser:
            await self._browser.close()
            self._browser = None

        if self._playwright:
            await self._playwright.stop()
            self._playwright = None

        logger.info("Browser closed")
