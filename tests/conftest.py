"""Pytest configuration and fixtures."""

import asyncio
import os
from collections import defaultdict
from collections.abc import Callable

import pytest

# Set test environment
os.environ["APP_ENV"] = "development"
os.environ.pop("OCR_BASE_URL", None)
os.environ.pop("SELECTOR_STORE_PATH", None)

from autologin.browser.models import Locator, Selector  # noqa: E402
from autologin.browser.page import RenderedPage  # noqa: E402
from autologin.config import Settings  # noqa: E402
from autologin.errors import PageError  # noqa: E402
from autologin.integrations.ocr.recognizer import CaptchaRecognizer  # noqa: E402


class FakeElement:
    """In-memory stand-in for a DOM element."""

    def __init__(self, name: str, xpath: str, visible: bool = True, appear_after: int = 0):
        self.name = name
        self.xpath = xpath
        self.visible = visible
        # Number of lookups that miss before the element shows up
        self.appear_after = appear_after
        self.xpath_error = False
        self.value = ""
        self.checked = False
        self.clicks = 0

    def __repr__(self) -> str:
        return f"FakeElement({self.name!r})"


class FakePage(RenderedPage):
    """Scriptable RenderedPage used instead of a real browser."""

    def __init__(self, url: str = "https://example.com/login", html: str = "<html><body></body></html>"):
        super().__init__()
        self.url = url
        self.html = html
        self.elements: dict[str, FakeElement] = {}
        self.finds: dict[str, int] = defaultdict(int)
        self.actions: list[tuple[str, str]] = []
        self.navigated: list[str] = []
        self.closed = False

        self.fail_queries = False
        self.crashed = False
        self.html_error = False
        self.navigate_error = False
        self.click_error = False
        self.script_click_result = True
        self.screenshot_bytes = b"\x89PNG" + b"0" * 200
        self.on_click: Callable[[], None] | None = None

    def add(
        self,
        locator: str,
        name: str | None = None,
        visible: bool = True,
        appear_after: int = 0,
        xpath: str | None = None,
    ) -> FakeElement:
        """Register an element reachable through a locator and its absolute XPath."""
        name = name or locator
        xpath = xpath or f"/html[1]/body[1]/form[1]/*[{len(self.elements) + 1}]"
        element = FakeElement(name, xpath, visible=visible, appear_after=appear_after)
        self.elements[str(Locator.parse(locator))] = element
        self.elements[str(Locator.xpath(xpath))] = element
        return element

    async def find(self, locator):
        key = str(locator)
        self.finds[key] += 1
        if self.fail_queries:
            raise PageError("find", "page crashed")

        element = self.elements.get(key)
        if element is None or self.finds[key] <= element.appear_after:
            return None
        return element

    async def is_visible(self, element):
        return element.visible

    async def set_input_value(self, element, text):
        element.value = text
        self.actions.append(("fill", element.name))

    async def is_checked(self, element):
        return element.checked

    async def click(self, element):
        if self.click_error:
            raise PageError("click", "element is not clickable")
        element.clicks += 1
        element.checked = not element.checked
        self.actions.append(("click", element.name))
        if self.on_click:
            self.on_click()

    async def evaluate_click(self, locator):
        self.actions.append(("script_click", str(locator)))
        if self.script_click_result and self.on_click:
            self.on_click()
        return self.script_click_result

    async def screenshot(self, element):
        self.actions.append(("screenshot", element.name))
        return self.screenshot_bytes

    async def absolute_xpath(self, element):
        if element.xpath_error:
            raise PageError("absolute_xpath", "element detached")
        return element.xpath

    async def current_url(self):
        if self.crashed:
            raise PageError("current_url", "target closed")
        return self.url

    async def full_html(self):
        if self.crashed or self.html_error:
            raise PageError("full_html", "target closed")
        return self.html

    async def navigate(self, url):
        if self.navigate_error:
            raise PageError("navigate", "net::ERR_NAME_NOT_RESOLVED")
        self.navigated.append(url)

    async def wait_loaded(self, timeout):
        return None

    async def close(self):
        self.closed = True


class FakeRecognizer(CaptchaRecognizer):
    """Recognizer returning a canned answer."""

    def __init__(self, text: str = "sw9f", error: Exception | None = None, delay: float = 0.0):
        self.text = text
        self.error = error
        self.delay = delay
        self.images: list[bytes] = []
        self.started = asyncio.Event()
        self.cancelled = False
        self.closed = False

    async def recognize(self, image: bytes) -> str:
        self.images.append(image)
        self.started.set()
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
        except asyncio.CancelledError:
            self.cancelled = True
            raise
        if self.error:
            raise self.error
        return self.text

    async def aclose(self) -> None:
        self.closed = True


def build_login_page(
    url: str = "https://example.com/login",
    captcha: bool = False,
    remember_me: bool = False,
) -> FakePage:
    """A page with a plain login form that 'logs in' when the button is clicked."""
    page = FakePage(url=url)
    page.add("#user", name="user", xpath="/html[1]/body[1]/form[1]/input[1]")
    page.add("#pass", name="pass", xpath="/html[1]/body[1]/form[1]/input[2]")
    page.add("#submit", name="submit", xpath="/html[1]/body[1]/form[1]/button[1]")
    if captcha:
        page.add("#captcha", name="captcha", xpath="/html[1]/body[1]/form[1]/input[3]")
        page.add("#captcha-img", name="captcha_img", xpath="/html[1]/body[1]/form[1]/img[1]")
    if remember_me:
        page.add("#remember", name="remember", xpath="/html[1]/body[1]/form[1]/input[4]")

    def logged_in():
        page.url = url.rsplit("/", 1)[0] + "/dashboard"
        page.add(".logout-btn", name="logout", xpath="/html[1]/body[1]/nav[1]/a[1]")

    page.on_click = logged_in
    return page


@pytest.fixture
def fast_settings():
    """Settings with short delays so flows finish quickly."""
    return Settings(
        resolver_max_attempts=3,
        resolver_backoff=0.01,
        resolver_timeout=2.0,
        step_timeout=2.0,
        fill_settle=0.0,
        submit_settle=0.0,
        login_timeout=10.0,
        navigation_timeout=2.0,
    )


@pytest.fixture
def login_page():
    """Plain username/password form."""
    return build_login_page()


@pytest.fixture
def captcha_page():
    """Login form with a captcha challenge."""
    return build_login_page(captcha=True)


@pytest.fixture
def plain_selector():
    """Selector matching ``login_page``."""
    return Selector(
        user_input=Locator.parse("#user"),
        password_input=Locator.parse("#pass"),
        login_button=Locator.parse("#submit"),
    )


@pytest.fixture
def captcha_selector():
    """Selector matching ``captcha_page``."""
    return Selector(
        user_input=Locator.parse("#user"),
        password_input=Locator.parse("#pass"),
        login_button=Locator.parse("#submit"),
        captcha_input=Locator.parse("#captcha"),
        captcha_image=Locator.parse("#captcha-img"),
    )


@pytest.fixture
def recognizer():
    """Recognizer answering ``sw9f``."""
    return FakeRecognizer()


@pytest.fixture
def make_page():
    """Factory for empty fake pages."""
    return FakePage


@pytest.fixture
def make_login_page():
    """Factory for fake login forms."""
    return build_login_page


@pytest.fixture
def make_recognizer():
    """Factory for fake recognizers."""
    return FakeRecognizer
