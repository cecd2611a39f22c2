"""Tests for ElementResolver."""

import time

import pytest

from autologin.browser.models import Locator
from autologin.browser.resolver import ElementResolver
from autologin.errors import ElementLookupError, ElementNotFoundError, ElementTimeoutError


class TestElementResolver:
    """Tests for candidate resolution."""

    @pytest.mark.asyncio
    async def test_first_visible_candidate_wins(self, make_page, fast_settings):
        """Candidates are tried in list order and hidden matches are skipped."""
        page = make_page()
        page.add("#hidden", visible=False)
        second = page.add("#second")
        page.add("#third")

        resolver = ElementResolver(page, fast_settings)
        resolved = await resolver.resolve(["#missing", "#hidden", "#second", "#third"], "user_input")

        assert resolved.handle is second
        assert resolved.locator == Locator.parse("#second")
        assert resolved.index == 2
        assert resolved.attempt == 0
        assert page.finds["css=#third"] == 0

    @pytest.mark.asyncio
    async def test_not_found_after_all_attempts(self, make_page, fast_settings):
        """Every attempt is used and backoff delays are honored."""
        page = make_page()
        resolver = ElementResolver(page, fast_settings)

        start = time.monotonic()
        with pytest.raises(ElementNotFoundError) as exc_info:
            await resolver.resolve(["#a", "#b"], "login_button", max_attempts=3, base_backoff=0.05, timeout=5)
        elapsed = time.monotonic() - start

        assert exc_info.value.role == "login_button"
        assert exc_info.value.attempts == 3
        assert exc_info.value.candidates == ["css=#a", "css=#b"]
        assert page.finds["css=#a"] == 3
        assert page.finds["css=#b"] == 3
        # 0.05 + 0.1, with a little slack for clock resolution
        assert elapsed >= 0.14

    @pytest.mark.asyncio
    async def test_timeout_is_distinct_from_not_found(self, make_page, fast_settings):
        """Hitting the deadline raises ElementTimeoutError, not ElementNotFoundError."""
        page = make_page()
        resolver = ElementResolver(page, fast_settings)

        with pytest.raises(ElementTimeoutError) as exc_info:
            await resolver.resolve(["#a"], "password_input", max_attempts=5, base_backoff=1.0, timeout=0.2)

        assert not isinstance(exc_info.value, ElementNotFoundError)
        assert isinstance(exc_info.value, ElementLookupError)
        assert exc_info.value.timeout == 0.2
        assert exc_info.value.attempts == 1

    @pytest.mark.asyncio
    async def test_element_appearing_later_is_found(self, make_page, fast_settings):
        """An element rendered after a few polls is resolved on a later attempt."""
        page = make_page()
        late = page.add("#late", appear_after=2)

        resolver = ElementResolver(page, fast_settings)
        resolved = await resolver.resolve(["#late"], "user_input", max_attempts=3)

        assert resolved.handle is late
        assert resolved.attempt == 2

    @pytest.mark.asyncio
    async def test_empty_candidate_list(self, make_page, fast_settings):
        """No candidates means not found without polling."""
        page = make_page()
        resolver = ElementResolver(page, fast_settings)

        with pytest.raises(ElementNotFoundError) as exc_info:
            await resolver.resolve([], "captcha_input")

        assert exc_info.value.attempts == 0
        assert page.finds == {}

    @pytest.mark.asyncio
    async def test_page_errors_count_as_misses(self, make_page, fast_settings):
        """A query error on a candidate does not abort resolution."""
        page = make_page()
        page.add("#user")
        page.fail_queries = True

        resolver = ElementResolver(page, fast_settings)
        with pytest.raises(ElementNotFoundError):
            await resolver.resolve(["#user"], "user_input")

    @pytest.mark.asyncio
    async def test_accepts_prefixed_and_xpath_candidates(self, make_page, fast_settings):
        """String candidates are parsed into locators."""
        page = make_page()
        element = page.add("xpath=//input[@name='user']")

        resolver = ElementResolver(page, fast_settings)
        resolved = await resolver.resolve(["css=#nope", "//input[@name='user']"], "user_input")

        assert resolved.handle is element
        assert resolved.locator == Locator.xpath("//input[@name='user']")
