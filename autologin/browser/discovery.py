"""Discover the login form controls of an unknown page."""

import logging
from collections.abc import Sequence

from autologin.browser.models import Locator, Selector, SelectorHints
from autologin.browser.page import RenderedPage
from autologin.browser.resolver import ElementResolver, ResolvedElement
from autologin.errors import ElementLookupError, IncompleteFormError, PageError

logger = logging.getLogger(__name__)


# Candidate locators tried when the caller gives no hints for a role
DEFAULT_USER_INPUT_CANDIDATES: list[str] = [
    'input[autocomplete="username"]',
    'input[type="email"]',
    'input[name*="user" i]',
    'input[id*="user" i]',
    'input[name*="login" i]',
    'input[id*="login" i]',
    'input[name*="account" i]',
    'input[name*="email" i]',
    'input[type="text"]',
]

DEFAULT_PASSWORD_INPUT_CANDIDATES: list[str] = [
    'input[autocomplete="current-password"]',
    'input[type="password"]',
]

DEFAULT_LOGIN_BUTTON_CANDIDATES: list[str] = [
    'button[type="submit"]',
    'input[type="submit"]',
    'button[id*="login" i]',
    'button[name*="login" i]',
    'button:has-text("Log in")',
    'button:has-text("Sign in")',
    'button:has-text("Login")',
    '[id*="submit" i]',
    '[id*="login" i][role="button"]',
    'a[id*="login" i]',
    "button",
]

DEFAULT_CAPTCHA_INPUT_CANDIDATES: list[str] = [
    'input[name*="captcha" i]',
    'input[id*="captcha" i]',
    'input[name*="validatecode" i]',
    'input[id*="validatecode" i]',
    'input[name*="verify" i]',
    'input[id*="verify" i]',
    'input[name*="vcode" i]',
    'input[placeholder*="captcha" i]',
]

DEFAULT_CAPTCHA_IMAGE_CANDIDATES: list[str] = [
    'img[id*="captcha" i]',
    'img[src*="captcha" i]',
    'img[class*="captcha" i]',
    'img[src*="validate" i]',
    'img[src*="verify" i]',
    'img[id*="code" i]',
    'canvas[id*="captcha" i]',
]

DEFAULT_REMEMBER_ME_CANDIDATES: list[str] = [
    'input[type="checkbox"][name*="remember" i]',
    'input[type="checkbox"][id*="remember" i]',
]


def candidates_for(hints: SelectorHints | None) -> dict[str, list[str]]:
    """Merge caller hints with the default candidate lists, per role."""
    hints = hints or SelectorHints()

    def pick(value: list[str] | None, default: list[str]) -> list[str]:
        return list(default) if value is None else list(value)

    return {
        "user_input": pick(hints.user_input, DEFAULT_USER_INPUT_CANDIDATES),
        "password_input": pick(hints.password_input, DEFAULT_PASSWORD_INPUT_CANDIDATES),
        "login_button": pick(hints.login_button, DEFAULT_LOGIN_BUTTON_CANDIDATES),
        "captcha_input": pick(hints.captcha_input, DEFAULT_CAPTCHA_INPUT_CANDIDATES),
        "captcha_image": pick(hints.captcha_image, DEFAULT_CAPTCHA_IMAGE_CANDIDATES),
        "remember_me": pick(hints.remember_me, DEFAULT_REMEMBER_ME_CANDIDATES),
    }


class FormDiscovery:
    """Assemble a Selector for the page currently loaded.

    Roles are resolved in a fixed order (user, password, submit,
    captcha input, captcha image, remember me). A failed role does not stop
    discovery so that an incomplete form can be reported in full.
    """

    REQUIRED_ROLES = ("user_input", "password_input", "login_button")

    def __init__(
        self,
        resolver: ElementResolver,
        page: RenderedPage | None = None,
        captcha_enabled: bool = True,
    ) -> None:
        self.resolver = resolver
        self.page = page or resolver.page
        self.captcha_enabled = captcha_enabled

    async def discover(
        self,
        user_candidates: Sequence[str],
        password_candidates: Sequence[str],
        submit_candidates: Sequence[str],
        captcha_input_candidates: Sequence[str] = (),
        captcha_image_candidates: Sequence[str] = (),
        remember_me_candidates: Sequence[str] = (),
    ) -> Selector:
        """Resolve every role and build a Selector.

        Returns:
            Selector with canonical (absolute XPath) locators

        Raises:
            IncompleteFormError: A required role could not be resolved
        """
        found: dict[str, Locator] = {}

        for role, candidates in (
            ("user_input", user_candidates),
            ("password_input", password_candidates),
            ("login_button", submit_candidates),
        ):
            locator = await self._discover_role(role, candidates)
            if locator is not None:
                found[role] = locator

        if self.captcha_enabled and captcha_input_candidates:
            captcha_input = await self._discover_role("captcha_input", captcha_input_candidates)
            if captcha_input is not None:
                captcha_image = await self._discover_role("captcha_image", captcha_image_candidates)
                if captcha_image is not None:
                    found["captcha_input"] = captcha_input
                    found["captcha_image"] = captcha_image
                else:
                    logger.warning("Captcha input found without a captcha image, ignoring captcha")

        if remember_me_candidates:
            remember_me = await self._discover_role("remember_me", remember_me_candidates)
            if remember_me is not None:
                found["remember_me"] = remember_me

        missing = [role for role in self.REQUIRED_ROLES if role not in found]
        if missing:
            raise IncompleteFormError(missing, {role: str(loc) for role, loc in found.items()})

        return Selector(**found)

    async def discover_from_hints(
        self, hints: SelectorHints | None = None, remember_me: bool = False
    ) -> Selector:
        """Discover using caller hints, falling back to default candidates.

        The remember-me box is only searched when requested or when the
        hints name candidates for it.
        """
        candidates = candidates_for(hints)
        if not (remember_me or (hints is not None and hints.remember_me)):
            candidates["remember_me"] = []
        return await self.discover(
            candidates["user_input"],
            candidates["password_input"],
            candidates["login_button"],
            candidates["captcha_input"],
            candidates["captcha_image"],
            candidates["remember_me"],
        )

    async def _discover_role(self, role: str, candidates: Sequence[str]) -> Locator | None:
        try:
            resolved = await self.resolver.resolve(candidates, role)
        except ElementLookupError as e:
            logger.warning(f"Discovery: {e}")
            return None

        logger.info(f"Found {role}")
        return await self._canonical(resolved, role)

    async def _canonical(self, resolved: ResolvedElement, role: str) -> Locator:
        try:
            return Locator.xpath(await self.page.absolute_xpath(resolved.handle))
        except PageError as e:
            logger.warning(f"Could not compute XPath for {role}, keeping {resolved.locator}: {e}")
            return resolved.locator
