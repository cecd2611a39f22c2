"""Login sequence state machine."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

from pydantic import SecretStr

from autologin.browser.classifier import SessionStateClassifier
from autologin.browser.models import (
    Locator,
    LoginAttempt,
    LoginState,
    Selector,
    SessionOutcome,
)
from autologin.browser.page import RenderedPage
from autologin.browser.resolver import ElementResolver, ResolvedElement
from autologin.browser.scope import AttemptScope
from autologin.config import Settings, settings as default_settings
from autologin.errors import (
    CaptchaRequiredError,
    ElementNotFoundError,
    EmptyResultError,
    LoginError,
    PageError,
    SubmitError,
)
from autologin.integrations.ocr.recognizer import CaptchaRecognizer

logger = logging.getLogger(__name__)


@dataclass
class AttemptContext:
    """Mutable state threaded through the steps of one attempt."""

    page: RenderedPage
    attempt: LoginAttempt
    resolver: ElementResolver
    scope: AttemptScope
    step_timeout: float
    remember_me: bool = False
    states: list[LoginState] = field(default_factory=list)
    elements: dict[LoginState, ResolvedElement] = field(default_factory=dict)
    captcha_text: str | None = None
    outcome: SessionOutcome | None = None

    @property
    def selector(self) -> Selector:
        return self.attempt.selector


StepHandler = Callable[[AttemptContext], Awaitable[None]]

# Unconditional transitions. FILL_PASS and TICK_REMEMBER_ME branch in _next_state.
TRANSITIONS: dict[LoginState, LoginState] = {
    LoginState.START: LoginState.LOCATE_USER,
    LoginState.LOCATE_USER: LoginState.FILL_USER,
    LoginState.FILL_USER: LoginState.LOCATE_PASS,
    LoginState.LOCATE_PASS: LoginState.FILL_PASS,
    LoginState.LOCATE_CAPTCHA_IMG: LoginState.RECOGNIZE,
    LoginState.RECOGNIZE: LoginState.LOCATE_CAPTCHA_INPUT,
    LoginState.LOCATE_CAPTCHA_INPUT: LoginState.FILL_CAPTCHA,
    LoginState.FILL_CAPTCHA: LoginState.LOCATE_SUBMIT,
    LoginState.LOCATE_SUBMIT: LoginState.CLICK_SUBMIT,
    LoginState.CLICK_SUBMIT: LoginState.SETTLE,
    LoginState.SETTLE: LoginState.CLASSIFY,
    LoginState.CLASSIFY: LoginState.END,
}

LOCATE_STATES = {
    LoginState.LOCATE_USER,
    LoginState.LOCATE_PASS,
    LoginState.LOCATE_CAPTCHA_IMG,
    LoginState.LOCATE_CAPTCHA_INPUT,
    LoginState.LOCATE_SUBMIT,
}


class LoginOrchestrator:
    """Drive a login form from an empty page to a classified outcome.

    Steps run strictly in order, each under its own time budget and inside
    the attempt's cancellation scope:

        START -> LOCATE_USER -> FILL_USER -> LOCATE_PASS -> FILL_PASS
              -> [TICK_REMEMBER_ME]
              -> [LOCATE_CAPTCHA_IMG -> RECOGNIZE -> LOCATE_CAPTCHA_INPUT -> FILL_CAPTCHA]
              -> LOCATE_SUBMIT -> CLICK_SUBMIT -> SETTLE -> CLASSIFY -> END

    Lookup failures are fatal once the resolver gives up, captcha failures
    are fatal, and nothing is rolled back on failure.
    """

    # Extra budget for LOCATE steps so the resolver's own timeout fires first
    LOCATE_GRACE = 1.0

    def __init__(
        self,
        recognizer: CaptchaRecognizer | None = None,
        classifier: SessionStateClassifier | None = None,
        config: Settings | None = None,
    ) -> None:
        self.recognizer = recognizer
        self.classifier = classifier or SessionStateClassifier()
        self.config = config or default_settings

        self._handlers: dict[LoginState, StepHandler] = {
            LoginState.LOCATE_USER: self._locate_user,
            LoginState.FILL_USER: self._fill_user,
            LoginState.LOCATE_PASS: self._locate_password,
            LoginState.FILL_PASS: self._fill_password,
            LoginState.TICK_REMEMBER_ME: self._tick_remember_me,
            LoginState.LOCATE_CAPTCHA_IMG: self._locate_captcha_image,
            LoginState.RECOGNIZE: self._recognize,
            LoginState.LOCATE_CAPTCHA_INPUT: self._locate_captcha_input,
            LoginState.FILL_CAPTCHA: self._fill_captcha,
            LoginState.LOCATE_SUBMIT: self._locate_submit,
            LoginState.CLICK_SUBMIT: self._click_submit,
            LoginState.SETTLE: self._settle,
            LoginState.CLASSIFY: self._classify,
        }

    async def login(
        self,
        page: RenderedPage,
        selector: Selector,
        username: str,
        password: str | SecretStr,
        per_step_timeout: float | None = None,
        scope: AttemptScope | None = None,
        remember_me: bool = False,
    ) -> SessionOutcome:
        """Fill and submit the login form, then classify the result.

        Args:
            page: Page showing the login form
            selector: Resolved locators for the form
            username: Account name
            password: Account password
            per_step_timeout: Budget of every single step in seconds
            scope: Attempt scope to cancel from outside
            remember_me: Tick the remember-me box when the form has one

        Returns:
            SessionOutcome of the post-submit page

        Raises:
            ElementLookupError: A form control disappeared
            CaptchaError: The captcha could not be solved
            LoginCancelledError: The scope was cancelled or its deadline expired
            StepTimeoutError: A step exceeded its budget
            SubmitError: The login button could not be clicked
        """
        if selector.has_captcha and self.recognizer is None:
            raise CaptchaRequiredError()

        attempt = LoginAttempt(selector=selector, username=username, password=password)
        step_timeout = per_step_timeout or self.config.step_timeout
        ctx = AttemptContext(
            page=page,
            attempt=attempt,
            resolver=ElementResolver(page, self.config),
            scope=scope or AttemptScope(),
            step_timeout=step_timeout,
            remember_me=remember_me,
        )

        async with page.exclusive():
            state = LoginState.START
            ctx.states.append(state)

            while True:
                state = self._next_state(state, ctx)
                ctx.states.append(state)
                if state == LoginState.END:
                    break

                logger.debug(f"Login step {state.value}")
                await ctx.scope.run(
                    self._handlers[state](ctx),
                    timeout=self._budget(state, step_timeout),
                    name=state.value,
                )

        if ctx.outcome is None:
            raise LoginError("Login sequence ended without a classified outcome")
        outcome = ctx.outcome.model_copy(update={"states": list(ctx.states)})
        logger.info(f"Login form submitted, {outcome.status.value} in {outcome.elapsed:.1f}s")
        return outcome

    def _next_state(self, state: LoginState, ctx: AttemptContext) -> LoginState:
        if state == LoginState.FILL_PASS and ctx.remember_me and ctx.selector.remember_me:
            return LoginState.TICK_REMEMBER_ME
        if state in (LoginState.FILL_PASS, LoginState.TICK_REMEMBER_ME):
            if ctx.selector.has_captcha:
                logger.info("Handling captcha challenge")
                return LoginState.LOCATE_CAPTCHA_IMG
            return LoginState.LOCATE_SUBMIT
        return TRANSITIONS[state]

    def _budget(self, state: LoginState, step_timeout: float) -> float | None:
        if state in LOCATE_STATES or state == LoginState.TICK_REMEMBER_ME:
            return step_timeout + self.LOCATE_GRACE
        if state in (LoginState.FILL_USER, LoginState.FILL_PASS, LoginState.FILL_CAPTCHA):
            return step_timeout + self.config.fill_settle
        if state == LoginState.SETTLE:
            # Fixed delay, only the attempt scope can cut it short
            return None
        return step_timeout

    # =========================================================================
    # Steps
    # =========================================================================

    @staticmethod
    def _pinned(locator: Locator | None, role: str) -> Locator:
        if locator is None:
            raise ElementNotFoundError(role, 0, [])
        return locator

    async def _locate(self, ctx: AttemptContext, state: LoginState, locator: Locator, role: str) -> None:
        ctx.elements[state] = await ctx.resolver.resolve([locator], role, timeout=ctx.step_timeout)

    async def _fill(self, ctx: AttemptContext, located: LoginState, value: str, role: str) -> None:
        await ctx.page.set_input_value(ctx.elements[located].handle, value)
        logger.info(f"{role} filled")
        await asyncio.sleep(self.config.fill_settle)

    async def _locate_user(self, ctx: AttemptContext) -> None:
        await self._locate(ctx, LoginState.LOCATE_USER, ctx.selector.user_input, "username input")

    async def _fill_user(self, ctx: AttemptContext) -> None:
        await self._fill(ctx, LoginState.LOCATE_USER, ctx.attempt.username, "username input")

    async def _locate_password(self, ctx: AttemptContext) -> None:
        await self._locate(ctx, LoginState.LOCATE_PASS, ctx.selector.password_input, "password input")

    async def _fill_password(self, ctx: AttemptContext) -> None:
        await self._fill(
            ctx, LoginState.LOCATE_PASS, ctx.attempt.password.get_secret_value(), "password input"
        )

    async def _tick_remember_me(self, ctx: AttemptContext) -> None:
        locator = self._pinned(ctx.selector.remember_me, "remember me")
        await self._locate(ctx, LoginState.TICK_REMEMBER_ME, locator, "remember me")
        checkbox = ctx.elements[LoginState.TICK_REMEMBER_ME].handle
        if await ctx.page.is_checked(checkbox):
            logger.info("Remember me already checked")
            return
        await ctx.page.click(checkbox)

    async def _locate_captcha_image(self, ctx: AttemptContext) -> None:
        locator = self._pinned(ctx.selector.captcha_image, "captcha image")
        await self._locate(ctx, LoginState.LOCATE_CAPTCHA_IMG, locator, "captcha image")

    async def _recognize(self, ctx: AttemptContext) -> None:
        if self.recognizer is None:
            raise CaptchaRequiredError()
        image = await ctx.page.screenshot(ctx.elements[LoginState.LOCATE_CAPTCHA_IMG].handle)
        ctx.captcha_text = await self.recognizer.recognize(image)

    async def _locate_captcha_input(self, ctx: AttemptContext) -> None:
        locator = self._pinned(ctx.selector.captcha_input, "captcha input")
        await self._locate(ctx, LoginState.LOCATE_CAPTCHA_INPUT, locator, "captcha input")

    async def _fill_captcha(self, ctx: AttemptContext) -> None:
        if not ctx.captcha_text:
            raise EmptyResultError()
        await self._fill(ctx, LoginState.LOCATE_CAPTCHA_INPUT, ctx.captcha_text, "captcha input")
        logger.info("Captcha input completed")

    async def _locate_submit(self, ctx: AttemptContext) -> None:
        await self._locate(ctx, LoginState.LOCATE_SUBMIT, ctx.selector.login_button, "login button")

    async def _click_submit(self, ctx: AttemptContext) -> None:
        locator = ctx.selector.login_button
        try:
            await ctx.page.click(ctx.elements[LoginState.LOCATE_SUBMIT].handle)
            return
        except PageError as e:
            logger.warning(f"Native click on login button failed, using script click: {e}")

        try:
            clicked = await ctx.page.evaluate_click(locator)
        except PageError as e:
            raise SubmitError(str(locator), str(e)) from e
        if not clicked:
            raise SubmitError(str(locator), "element not found by script")

    async def _settle(self, ctx: AttemptContext) -> None:
        await asyncio.sleep(self.config.submit_settle)

    async def _classify(self, ctx: AttemptContext) -> None:
        ctx.outcome = await self.classifier.classify(
            ctx.page, started_at=ctx.attempt.started_at, states=ctx.states
        )
