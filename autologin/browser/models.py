"""Pydantic models shared by the login core."""

import time
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, SecretStr, model_validator


class LocatorStrategy(str, Enum):
    """Query engine a locator is written for."""

    XPATH = "xpath"
    CSS = "css"


class SessionStatus(str, Enum):
    """Verdict of the post-submit page classification."""

    LOGGED_IN = "logged_in"
    AT_LOGIN_PAGE = "at_login_page"
    INDETERMINATE = "indeterminate"


class LoginState(str, Enum):
    """States of the login sequence."""

    START = "start"
    LOCATE_USER = "locate_user"
    FILL_USER = "fill_user"
    LOCATE_PASS = "locate_pass"
    FILL_PASS = "fill_pass"
    TICK_REMEMBER_ME = "tick_remember_me"
    LOCATE_CAPTCHA_IMG = "locate_captcha_img"
    RECOGNIZE = "recognize"
    LOCATE_CAPTCHA_INPUT = "locate_captcha_input"
    FILL_CAPTCHA = "fill_captcha"
    LOCATE_SUBMIT = "locate_submit"
    CLICK_SUBMIT = "click_submit"
    SETTLE = "settle"
    CLASSIFY = "classify"
    END = "end"


class Locator(BaseModel):
    """A strategy-tagged expression identifying DOM nodes at query time."""

    model_config = ConfigDict(frozen=True)

    strategy: LocatorStrategy
    value: str = Field(min_length=1)

    @classmethod
    def parse(cls, raw: "str | Locator") -> "Locator":
        """Build a locator from ``xpath=...``/``css=...`` or a bare expression.

        Bare expressions starting with ``/``, ``(`` or ``..`` are XPath,
        anything else is treated as CSS.
        """
        if isinstance(raw, Locator):
            return raw

        text = raw.strip()
        for strategy in LocatorStrategy:
            prefix = f"{strategy.value}="
            if text.startswith(prefix):
                return cls(strategy=strategy, value=text[len(prefix):])

        if text.startswith(("/", "(", "..")):
            return cls(strategy=LocatorStrategy.XPATH, value=text)
        return cls(strategy=LocatorStrategy.CSS, value=text)

    @classmethod
    def xpath(cls, expression: str) -> "Locator":
        """Build an XPath locator."""
        return cls(strategy=LocatorStrategy.XPATH, value=expression)

    def __str__(self) -> str:
        return f"{self.strategy.value}={self.value}"


class Selector(BaseModel):
    """Resolved locators for one site's login form.

    Required roles are mandatory fields, so every instance is complete.
    Captcha roles are all-or-nothing.
    """

    model_config = ConfigDict(frozen=True)

    user_input: Locator
    password_input: Locator
    login_button: Locator
    captcha_input: Locator | None = None
    captcha_image: Locator | None = None
    remember_me: Locator | None = None

    @model_validator(mode="after")
    def _captcha_all_or_nothing(self) -> "Selector":
        if (self.captcha_input is None) != (self.captcha_image is None):
            raise ValueError("captcha_input and captcha_image must both be set or both be empty")
        return self

    @property
    def has_captcha(self) -> bool:
        """Check if the form carries a captcha challenge."""
        return self.captcha_input is not None and self.captcha_image is not None


class SelectorHints(BaseModel):
    """Candidate locator strings per role, in preference order.

    ``None`` means "use the built-in defaults", an empty list disables the role.
    """

    user_input: list[str] | None = None
    password_input: list[str] | None = None
    login_button: list[str] | None = None
    captcha_input: list[str] | None = None
    captcha_image: list[str] | None = None
    remember_me: list[str] | None = None


class LoginAttempt(BaseModel):
    """One call to the orchestrator. Never persisted."""

    selector: Selector
    username: str
    password: SecretStr
    started_at: float = Field(default_factory=time.monotonic)


class SessionOutcome(BaseModel):
    """Result of a login attempt."""

    status: SessionStatus
    elapsed: float = 0.0
    url: str | None = None
    html: str | None = None
    reason: str | None = None
    states: list[LoginState] = Field(default_factory=list)

    @property
    def logged_in(self) -> bool:
        """Check if the attempt ended logged in."""
        return self.status == SessionStatus.LOGGED_IN
