"""Resolve a form control among several candidate locators."""

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from autologin.browser.models import Locator
from autologin.browser.page import RenderedPage
from autologin.config import Settings, settings as default_settings
from autologin.errors import ElementNotFoundError, ElementTimeoutError, PageError

logger = logging.getLogger(__name__)


@dataclass
class ResolvedElement:
    """A visible element and the candidate that found it."""

    handle: Any
    locator: Locator
    index: int
    attempt: int


class ElementResolver:
    """Find the first visible element among ranked candidates.

    Candidates are tried in order within an attempt and the first visible
    match wins. Attempts are separated by an exponential backoff
    (``base_backoff * 2**attempt``) and the whole resolution races an
    overall timeout.
    """

    def __init__(self, page: RenderedPage, config: Settings | None = None) -> None:
        self.page = page
        self.config = config or default_settings

    async def resolve(
        self,
        candidates: Sequence[str | Locator],
        role: str,
        max_attempts: int | None = None,
        base_backoff: float | None = None,
        timeout: float | None = None,
    ) -> ResolvedElement:
        """Resolve a role to a visible element.

        Args:
            candidates: Locators in preference order
            role: Logical role name, used in logs and errors
            max_attempts: Attempts over the full candidate list
            base_backoff: Seconds slept after the first failed attempt
            timeout: Overall deadline in seconds

        Returns:
            ResolvedElement for the first visible match

        Raises:
            ElementNotFoundError: No candidate matched in any attempt
            ElementTimeoutError: The deadline elapsed first
        """
        max_attempts = max_attempts if max_attempts is not None else self.config.resolver_max_attempts
        base_backoff = base_backoff if base_backoff is not None else self.config.resolver_backoff
        timeout = timeout if timeout is not None else self.config.resolver_timeout

        locators = [Locator.parse(c) for c in candidates]
        labels = [str(loc) for loc in locators]
        progress = {"attempts": 0}

        if not locators:
            raise ElementNotFoundError(role, 0, labels)

        try:
            found = await asyncio.wait_for(
                self._search(locators, role, max_attempts, base_backoff, progress),
                timeout=timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(f"{role} resolution timed out after {timeout:.1f}s")
            raise ElementTimeoutError(role, progress["attempts"], labels, timeout)

        if found is None:
            raise ElementNotFoundError(role, progress["attempts"], labels)
        return found

    async def _search(
        self,
        locators: list[Locator],
        role: str,
        max_attempts: int,
        base_backoff: float,
        progress: dict[str, int],
    ) -> ResolvedElement | None:
        for attempt in range(max_attempts):
            progress["attempts"] = attempt + 1

            for index, locator in enumerate(locators):
                handle = await self._visible_match(locator, role)
                if handle is not None:
                    logger.info(f"{role} element found ({locator})")
                    return ResolvedElement(handle=handle, locator=locator, index=index, attempt=attempt)

            if attempt < max_attempts - 1:
                delay = base_backoff * (2**attempt)
                logger.info(f"{role} element not found, retrying in {delay:.2f}s ({attempt + 1}/{max_attempts})")
                await asyncio.sleep(delay)

        return None

    async def _visible_match(self, locator: Locator, role: str) -> Any | None:
        try:
            handle = await self.page.find(locator)
            if handle is None:
                return None
            if await self.page.is_visible(handle):
                return handle
        except PageError as e:
            logger.debug(f"{role} candidate {locator} unusable: {e}")
        return None
