"""Rendered page capability consumed by the login core."""

import asyncio
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from autologin.browser.models import Locator

# Scripted click used when a native click does not register.
# Receives {"strategy": "xpath" | "css", "value": "..."}.
CLICK_SCRIPT = """
    (locator) => {
        let element = null;
        if (locator.strategy === 'xpath') {
            const result = document.evaluate(
                locator.value,
                document,
                null,
                XPathResult.FIRST_ORDERED_NODE_TYPE,
                null
            );
            element = result.singleNodeValue;
        } else {
            element = document.querySelector(locator.value);
        }
        if (element) {
            element.click();
            return true;
        }
        return false;
    }
"""

# Absolute, index-qualified path from the document root to an element.
ABSOLUTE_XPATH_SCRIPT = """
    (element) => {
        const parts = [];
        for (let node = element; node && node.nodeType === Node.ELEMENT_NODE; node = node.parentNode) {
            let index = 1;
            for (let sibling = node.previousElementSibling; sibling; sibling = sibling.previousElementSibling) {
                if (sibling.nodeName === node.nodeName) index++;
            }
            parts.unshift(`${node.nodeName.toLowerCase()}[${index}]`);
        }
        return '/' + parts.join('/');
    }
"""


class RenderedPage(ABC):
    """Abstract base class for a live, rendered document.

    Implementations:
    - PlaywrightPage: one Playwright page per login attempt

    Every method raises ``PageError`` when the underlying engine fails,
    except ``find`` which returns None when nothing matches.
    """

    def __init__(self) -> None:
        self._lock = asyncio.Lock()

    @asynccontextmanager
    async def exclusive(self) -> AsyncIterator["RenderedPage"]:
        """Hold the page for the duration of an attempt."""
        async with self._lock:
            yield self

    @property
    def locked(self) -> bool:
        """Check if an attempt currently owns the page."""
        return self._lock.locked()

    @abstractmethod
    async def find(self, locator: Locator) -> Any | None:
        """Return the first element matching the locator, or None."""
        ...

    @abstractmethod
    async def is_visible(self, element: Any) -> bool:
        """Check if an element is rendered and visible."""
        ...

    @abstractmethod
    async def set_input_value(self, element: Any, text: str) -> None:
        """Type a value into an input element."""
        ...

    @abstractmethod
    async def is_checked(self, element: Any) -> bool:
        """Check if a checkbox or radio element is checked."""
        ...

    @abstractmethod
    async def click(self, element: Any) -> None:
        """Click an element natively."""
        ...

    @abstractmethod
    async def evaluate_click(self, locator: Locator) -> bool:
        """Click the element addressed by a locator from page script.

        Returns:
            True if an element was found and clicked
        """
        ...

    @abstractmethod
    async def screenshot(self, element: Any) -> bytes:
        """Capture an element as PNG bytes."""
        ...

    @abstractmethod
    async def absolute_xpath(self, element: Any) -> str:
        """Return the absolute XPath of an element."""
        ...

    @abstractmethod
    async def current_url(self) -> str:
        """Get the current page URL."""
        ...

    @abstractmethod
    async def full_html(self) -> str:
        """Get the current page HTML content."""
        ...

    @abstractmethod
    async def navigate(self, url: str) -> None:
        """Navigate to a URL."""
        ...

    @abstractmethod
    async def wait_loaded(self, timeout: float) -> None:
        """Wait for the page load event.

        Args:
            timeout: Seconds to wait
        """
        ...

    @abstractmethod
    async def close(self) -> None:
        """Close the page and release its resources."""
        ...
