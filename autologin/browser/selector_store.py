"""
Process-wide cache of discovered login form selectors.

Entries are keyed by site origin (``scheme://host[:port]``), written once on
first discovery and only replaced through ``invalidate`` or an explicit
overwrite. There is no automatic expiry.

When a storage path is given, the cache is mirrored to a JSON file so that
selectors survive restarts.
"""

import asyncio
import json
import logging
from pathlib import Path
from urllib.parse import urlsplit

from pydantic import ValidationError

from autologin.browser.models import Selector
from autologin.config import settings

logger = logging.getLogger(__name__)


def site_key(url: str) -> str:
    """Normalize a URL to the origin used as cache key."""
    parts = urlsplit(url.strip())
    if not parts.scheme or not parts.netloc:
        raise ValueError(f"Not an absolute URL: {url!r}")
    return f"{parts.scheme.lower()}://{parts.netloc.lower()}"


class SelectorStore:
    """Read-mostly selector cache shared by every login attempt."""

    def __init__(self, storage_path: str | Path | None = None):
        self.storage_path = Path(storage_path) if storage_path else None
        self._selectors: dict[str, Selector] = {}
        self._write_lock = asyncio.Lock()

        if self.storage_path:
            self._load()
            logger.info(f"Selector store initialized at {self.storage_path}")

    def _load(self) -> None:
        if not self.storage_path or not self.storage_path.exists():
            return

        try:
            with open(self.storage_path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Failed to read selector store {self.storage_path}: {e}")
            return

        for key, raw in data.items():
            try:
                self._selectors[key] = Selector.model_validate(raw)
            except ValidationError as e:
                logger.warning(f"Dropping invalid cached selector for {key}: {e}")

        logger.debug(f"Loaded {len(self._selectors)} cached selectors")

    def _persist(self) -> None:
        if not self.storage_path:
            return

        self.storage_path.parent.mkdir(parents=True, exist_ok=True)
        payload = {key: sel.model_dump(mode="json") for key, sel in self._selectors.items()}
        with open(self.storage_path, "w", encoding="utf-8") as f:
            json.dump(payload, f, indent=2)

    def get(self, url: str) -> Selector | None:
        """Look up the selector cached for a site."""
        return self._selectors.get(site_key(url))

    def __contains__(self, url: str) -> bool:
        return site_key(url) in self._selectors

    def __len__(self) -> int:
        return len(self._selectors)

    def items(self) -> list[tuple[str, Selector]]:
        """Snapshot of all cached entries."""
        return sorted(self._selectors.items())

    async def put(self, url: str, selector: Selector, overwrite: bool = False) -> Selector:
        """
        Cache a selector for a site.

        Args:
            url: Any URL of the site
            selector: Selector to store
            overwrite: Replace an existing entry

        Returns:
            The selector now cached for the site (the existing one if kept)
        """
        key = site_key(url)
        async with self._write_lock:
            existing = self._selectors.get(key)
            if existing is not None and not overwrite:
                logger.debug(f"Selector for {key} already cached, keeping it")
                return existing

            self._selectors[key] = selector
            self._persist()

        logger.info(f"Selector cached for {key}")
        return selector

    async def invalidate(self, url: str) -> bool:
        """Drop the cached selector for a site.

        Returns:
            True if an entry was removed
        """
        key = site_key(url)
        async with self._write_lock:
            if self._selectors.pop(key, None) is None:
                return False
            self._persist()

        logger.info(f"Selector for {key} invalidated")
        return True

    async def clear(self) -> int:
        """Drop every entry. Returns the number removed."""
        async with self._write_lock:
            count = len(self._selectors)
            self._selectors.clear()
            self._persist()
        return count


# Global singleton
_selector_store: SelectorStore | None = None


def get_selector_store() -> SelectorStore:
    """Get the global selector store instance."""
    global _selector_store
    if _selector_store is None:
        _selector_store = SelectorStore(settings.selector_store_path)
    return _selector_store
