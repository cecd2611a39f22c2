"""Captcha recognizer contract and its OCR service implementation."""

import base64
import logging
from abc import ABC, abstractmethod

from autologin.config import settings
from autologin.errors import EmptyResultError, InvalidImageError
from autologin.integrations.ocr.client import OCRClient

logger = logging.getLogger(__name__)


class CaptchaRecognizer(ABC):
    """Turns a captcha image into text.

    Failures are raised as ``CaptchaError`` subclasses. Results are never
    cached since captcha images are single-use.
    """

    @abstractmethod
    async def recognize(self, image: bytes) -> str:
        """Recognize the text of a captcha image.

        Args:
            image: PNG bytes of the captcha element

        Returns:
            Recognized text, stripped and non-empty
        """
        ...

    async def aclose(self) -> None:
        """Release resources held by the recognizer."""
        return None


class OCRCaptchaRecognizer(CaptchaRecognizer):
    """Recognizer backed by the HTTP OCR service."""

    def __init__(
        self,
        client: OCRClient | None = None,
        min_size: int | None = None,
        max_size: int | None = None,
    ) -> None:
        self.client = client or OCRClient()
        self.min_size = min_size if min_size is not None else settings.ocr_min_image_size
        self.max_size = max_size if max_size is not None else settings.ocr_max_image_size
        if self.min_size > self.max_size:
            raise ValueError(f"Invalid OCR image bounds [{self.min_size}, {self.max_size}]")

    async def recognize(self, image: bytes) -> str:
        return await self.recognize_base64(base64.b64encode(image).decode("ascii"))

    async def recognize_base64(self, image_b64: str) -> str:
        """Recognize an already-encoded image.

        Raises:
            InvalidImageError: Encoded size outside the configured bounds (no request made)
            EmptyResultError: The service recognized nothing
        """
        size = len(image_b64)
        if size < self.min_size or size > self.max_size:
            raise InvalidImageError(size, self.min_size, self.max_size)

        text = (await self.client.recognize_base64(image_b64)).strip()
        if not text:
            raise EmptyResultError()

        logger.info("Captcha recognized")
        return text

    async def aclose(self) -> None:
        await self.client.aclose()
