"""HTTP client for the captcha OCR service."""

import logging
from typing import Any

import httpx
from pydantic import BaseModel, ValidationError

from autologin.config import settings
from autologin.errors import CaptchaTransportError, RecognitionFailedError

logger = logging.getLogger(__name__)


class OCRResponse(BaseModel):
    """OCR service response, e.g. {"code":200,"message":"Success","data":"sw9f"}."""

    code: int
    message: str = ""
    data: str = ""


def ocr_endpoint(base_url: str) -> str:
    """Join the base URL and the ``ocr`` path with exactly one slash."""
    if not base_url:
        raise ValueError("OCR base URL must be configured")
    return f"{base_url.rstrip('/')}/ocr"


class OCRClient:
    """HTTP client for the OCR recognition endpoint.

    The endpoint takes a form-encoded base64 PNG and answers with a JSON
    envelope. Transport failures are surfaced, never retried.

    Usage:
        async with OCRClient("http://ocr.local:8000") as client:
            text = await client.recognize_base64(image_b64)
    """

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            base_url: OCR service URL (defaults to settings)
            timeout: Request timeout in seconds (defaults to settings)
            transport: Optional httpx transport, mainly for tests
        """
        self.base_url = base_url or settings.ocr_base_url or ""
        self.endpoint = ocr_endpoint(self.base_url)
        self.timeout = timeout or settings.ocr_timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "OCRClient":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit."""
        await self.aclose()

    @property
    def client(self) -> httpx.AsyncClient:
        """Get HTTP client, creating it on first use."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout, transport=self._transport)
        return self._client

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def recognize_base64(self, image_b64: str) -> str:
        """Send a base64 PNG to the OCR service.

        Args:
            image_b64: Base64-encoded PNG image

        Returns:
            The ``data`` field of a successful response, untrimmed

        Raises:
            CaptchaTransportError: Network failure, non-2xx status or unreadable body
            RecognitionFailedError: The service answered with a non-200 code
        """
        form = {
            "image": image_b64,
            "probability": "false",
            "png_fix": "false",
        }

        try:
            response = await self.client.post(self.endpoint, data=form)
        except httpx.HTTPError as e:
            logger.error(f"OCR request to {self.endpoint} failed: {e}")
            raise CaptchaTransportError(f"Failed to send OCR request: {e}") from e

        if not response.is_success:
            raise CaptchaTransportError(
                f"OCR request failed with status {response.status_code}: {response.text}",
                status_code=response.status_code,
                body=response.text,
            )

        try:
            result = OCRResponse.model_validate_json(response.content)
        except ValidationError as e:
            raise CaptchaTransportError(
                f"Failed to parse OCR response: {e}",
                status_code=response.status_code,
                body=response.text,
            ) from e

        if result.code != 200:
            raise RecognitionFailedError(result.message, code=result.code)

        return result.data
