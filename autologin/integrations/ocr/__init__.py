"""Captcha OCR integration."""

from autologin.integrations.ocr.client import OCRClient, OCRResponse, ocr_endpoint
from autologin.integrations.ocr.recognizer import CaptchaRecognizer, OCRCaptchaRecognizer

__all__ = [
    "CaptchaRecognizer",
    "OCRCaptchaRecognizer",
    "OCRClient",
    "OCRResponse",
    "ocr_endpoint",
]
