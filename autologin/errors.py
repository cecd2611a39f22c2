"""Typed failures raised by the login core."""

from collections.abc import Sequence


class AutologinError(Exception):
    """Base class for every failure raised by autologin."""

    pass


class PageError(AutologinError):
    """The rendered page rejected a query or an interaction."""

    def __init__(self, action: str, message: str):
        self.action = action
        super().__init__(f"{action} failed: {message}")


# =============================================================================
# Element lookup
# =============================================================================


class ElementLookupError(AutologinError):
    """No visible element could be resolved for a role."""

    def __init__(self, role: str, attempts: int, candidates: Sequence[str], message: str):
        self.role = role
        self.attempts = attempts
        self.candidates = list(candidates)
        super().__init__(
            f"{role}: {message} after {attempts} attempt(s) "
            f"(candidates: {', '.join(self.candidates) or 'none'})"
        )


class ElementNotFoundError(ElementLookupError):
    """Raised when no candidate ever matched a visible element."""

    def __init__(self, role: str, attempts: int, candidates: Sequence[str]):
        super().__init__(role, attempts, candidates, "element not found or not visible")


class ElementTimeoutError(ElementLookupError):
    """Raised when the resolution deadline elapsed before a match."""

    def __init__(self, role: str, attempts: int, candidates: Sequence[str], timeout: float):
        self.timeout = timeout
        super().__init__(role, attempts, candidates, f"timed out after {timeout:.1f}s")


class IncompleteFormError(AutologinError):
    """Raised when discovery could not resolve every required role."""

    def __init__(self, missing_roles: Sequence[str], found: dict[str, str] | None = None):
        self.missing_roles = list(missing_roles)
        self.found = dict(found or {})
        super().__init__(f"Login form incomplete, missing: {', '.join(self.missing_roles)}")


# =============================================================================
# Captcha
# =============================================================================


class CaptchaError(AutologinError):
    """Base class for captcha recognition failures."""

    pass


class InvalidImageError(CaptchaError):
    """Raised when the encoded captcha image is outside the accepted size range."""

    def __init__(self, size: int, min_size: int, max_size: int):
        self.size = size
        self.min_size = min_size
        self.max_size = max_size
        super().__init__(f"Captcha image size {size} outside [{min_size}, {max_size}]")


class RecognitionFailedError(CaptchaError):
    """Raised when the OCR service answered with a non-success code."""

    def __init__(self, message: str, code: int | None = None):
        self.code = code
        super().__init__(f"OCR service error: {message}")


class EmptyResultError(CaptchaError):
    """Raised when the OCR service recognized nothing."""

    def __init__(self) -> None:
        super().__init__("OCR service returned an empty result")


class CaptchaTransportError(CaptchaError):
    """Raised when the OCR service is unreachable or answers with a non-2xx status."""

    def __init__(self, message: str, status_code: int | None = None, body: str | None = None):
        self.status_code = status_code
        self.body = body
        super().__init__(message)


class CaptchaRequiredError(CaptchaError):
    """Raised when a form has a captcha but no recognizer is configured."""

    def __init__(self) -> None:
        super().__init__("Login form requires a captcha but no recognizer is configured")


# =============================================================================
# Login flow
# =============================================================================


class LoginError(AutologinError):
    """Base class for failures of the login sequence itself."""

    pass


class NavigationError(LoginError):
    """Raised when the login page could not be opened."""

    def __init__(self, url: str, message: str):
        self.url = url
        super().__init__(f"Navigation to {url} failed: {message}")


class StepTimeoutError(LoginError):
    """Raised when a single step exceeded its own time budget."""

    def __init__(self, step: str, timeout: float):
        self.step = step
        self.timeout = timeout
        super().__init__(f"Step {step} timed out after {timeout:.1f}s")


class LoginCancelledError(LoginError):
    """Raised when the attempt was cancelled or its deadline expired."""

    def __init__(self, step: str, reason: str = "cancelled"):
        self.step = step
        self.reason = reason
        super().__init__(f"Login {reason} during {step}")


class SubmitError(LoginError):
    """Raised when the submit control could not be activated."""

    def __init__(self, locator: str, message: str):
        self.locator = locator
        super().__init__(f"Failed to click login button {locator}: {message}")
