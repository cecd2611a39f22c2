"""Services built on top of the login core."""

from autologin.services.login_service import LoginService

__all__ = ["LoginService"]
