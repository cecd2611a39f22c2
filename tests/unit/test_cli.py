"""Tests for the command-line interface."""

from unittest.mock import patch

from typer.testing import CliRunner

from autologin import __version__
from autologin.browser.models import LoginState, SessionOutcome, SessionStatus
from autologin.cli.commands import app
from autologin.config import Settings

runner = CliRunner()


class FakeService:
    """Async context manager standing in for LoginService."""

    def __init__(self, outcome):
        self.outcome = outcome
        self.calls = []

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return None

    async def login(self, url, hints, username, password, **kwargs):
        self.calls.append((url, hints, username, password, kwargs))
        return self.outcome


class TestCli:
    """Tests for CLI commands."""

    def test_version(self):
        """Test the version command."""
        result = runner.invoke(app, ["version"])

        assert result.exit_code == 0
        assert __version__ in result.output

    def test_login_success(self):
        """A logged-in outcome exits with status 0."""
        service = FakeService(
            SessionOutcome(
                status=SessionStatus.LOGGED_IN,
                url="https://example.com/home",
                reason="logged-in marker .logout-btn",
                states=[LoginState.START, LoginState.END],
            )
        )

        with patch("autologin.services.login_service.LoginService.from_settings", return_value=service):
            result = runner.invoke(
                app,
                [
                    "login",
                    "https://example.com/login",
                    "-u",
                    "alice",
                    "-p",
                    "secret",
                    "--user-selector",
                    "#email",
                    "--user-selector",
                    "#login",
                ],
            )

        assert result.exit_code == 0, result.output
        assert "logged_in" in result.output
        url, hints, username, password, kwargs = service.calls[0]
        assert url == "https://example.com/login"
        assert hints.user_input == ["#email", "#login"]
        assert hints.password_input is None
        assert (username, password) == ("alice", "secret")
        assert kwargs["classifier_config"].default_success is True

    def test_login_failure_exit_code(self):
        """Anything but logged in exits with status 1."""
        service = FakeService(SessionOutcome(status=SessionStatus.AT_LOGIN_PAGE, reason="error marker"))

        with patch("autologin.services.login_service.LoginService.from_settings", return_value=service):
            result = runner.invoke(
                app,
                ["login", "https://example.com/login", "-u", "alice", "-p", "secret", "--no-default-success"],
            )

        assert result.exit_code == 1
        assert service.calls[0][4]["classifier_config"].default_success is False

    def test_ocr_missing_image(self, tmp_path):
        """Test the ocr command with a missing file."""
        result = runner.invoke(app, ["ocr", str(tmp_path / "nope.png"), "--ocr-url", "http://ocr.local"])

        assert result.exit_code == 1
        assert "not found" in result.output

    def test_selectors_list_requires_store(self):
        """Listing needs a persisted store."""
        with patch("autologin.cli.commands.get_settings", return_value=Settings(_env_file=None)):
            result = runner.invoke(app, ["selectors", "list"])

        assert result.exit_code == 1

    def test_selectors_list_and_forget(self, tmp_path):
        """Test listing and forgetting a persisted selector."""
        path = tmp_path / "selectors.json"
        path.write_text(
            '{"https://example.com": {"user_input": {"strategy": "css", "value": "#user"},'
            ' "password_input": {"strategy": "css", "value": "#pass"},'
            ' "login_button": {"strategy": "css", "value": "#submit"}}}'
        )
        config = Settings(_env_file=None, selector_store_path=str(path))

        with patch("autologin.cli.commands.get_settings", return_value=config):
            listed = runner.invoke(app, ["selectors", "list"])
            forgotten = runner.invoke(app, ["selectors", "forget", "https://example.com/login"])

        assert listed.exit_code == 0
        assert "https://example.com" in listed.output
        assert forgotten.exit_code == 0
        assert path.read_text().strip() == "{}"
