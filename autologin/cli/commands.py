"""CLI commands using Typer."""

import asyncio
import logging
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from autologin import __version__
from autologin.browser.classifier import ClassifierConfig
from autologin.browser.models import SelectorHints, SessionStatus
from autologin.browser.selector_store import SelectorStore
from autologin.config import get_settings
from autologin.errors import AutologinError

app = typer.Typer(
    name="autologin",
    help="Automated login against unknown web login forms",
    add_completion=False,
)
selectors_app = typer.Typer(help="Inspect and edit the cached login form selectors")
app.add_typer(selectors_app, name="selectors")

console = Console()


def setup_logging(level: str) -> None:
    """Route log records through rich."""
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=False)],
        force=True,
    )


@app.callback()
def main(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Enable debug logging")] = False,
):
    """Automated login against unknown web login forms."""
    setup_logging("DEBUG" if verbose else get_settings().log_level)


def _hint(values: list[str] | None) -> list[str] | None:
    # Typer passes an empty list when a repeatable option is not given
    return values or None


@app.command()
def login(
    url: Annotated[str, typer.Argument(help="Login page URL")],
    username: Annotated[str, typer.Option("--username", "-u", help="Account name")],
    password: Annotated[
        str,
        typer.Option(
            "--password", "-p", envvar="AUTOLOGIN_PASSWORD", prompt=True, hide_input=True,
            help="Account password",
        ),
    ],
    user_selector: Annotated[
        list[str] | None, typer.Option("--user-selector", help="Username input candidate (repeatable)")
    ] = None,
    password_selector: Annotated[
        list[str] | None, typer.Option("--password-selector", help="Password input candidate (repeatable)")
    ] = None,
    submit_selector: Annotated[
        list[str] | None, typer.Option("--submit-selector", help="Login button candidate (repeatable)")
    ] = None,
    captcha_input_selector: Annotated[
        list[str] | None, typer.Option("--captcha-input-selector", help="Captcha input candidate (repeatable)")
    ] = None,
    captcha_image_selector: Annotated[
        list[str] | None, typer.Option("--captcha-image-selector", help="Captcha image candidate (repeatable)")
    ] = None,
    logged_in_marker: Annotated[
        list[str] | None, typer.Option("--logged-in-marker", help="Element shown only when logged in (repeatable)")
    ] = None,
    no_default_success: Annotated[
        bool, typer.Option("--no-default-success", help="Report indeterminate instead of assuming success")
    ] = False,
    remember_me: Annotated[bool, typer.Option("--remember-me", help="Tick the remember-me box")] = False,
    timeout: Annotated[float | None, typer.Option("--timeout", "-t", help="Attempt deadline in seconds")] = None,
    headless: Annotated[bool, typer.Option("--headless/--headed", help="Run browser headless")] = True,
    ocr_url: Annotated[
        str | None, typer.Option("--ocr-url", envvar="OCR_BASE_URL", help="Captcha OCR service base URL")
    ] = None,
    proxy: Annotated[str | None, typer.Option("--proxy", help="Proxy server URL")] = None,
    save_html: Annotated[
        Path | None, typer.Option("--save-html", help="Write the post-login HTML to a file")
    ] = None,
):
    """
    Log into a website and report whether it worked.

    Example:
        autologin login https://example.com/login -u alice --ocr-url http://localhost:8000
    """
    from autologin.services.login_service import LoginService

    updates = {"browser_headless": headless}
    if ocr_url:
        updates["ocr_base_url"] = ocr_url
    if proxy:
        updates["browser_proxy"] = proxy
    config = get_settings().model_copy(update=updates)

    hints = SelectorHints(
        user_input=_hint(user_selector),
        password_input=_hint(password_selector),
        login_button=_hint(submit_selector),
        captcha_input=_hint(captcha_input_selector),
        captcha_image=_hint(captcha_image_selector),
    )
    classifier_config = ClassifierConfig(default_success=not no_default_success)
    if logged_in_marker:
        classifier_config = classifier_config.model_copy(update={"logged_in_markers": logged_in_marker})

    console.print(
        Panel(
            f"[bold]Logging in[/bold]\n\n"
            f"URL: {url}\n"
            f"User: {username}\n"
            f"Captcha OCR: {config.ocr_base_url or 'disabled'}\n"
            f"Headless: {headless}",
            title="autologin",
        )
    )

    async def run_login():
        async with LoginService.from_settings(config) as service:
            return await service.login(
                url,
                hints,
                username,
                password,
                timeout=timeout,
                classifier_config=classifier_config,
                remember_me=remember_me,
            )

    try:
        outcome = asyncio.run(run_login())
    except AutologinError as e:
        console.print(f"\n[red]Login failed:[/red] {e}")
        raise typer.Exit(1)

    colour = {
        SessionStatus.LOGGED_IN: "green",
        SessionStatus.AT_LOGIN_PAGE: "red",
        SessionStatus.INDETERMINATE: "yellow",
    }[outcome.status]
    console.print(f"\n[bold {colour}]{outcome.status.value}[/bold {colour}] ({outcome.reason})")
    console.print(f"  URL: {outcome.url}")
    console.print(f"  Elapsed: {outcome.elapsed:.1f}s")
    console.print(f"  Steps: {' -> '.join(s.value for s in outcome.states)}")

    if save_html and outcome.html is not None:
        save_html.write_text(outcome.html, encoding="utf-8")
        console.print(f"\n[green]HTML saved to:[/green] {save_html}")

    if not outcome.logged_in:
        raise typer.Exit(1)


@app.command()
def ocr(
    image_path: Annotated[Path, typer.Argument(help="Captcha image file (PNG)")],
    ocr_url: Annotated[
        str | None, typer.Option("--ocr-url", envvar="OCR_BASE_URL", help="Captcha OCR service base URL")
    ] = None,
):
    """Recognize a captcha image with the OCR service."""
    from autologin.integrations.ocr.client import OCRClient
    from autologin.integrations.ocr.recognizer import OCRCaptchaRecognizer

    if not image_path.exists():
        console.print(f"[red]Error:[/red] Image not found: {image_path}")
        raise typer.Exit(1)

    base_url = ocr_url or get_settings().ocr_base_url
    if not base_url:
        console.print("[red]Error:[/red] No OCR service configured (use --ocr-url or OCR_BASE_URL)")
        raise typer.Exit(1)

    async def run_ocr():
        recognizer = OCRCaptchaRecognizer(OCRClient(base_url=base_url))
        try:
            return await recognizer.recognize(image_path.read_bytes())
        finally:
            await recognizer.aclose()

    try:
        text = asyncio.run(run_ocr())
    except AutologinError as e:
        console.print(f"[red]Recognition failed:[/red] {e}")
        raise typer.Exit(1)

    console.print(f"[green]{text}[/green]")


def _store() -> SelectorStore:
    path = get_settings().selector_store_path
    if not path:
        console.print("[yellow]SELECTOR_STORE_PATH not set, nothing is persisted[/yellow]")
        raise typer.Exit(1)
    return SelectorStore(path)


@selectors_app.command("list")
def list_selectors():
    """List cached selectors."""
    store = _store()
    if not len(store):
        console.print("[dim]No cached selectors[/dim]")
        return

    table = Table(title="Cached selectors")
    table.add_column("Site")
    table.add_column("Username")
    table.add_column("Password")
    table.add_column("Button")
    table.add_column("Captcha")
    for site, selector in store.items():
        table.add_row(
            site,
            selector.user_input.value,
            selector.password_input.value,
            selector.login_button.value,
            "yes" if selector.has_captcha else "no",
        )
    console.print(table)


@selectors_app.command("forget")
def forget_selector(
    url: Annotated[str, typer.Argument(help="Any URL of the site")],
):
    """Drop the cached selector of a site."""
    store = _store()
    if asyncio.run(store.invalidate(url)):
        console.print(f"[green]Forgot selector for[/green] {url}")
    else:
        console.print(f"[yellow]No cached selector for[/yellow] {url}")


@app.command()
def version():
    """Show version information."""
    console.print(f"[bold]autologin[/bold] v{__version__}")
    console.print("Automated login against unknown web login forms")


@app.command()
def info():
    """Show configuration information."""
    settings = get_settings()

    console.print(Panel("[bold]Configuration[/bold]", title="autologin"))
    console.print(f"  Environment: {settings.app_env.value}")
    console.print(f"  Log level: {settings.log_level}")
    console.print(
        f"  Captcha OCR: {'[green]' + settings.ocr_base_url + '[/green]' if settings.ocr_base_url else '[yellow]Not configured[/yellow]'}"
    )
    console.print(
        f"  Resolver: {settings.resolver_max_attempts} attempts, "
        f"{settings.resolver_backoff}s backoff, {settings.resolver_timeout}s timeout"
    )
    console.print(f"  Step timeout: {settings.step_timeout}s, attempt deadline: {settings.login_timeout}s")
    console.print(f"  Headless: {settings.browser_headless}")
    console.print(f"  Proxy: {settings.browser_proxy or 'none'}")
    console.print(f"  Selector store: {settings.selector_store_path or 'in-memory'}")


if __name__ == "__main__":
    app()
