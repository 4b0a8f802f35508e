"""
CLI Main - Typer command-line interface.
========================================

Commands:
- serve: Run the API server
- login: Log into Moodle and show the session details
- parse: Run an extractor against a saved HTML page
- info: Show the effective configuration
"""

import json
from enum import Enum
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table

from better_mycourses.shared.logging import get_logger

logger = get_logger(__name__)

app = typer.Typer(
    name="better-mycourses",
    help="""Better MyCourses - structured JSON over a Moodle instance.

Logs into Moodle (SAML or a raw MoodleSession cookie), scrapes the rendered
pages and serves profile, courses, attendance, course content, syllabus,
quiz and assignment data over an authenticated API.

QUICK START:

  better-mycourses login -u u6512345          # Check credentials
  better-mycourses serve                      # Start the API on :3000
  better-mycourses parse course page.html     # Try an extractor offline

Use 'better-mycourses <command> --help' for detailed command options.
""",
    add_completion=False,
    rich_markup_mode="rich",
)

console = Console()


class PageKind(str, Enum):
    sesskey = "sesskey"
    profile = "profile"
    attendance = "attendance"
    course = "course"
    syllabus = "syllabus"
    quiz = "quiz"
    assignment = "assignment"


def _setup_logging(verbose: bool) -> None:
    from better_mycourses.shared.config import get_settings
    from better_mycourses.shared.logging import configure_from_settings, setup_logging

    configure_from_settings(get_settings())
    if verbose:
        setup_logging(level="DEBUG", force=True)


def _print_json(data) -> None:
    from better_mycourses.shared.utils import to_jsonable

    text = json.dumps(to_jsonable(data), indent=2, ensure_ascii=False)
    console.print(Syntax(text, "json", word_wrap=True))


# ─────────────────────────────────────────────────────────────────────────────
# Serve Command
# ─────────────────────────────────────────────────────────────────────────────


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, "--host", "-h", help="Bind address (default from config)."),
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Port (default from config)."),
    reload: bool = typer.Option(False, "--reload", help="Auto-reload on code changes."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging."),
):
    """
    Run the API server with uvicorn.

    Examples:
        better-mycourses serve
        better-mycourses serve --port 8000 --reload
    """
    import uvicorn

    from better_mycourses.shared.config import get_settings

    _setup_logging(verbose)
    settings = get_settings()
    bind_host = host or settings.api.host
    bind_port = port or settings.api.port

    console.print(Panel(
        f"[bold]Better MyCourses API[/bold]\n"
        f"Moodle: {settings.get_effective_moodle().base_url}\n"
        f"Listening on http://{bind_host}:{bind_port}{settings.api.prefix}",
        title="Serve",
    ))

    uvicorn.run(
        "better_mycourses.api.app:create_app",
        factory=True,
        host=bind_host,
        port=bind_port,
        reload=reload,
        log_level="debug" if verbose else "info",
    )


# ─────────────────────────────────────────────────────────────────────────────
# Login Command
# ─────────────────────────────────────────────────────────────────────────────


@app.command()
def login(
    username: Optional[str] = typer.Option(None, "--username", "-u", help="Student id."),
    password: Optional[str] = typer.Option(
        None, "--password", help="Password (prompted when omitted)."
    ),
    session: Optional[str] = typer.Option(
        None, "--session", "-s", help="Validate a raw MoodleSession cookie instead."
    ),
    show_token: bool = typer.Option(False, "--token", help="Also print an API bearer token."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging."),
):
    """
    Log into Moodle and print the sesskey and profile.

    Examples:
        better-mycourses login -u u6512345
        better-mycourses login --session 0a1b2c3d4e5f
    """
    from better_mycourses.api.tokens import TokenService
    from better_mycourses.service.dashboard import DashboardService
    from better_mycourses.shared.errors import MyCoursesError
    from better_mycourses.shared.logging import mask_secret

    _setup_logging(verbose)

    if not session and not username:
        console.print("[red]Either --username or --session is required[/red]")
        raise typer.Exit(1)

    service = DashboardService()
    try:
        if session:
            credential = service.login_with_session(session)
        else:
            if password is None:
                password = typer.prompt("Password", hide_input=True)
            with console.status("Logging in..."):
                credential = service.login_with_credentials(username, password)
        profile = service.get_profile(credential).value
    except MyCoursesError as e:
        console.print(f"[red]Login failed:[/red] {e.message}")
        raise typer.Exit(1)

    table = Table(title="Session", show_header=False)
    table.add_column("Field", style="bold")
    table.add_column("Value")
    table.add_row("Name", f"{profile.first_name} {profile.last_name}")
    table.add_row("Email", profile.email)
    table.add_row("MoodleSession", mask_secret(credential.moodle_session))
    table.add_row("sesskey", credential.sesskey or "[dim]none[/dim]")
    console.print(table)

    if show_token:
        console.print(f"\n[bold]Bearer token:[/bold]\n{TokenService.from_settings().issue(credential)}")


# ─────────────────────────────────────────────────────────────────────────────
# Parse Command
# ─────────────────────────────────────────────────────────────────────────────


@app.command()
def parse(
    kind: PageKind = typer.Argument(..., help="Which extractor to run."),
    html_file: Path = typer.Argument(..., exists=True, dir_okay=False, help="Saved HTML page."),
    object_id: str = typer.Option("0", "--id", help="Module id for quiz/assignment pages."),
):
    """
    Run an extractor on a saved page and print the JSON result.

    Examples:
        better-mycourses parse course view.html
        better-mycourses parse quiz quiz.html --id 4211
    """
    from better_mycourses.extraction import (
        build_syllabus_outline,
        extract_assignment_info,
        extract_attendance_records,
        extract_course_content,
        extract_quiz_info,
        extract_sesskey,
        extract_user_profile,
        summarize_attendance,
    )

    html = html_file.read_text(encoding="utf-8")

    if kind == PageKind.sesskey:
        result = {"sesskey": extract_sesskey(html)}
    elif kind == PageKind.profile:
        result = extract_user_profile(html)
    elif kind == PageKind.attendance:
        records = extract_attendance_records(html)
        stats = summarize_attendance(records)
        result = {"attendance": records, "stats": stats}
        console.print(
            f"[bold]{stats.total}[/bold] sessions, "
            f"{stats.present} present, {stats.absent} absent "
            f"({stats.attendance_rate:.0%})"
        )
    elif kind == PageKind.course:
        result = extract_course_content(html)
    elif kind == PageKind.syllabus:
        content = extract_course_content(html)
        result = build_syllabus_outline(content) if content is not None else None
    elif kind == PageKind.quiz:
        result = extract_quiz_info(html, object_id)
    else:
        result = extract_assignment_info(html, object_id)

    if result is None:
        console.print(f"[yellow]No {kind.value} data found in {html_file}[/yellow]")
        raise typer.Exit(1)

    _print_json(result)


# ─────────────────────────────────────────────────────────────────────────────
# Info Command
# ─────────────────────────────────────────────────────────────────────────────


@app.command()
def info():
    """
    Show version and effective configuration.

    Secrets are masked.
    """
    from better_mycourses import __version__
    from better_mycourses.shared.config import DEFAULT_CONFIG_FILE, get_settings
    from better_mycourses.shared.logging import mask_secret

    settings = get_settings()
    moodle = settings.get_effective_moodle()

    console.print(Panel(
        f"[bold]Better MyCourses[/bold]\n"
        f"Version: {__version__}\n"
        f"Config: {DEFAULT_CONFIG_FILE} [{'✓' if DEFAULT_CONFIG_FILE.exists() else '✗'}]",
        title="Info",
    ))

    table = Table(title="Configuration")
    table.add_column("Setting")
    table.add_column("Value")
    table.add_row("moodle.base_url", moodle.base_url)
    table.add_row("moodle.login_url", moodle.login_url)
    table.add_row("moodle.timeout", f"{moodle.timeout}s")
    table.add_row("moodle.max_retries", str(moodle.max_retries))
    table.add_row("moodle.max_workers", str(moodle.max_workers))
    table.add_row("cache.sweep_interval", f"{settings.cache.sweep_interval}s")
    table.add_row("cache.cascade_on_logout", str(settings.cache.cascade_on_logout))
    for name, seconds in settings.cache.ttl.model_dump().items():
        table.add_row(f"cache.ttl.{name}", f"{seconds}s")
    table.add_row("auth.jwt_secret", mask_secret(settings.get_effective_jwt_secret()))
    table.add_row("api", f"{settings.api.host}:{settings.api.port}{settings.api.prefix}")
    table.add_row("logging.level", settings.get_effective_log_level())
    console.print(table)


# ─────────────────────────────────────────────────────────────────────────────
# Entry Point
# ─────────────────────────────────────────────────────────────────────────────


def cli():
    """CLI entry point."""
    app()


if __name__ == "__main__":
    cli()
