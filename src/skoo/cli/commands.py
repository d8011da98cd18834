"""CLI commands for the Skoo backend.

Commands:
- init-db: Create the SQLite schema
- serve: Run the Web API with uvicorn
- ask: One copilot turn for a user
- import-calendar: Import an ICS file into a user's calendar
- send-reminders: Emit session and exam reminder notifications
- trial-status: Show the subscription and trial state of a user
"""

from pathlib import Path

import typer
from rich.console import Console

from skoo.config.app_config import load_app_config
from skoo.core.calendar_import import CalendarImportError, import_events, parse_ics
from skoo.core.copilot import load_user_context, run_copilot
from skoo.core.reminders import send_exam_reminders, send_session_reminders
from skoo.core.subscription import resolve_subscription
from skoo.db import init_db, repository
from skoo.llm.client import LLMClient, LLMError, LLMQuotaError, LLMRateLimitError

app = typer.Typer(
    name="skoo",
    help="Study planner backend with an AI copilot.",
    no_args_is_help=True,
)

console = Console()


def _open_db(db_path: str | None = None) -> Path:
    """Initialize the configured database (or ``db_path``) and return its path."""
    path = Path(db_path) if db_path else load_app_config().db_path
    init_db(path)
    return path


def _require_profile(user_id: str) -> dict:
    profile = repository.get_profile(user_id)
    if profile is None:
        console.print(f"[red]✗ Utilisateur introuvable: {user_id}[/red]")
        raise typer.Exit(code=1)
    return profile


@app.command(name="init-db")
def init_db_command(
    db: str | None = typer.Option(None, "--db", help="Database path (overrides config)"),
) -> None:
    """Create the database schema."""
    path = _open_db(db)
    console.print(f"[green]✓ Base initialisée[/green] [dim]{path}[/dim]")


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", "--host", help="Bind address"),
    port: int = typer.Option(8000, "--port", "-p", help="Port"),
    reload: bool = typer.Option(False, "--reload", help="Auto-reload on code changes"),
) -> None:
    """Run the Web API."""
    import uvicorn

    console.print(f"[blue]Skoo API sur http://{host}:{port}[/blue]")
    uvicorn.run("skoo.web.api:app", host=host, port=port, reload=reload)


@app.command()
def ask(
    user_id: str = typer.Argument(..., help="User id"),
    message: str = typer.Argument(..., help="Message for the copilot"),
    provider: str | None = typer.Option(
        None, "--provider", "-p", help="LLM provider: gateway, openai, lmstudio"
    ),
    model: str | None = typer.Option(None, "--model", "-m", help="Model name (overrides config)"),
) -> None:
    """Send one message to the copilot on behalf of a user."""
    _open_db()
    _require_profile(user_id)

    client = LLMClient(provider=provider, model=model)
    console.print(f"  [dim]LLM:[/dim] {client.config.provider}/{client.config.model}")

    try:
        result = run_copilot(
            [{"role": "user", "content": message}],
            load_user_context(user_id),
            user_id,
            client,
        )
    except LLMRateLimitError:
        console.print("[red]✗ Trop de requêtes, réessaie dans quelques instants.[/red]")
        raise typer.Exit(code=1)
    except LLMQuotaError:
        console.print("[red]✗ Crédits IA insuffisants.[/red]")
        raise typer.Exit(code=1)
    except LLMError as e:
        console.print(f"[red]✗ Erreur IA: {e}[/red]")
        if e.details:
            console.print(f"  [dim]{e.details}[/dim]")
        raise typer.Exit(code=1)

    for call in result.tool_calls:
        mark = "[green]✓[/green]" if call.result.get("success") else "[red]✗[/red]"
        console.print(f"  {mark} [dim]{call.name}[/dim] {call.input}")
        if not call.result.get("success"):
            console.print(f"    [yellow]{call.result.get('error')}[/yellow]")

    console.print()
    console.print(result.response)


@app.command(name="import-calendar")
def import_calendar(
    user_id: str = typer.Argument(..., help="User id"),
    file: str = typer.Argument(..., help="Path to the .ics file"),
    name: str | None = typer.Option(None, "--name", "-n", help="Calendar name"),
) -> None:
    """Import the events of an ICS file for a user."""
    file_path = Path(file).expanduser()
    if not file_path.exists():
        console.print(f"[red]✗ Fichier introuvable: {file_path}[/red]")
        raise typer.Exit(code=1)

    _open_db()
    _require_profile(user_id)

    try:
        events = parse_ics(file_path.read_bytes())
    except CalendarImportError as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(code=1)

    imported = import_events(user_id, events, calendar_name=name or file_path.stem)
    console.print(f"[green]✓ {imported} événements importés[/green]")

    subjects = sorted({e.subject_name for e in events if e.subject_name})
    if subjects:
        console.print(f"  [dim]matières:[/dim] {', '.join(subjects)}")


@app.command(name="send-reminders")
def send_reminders(
    sessions: bool = typer.Option(True, "--sessions/--no-sessions", help="Session reminders"),
    exams: bool = typer.Option(True, "--exams/--no-exams", help="Exam reminders"),
) -> None:
    """Emit reminder notifications (run every minute from cron)."""
    _open_db()

    if sessions:
        report = send_session_reminders()
        console.print(
            f"[green]✓ Sessions:[/green] {report.sent} rappels envoyés "
            f"[dim]({report.checked} sessions vérifiées)[/dim]"
        )
    if exams:
        report = send_exam_reminders()
        console.print(
            f"[green]✓ Examens:[/green] {report.sent} rappels envoyés "
            f"[dim]({report.checked} matières vérifiées)[/dim]"
        )


@app.command(name="trial-status")
def trial_status(
    user_id: str = typer.Argument(..., help="User id"),
) -> None:
    """Show the subscription and trial state of a user."""
    _open_db()
    profile = _require_profile(user_id)

    trial_config = load_app_config().trial
    state = resolve_subscription(
        profile,
        repository.has_active_school_membership(user_id),
        {"subscribed": False, "product_id": None},
        duration_days=trial_config.duration_days,
        stripe_products=trial_config.stripe_products,
    )

    if state.is_subscribed:
        console.print(f"[green]✓ Accès {state.tier}[/green] [dim]({state.source})[/dim]")
    else:
        console.print("[yellow]⚠ Aucun accès actif[/yellow]")

    trial = state.trial
    if trial.trial_started_at:
        console.print(f"  [dim]essai démarré:[/dim] {trial.trial_started_at}")
        console.print(f"  [dim]fin d'essai:[/dim]   {trial.trial_ends_at}")
        console.print(f"  [dim]jours restants:[/dim] {trial.days_remaining}")


if __name__ == "__main__":
    app()
