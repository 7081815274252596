"""
Command Line Interface for the Incident Engine.
"""

from typing import Optional

import typer
from rich import print as rprint
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from ..cache import CacheCoordinator
from ..config import get_settings
from ..db.base import get_session_local, init_database
from ..db.idempotency import IdempotencyLedger
from ..errors import IncidentEngineError
from ..logging_config import configure_logging
from ..schemas.enums import IncidentStatus
from ..services.incidents import IncidentMutationEngine

app = typer.Typer(help="Incident Engine - idempotent incident lifecycle service")
console = Console()

STATUS_STYLES = {
    "OPEN": "bold red",
    "ACK": "bold yellow",
    "RESOLVED": "bold green",
}


def _engine(db) -> IncidentMutationEngine:
    settings = get_settings()
    return IncidentMutationEngine.from_settings(
        db, CacheCoordinator.from_settings(settings), settings
    )


@app.callback()
def _setup() -> None:
    configure_logging(get_settings())


@app.command()
def serve(
    port: Optional[int] = typer.Option(None, help="Port to run the API server on"),
    host: Optional[str] = typer.Option(None, help="Host to bind the server to"),
    dev: bool = typer.Option(False, help="Run in development mode (auto-reload)"),
):
    """Start the HTTP API."""
    from ..main import run

    rprint(Panel.fit("Starting Incident Engine", style="bold blue"))
    run(host=host, port=port, reload=dev)


@app.command()
def init_db():
    """Create all database tables."""
    init_database()
    console.print("✅ Database initialized")


@app.command()
def show(incident_id: str = typer.Argument(..., help="Incident ID")):
    """Show an incident and its most recent events."""
    db = get_session_local()()
    try:
        view = _engine(db).read(incident_id)
    except IncidentEngineError as e:
        console.print(f"❌ {e.message}")
        raise typer.Exit(code=1)
    finally:
        db.close()

    status = view["status"]
    header = (
        f"[bold]{escape(view['title'])}[/bold]\n"
        f"Severity: {view['severity']}  Status: [{STATUS_STYLES.get(status, '')}]{status}[/]\n"
        f"{escape(view['description'])}"
    )
    rprint(Panel.fit(header, title=view["id"]))

    table = Table(title="Recent Events", show_header=True, header_style="bold magenta")
    table.add_column("When", style="cyan")
    table.add_column("Type", style="green")
    table.add_column("Details")
    for event in view["events"]:
        table.add_row(event["created_at"] or "", event["type"], escape(str(event["payload"])))
    console.print(table)


@app.command()
def transition(
    incident_id: str = typer.Argument(..., help="Incident ID"),
    status: IncidentStatus = typer.Argument(..., help="Target status"),
):
    """Move an incident to a new status."""
    db = get_session_local()()
    try:
        incident = _engine(db).transition(incident_id, status)
        console.print(f"✅ {incident.id} is now {incident.status}")
    except IncidentEngineError as e:
        console.print(f"❌ {e.message}")
        if e.details:
            console.print(e.details)
        raise typer.Exit(code=1)
    finally:
        db.close()


@app.command()
def comment(
    incident_id: str = typer.Argument(..., help="Incident ID"),
    text: str = typer.Argument(..., help="Comment text"),
    author: str = typer.Option(..., help="ID of the commenting user"),
):
    """Add a comment to an incident."""
    db = get_session_local()()
    try:
        event = _engine(db).comment(incident_id, text, author)
        console.print(f"✅ Comment recorded as event {event.id}")
    except IncidentEngineError as e:
        console.print(f"❌ {e.message}")
        raise typer.Exit(code=1)
    finally:
        db.close()


@app.command()
def purge_idempotency():
    """Delete expired idempotency records."""
    db = get_session_local()()
    try:
        removed = IdempotencyLedger(db).purge_expired()
    finally:
        db.close()
    console.print(f"🧹 Removed {removed} expired idempotency record(s)")


@app.command()
def version():
    """Show version information."""
    from .. import __version__

    rprint(Panel.fit(f"Incident Engine v{__version__}", style="bold green"))


def main():
    """Main CLI entry point."""
    app()


if __name__ == "__main__":
    main()
