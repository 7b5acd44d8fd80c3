import click
import sys
import asyncio
import logging
from datetime import datetime
from pathlib import Path
from typing import Optional
from rich.console import Console
from rich.table import Table
from rich.panel import Panel

from timeattack.config.logging_config import setup_logging
from timeattack.config.settings import settings
from timeattack.models.ticket import LocalTaskState, TaskCreateRequest
from timeattack.services.database import DatabaseManager
from timeattack.services.display import TerminalDisplay, format_duration
from timeattack.services.engine import SessionEngine
from timeattack.services.errors import ServiceError
from timeattack.services.intents import IntentDispatcher, PromptChoice, Transition
from timeattack.services.metrics import MetricsCollector, summarize_session
from timeattack.services.notifications import ConsoleNotificationSink
from timeattack.services.task_source import LocalTaskSource

# Set up logging
logger = logging.getLogger(__name__)

# Initialize console
console = Console()

class AppContext:
    """Per-invocation wiring of store, engine and collaborators"""

    def __init__(self, db_path: Path):
        self.db = DatabaseManager(db_path)
        self.engine = SessionEngine(self.db)
        self.task_source = LocalTaskSource(self.db)
        self.display = TerminalDisplay(console)
        self.dispatcher = IntentDispatcher(
            task_source=self.task_source,
            notifier=ConsoleNotificationSink(console, fire_alerts=False),
            on_prompt=self._prompt,
            on_session_completed=self._show_summary,
        )

    def _prompt(self, intent: PromptChoice):
        console.print(
            "[cyan]Session started.[/cyan] Pick something: "
            "[bold]timeattack work <ticket>[/bold] or [bold]timeattack rest[/bold]"
        )

    def _show_summary(self, session):
        self.display.show_session_summary(summarize_session(session), self.engine.tickets)

    def run(self, transition: Transition) -> Transition:
        """Dispatch a transition's side effects and report failures"""
        failures = asyncio.run(self.dispatcher.dispatch(transition.intents))
        for failure in failures:
            console.print(f"[yellow]Warning: {type(failure.intent).__name__} failed: {failure.error}[/yellow]")
        if self.engine.last_persist_error is not None:
            unsaved = ", ".join(sorted(self.engine.unsaved_snapshots))
            console.print(f"[red]Warning: {unsaved} not saved: {self.engine.last_persist_error}[/red]")
        self.engine.refresh_tickets()
        return transition

    def resolve_ticket_id(self, ticket: str) -> str:
        """Accept a ticket id or a LOCAL-n identifier"""
        found = self.task_source.find(ticket)
        return found.id if found else ticket

    def show_status(self):
        engine = self.engine
        self.display.show_status(engine.active_task, engine.active_remaining_time(), engine.tickets)

pass_app = click.make_pass_decorator(AppContext)

def _fail(message: str, error: Exception):
    logger.error(f"{message}: {error}")
    console.print(f"[red]{message}: {error}[/red]")
    sys.exit(1)

@click.group()
@click.option('--db', 'db_path', type=click.Path(dir_okay=False, path_type=Path),
              envvar='TIMEATTACK_DB', default=None, help='Path to the sqlite database')
@click.option('--debug', is_flag=True, help='Enable debug output')
@click.pass_context
def cli(ctx, db_path: Optional[Path], debug: bool):
    """Time Attack: track work against estimates, one session at a time"""
    if db_path is None:
        settings.validate_paths()
        db_path = settings.DEFAULT_DB_PATH
    # Set up logging before anything else
    setup_logging(debug)
    try:
        ctx.obj = AppContext(db_path)
    except ServiceError as e:
        _fail("Failed to open database", e)

@cli.command()
@pass_app
def start(app: AppContext):
    """Start a session"""
    transition = app.run(app.engine.start_session())
    if not transition.intents:
        console.print("[yellow]A session is already open[/yellow]")
    app.show_status()

@cli.command()
@click.argument('ticket')
@pass_app
def work(app: AppContext, ticket: str):
    """Work on TICKET, resuming its suspended budget if any"""
    ticket_id = app.resolve_ticket_id(ticket)
    suspension = app.engine.suspended_session(ticket_id)
    app.run(app.engine.resume_work_task(ticket_id))
    if suspension:
        console.print(f"[magenta]Resumed with {format_duration(suspension.remaining_time)} left[/magenta]")
    app.show_status()

@cli.command()
@click.option('--minutes', type=click.IntRange(1, 240), default=None,
              help='Rest length in minutes')
@pass_app
def rest(app: AppContext, minutes: Optional[int]):
    """Take a rest"""
    try:
        duration = minutes * 60 if minutes else None
        app.run(app.engine.start_rest(duration))
    except ServiceError as e:
        _fail("Cannot start rest", e)
    app.show_status()

@cli.command()
@pass_app
def pause(app: AppContext):
    """Pause or resume the active task"""
    app.run(app.engine.toggle_pause())
    app.show_status()

@cli.command()
@pass_app
def switch(app: AppContext):
    """Suspend the current work and start transitioning"""
    try:
        app.run(app.engine.suspend_and_transition())
    except ServiceError as e:
        _fail("Cannot switch", e)
    app.show_status()

@cli.command()
@pass_app
def end(app: AppContext):
    """End the session and show its summary"""
    transition = app.run(app.engine.end_session())
    if transition.session is None:
        console.print("[yellow]No open session[/yellow]")

@cli.command()
@pass_app
def status(app: AppContext):
    """Show the active task"""
    app.show_status()
    suspended = app.engine.suspended_sessions
    if suspended:
        console.print(f"[dim]{len(suspended)} suspended ticket(s)[/dim]")

@cli.command()
@click.option('--date', 'date_str', default=None, help='Any day of the week to report (YYYY-MM-DD)')
@pass_app
def report(app: AppContext, date_str: Optional[str]):
    """Weekly and per-ticket report"""
    try:
        date = datetime.strptime(date_str, "%Y-%m-%d") if date_str else datetime.now()
    except ValueError:
        console.print("[red]Invalid date format, expected YYYY-MM-DD[/red]")
        sys.exit(1)
    metrics = MetricsCollector(app.db)
    app.display.show_weekly_stats(metrics.get_weekly_stats(date))
    app.display.show_ticket_reports(metrics.get_ticket_reports())

@cli.group()
def tickets():
    """Local task management"""
    pass

@tickets.command('list')
@pass_app
def list_tickets(app: AppContext):
    """List local tasks"""
    tasks = asyncio.run(app.task_source.fetch_tasks())
    app.display.show_tickets(tasks, app.engine.suspended_sessions)

@tickets.command('add')
@click.argument('title')
@click.option('--estimate', type=click.IntRange(min=1), default=None, help='Estimate in minutes')
@click.option('--priority', type=int, default=None)
@click.option('--due', type=click.DateTime(formats=["%Y-%m-%d"]), default=None)
@pass_app
def add_ticket(app: AppContext, title: str, estimate: Optional[int], priority: Optional[int], due):
    """Create a local task"""
    request = TaskCreateRequest(
        title=title,
        priority=priority,
        due_date=due.date() if due else None,
    )
    ticket = asyncio.run(app.task_source.create_task(request))
    if estimate:
        ticket = asyncio.run(app.task_source.update_local_estimate(ticket.id, estimate * 60.0))
    console.print(f"[green]Created {ticket.identifier}[/green] {ticket.title} ({ticket.display_estimate})")

@tickets.command('estimate')
@click.argument('ticket')
@click.argument('minutes', type=click.IntRange(min=1))
@pass_app
def estimate_ticket(app: AppContext, ticket: str, minutes: int):
    """Set the estimate of TICKET in minutes"""
    ticket_id = app.resolve_ticket_id(ticket)
    if app.task_source.find(ticket_id):
        asyncio.run(app.task_source.update_local_estimate(ticket_id, minutes * 60.0))
    else:
        app.db.save_estimate(ticket_id, minutes * 60.0)
    console.print(f"[green]Estimate for {ticket} set to {minutes}m[/green]")

@tickets.command('done')
@click.argument('ticket')
@pass_app
def done_ticket(app: AppContext, ticket: str):
    """Mark a local task as done"""
    try:
        updated = asyncio.run(app.task_source.update_task_state(
            app.resolve_ticket_id(ticket), LocalTaskState.DONE.value
        ))
    except ServiceError as e:
        _fail("Cannot update task", e)
    console.print(f"[green]{updated.identifier} is {updated.state}[/green]")

@cli.group()
def db():
    """Database management commands"""
    pass

@db.command()
@pass_app
def stats(app: AppContext):
    """Show database statistics"""
    try:
        stats = app.db.get_database_stats()
    except ServiceError as e:
        _fail("Failed to get database stats", e)

    table = Table(title="Snapshots")
    table.add_column("Key", style="cyan")
    table.add_column("Bytes", justify="right", style="green")
    table.add_column("Updated", style="yellow")
    for key, info in stats['snapshots'].items():
        table.add_row(key, str(info['bytes']), info['updated_at'])
    console.print(table)

    counts = stats['counts']
    console.print(Panel(
        f"[cyan]Sessions:[/cyan] {counts['sessions']}\n"
        f"[cyan]Suspended tickets:[/cyan] {counts['suspended_sessions']}\n"
        f"[cyan]Transition records:[/cyan] {counts['transition_records']}\n"
        f"[cyan]Local tasks:[/cyan] {counts['local_tasks']}\n"
        f"[blue]Size:[/blue] {stats['database_size_mb']:.2f}MB",
        title="Data Overview"
    ))

@cli.command()
@click.option('--host', default=None, help='Bind address')
@click.option('--port', type=int, default=None, help='Port')
@pass_app
def serve(app: AppContext, host: Optional[str], port: Optional[int]):
    """Serve the read-only report dashboard"""
    import uvicorn
    from timeattack.web.app import app as web_app

    web_app.state.db = app.db
    uvicorn.run(web_app, host=host or settings.WEB_HOST, port=port or settings.WEB_PORT)

if __name__ == '__main__':
    cli()
