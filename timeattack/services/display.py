from datetime import datetime
from typing import Dict, List, Optional
from rich.console import Console
from rich.table import Table
from rich.panel import Panel
from rich.text import Text

from timeattack.models.records import SuspendedSession
from timeattack.models.session import SessionTask
from timeattack.models.task_type import Rest, Transitioning, Work
from timeattack.models.ticket import Ticket
from timeattack.services.metrics import SessionSummary, TicketReport, WeeklyStats

TASK_STYLES = {
    "Work": "bold green",
    "Rest": "bold blue",
    "Deciding": "bold yellow",
    "Transitioning": "bold magenta",
}

def format_duration(seconds: Optional[float]) -> str:
    """Render seconds as H:MM:SS or M:SS, keeping the sign"""
    if seconds is None:
        return "-"
    sign = "-" if seconds < 0 else ""
    total = int(abs(seconds))
    hours, rest = divmod(total, 3600)
    minutes, secs = divmod(rest, 60)
    if hours:
        return f"{sign}{hours}:{minutes:02d}:{secs:02d}"
    return f"{sign}{minutes}:{secs:02d}"

def format_accuracy(value: Optional[float]) -> Text:
    if value is None:
        return Text("-", style="dim")
    if 0.8 <= value <= 1.2:
        style = "green"
    elif 0.5 <= value <= 1.5:
        style = "yellow"
    else:
        style = "red"
    return Text(f"{value * 100:.0f}%", style=style)

class TerminalDisplay:
    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console()

    def _ticket_label(self, ticket_id: Optional[str], tickets: Dict[str, Ticket]) -> str:
        if ticket_id is None:
            return ""
        ticket = tickets.get(ticket_id)
        return f"{ticket.identifier} {ticket.title}" if ticket else ticket_id

    def show_status(
        self,
        task: Optional[SessionTask],
        remaining: Optional[float],
        tickets: Dict[str, Ticket],
        now: Optional[datetime] = None
    ):
        """Show the active task of the open session"""
        if task is None:
            self.console.print("[yellow]No active session[/yellow]")
            return

        name = task.type.display_name
        header = Text()
        header.append(f"{name}", style=TASK_STYLES.get(name, "bold"))
        match task.type:
            case Work(ticket_id=ticket_id):
                header.append(f"  {self._ticket_label(ticket_id, tickets)}")
            case Transitioning(from_ticket_id=from_ticket_id) if from_ticket_id:
                header.append(f"  from {self._ticket_label(from_ticket_id, tickets)}", style="dim")
            case Rest(duration=duration):
                header.append(f"  {format_duration(duration)} planned", style="dim")
        if task.is_paused:
            header.append("  ⏸ paused", style="bold red")

        body = Text()
        body.append(f"\nElapsed:   {format_duration(task.actual_duration(now))}\n")
        if remaining is not None:
            style = "red" if remaining < 0 else "green"
            body.append("Remaining: ")
            body.append(format_duration(remaining), style=style)
            body.append("\n")
        if task.initial_remaining_time is not None:
            body.append("(resumed from a suspension)\n", style="dim")

        self.console.print(Panel(header + body, title="⏱  Time Attack", expand=False))

    def show_session_summary(self, summary: SessionSummary, tickets: Dict[str, Ticket]):
        """Display a finished (or running) session's totals"""
        stats = Text()
        stats.append("\n📈 Session Summary\n", style="bold yellow")
        stats.append(f"Total:      {format_duration(summary.total_duration)}\n", style="dim")
        stats.append(f"Work:       {format_duration(summary.work_time)}\n", style="bold green")
        stats.append(f"Rest:       {format_duration(summary.rest_time)}\n", style="blue")
        stats.append(f"Overhead:   {format_duration(summary.overhead_time)}\n", style="magenta")
        if summary.transition_time > 0:
            stats.append(f"  switching {format_duration(summary.transition_time)}\n", style="dim")
        self.console.print(Panel(stats, expand=False))

        if not summary.tickets:
            return
        table = Table(title="By Ticket")
        table.add_column("Ticket", style="cyan")
        table.add_column("Work", justify="right", style="green")
        for row in summary.tickets:
            table.add_row(self._ticket_label(row.ticket_id, tickets), format_duration(row.work_time))
        self.console.print(table)

    def show_weekly_stats(self, stats: WeeklyStats):
        text = Text()
        text.append(f"Week of {stats.week_start.strftime('%Y-%m-%d')}\n\n", style="bold cyan")
        text.append(f"Work:      {format_duration(stats.total_work_time)}\n", style="green")
        text.append(f"Rest:      {format_duration(stats.total_rest_time)}\n", style="blue")
        text.append(f"Overhead:  {format_duration(stats.total_overhead_time)}\n", style="magenta")
        text.append(f"Estimate:  {format_duration(stats.total_estimate)}\n", style="dim")
        text.append("Accuracy:  ")
        text.append(format_accuracy(stats.accuracy))
        text.append(f"\nSessions:  {stats.session_count}  Tickets: {stats.ticket_count}", style="dim")
        self.console.print(Panel(text, title="Weekly Report", expand=False))

    def show_ticket_reports(self, reports: List[TicketReport]):
        if not reports:
            self.console.print("\n[yellow]No completed sessions[/yellow]")
            return
        table = Table(title="By Ticket")
        table.add_column("Ticket", style="cyan")
        table.add_column("Title")
        table.add_column("Estimate", justify="right", style="dim")
        table.add_column("Actual", justify="right")
        table.add_column("Accuracy", justify="right")
        for report in reports:
            over = report.estimate is not None and report.actual > report.estimate
            table.add_row(
                report.identifier,
                report.title or "",
                format_duration(report.estimate),
                Text(format_duration(report.actual), style="red" if over else "green"),
                format_accuracy(report.accuracy),
            )
        self.console.print(table)

    def show_tickets(self, tickets: List[Ticket], suspended: Dict[str, SuspendedSession]):
        if not tickets:
            self.console.print("[yellow]No tasks yet[/yellow]")
            return
        table = Table(title="Tasks")
        table.add_column("ID", style="cyan")
        table.add_column("Title")
        table.add_column("State", style="yellow")
        table.add_column("Estimate", justify="right")
        table.add_column("Due")
        table.add_column("Suspended", justify="right", style="magenta")
        for ticket in tickets:
            due = ticket.due_date_status()
            suspension = suspended.get(ticket.id)
            table.add_row(
                ticket.identifier,
                ticket.title,
                ticket.state,
                ticket.display_estimate,
                Text(due.display_text, style=due.color),
                format_duration(suspension.remaining_time) if suspension else "",
            )
        self.console.print(table)
