"""Time accounting over sessions.

The module-level functions are pure projections of a session's task
list. ``MetricsCollector`` combines them with stored sessions, estimates
and transition records for weekly and per-ticket reporting.
"""
import logging
from datetime import datetime, timedelta, time
from typing import Dict, List, Optional
from pydantic import BaseModel, Field

from timeattack.config.settings import settings
from timeattack.models.records import TransitionRecord
from timeattack.models.session import Session
from timeattack.models.task_type import Deciding, Rest, Transitioning, Work, ticket_id_of
from timeattack.services.database import DatabaseManager

logger = logging.getLogger(__name__)

def _sum_durations(session: Session, kinds, now: Optional[datetime]) -> float:
    return sum(
        task.actual_duration(now)
        for task in session.tasks
        if isinstance(task.type, kinds)
    )

def total_work_time(session: Session, now: Optional[datetime] = None) -> float:
    return _sum_durations(session, Work, now)

def total_rest_time(session: Session, now: Optional[datetime] = None) -> float:
    return _sum_durations(session, Rest, now)

def total_deciding_time(session: Session, now: Optional[datetime] = None) -> float:
    return _sum_durations(session, Deciding, now)

def total_transition_time(session: Session, now: Optional[datetime] = None) -> float:
    return _sum_durations(session, Transitioning, now)

def total_overhead_time(session: Session, now: Optional[datetime] = None) -> float:
    return _sum_durations(session, (Deciding, Transitioning), now)

def unique_ticket_ids(session: Session) -> List[str]:
    """Distinct ticket ids of work tasks in first-occurrence order"""
    seen: Dict[str, None] = {}
    for task in session.tasks:
        ticket_id = ticket_id_of(task.type)
        if ticket_id is not None:
            seen.setdefault(ticket_id, None)
    return list(seen)

def work_time_for_ticket(session: Session, ticket_id: str, now: Optional[datetime] = None) -> float:
    """All work time on a ticket, across every work task for it"""
    return sum(
        task.actual_duration(now)
        for task in session.tasks
        if ticket_id_of(task.type) == ticket_id
    )

class TicketTime(BaseModel):
    ticket_id: str
    work_time: float

class SessionSummary(BaseModel):
    """Totals of one session, in seconds"""
    session_id: str
    start_time: datetime
    end_time: Optional[datetime] = None
    total_duration: float
    work_time: float
    rest_time: float
    deciding_time: float
    transition_time: float
    overhead_time: float
    task_count: int
    tickets: List[TicketTime] = Field(default_factory=list)

def summarize_session(session: Session, now: Optional[datetime] = None) -> SessionSummary:
    deciding = total_deciding_time(session, now)
    transition = total_transition_time(session, now)
    return SessionSummary(
        session_id=str(session.id),
        start_time=session.start_time,
        end_time=session.end_time,
        total_duration=session.total_duration(now),
        work_time=total_work_time(session, now),
        rest_time=total_rest_time(session, now),
        deciding_time=deciding,
        transition_time=transition,
        overhead_time=deciding + transition,
        task_count=len(session.tasks),
        tickets=[
            TicketTime(ticket_id=ticket_id, work_time=work_time_for_ticket(session, ticket_id, now))
            for ticket_id in unique_ticket_ids(session)
        ],
    )

def accuracy(estimate: float, actual: float) -> Optional[float]:
    """Estimate over actual, None unless both are positive"""
    if estimate > 0 and actual > 0:
        return estimate / actual
    return None

class WeeklyStats(BaseModel):
    week_start: datetime
    week_end: datetime
    total_work_time: float = 0.0
    total_rest_time: float = 0.0
    total_overhead_time: float = 0.0
    total_estimate: float = 0.0
    accuracy: Optional[float] = None
    session_count: int = 0
    ticket_count: int = 0

class TicketReport(BaseModel):
    ticket_id: str
    identifier: str
    title: Optional[str] = None
    estimate: Optional[float] = None
    actual: float = 0.0
    session_count: int = 0
    accuracy: Optional[float] = None
    last_worked: Optional[datetime] = None

def week_bounds(date: datetime, week_start_weekday: Optional[int] = None):
    """Start (inclusive) and end (exclusive) of the week containing ``date``"""
    if week_start_weekday is None:
        week_start_weekday = settings.WEEK_START_WEEKDAY
    offset = (date.weekday() - week_start_weekday) % 7
    start = datetime.combine(date.date() - timedelta(days=offset), time.min)
    return start, start + timedelta(days=7)

def overhead_between(records: List[TransitionRecord], start: datetime, end: datetime) -> float:
    return sum(record.duration for record in records if start <= record.date < end)

class MetricsCollector:
    """Collects and formats time accounting for reports"""

    def __init__(self, db: DatabaseManager):
        self.db = db

    def _estimates(self) -> Dict[str, float]:
        estimates = {}
        for ticket in self.db.load_tickets() + self.db.load_local_tasks():
            if ticket.local_estimate is not None:
                estimates[ticket.id] = ticket.local_estimate
        estimates.update(self.db.load_estimates())
        return estimates

    def get_weekly_stats(self, date: Optional[datetime] = None) -> WeeklyStats:
        """Work, rest and overhead totals for the week containing ``date``"""
        date = date or datetime.now()
        start, end = week_bounds(date)
        sessions = [
            s for s in self.db.load_sessions()
            if start <= s.start_time < end
        ]
        records = self.db.load_transition_records()
        estimates = self._estimates()

        ticket_ids: Dict[str, None] = {}
        for session in sessions:
            for ticket_id in unique_ticket_ids(session):
                ticket_ids.setdefault(ticket_id, None)

        work = sum(total_work_time(s) for s in sessions)
        total_estimate = sum(estimates.get(ticket_id, 0.0) for ticket_id in ticket_ids)
        return WeeklyStats(
            week_start=start,
            week_end=end,
            total_work_time=work,
            total_rest_time=sum(total_rest_time(s) for s in sessions),
            total_overhead_time=overhead_between(records, start, end),
            total_estimate=total_estimate,
            accuracy=accuracy(total_estimate, work),
            session_count=len(sessions),
            ticket_count=len(ticket_ids),
        )

    def get_ticket_reports(self) -> List[TicketReport]:
        """Estimate against actual per ticket over completed sessions, most recent first"""
        tickets = {t.id: t for t in self.db.load_tickets() + self.db.load_local_tasks()}
        estimates = self._estimates()
        reports: Dict[str, TicketReport] = {}

        for session in self.db.load_sessions():
            if session.is_active:
                continue
            for ticket_id in unique_ticket_ids(session):
                ticket = tickets.get(ticket_id)
                report = reports.setdefault(ticket_id, TicketReport(
                    ticket_id=ticket_id,
                    identifier=ticket.identifier if ticket else ticket_id,
                    title=ticket.title if ticket else None,
                    estimate=estimates.get(ticket_id),
                ))
                report.actual += work_time_for_ticket(session, ticket_id)
                report.session_count += 1
                if report.last_worked is None or session.start_time > report.last_worked:
                    report.last_worked = session.start_time

        for report in reports.values():
            if report.estimate is not None:
                report.accuracy = accuracy(report.estimate, report.actual)

        return sorted(reports.values(), key=lambda r: r.last_worked, reverse=True)

    def get_daily_metrics(self, date: Optional[datetime] = None) -> Dict:
        """Get metrics for a specific date"""
        if date is None:
            date = datetime.now()
        start = datetime.combine(date.date(), time.min)
        return self._get_day(start, start + timedelta(days=1))

    def export_timeframe(self, start: datetime, end: datetime) -> Dict:
        """Export all metrics for a given timeframe"""
        daily_metrics = []
        current = datetime.combine(start.date(), time.min)
        while current <= end:
            daily_metrics.append(self._get_day(current, current + timedelta(days=1)))
            current += timedelta(days=1)

        return {
            "timeframe": {
                "start": start.isoformat(),
                "end": end.isoformat()
            },
            "daily_metrics": daily_metrics,
            "aggregate_metrics": {
                "work_time": sum(d["work_time"] for d in daily_metrics),
                "rest_time": sum(d["rest_time"] for d in daily_metrics),
                "overhead_time": sum(d["overhead_time"] for d in daily_metrics),
                "session_count": sum(d["session_count"] for d in daily_metrics),
            }
        }

    def _get_day(self, start: datetime, end: datetime) -> Dict:
        sessions = [s for s in self.db.load_sessions() if start <= s.start_time < end]
        records = self.db.load_transition_records()
        return {
            "date": start.date().isoformat(),
            "work_time": sum(total_work_time(s) for s in sessions),
            "rest_time": sum(total_rest_time(s) for s in sessions),
            "overhead_time": overhead_between(records, start, end),
            "session_count": len(sessions),
        }
