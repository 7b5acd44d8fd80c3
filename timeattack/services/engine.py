"""Session lifecycle controller.

``SessionEngine`` is the only writer of session state. Every public
operation applies one transition to the in-memory timeline, saves the
affected snapshots and returns a ``Transition`` holding the new session
and the side effects (intents) the caller should dispatch.

Persistence is best effort: when a save fails the error is logged and
kept in ``last_persist_error`` but the in-memory change stands, since it
remains the source of truth for the rest of the process. A snapshot that
failed to save is listed in ``unsaved_snapshots`` and written again with
the next save of any snapshot; ``last_persist_error`` is cleared only
once nothing is left unsaved.

The engine assumes a single caller. Anything that shares one instance
between threads must serialize whole operations.
"""
import logging
from datetime import datetime
from typing import Callable, Dict, List, Optional, Set, Tuple

from timeattack.config.settings import settings
from timeattack.models.interval import close_pause, open_pause
from timeattack.models.records import SuspendedSession, TransitionRecord
from timeattack.models.session import Session, SessionTask
from timeattack.models.task_type import Deciding, Rest, TaskType, Transitioning, Work
from timeattack.models.ticket import Ticket
from timeattack.services.database import DatabaseManager
from timeattack.services.errors import (
    DatabaseError,
    NoActiveSessionError,
    NoActiveTaskError,
    NotAWorkTaskError,
    SessionClosedError,
)
from timeattack.services.intents import (
    CancelRestAlert,
    Intent,
    PromptChoice,
    ScheduleRestAlert,
    SessionCompleted,
    Transition,
    UpdateTaskState,
)

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]

SESSIONS = "sessions"
SUSPENDED_SESSIONS = "suspended sessions"
TRANSITION_RECORDS = "transition records"

class SessionEngine:
    """Owns the session timeline, suspensions and transition log"""

    def __init__(self, db: Optional[DatabaseManager] = None, clock: Optional[Clock] = None):
        self.db = db
        self.clock = clock or datetime.now
        self.sessions: List[Session] = []
        self.suspended_sessions: Dict[str, SuspendedSession] = {}
        self.transition_records: List[TransitionRecord] = []
        self.tickets: Dict[str, Ticket] = {}
        self.estimates: Dict[str, float] = {}
        self.last_persist_error: Optional[DatabaseError] = None
        self._unsaved: Set[str] = set()
        self._current_index: Optional[int] = None

        if db is not None:
            self.load()

    # Loading and read accessors

    def load(self) -> None:
        """Replace in-memory state with the stored snapshots"""
        self.sessions = self.db.load_sessions()
        self.suspended_sessions = self.db.load_suspended_sessions()
        self.transition_records = self.db.load_transition_records()
        self.refresh_tickets()

        self._current_index = None
        open_indexes = [i for i, session in enumerate(self.sessions) if session.is_active]
        if open_indexes:
            self._current_index = open_indexes[-1]
        if len(open_indexes) > 1:
            for index in open_indexes[:-1]:
                self.sessions[index] = self._close_stale_session(self.sessions[index])
            logger.warning(
                f"Found {len(open_indexes)} open sessions, closed all but the newest"
            )
            self._save_sessions()
        logger.info(
            f"Loaded {len(self.sessions)} sessions, "
            f"{len(self.suspended_sessions)} suspended tickets"
        )

    def refresh_tickets(self) -> None:
        """Reload the ticket cache and local estimates used for budgets"""
        if self.db is None:
            return
        tickets = self.db.load_tickets() + self.db.load_local_tasks()
        self.tickets = {ticket.id: ticket for ticket in tickets}
        self.estimates = self.db.load_estimates()

    @property
    def current_session(self) -> Optional[Session]:
        if self._current_index is None:
            return None
        return self.sessions[self._current_index]

    @property
    def active_task(self) -> Optional[SessionTask]:
        session = self.current_session
        return session.active_task if session else None

    def suspended_session(self, ticket_id: str) -> Optional[SuspendedSession]:
        return self.suspended_sessions.get(ticket_id)

    @property
    def unsaved_snapshots(self) -> Set[str]:
        """Snapshots whose last save failed and that are retried on the next save"""
        return set(self._unsaved)

    def estimate_for(self, ticket_id: str) -> Optional[float]:
        """Saved local estimate, else the cached ticket's own estimate"""
        if ticket_id in self.estimates:
            return self.estimates[ticket_id]
        ticket = self.tickets.get(ticket_id)
        return ticket.local_estimate if ticket else None

    def active_remaining_time(self, now: Optional[datetime] = None) -> Optional[float]:
        """Budget left on the active task, for display polling"""
        task = self.active_task
        if task is None:
            return None
        match task.type:
            case Work(ticket_id=ticket_id):
                return task.remaining_time(self.estimate_for(ticket_id), now or self.clock())
            case Rest(duration=duration):
                return task.remaining_time(duration, now or self.clock())
            case _:
                return None

    # Session lifecycle

    def start_session(self) -> Transition:
        """Open a session with a Deciding task; no-op if one is already open"""
        current = self.current_session
        if current is not None:
            logger.debug(f"Session {current.id} already open")
            return Transition(session=current)

        now = self.clock()
        session = Session(start_time=now)
        session = session.appending_task(
            SessionTask(session_id=session.id, type=Deciding(), start_time=now)
        )
        self.sessions.append(session)
        self._current_index = len(self.sessions) - 1
        self._save_sessions()

        logger.info(f"Started session {session.id}")
        return Transition(session=session, intents=[PromptChoice(session_id=str(session.id))])

    def end_session(self) -> Transition:
        """Close the active task and the session. Always available."""
        session = self.current_session
        if session is None:
            logger.debug("No open session to end")
            return Transition(session=None)

        now = self.clock()
        session, intents, recorded = self._close_active_task(session, now)
        session = session.with_end_time(now)
        self._replace_current(session)
        self._current_index = None
        self._save_sessions()
        if recorded:
            self._save_transition_records()

        logger.info(f"Ended session {session.id} with {len(session.tasks)} tasks")
        return Transition(session=session, intents=intents + [SessionCompleted(session=session)])

    # Task lifecycle

    def start_task(
        self,
        task_type: TaskType,
        initial_remaining_time: Optional[float] = None
    ) -> Transition:
        """Close the active task and open a new one in a single step"""
        session = self._require_session()
        now = self.clock()

        session, intents, recorded = self._close_active_task(session, now)
        task = SessionTask(
            session_id=session.id,
            type=task_type,
            start_time=now,
            initial_remaining_time=initial_remaining_time,
        )
        session = session.appending_task(task)
        intents.extend(self._start_intents(task_type))

        self._replace_current(session)
        self._save_sessions()
        if recorded:
            self._save_transition_records()

        logger.info(f"Started {task_type.display_name} task {task.id}")
        return Transition(session=session, intents=intents)

    def end_active_task(self) -> Transition:
        """Close the active task without opening another or ending the session"""
        session = self._require_session()
        session, intents, recorded = self._close_active_task(session, self.clock())
        self._replace_current(session)
        self._save_sessions()
        if recorded:
            self._save_transition_records()
        return Transition(session=session, intents=intents)

    def start_rest(self, duration: Optional[float] = None) -> Transition:
        if duration is None:
            duration = settings.DEFAULT_REST_MINUTES * 60
        return self.start_task(Rest(duration=duration))

    def resume_work_task(self, ticket_id: str) -> Transition:
        """Start work on a ticket, continuing its suspended budget if it has one"""
        transition = Transition(session=self.current_session)
        if transition.session is None:
            transition = self.start_session()

        suspension = self.suspended_sessions.pop(ticket_id, None)
        if suspension is None:
            return transition.then(self.start_task(Work(ticket_id=ticket_id)))

        self._save_suspended_sessions()
        logger.info(f"Resuming {ticket_id} with {suspension.remaining_time:.0f}s remaining")
        return transition.then(
            self.start_task(Work(ticket_id=ticket_id), initial_remaining_time=suspension.remaining_time)
        )

    start_work_task = resume_work_task

    def toggle_pause(self) -> Transition:
        """Pause the active task, or resume it if paused; no-op without one"""
        session = self.current_session
        task = session.active_task if session else None
        if task is None:
            return Transition(session=session)

        now = self.clock()
        if task.is_paused:
            intervals = close_pause(task.paused_intervals, now)
            logger.info(f"Resumed task {task.id}")
        else:
            intervals = open_pause(task.paused_intervals, now)
            logger.info(f"Paused task {task.id}")

        session = session.updating_task(task.with_paused_intervals(intervals))
        self._replace_current(session)
        self._save_sessions()
        return Transition(session=session)

    # Suspension

    def suspend_current_task(self, remaining_time: float) -> Transition:
        """Remember the budget left on the active work task's ticket"""
        session = self._require_session()
        task = session.active_task
        if task is None:
            raise NoActiveTaskError("No active task to suspend")
        match task.type:
            case Work(ticket_id=ticket_id):
                pass
            case _:
                raise NotAWorkTaskError(f"Cannot suspend a {task.type.display_name} task")

        suspension = SuspendedSession(
            ticket_id=ticket_id,
            remaining_time=max(0.0, remaining_time),
            suspended_at=self.clock(),
        )
        self.suspended_sessions[ticket_id] = suspension
        self._save_suspended_sessions()
        logger.info(f"Suspended {ticket_id} with {suspension.remaining_time:.0f}s remaining")
        return Transition(session=session)

    def suspend_and_transition(self) -> Transition:
        """Suspend the active work (or leave a rest) and start transitioning"""
        session = self._require_session()
        task = session.active_task
        if task is None:
            raise NoActiveTaskError("No active task to switch from")

        match task.type:
            case Work(ticket_id=ticket_id):
                budget = task.initial_remaining_time
                if budget is None:
                    budget = self.estimate_for(ticket_id)
                if budget is None:
                    logger.info(f"No budget known for {ticket_id}, nothing to suspend")
                else:
                    remaining = max(0.0, budget - task.actual_duration(self.clock()))
                    self.suspend_current_task(remaining)
                return self.start_task(Transitioning(from_ticket_id=ticket_id))
            case Rest():
                return self.start_task(Transitioning())
            case _:
                raise NotAWorkTaskError(
                    f"Cannot suspend a {task.type.display_name} task"
                )

    # Overhead log

    def record_transition_time(self, duration: float, from_ticket_id: Optional[str] = None) -> Optional[TransitionRecord]:
        """Log context-switch time measured outside a Transitioning task"""
        if duration <= 0:
            return None
        record = TransitionRecord(date=self.clock(), duration=duration, from_ticket_id=from_ticket_id)
        self.transition_records.append(record)
        self._save_transition_records()
        return record

    # Internals

    def _require_session(self) -> Session:
        session = self.current_session
        if session is None:
            raise NoActiveSessionError("No open session")
        if not session.is_active:
            raise SessionClosedError(f"Session {session.id} is already closed")
        return session

    def _replace_current(self, session: Session) -> None:
        self.sessions[self._current_index] = session

    def _close_active_task(
        self,
        session: Session,
        now: datetime
    ) -> Tuple[Session, List[Intent], bool]:
        """Close the active task and its open pause.

        Returns the updated session, the intents closing produced and
        whether a transition record was added.
        """
        task = session.active_task
        if task is None:
            return session, [], False

        if task.is_paused:
            task = task.with_paused_intervals(close_pause(task.paused_intervals, now))
        closed = task.with_end_time(now)
        session = session.updating_task(closed)

        intents: List[Intent] = []
        recorded = False
        match closed.type:
            case Rest():
                intents.append(CancelRestAlert())
            case Deciding():
                recorded = self._record_overhead(closed, now, None)
            case Transitioning(from_ticket_id=from_ticket_id):
                recorded = self._record_overhead(closed, now, from_ticket_id)
        logger.debug(f"Closed {closed.type.display_name} task {closed.id}")
        return session, intents, recorded

    def _close_stale_session(self, session: Session) -> Session:
        """Close a session left open by mistake where its last task began or ended"""
        last = session.tasks[-1] if session.tasks else None
        if last is None:
            end = session.start_time
        else:
            end = last.end_time or last.start_time
            if last.is_paused:
                end = max(end, last.paused_intervals[-1].start)
        task = session.active_task
        if task is not None:
            if task.is_paused:
                task = task.with_paused_intervals(close_pause(task.paused_intervals, end))
            session = session.updating_task(task.with_end_time(end))
        logger.warning(f"Closing stale session {session.id} at {end.isoformat()}")
        return session.with_end_time(end)

    def _record_overhead(self, task: SessionTask, now: datetime, from_ticket_id: Optional[str]) -> bool:
        duration = task.actual_duration()
        if duration <= 0:
            return False
        self.transition_records.append(TransitionRecord(
            date=now,
            duration=duration,
            from_ticket_id=from_ticket_id,
        ))
        return True

    def _start_intents(self, task_type: TaskType) -> List[Intent]:
        match task_type:
            case Work(ticket_id=ticket_id):
                ticket = self.tickets.get(ticket_id)
                if ticket is not None and (ticket.is_started or ticket.is_completed):
                    return []
                return [UpdateTaskState(ticket_id=ticket_id, new_state=settings.IN_PROGRESS_STATE)]
            case Rest(duration=duration):
                return [ScheduleRestAlert(after_seconds=duration)]
            case _:
                return []

    def _persist(self, what: str) -> None:
        """Save ``what`` along with every snapshot still waiting for a retry"""
        if self.db is None:
            return
        savers = {
            SESSIONS: lambda: self.db.save_sessions(self.sessions),
            SUSPENDED_SESSIONS: lambda: self.db.save_suspended_sessions(self.suspended_sessions),
            TRANSITION_RECORDS: lambda: self.db.save_transition_records(self.transition_records),
        }
        for key in [what] + [k for k in savers if k in self._unsaved and k != what]:
            try:
                savers[key]()
                self._unsaved.discard(key)
            except DatabaseError as e:
                # In-memory state stays authoritative until the next save succeeds
                logger.error(f"Failed to persist {key}: {e}")
                self._unsaved.add(key)
                self.last_persist_error = e
        if not self._unsaved:
            self.last_persist_error = None

    def _save_sessions(self) -> None:
        self._persist(SESSIONS)

    def _save_suspended_sessions(self) -> None:
        self._persist(SUSPENDED_SESSIONS)

    def _save_transition_records(self) -> None:
        self._persist(TRANSITION_RECORDS)
