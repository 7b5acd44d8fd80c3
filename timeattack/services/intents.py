"""Side effects requested by engine transitions.

The engine never calls collaborators itself. Each transition returns the
intents it produced and an ``IntentDispatcher`` carries them out, so a
failing collaborator can never undo a transition already made in memory.
"""
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, List, Optional, Union

from timeattack.models.session import Session
from timeattack.services.notifications import NotificationSink
from timeattack.services.task_source import TaskSource

logger = logging.getLogger(__name__)

@dataclass(frozen=True)
class PromptChoice:
    """Ask the user what to do next"""
    session_id: str

@dataclass(frozen=True)
class UpdateTaskState:
    """Move a ticket to a new workflow state in its task source"""
    ticket_id: str
    new_state: str

@dataclass(frozen=True)
class ScheduleRestAlert:
    """Alert once a rest of ``after_seconds`` is over"""
    after_seconds: float

@dataclass(frozen=True)
class CancelRestAlert:
    """Drop any pending rest alert"""
    pass

@dataclass(frozen=True)
class SessionCompleted:
    """Hand a finished session to the summary collaborator"""
    session: Session

Intent = Union[PromptChoice, UpdateTaskState, ScheduleRestAlert, CancelRestAlert, SessionCompleted]

@dataclass
class Transition:
    """Result of an engine operation: the session after it and its side effects"""
    session: Optional[Session]
    intents: List[Intent] = field(default_factory=list)

    def then(self, other: "Transition") -> "Transition":
        """Chain a follow-up transition, keeping every intent in order"""
        return Transition(session=other.session, intents=self.intents + other.intents)

@dataclass(frozen=True)
class DispatchFailure:
    intent: Intent
    error: Exception

PromptHandler = Callable[[PromptChoice], None]
SummaryHandler = Callable[[Session], Union[None, Awaitable[None]]]

class IntentDispatcher:
    """Executes intents against the external collaborators, best effort"""

    def __init__(
        self,
        task_source: Optional[TaskSource] = None,
        notifier: Optional[NotificationSink] = None,
        on_prompt: Optional[PromptHandler] = None,
        on_session_completed: Optional[SummaryHandler] = None,
    ):
        self.task_source = task_source
        self.notifier = notifier
        self.on_prompt = on_prompt
        self.on_session_completed = on_session_completed

    async def dispatch(self, intents: List[Intent]) -> List[DispatchFailure]:
        """Run every intent in order and collect failures instead of raising"""
        failures = []
        for intent in intents:
            try:
                await self._execute(intent)
            except Exception as e:
                logger.error(f"Failed to execute {type(intent).__name__}: {e}")
                failures.append(DispatchFailure(intent=intent, error=e))
        return failures

    async def _execute(self, intent: Intent) -> None:
        match intent:
            case UpdateTaskState(ticket_id=ticket_id, new_state=new_state):
                if self.task_source is None:
                    logger.debug(f"No task source configured, skipping state update for {ticket_id}")
                    return
                ticket = await self.task_source.update_task_state(ticket_id, new_state)
                logger.info(f"Ticket {ticket.identifier} moved to '{ticket.state}'")
            case ScheduleRestAlert(after_seconds=after_seconds):
                if self.notifier is not None:
                    self.notifier.schedule_alert(after_seconds, "Rest is over")
            case CancelRestAlert():
                if self.notifier is not None:
                    self.notifier.cancel_alert()
            case PromptChoice():
                if self.on_prompt is not None:
                    self.on_prompt(intent)
            case SessionCompleted(session=session):
                if self.on_session_completed is not None:
                    result = self.on_session_completed(session)
                    if result is not None:
                        await result
            case _:
                raise TypeError(f"Unknown intent: {intent!r}")
