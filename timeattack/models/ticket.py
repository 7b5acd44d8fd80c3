from datetime import date, datetime
from enum import Enum
from typing import Annotated, List, Literal, Optional, Union
from pydantic import BaseModel, ConfigDict, Field

from timeattack.config.settings import settings

class LocalTaskState(str, Enum):
    """Workflow of tasks created locally"""
    TODO = "Todo"
    IN_PROGRESS = "In Progress"
    DONE = "Done"

    @property
    def is_started(self) -> bool:
        return self is LocalTaskState.IN_PROGRESS

    @property
    def is_completed(self) -> bool:
        return self is LocalTaskState.DONE

    def next(self) -> "LocalTaskState":
        if self is LocalTaskState.TODO:
            return LocalTaskState.IN_PROGRESS
        return LocalTaskState.DONE

class LocalSource(BaseModel):
    kind: Literal["local"] = "local"

class LinearSource(BaseModel):
    kind: Literal["linear"] = "linear"
    issue_id: str
    url: str

class JiraSource(BaseModel):
    kind: Literal["jira"] = "jira"
    issue_key: str
    url: str

TicketSource = Annotated[
    Union[LocalSource, LinearSource, JiraSource],
    Field(discriminator="kind")
]

def provider_name(source: TicketSource) -> str:
    match source:
        case LocalSource():
            return "Local"
        case LinearSource():
            return "Linear"
        case JiraSource():
            return "Jira"
    raise TypeError(f"Unknown ticket source: {source!r}")

class DueDateStatus(BaseModel):
    """How close a ticket is to its due date"""
    kind: Literal["overdue", "today", "soon", "normal", "none"]
    days: int = 0

    @property
    def display_text(self) -> str:
        if self.kind == "overdue":
            return "1 day overdue" if self.days == 1 else f"{self.days} days overdue"
        if self.kind == "today":
            return "Due today"
        if self.kind == "soon" and self.days == 1:
            return "Due tomorrow"
        if self.kind in ("soon", "normal"):
            return f"{self.days} days left"
        return ""

    @property
    def color(self) -> str:
        return {
            "overdue": "red",
            "today": "orange1",
            "soon": "yellow",
            "normal": "dim",
        }.get(self.kind, "default")

class Ticket(BaseModel):
    """A unit of work pulled from a task source"""
    model_config = ConfigDict(frozen=True)

    id: str
    identifier: str
    title: str
    state: str
    source: TicketSource = Field(default_factory=LocalSource)
    url: Optional[str] = None
    estimate_points: Optional[int] = Field(
        default=None,
        description="Estimate in the tracker's own points"
    )
    local_estimate: Optional[float] = Field(
        default=None,
        ge=0,
        description="Estimate in seconds set by the user"
    )
    priority: int = 0
    updated_at: datetime = Field(default_factory=datetime.now)
    created_at: Optional[datetime] = None
    due_date: Optional[date] = None
    parent_id: Optional[str] = None
    notes: Optional[str] = None
    children: List["Ticket"] = Field(default_factory=list)

    @property
    def is_local(self) -> bool:
        return isinstance(self.source, LocalSource)

    @property
    def is_started(self) -> bool:
        return settings.is_started_state(self.state)

    @property
    def is_completed(self) -> bool:
        return settings.is_completed_state(self.state)

    @property
    def all_tickets(self) -> List["Ticket"]:
        """This ticket followed by all descendants, depth first"""
        result = [self]
        for child in self.children:
            result.extend(child.all_tickets)
        return result

    def due_date_status(self, today: Optional[date] = None) -> DueDateStatus:
        if self.due_date is None:
            return DueDateStatus(kind="none")
        today = today or date.today()
        days = (self.due_date - today).days
        if days < 0:
            return DueDateStatus(kind="overdue", days=abs(days))
        if days == 0:
            return DueDateStatus(kind="today")
        if days <= 3:
            return DueDateStatus(kind="soon", days=days)
        return DueDateStatus(kind="normal", days=days)

    @property
    def display_estimate(self) -> str:
        if self.local_estimate is not None:
            hours = int(self.local_estimate) // 3600
            minutes = (int(self.local_estimate) % 3600) // 60
            if hours > 0:
                return f"{hours}h {minutes}m"
            return f"{minutes}m"
        if self.estimate_points is not None:
            return f"{self.estimate_points} pts"
        return "No estimate"

    def with_state(self, state: str) -> "Ticket":
        return self.model_copy(update={"state": state, "updated_at": datetime.now()})

    def with_local_estimate(self, estimate: Optional[float]) -> "Ticket":
        return self.model_copy(update={"local_estimate": estimate})

    def with_notes(self, notes: Optional[str]) -> "Ticket":
        return self.model_copy(update={"notes": notes, "updated_at": datetime.now()})

Ticket.model_rebuild()

class TaskCreateRequest(BaseModel):
    """Fields needed to create a ticket in a task source"""
    title: str = Field(min_length=1)
    description: Optional[str] = None
    priority: Optional[int] = None
    estimate: Optional[int] = None
    due_date: Optional[date] = None
    team_id: Optional[str] = None
