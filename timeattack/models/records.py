from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4
from pydantic import BaseModel, ConfigDict, Field

class SuspendedSession(BaseModel):
    """Remaining budget of a ticket whose work was interrupted"""
    model_config = ConfigDict(frozen=True)

    ticket_id: str
    remaining_time: float = Field(ge=0, description="Seconds left at suspension")
    suspended_at: datetime

class TransitionRecord(BaseModel):
    """Immutable log entry of context-switch overhead"""
    model_config = ConfigDict(frozen=True)

    id: UUID = Field(default_factory=uuid4)
    date: datetime = Field(default_factory=datetime.now)
    duration: float
    from_ticket_id: Optional[str] = None
