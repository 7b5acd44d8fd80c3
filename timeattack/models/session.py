from datetime import datetime
from typing import Optional, Tuple
from uuid import UUID, uuid4
from pydantic import BaseModel, ConfigDict, Field

from timeattack.models.interval import (
    PausedInterval,
    elapsed,
    is_paused,
    remaining,
    total_paused_time,
)
from timeattack.models.task_type import TaskType

class SessionTask(BaseModel):
    """A single typed, timed segment within a session"""
    model_config = ConfigDict(frozen=True)

    id: UUID = Field(default_factory=uuid4)
    session_id: UUID
    type: TaskType
    start_time: datetime = Field(default_factory=datetime.now)
    end_time: Optional[datetime] = None
    paused_intervals: Tuple[PausedInterval, ...] = ()
    initial_remaining_time: Optional[float] = Field(
        default=None,
        description="Budget carried over from a suspension, in seconds"
    )

    @property
    def is_active(self) -> bool:
        return self.end_time is None

    @property
    def is_paused(self) -> bool:
        return is_paused(self.paused_intervals)

    @property
    def total_paused_time(self) -> float:
        return total_paused_time(self.paused_intervals)

    def actual_duration(self, now: Optional[datetime] = None) -> float:
        """Seconds worked, excluding closed pauses. Deliberately unclamped."""
        end = self.end_time or now or datetime.now()
        return elapsed(self.start_time, self.paused_intervals, end)

    def remaining_time(
        self,
        estimate: Optional[float] = None,
        now: Optional[datetime] = None
    ) -> Optional[float]:
        """Budget left; a carried-over budget wins over a fresh estimate"""
        budget = self.initial_remaining_time
        if budget is None:
            budget = estimate
        end = self.end_time or now or datetime.now()
        return remaining(self.start_time, self.paused_intervals, end, budget)

    def with_end_time(self, end_time: datetime) -> "SessionTask":
        return self.model_copy(update={"end_time": end_time})

    def with_paused_intervals(self, intervals) -> "SessionTask":
        return self.model_copy(update={"paused_intervals": tuple(intervals)})

class Session(BaseModel):
    """One continuous tracked work period with its ordered tasks"""
    model_config = ConfigDict(frozen=True)

    id: UUID = Field(default_factory=uuid4)
    start_time: datetime = Field(default_factory=datetime.now)
    end_time: Optional[datetime] = None
    tasks: Tuple[SessionTask, ...] = ()

    @property
    def is_active(self) -> bool:
        return self.end_time is None

    @property
    def active_task(self) -> Optional[SessionTask]:
        # Only the newest task can be open, so scan from the end
        for task in reversed(self.tasks):
            if task.is_active:
                return task
        return None

    def total_duration(self, now: Optional[datetime] = None) -> float:
        end = self.end_time or now or datetime.now()
        return (end - self.start_time).total_seconds()

    def with_tasks(self, tasks) -> "Session":
        return self.model_copy(update={"tasks": tuple(tasks)})

    def with_end_time(self, end_time: datetime) -> "Session":
        return self.model_copy(update={"end_time": end_time})

    def appending_task(self, task: SessionTask) -> "Session":
        return self.with_tasks(self.tasks + (task,))

    def updating_task(self, task: SessionTask) -> "Session":
        """Replace the task with the same id; an unknown id leaves it equal"""
        return self.with_tasks(
            task if existing.id == task.id else existing
            for existing in self.tasks
        )
