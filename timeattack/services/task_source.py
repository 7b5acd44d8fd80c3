import logging
import uuid
from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional

from timeattack.models.ticket import LocalSource, LocalTaskState, TaskCreateRequest, Ticket
from timeattack.services.database import DatabaseManager
from timeattack.services.errors import TaskNotFoundError, TaskSourceError

logger = logging.getLogger(__name__)

class TaskSource(ABC):
    """Where tickets come from and where their workflow state is updated"""

    provider_type: str = "Unknown"

    @property
    def is_authenticated(self) -> bool:
        return True

    @abstractmethod
    async def fetch_tasks(self) -> List[Ticket]:
        ...

    @abstractmethod
    async def create_task(self, request: TaskCreateRequest) -> Ticket:
        ...

    @abstractmethod
    async def update_task_state(self, task_id: str, new_state: str) -> Ticket:
        ...

    async def delete_task(self, task_id: str) -> None:
        raise TaskSourceError(f"Delete not supported by {self.provider_type}")

class LocalTaskSource(TaskSource):
    """Tasks kept in the local snapshot store"""

    provider_type = "Local"

    def __init__(self, db: DatabaseManager):
        self.db = db

    async def fetch_tasks(self) -> List[Ticket]:
        return self.db.load_local_tasks()

    async def create_task(self, request: TaskCreateRequest) -> Ticket:
        number = self.db.next_local_task_number()
        now = datetime.now()
        ticket = Ticket(
            id=str(uuid.uuid4()),
            identifier=f"LOCAL-{number}",
            title=request.title,
            state=LocalTaskState.TODO.value,
            source=LocalSource(),
            estimate_points=request.estimate,
            priority=request.priority or 0,
            updated_at=now,
            created_at=now,
            due_date=request.due_date,
            notes=request.description,
        )
        tasks = self.db.load_local_tasks()
        tasks.insert(0, ticket)
        self.db.save_local_tasks(tasks)
        logger.info(f"Created local task {ticket.identifier}: {ticket.title}")
        return ticket

    async def update_task_state(self, task_id: str, new_state: str) -> Ticket:
        return self._replace(task_id, lambda ticket: ticket.with_state(new_state))

    async def update_task_notes(self, task_id: str, notes: Optional[str]) -> Ticket:
        return self._replace(task_id, lambda ticket: ticket.with_notes(notes))

    async def update_local_estimate(self, task_id: str, estimate: Optional[float]) -> Ticket:
        return self._replace(task_id, lambda ticket: ticket.with_local_estimate(estimate))

    async def delete_task(self, task_id: str) -> None:
        tasks = self.db.load_local_tasks()
        self.db.save_local_tasks([t for t in tasks if t.id != task_id])

    def find(self, task_id_or_identifier: str) -> Optional[Ticket]:
        """Look a task up by id or by its LOCAL-n identifier"""
        for ticket in self.db.load_local_tasks():
            if task_id_or_identifier in (ticket.id, ticket.identifier):
                return ticket
        return None

    def _replace(self, task_id: str, transform) -> Ticket:
        tasks = self.db.load_local_tasks()
        for index, ticket in enumerate(tasks):
            if ticket.id == task_id:
                tasks[index] = transform(ticket)
                self.db.save_local_tasks(tasks)
                return tasks[index]
        raise TaskNotFoundError(f"Task not found: {task_id}")
