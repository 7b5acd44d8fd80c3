from typing import Annotated, Literal, Optional, Union
from pydantic import BaseModel, ConfigDict, Field

class _TaskKind(BaseModel):
    model_config = ConfigDict(frozen=True)

    @property
    def is_work(self) -> bool:
        return isinstance(self, Work)

    @property
    def is_rest(self) -> bool:
        return isinstance(self, Rest)

    @property
    def is_deciding(self) -> bool:
        return isinstance(self, Deciding)

    @property
    def is_transitioning(self) -> bool:
        return isinstance(self, Transitioning)

    @property
    def is_overhead(self) -> bool:
        """Deciding and transitioning time count as overhead"""
        return isinstance(self, (Deciding, Transitioning))

    @property
    def display_name(self) -> str:
        match self:
            case Work():
                return "Work"
            case Rest():
                return "Rest"
            case Deciding():
                return "Deciding"
            case Transitioning():
                return "Transitioning"
        raise TypeError(f"Unknown task type: {type(self).__name__}")

class Work(_TaskKind):
    """Time spent on an identified ticket"""
    kind: Literal["work"] = "work"
    ticket_id: str = Field(description="Ticket the time is tracked against")

class Rest(_TaskKind):
    """A planned break of fixed target length"""
    kind: Literal["rest"] = "rest"
    duration: float = Field(ge=0, description="Target rest length in seconds")

class Deciding(_TaskKind):
    """Think-time while choosing what to do next"""
    kind: Literal["deciding"] = "deciding"

class Transitioning(_TaskKind):
    """Context-switch overhead after suspending a task"""
    kind: Literal["transitioning"] = "transitioning"
    from_ticket_id: Optional[str] = Field(
        default=None,
        description="Ticket that was being left, if any"
    )

TaskType = Annotated[
    Union[Work, Rest, Deciding, Transitioning],
    Field(discriminator="kind")
]

def ticket_id_of(task_type: TaskType) -> Optional[str]:
    """Ticket id of a work task, None for every other kind"""
    match task_type:
        case Work(ticket_id=ticket_id):
            return ticket_id
        case _:
            return None
