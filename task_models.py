"""
Task data model shared by the Kanban API server, its HTTP client and the board UI.
"""

import enum
import difflib
from typing import Optional, Type, TypeVar, Union

from sqlmodel import Field, SQLModel

DEFAULT_TITLE = "Untitled Task"
MIN_POINTS = 0
MAX_POINTS = 20

E = TypeVar("E", bound=enum.Enum)


class Status(str, enum.Enum):
    """Enumeration for task status, in board column order."""

    TODO = "todo"
    IN_PROGRESS = "in-progress"
    DONE = "done"


class Priority(str, enum.Enum):
    """Enumeration for task priority."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


STATUS_ORDER = tuple(Status)

STATUS_TITLES = {
    Status.TODO: "To Do",
    Status.IN_PROGRESS: "In Progress",
    Status.DONE: "Done",
}


class TaskBase(SQLModel):
    title: str = Field(default=DEFAULT_TITLE, min_length=1)
    status: Status = Field(default=Status.TODO, index=True)
    priority: Priority = Field(default=Priority.MEDIUM, index=True)
    points: int = Field(default=0, ge=MIN_POINTS, le=MAX_POINTS)


class TaskRecord(TaskBase):
    """
    A persisted task as the API returns it.
    Attributes:
        id (str): Server-assigned identifier.
        title (str): Display title, never empty.
        status (Status): Board column the task sits in.
        priority (Priority): Priority level.
        points (int): Point estimate between MIN_POINTS and MAX_POINTS.
    """

    id: str


class TaskCreate(SQLModel):
    """Draft for a new task. Missing or empty fields take the server defaults."""

    title: Optional[str] = None
    status: Optional[Status] = None
    priority: Optional[Priority] = None
    points: Optional[int] = Field(default=None, ge=MIN_POINTS, le=MAX_POINTS)


class TaskUpdate(SQLModel):
    """Full or partial task payload for PUT. Unset fields are left unchanged."""

    title: Optional[str] = Field(default=None, min_length=1)
    status: Optional[Status] = None
    priority: Optional[Priority] = None
    points: Optional[int] = Field(default=None, ge=MIN_POINTS, le=MAX_POINTS)


def clamp_points(points: int) -> int:
    return max(MIN_POINTS, min(MAX_POINTS, points))


def _choice_key(value: str) -> str:
    return value.strip().lower().replace("_", "-")


def parse_choice(enum_cls: Type[E], value: Union[str, E, None], label: str) -> Optional[E]:
    """
    Resolve what a form or the board sent into a member of ``enum_cls``.

    Accepts the member itself, its wire value ("in-progress") or its name in any case
    ("IN_PROGRESS"). Anything else raises ValueError listing the valid values and, when
    one is close enough, the likely intended one.
    """
    if value is None or isinstance(value, enum_cls):
        return value
    key = _choice_key(str(value))
    for member in enum_cls:
        if key in (member.value, _choice_key(member.name)):
            return member
    valid = [member.value for member in enum_cls]
    message = f"Invalid {label}: '{value}'. Valid: {', '.join(valid)}."
    matches = difflib.get_close_matches(key, valid, n=1)
    if matches:
        message += f" Did you mean '{matches[0]}'?"
    raise ValueError(message)


def parse_status(value: Union[str, Status, None]) -> Optional[Status]:
    return parse_choice(Status, value, "status")


def parse_priority(value: Union[str, Priority, None]) -> Optional[Priority]:
    return parse_choice(Priority, value, "priority")
