"""Core data types shared by the activity components."""

from __future__ import annotations

import enum
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

TaskFunc = Callable[[], None]
Validator = Callable[[Any], None]


class ActivityError(Exception):
    """Error raised by activity operations.

    ``op`` names the failing operation, ``message`` describes the failure
    and ``key`` identifies the object involved (empty when there is none).
    """

    def __init__(
        self,
        op: str,
        message: str,
        key: str = "",
        cause: Optional[BaseException] = None,
    ) -> None:
        super().__init__(f"{op}: {message}")
        self.op = op
        self.message = message
        self.key = key
        self.cause = cause

    def __str__(self) -> str:
        return f"{self.op}: {self.message}"


class ActivityStatus(str, enum.Enum):
    """Lifecycle state of an activity."""

    ON_HOLD = "onHold"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class TaskParameterDefinition:
    """Schema entry for one task parameter.

    ``validation``, when given, is called with the argument value and
    raises an exception if the value is not acceptable.
    """

    name: str
    type: str = ""
    required: bool = False
    default_value: Any = None
    validation: Optional[Validator] = None


@dataclass
class TaskData:
    """A unit of data produced by, or destined for, a task."""

    task_id: uuid.UUID
    error: Optional[BaseException] = None
    data: Any = None


@dataclass(eq=False)
class TaskDefinition:
    """A reusable task type: the callable and its parameter schema."""

    func_id: Optional[uuid.UUID] = None
    task_func: Optional[TaskFunc] = None
    parameters: dict[str, TaskParameterDefinition] = field(default_factory=dict)


@dataclass(eq=False)
class Task:
    """A concrete task: a definition bound to arguments."""

    id: Optional[uuid.UUID] = None
    name: str = ""
    description: str = ""
    definition: Optional[TaskDefinition] = None
    args: dict[str, Any] = field(default_factory=dict)