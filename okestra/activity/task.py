"""Thread-safe registry of tasks."""

from __future__ import annotations

import threading
import uuid
from typing import Optional

from okestra.activity.models import ActivityError, Task

_NIL_UUID = uuid.UUID(int=0)


def _task_key(task: Task) -> str:
    return str(task.id if task.id is not None else _NIL_UUID)


class TaskManager:
    """Stores tasks keyed by their id."""

    def __init__(self) -> None:
        self.tasks: dict[uuid.UUID, Task] = {}
        self._lock = threading.RLock()

    def add(self, task: Optional[Task]) -> None:
        """Register a task, assigning a fresh id if it has none."""
        if task is None:
            raise ActivityError("Add", "cannot add nil task")
        if task.id is None or task.id == _NIL_UUID:
            task.id = uuid.uuid4()
        if task.definition is None:
            raise ActivityError("Add", "task must have a definition")
        with self._lock:
            if task.id in self.tasks:
                raise ActivityError(
                    "Add", "task with this ID already exists", str(task.id)
                )
            self.tasks[task.id] = task

    def delete(self, task: Optional[Task]) -> None:
        """Remove a registered task."""
        if task is None:
            raise ActivityError("Delete", "cannot delete nil task")
        with self._lock:
            if task.id not in self.tasks:
                raise ActivityError("Delete", "task not found", _task_key(task))
            del self.tasks[task.id]

    def list(self) -> list[Task]:
        """Return all registered tasks."""
        with self._lock:
            return list(self.tasks.values())

    def get(self, task_id: uuid.UUID) -> Task:
        """Return the task with the given id."""
        with self._lock:
            try:
                return self.tasks[task_id]
            except KeyError:
                raise ActivityError("Get", "task not found", str(task_id)) from None

    def get_by_name(self, name: str) -> Task:
        """Return the first task called ``name``."""
        with self._lock:
            for task in self.tasks.values():
                if task.name == name:
                    return task
        raise ActivityError("GetByName", "task not found", name)

    def count(self) -> int:
        """Return the number of registered tasks."""
        with self._lock:
            return len(self.tasks)

    def validate_task_args(self, task: Optional[Task]) -> None:
        """Check a task's arguments against its definition's parameter schema."""
        if task is None:
            raise ActivityError("ValidateTaskArgs", "cannot validate nil task")
        key = _task_key(task)
        if task.definition is None:
            raise ActivityError("ValidateTaskArgs", "task has no definition", key)

        parameters = task.definition.parameters
        for param_name, param_def in parameters.items():
            if param_def.required and param_name not in task.args:
                raise ActivityError(
                    "ValidateTaskArgs", f"missing required parameter: {param_name}", key
                )

        for param_name, value in task.args.items():
            param_def = parameters.get(param_name)
            if param_def is None:
                raise ActivityError(
                    "ValidateTaskArgs", f"unexpected parameter: {param_name}", key
                )
            if param_def.validation is not None:
                try:
                    param_def.validation(value)
                except Exception as exc:
                    raise ActivityError(
                        "ValidateTaskArgs",
                        f"validation failed for parameter {param_name}: {exc}",
                        key,
                        cause=exc,
                    ) from exc