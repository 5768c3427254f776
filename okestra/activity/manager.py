"""An activity: a set of tasks connected by a dependency graph."""

from __future__ import annotations

import uuid

from okestra.activity.graph import ActivityGraph
from okestra.activity.models import ActivityStatus, Task
from okestra.activity.task import TaskManager


class ActivityManager:
    """Keeps an activity's tasks and their dependency graph in step."""

    def __init__(self, name: str, description: str = "") -> None:
        self.name = name
        self.id = uuid.uuid4()
        self.description = description
        self.status = ActivityStatus.ON_HOLD
        self.tasks = TaskManager()
        self.graph = ActivityGraph()

    def add_task(self, task: Task) -> None:
        """Register a task and add it as a graph node."""
        self.tasks.add(task)
        try:
            self.graph.add_node(str(task.id))
        except Exception:
            self.tasks.delete(task)
            raise

    def remove_task(self, task: Task) -> None:
        """Unregister a task and remove its graph node."""
        self.tasks.delete(task)
        self.graph.remove_node(str(task.id))

    def add_edge(self, from_task: Task, to_task: Task) -> None:
        """Make ``to_task`` depend on ``from_task``."""
        self.graph.add_edge(str(from_task.id), str(to_task.id))

    def remove_edge(self, from_task: Task, to_task: Task) -> None:
        """Remove the dependency between two tasks."""
        self.graph.remove_edge(str(from_task.id), str(to_task.id))

    def list_tasks(self) -> list[Task]:
        """Return all tasks of the activity."""
        return self.tasks.list()