"""Thread-safe registry of task definitions."""

from __future__ import annotations

import threading
import uuid
from typing import Optional

from okestra.activity.models import ActivityError, TaskDefinition


class TaskDefinitionManager:
    """Stores task definitions keyed by their function id."""

    def __init__(self) -> None:
        self.definitions: dict[uuid.UUID, TaskDefinition] = {}
        self._lock = threading.RLock()

    def add(self, definition: Optional[TaskDefinition]) -> None:
        """Register a definition, assigning a fresh id if it has none."""
        if definition is None:
            raise ActivityError("Add", "cannot add nil task definition")
        if definition.func_id is None:
            definition.func_id = uuid.uuid4()
        with self._lock:
            if definition.func_id in self.definitions:
                raise ActivityError(
                    "Add",
                    "task definition with this ID already exists",
                    str(definition.func_id),
                )
            self.definitions[definition.func_id] = definition

    def delete(self, definition: Optional[TaskDefinition]) -> None:
        """Remove a registered definition."""
        if definition is None:
            raise ActivityError("Delete", "cannot delete nil task definition")
        with self._lock:
            if definition.func_id not in self.definitions:
                raise ActivityError(
                    "Delete", "task definition not found", str(definition.func_id)
                )
            del self.definitions[definition.func_id]

    def list(self) -> list[TaskDefinition]:
        """Return all registered definitions."""
        with self._lock:
            return list(self.definitions.values())

    def get(self, func_id: uuid.UUID) -> TaskDefinition:
        """Return the definition with the given id."""
        with self._lock:
            try:
                return self.definitions[func_id]
            except KeyError:
                raise ActivityError(
                    "Get", "task definition not found", str(func_id)
                ) from None

    def get_by_name(self, name: str) -> TaskDefinition:
        """Return the first definition having a parameter called ``name``."""
        with self._lock:
            for definition in self.definitions.values():
                if any(param.name == name for param in definition.parameters.values()):
                    return definition
        raise ActivityError("GetByName", "task definition not found", name)

    def count(self) -> int:
        """Return the number of registered definitions."""
        with self._lock:
            return len(self.definitions)