"""Directed acyclic graph of task identifiers."""

from __future__ import annotations

from collections import deque
from typing import Iterator

from okestra.activity.models import ActivityError


class ActivityGraph:
    """Task dependency graph that refuses edges which would form a cycle."""

    def __init__(self) -> None:
        self.nodes: list[str] = []
        self.edges: dict[str, list[str]] = {}

    def _adjacent(self, node: str) -> Iterator[str]:
        return iter(list(self.edges.get(node, ())))

    def add_node(self, task_id: str) -> None:
        """Add a node; raise if it already exists."""
        if task_id in self.nodes:
            raise ActivityError("AddNode", "node already exists", task_id)
        self.nodes.append(task_id)
        self.edges[task_id] = []

    def remove_node(self, task_id: str) -> None:
        """Remove a node together with its outgoing and incoming edges."""
        if task_id not in self.nodes:
            raise ActivityError("RemoveNode", "node not found", task_id)
        self.nodes.remove(task_id)
        self.edges.pop(task_id, None)
        for node, targets in self.edges.items():
            self.edges[node] = [target for target in targets if target != task_id]

    def remove_edge(self, from_task_id: str, to_task_id: str) -> None:
        """Remove the edge ``from_task_id -> to_task_id``."""
        key = f"{from_task_id}->{to_task_id}"
        if from_task_id not in self.edges or to_task_id not in self.edges:
            raise ActivityError("RemoveEdge", "node does not exist", key)
        targets = self.edges[from_task_id]
        if to_task_id not in targets:
            raise ActivityError("RemoveEdge", "edge does not exist", key)
        targets.remove(to_task_id)

    def add_edge(self, from_task_id: str, to_task_id: str) -> None:
        """Add the edge ``from_task_id -> to_task_id`` unless it closes a cycle."""
        if from_task_id not in self.nodes:
            raise ActivityError(
                "AddEdge", f"source node {from_task_id} does not exist", from_task_id
            )
        if to_task_id not in self.nodes:
            raise ActivityError(
                "AddEdge", f"destination node {to_task_id} does not exist", to_task_id
            )
        if self.would_create_cycle(from_task_id, to_task_id):
            raise ActivityError(
                "AddEdge",
                "adding this edge would create a cycle",
                f"{from_task_id}->{to_task_id}",
            )
        self.edges.setdefault(from_task_id, []).append(to_task_id)

    def has_cycle(self) -> bool:
        """Return True if the graph currently contains a cycle."""
        visited: set[str] = set()
        on_path: set[str] = set()
        for start in self.nodes:
            if start in visited:
                continue
            visited.add(start)
            on_path.add(start)
            stack = [(start, self._adjacent(start))]
            while stack:
                node, pending = stack[-1]
                for nxt in pending:
                    if nxt not in visited:
                        visited.add(nxt)
                        on_path.add(nxt)
                        stack.append((nxt, self._adjacent(nxt)))
                        break
                    if nxt in on_path:
                        return True
                else:
                    on_path.discard(node)
                    stack.pop()
        return False

    def would_create_cycle(self, from_task_id: str, to_task_id: str) -> bool:
        """Return True if adding ``from -> to`` would create a cycle."""
        return self.is_reachable(to_task_id, from_task_id)

    def is_reachable(self, source: str, destination: str) -> bool:
        """Return True if a path leads from ``source`` to ``destination``."""
        visited = {source}
        queue = deque([source])
        while queue:
            current = queue.popleft()
            if current == destination:
                return True
            for adjacent in self.edges.get(current, ()):
                if adjacent not in visited:
                    visited.add(adjacent)
                    queue.append(adjacent)
        return False

    def topological_sort(self) -> list[str]:
        """Return the nodes ordered so that every edge points forward."""
        if self.has_cycle():
            raise ActivityError(
                "TopologicalSort", "cannot perform topological sort on a cyclic graph"
            )
        visited: set[str] = set()
        finished: list[str] = []
        for start in self.nodes:
            if start in visited:
                continue
            visited.add(start)
            stack = [(start, self._adjacent(start))]
            while stack:
                node, pending = stack[-1]
                for nxt in pending:
                    if nxt not in visited:
                        visited.add(nxt)
                        stack.append((nxt, self._adjacent(nxt)))
                        break
                else:
                    finished.append(node)
                    stack.pop()
        finished.reverse()
        return finished