"""Data exchange hub through which the tasks of an activity pass data."""

from __future__ import annotations

import dataclasses
import enum
import queue
import threading
import uuid
from dataclasses import dataclass, field
from typing import Any, Optional, Protocol

from okestra.activity.graph import ActivityGraph
from okestra.activity.models import ActivityError, TaskData

_NEW_DATA = object()
_STOP = object()


class ActivityStageStatus(str, enum.Enum):
    """Lifecycle state of an activity stage."""

    PENDING = "pending"
    HALTED = "halted"
    RUNNING = "running"
    DONE = "done"


class Receiver(Protocol):
    """Anything data can be delivered to, such as ``queue.Queue``."""

    def put(self, item: Any) -> None: ...


@dataclass
class DataExchange:
    """A task's request for data.

    Between ``min_demand`` and ``max_demand`` cached items are delivered.
    ``flush`` drops the items the task has already acknowledged.
    """

    task_id: uuid.UUID
    min_demand: int = 0
    max_demand: int = 0
    ready: bool = False
    flush: bool = False


@dataclass
class CacheData:
    """Data waiting for one task; ``ack`` counts the items already delivered."""

    data: list[TaskData] = field(default_factory=list)
    ack: int = 0


def _drain(source: "queue.Queue[Any]") -> list[Any]:
    items = []
    while True:
        try:
            items.append(source.get_nowait())
        except queue.Empty:
            return items


class ActivityStage:
    """Routes data written by tasks to the caches of their downstream tasks.

    Tasks write :class:`TaskData` on the write channel and ask for data by
    putting :class:`DataExchange` requests on the exchange channel; requested
    data is delivered to the receiver each task registered.
    """

    def __init__(self, graph: ActivityGraph) -> None:
        self.graph = graph
        self.cache: dict[uuid.UUID, CacheData] = {}
        self.pending_exchanges: list[DataExchange] = []
        self.lock = threading.RLock()
        self._receivers: dict[uuid.UUID, Receiver] = {}
        self._write_queue: "queue.Queue[Any]" = queue.Queue()
        self._exchange_queue: "queue.Queue[Any]" = queue.Queue()
        self._incoming_ready = threading.Event()
        self._outgoing_ready = threading.Event()
        self._threads: list[threading.Thread] = []

    def __enter__(self) -> "ActivityStage":
        self.start()
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.stop()

    def register_task_channel(
        self, task_id: uuid.UUID, receive_channel: Receiver
    ) -> tuple["queue.Queue[Any]", "queue.Queue[Any]"]:
        """Register where a task receives data.

        Returns the channel the task writes its data to and the channel it
        sends its data requests on.
        """
        with self.lock:
            self._receivers[task_id] = receive_channel
        return self._write_queue, self._exchange_queue

    def start(self) -> None:
        """Start the incoming-data and data-exchange handlers."""
        for target in (self._handle_incoming_data, self._handle_exchange_requests):
            thread = threading.Thread(target=target, daemon=True)
            thread.start()
            self._threads.append(thread)

    def init(self, init_data: list[TaskData]) -> None:
        """Queue the initial data for the first task of the graph."""
        task_id = self._first_task()
        if not init_data:
            return
        for data in init_data:
            self.add_data_to_cache(task_id, data)
        self._exchange_queue.put(_NEW_DATA)

    def is_ready(self) -> bool:
        """Return True once both handlers are running."""
        return self._incoming_ready.is_set() and self._outgoing_ready.is_set()

    def stop(self) -> None:
        """Stop the handlers and wait for them to finish."""
        self._write_queue.put(_STOP)
        self._exchange_queue.put(_STOP)
        for thread in self._threads:
            thread.join()
        self._threads.clear()

    def add_data_to_cache(self, task_id: uuid.UUID, data: TaskData) -> None:
        """Append data to the cache of a task."""
        with self.lock:
            cached = self.cache.get(task_id)
            if cached is None:
                self.cache[task_id] = CacheData(data=[data], ack=0)
            else:
                cached.data.append(data)

    def update_task_ack(
        self, task_id: uuid.UUID, exchange_request: DataExchange
    ) -> None:
        """Apply a request's flush to a task's cache.

        When the task has no cached data the request is kept pending and
        an error is raised.
        """
        with self.lock:
            cached = self.cache.get(task_id)
            if cached is None or not cached.data:
                self._update_exchange_request(exchange_request)
                raise ActivityError(
                    "updateTaskAck",
                    "no data to update ack for",
                    "no_data_to_update_ack_for",
                )
            if exchange_request.flush:
                cached.data = cached.data[cached.ack:]
                cached.ack = 0

    def send_out_task_data(
        self, task_id: uuid.UUID, exchange_request: DataExchange
    ) -> None:
        """Deliver up to ``max_demand`` unacknowledged items to a task.

        Fewer than ``min_demand`` available items keeps the request pending
        and raises.
        """
        with self.lock:
            cached = self.cache.get(task_id)
            if cached is None or not cached.data:
                raise ActivityError(
                    "sendOutTaskData", "no data to send out", "no_data_to_send_out"
                )
            end = min(cached.ack + exchange_request.max_demand, len(cached.data))
            fetched = cached.data[cached.ack:end]
            if len(fetched) < exchange_request.min_demand:
                self._update_exchange_request(exchange_request)
                raise ActivityError(
                    "sendOutTaskData",
                    "not enough data to send out",
                    "not_enough_data_to_send_out",
                )
            for data in fetched:
                receiver = self._receivers.get(task_id)
                if receiver is None:
                    continue
                receiver.put(dataclasses.replace(data))
                cached.ack += 1
            self._delete_exchange_request(exchange_request)

    def _first_task(self) -> uuid.UUID:
        try:
            order = self.graph.topological_sort()
            return uuid.UUID(order[0])
        except (ActivityError, IndexError, ValueError):
            raise ActivityError(
                "addInitialData", "no initial task id found", "no_task_id_found"
            ) from None

    def _targets_of(self, data: TaskData) -> list[uuid.UUID]:
        targets = []
        for edge in self.graph.edges.get(str(data.task_id), ()):
            try:
                targets.append(uuid.UUID(edge))
            except ValueError:
                continue
        return targets

    def _handle_incoming_data(self) -> None:
        self._incoming_ready.set()
        while True:
            first = self._write_queue.get()
            stopping = False
            with self.lock:
                for item in [first, *_drain(self._write_queue)]:
                    if item is _STOP:
                        stopping = True
                        break
                    for task_id in self._targets_of(item):
                        self.add_data_to_cache(task_id, item)
            if stopping:
                return
            self._exchange_queue.put(_NEW_DATA)

    def _handle_exchange_requests(self) -> None:
        self._outgoing_ready.set()
        while True:
            item = self._exchange_queue.get()
            if item is _STOP:
                return
            with self.lock:
                if item is _NEW_DATA:
                    for request in list(self.pending_exchanges):
                        try:
                            self.send_out_task_data(request.task_id, request)
                        except ActivityError:
                            pass
                    continue
                try:
                    self.update_task_ack(item.task_id, item)
                    self.send_out_task_data(item.task_id, item)
                except ActivityError:
                    pass

    def _update_exchange_request(self, exchange_request: DataExchange) -> None:
        for index, pending in enumerate(self.pending_exchanges):
            if pending.task_id == exchange_request.task_id:
                self.pending_exchanges[index] = exchange_request
                return
        self.pending_exchanges.append(exchange_request)

    def _delete_exchange_request(self, exchange_request: DataExchange) -> None:
        for index, pending in enumerate(self.pending_exchanges):
            if pending.task_id == exchange_request.task_id:
                self.pending_exchanges[index] = self.pending_exchanges[-1]
                self.pending_exchanges.pop()
                return