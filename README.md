# okestra

Building blocks for orchestrating work as a graph of tasks:

- **Activity graphs** (`okestra.activity.graph`): a directed graph of task ids
  that refuses any edge which would close a cycle. It also offers cycle checks,
  reachability and topological ordering.
- **Task and task-definition registries** (`okestra.activity.task`,
  `okestra.activity.task_definition`): thread-safe stores of tasks and reusable
  definitions. Definitions carry parameter schemas, and task arguments can be
  validated against them.
- **Activities** (`okestra.activity.manager`): an `ActivityManager` keeps an
  activity's tasks and its dependency graph in step.
- **Activity stage** (`okestra.activity.stage`): a data-exchange hub. Data
  written by one task is cached for the tasks downstream of it. A task gets
  the data when it asks for between a minimum and a maximum number of items.
- **Event store** (`okestra.eventstore`): an in-memory store of event streams.
  Appends are checked against the expected position. Subscribers get events
  in position order, and events that arrive early are held back for a bounded
  time.
- **Settings** (`okestra.env`): dataclasses read from environment variables.

## Installation

```
pip install .
```

## Activity graphs

```python
from okestra.activity.graph import ActivityGraph
from okestra.activity.models import ActivityError

graph = ActivityGraph()
for name in ("checkout", "compile", "test"):
    graph.add_node(name)
graph.add_edge("checkout", "compile")
graph.add_edge("compile", "test")

print(graph.topological_sort())   # ['checkout', 'compile', 'test']

try:
    graph.add_edge("test", "checkout")
except ActivityError as err:
    print(err.op, err.key)        # AddEdge test->checkout
```

Each failure is raised as `ActivityError`, which has three attributes:

- `op` names the operation.
- `message` describes what went wrong.
- `key` names the object involved.

## Tasks and activities

```python
from okestra.activity.manager import ActivityManager
from okestra.activity.models import Task, TaskDefinition, TaskParameterDefinition

definition = TaskDefinition(
    task_func=lambda: None,
    parameters={"path": TaskParameterDefinition(name="path", type="string", required=True)},
)

activity = ActivityManager("build", "compile and test")
fetch = Task(name="fetch", definition=definition, args={"path": "/src"})
build = Task(name="build", definition=definition, args={"path": "/src"})
activity.add_task(fetch)
activity.add_task(build)
activity.add_edge(fetch, build)
```

A task or definition added without an id is given a fresh `uuid4`.

`TaskManager.validate_task_args` checks a task's arguments against its
definition and raises `ActivityError` in three cases:

- a required parameter is missing;
- an argument names no known parameter;
- a parameter's `validation` callable raises.

`TaskDefinitionManager.get_by_name` looks a definition up by the name of one of
its parameters.

## Activity stage

`ActivityStage(graph)` routes data between the tasks of a graph whose node ids
are UUID strings.

1. A task registers an object with a `put` method, such as a `queue.Queue`, by
   calling `register_task_channel(task_id, receiver)`. The call returns two
   queues:
   - a write queue, for `TaskData` the task produces;
   - an exchange queue, for `DataExchange` requests.
2. Data written by a task is cached for every task its node has an edge to.
3. `init(data)` caches the initial data for the first task in topological
   order.
4. A request delivers between `min_demand` and `max_demand` unacknowledged
   items to the task's receiver.
   - If there are too few items, the request stays pending and is retried
     when new data arrives.
   - A request with `flush=True` first drops the items already delivered.

`start()` and `stop()` run and end the two handler threads. The stage can also
be used as a context manager. `is_ready()` reports whether both threads are
running.

## Event store

```python
import uuid
from datetime import datetime, timezone

from okestra.eventstore.models import EventStoreError, new_event, new_subscription
from okestra.eventstore.store import EventStoreManager

store = EventStoreManager()
stream_id = uuid.uuid4()
store.new_stream(stream_id)

received = []
try:
    store.subscribe(new_subscription("audit", stream_id, received.append))
except EventStoreError:
    pass  # see below: a first subscription under a new name reports this

event = new_event("created", b"{}", {"workflow": "demo"}, datetime.now(timezone.utc))
store.append_to_stream(stream_id, store.get_stream_position(stream_id), [event])
```

Failures are raised as `EventStoreError`, with `op`, `message` and `key`
attributes.

### Subscriptions

`subscribe` behaves as follows:

- The stream must already exist.
- When a subscriber name is used for the first time, the subscription is
  registered. The call then raises `EventStoreError` (op `subscription`,
  "stream already exists"). The subscription is in place nonetheless.
- Later streams under the same name subscribe without an error.

Delivery works as follows:

- A handler is called with one argument, the event.
- An event published on a stream goes to the first subscriber that follows
  that stream.
- An event that arrives ahead of its position is held back. It is delivered
  once the gap is filled.
- If the gap is not filled within `out_of_order_time` seconds, the held events
  are delivered anyway, in position order. If a held event is no longer in the
  store, the handler is called with `None`.

`unsubscribe_stream` stops a subscriber from following one stream.
`unsubscribe` removes a subscriber, and only works once the subscriber follows
no stream.

### Expiring streams

`delete_streams(stop)` takes a `threading.Event` and starts a background
thread. Every `delete_streams_interval` seconds the thread deletes streams
older than `delete_streams_ttl` seconds. It runs until `stop` is set, and
`delete_streams` returns the thread.

### Settings

`EventStoreManager()` reads its settings with `EventStoreEnv.from_env()`. You
can also pass an `EventStoreEnv` yourself.

| Variable | Default |
| --- | --- |
| `EVENTSTORE_OUT_OF_ORDER_TIME` | `10` (seconds) |
| `EVENTSTORE_DELETE_STREAMS_INTERVAL` | `1` (seconds) |
| `EVENTSTORE_DELETE_STREAMS_TTL` | `10` (seconds) |

`SupervisorEnv.from_env()` reads the `SUPERVISOR_*` variables in the same way,
and `TelemetryEnv.from_env()` reads the `TELEMETRY_*` variables. Each
`from_env` accepts an optional mapping in place of `os.environ`.

## What this package does not do

- It does not execute tasks. No supervisor or pipeline runner calls a
  definition's `task_func`, and `SupervisorEnv` and `TelemetryEnv` are settings
  only; nothing in the package uses them.
- The event store lives in memory only. Nothing is persisted.
- There is no command-line program.

## Running the tests

```
pip install ".[test]"
pytest
```