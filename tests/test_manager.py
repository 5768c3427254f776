import uuid

import pytest

from okestra.activity.manager import ActivityManager
from okestra.activity.models import (
    ActivityError,
    ActivityStatus,
    Task,
    TaskDefinition,
    TaskParameterDefinition,
)


@pytest.fixture
def definition():
    return TaskDefinition(
        func_id=uuid.uuid4(),
        task_func=lambda: None,
        parameters={"param1": TaskParameterDefinition(name="param1", required=True)},
    )


def new_task(name, definition):
    return Task(name=name, definition=definition, args={"param1": "value"})


@pytest.fixture
def pair(definition):
    activity = ActivityManager("a", "")
    first = new_task("t1", definition)
    second = new_task("t2", definition)
    activity.add_task(first)
    activity.add_task(second)
    return activity, first, second


def _expect(call, *args, message, op=None):
    with pytest.raises(ActivityError) as info:
        call(*args)
    assert info.value.message == message
    if op is not None:
        assert info.value.op == op
    return info.value


def test_new_activity_manager_defaults():
    activity = ActivityManager("build", "build pipeline")
    assert activity.name == "build"
    assert activity.description == "build pipeline"
    assert activity.status == ActivityStatus.ON_HOLD
    assert activity.status.value == "onHold"
    assert activity.list_tasks() == []
    assert activity.graph.nodes == []


def test_add_task_adds_node(definition):
    activity = ActivityManager("a", "")
    task = new_task("t1", definition)
    activity.add_task(task)
    assert activity.list_tasks() == [task]
    assert activity.graph.nodes == [str(task.id)]


def test_add_task_rolls_back_when_node_exists(definition):
    activity = ActivityManager("a", "")
    task = new_task("t1", definition)
    task.id = uuid.uuid4()
    activity.graph.add_node(str(task.id))
    error = _expect(activity.add_task, task, op="AddNode", message="node already exists")
    assert error.key == str(task.id)
    assert activity.tasks.count() == 0


def test_add_task_without_definition_raises():
    activity = ActivityManager("a", "")
    _expect(activity.add_task, Task(name="bare"), message="task must have a definition")
    assert activity.graph.nodes == []


def test_edges_and_cycle_detection(pair):
    activity, first, second = pair

    activity.add_edge(first, second)
    assert activity.graph.edges[str(first.id)] == [str(second.id)]
    assert activity.graph.topological_sort() == [str(first.id), str(second.id)]

    _expect(activity.add_edge, second, first, message="adding this edge would create a cycle")

    activity.remove_edge(first, second)
    assert activity.graph.edges[str(first.id)] == []

    _expect(activity.remove_edge, first, second, message="edge does not exist")


def test_remove_task(pair):
    activity, first, second = pair
    activity.add_edge(first, second)

    activity.remove_task(second)
    assert activity.list_tasks() == [first]
    assert activity.graph.nodes == [str(first.id)]
    assert activity.graph.edges[str(first.id)] == []

    _expect(activity.remove_task, second, op="Delete", message="task not found")