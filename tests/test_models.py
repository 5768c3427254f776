import uuid

import pytest

from okestra.activity.models import (
    ActivityError,
    ActivityStatus,
    Task,
    TaskData,
    TaskDefinition,
    TaskParameterDefinition,
)


def test_activity_error_formats_op_and_message():
    err = ActivityError("AddNode", "node already exists", "task1")
    assert str(err) == "AddNode: node already exists"
    assert err.op == "AddNode"
    assert err.message == "node already exists"
    assert err.key == "task1"


def test_activity_error_defaults_key_empty_and_is_raisable():
    err = ActivityError("TopologicalSort", "cannot perform topological sort on a cyclic graph")
    assert err.key == ""
    assert err.cause is None
    assert str(err) == "TopologicalSort: cannot perform topological sort on a cyclic graph"
    with pytest.raises(ActivityError, match="cannot perform topological sort"):
        raise err


def test_activity_error_keeps_cause():
    cause = ValueError("bad")
    err = ActivityError("ValidateTaskArgs", "validation failed", "k", cause)
    assert err.cause is cause


def test_activity_status_values():
    assert ActivityStatus.ON_HOLD.value == "onHold"
    assert ActivityStatus.RUNNING.value == "running"
    assert ActivityStatus.COMPLETED.value == "completed"
    assert ActivityStatus.FAILED.value == "failed"
    assert ActivityStatus("onHold") is ActivityStatus.ON_HOLD


def test_task_parameter_definition_validation_callable():
    def validate(value):
        if not isinstance(value, str):
            raise ValueError("value must be a string")

    param = TaskParameterDefinition(name="param1", type="string", required=True, validation=validate)
    assert param.required is True
    assert param.default_value is None
    with pytest.raises(ValueError, match="value must be a string"):
        param.validation(123)


def test_task_data_holds_values():
    task_id = uuid.uuid4()
    item = TaskData(task_id=task_id, data=b"payload")
    assert item.task_id == task_id
    assert item.data == b"payload"
    assert item.error is None


def test_task_definition_defaults_are_independent():
    first = TaskDefinition()
    second = TaskDefinition()
    first.parameters["p"] = TaskParameterDefinition(name="p")
    assert first.func_id is None
    assert second.parameters == {}


def test_task_identity_equality():
    definition = TaskDefinition(func_id=uuid.uuid4())
    a = Task(name="same", definition=definition)
    b = Task(name="same", definition=definition)
    assert a == a
    assert (a == b) is False
    assert a.args == {} and a.id is None