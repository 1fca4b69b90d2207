import os

import pytest

from labkit.mr.rpc import Task, TaskReply, TaskType, coordinator_sock


def test_task_roundtrip():
    task = Task(task_id=4, task_type=TaskType.MAP, files=["in-a", "in-b"], reduce_num=3)
    assert Task.from_dict(task.to_dict()) == task


def test_task_reply_roundtrip():
    reply = TaskReply(task_id=2, task_type=TaskType.REDUCE, result=["out"])
    assert TaskReply.from_dict(reply.to_dict()) == reply


def test_missing_fields_take_zero_values():
    assert Task.from_dict({}) == Task()
    assert Task.from_dict({"files": None}).files == []
    assert TaskReply.from_dict({"task_id": 7}).result == []


def test_task_type_numbering_on_wire():
    assert Task.from_dict({"task_type": 1}).task_type is TaskType.MAP
    assert Task.from_dict({"task_type": 2}).task_type is TaskType.REDUCE
    assert Task().to_dict()["task_type"] == int(TaskType.EXIT)


def test_invalid_task_type_rejected():
    with pytest.raises(ValueError):
        Task.from_dict({"task_type": 42})
    with pytest.raises(ValueError):
        TaskReply.from_dict({"task_type": -1})


def test_to_dict_copies_lists():
    task = Task(files=["x"])
    data = task.to_dict()
    data["files"].append("y")
    assert task.files == ["x"]


def test_coordinator_sock_is_per_user():
    path = coordinator_sock()
    prefix = "/var/tmp/824-mr-"
    assert path.startswith(prefix)
    assert int(path[len(prefix):]) == os.getuid()