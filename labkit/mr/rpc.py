"""Messages exchanged between the MapReduce coordinator and its workers."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any

__all__ = [
    "ExampleArgs",
    "ExampleReply",
    "TaskArgs",
    "TaskType",
    "Task",
    "TaskReply",
    "coordinator_sock",
]


@dataclass
class ExampleArgs:
    x: int = 0


@dataclass
class ExampleReply:
    y: int = 0


@dataclass
class TaskArgs:
    """A worker's request for work; it carries nothing."""


class TaskType(IntEnum):
    EXIT = 0
    MAP = 1
    REDUCE = 2


@dataclass
class Task:
    task_id: int = 0
    task_type: TaskType = TaskType.EXIT
    files: list[str] = field(default_factory=list)
    reduce_num: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "task_id": self.task_id,
            "task_type": int(self.task_type),
            "files": list(self.files),
            "reduce_num": self.reduce_num,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Task:
        """Build a task; missing fields take their zero values."""
        return cls(
            task_id=int(data.get("task_id", 0)),
            task_type=TaskType(data.get("task_type", 0)),
            files=list(data.get("files") or []),
            reduce_num=int(data.get("reduce_num", 0)),
        )


@dataclass
class TaskReply:
    task_id: int = 0
    task_type: TaskType = TaskType.EXIT
    result: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "task_id": self.task_id,
            "task_type": int(self.task_type),
            "result": list(self.result),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TaskReply:
        """Build a reply; missing fields take their zero values."""
        return cls(
            task_id=int(data.get("task_id", 0)),
            task_type=TaskType(data.get("task_type", 0)),
            result=list(data.get("result") or []),
        )


def coordinator_sock() -> str:
    """A per-user UNIX-domain socket path for the coordinator."""
    return "/var/tmp/824-mr-" + str(os.getuid())