"""MapReduce worker: runs the map and reduce tasks the coordinator hands out."""

from __future__ import annotations

import dataclasses
import itertools
import json
import socket
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Iterable, Optional

from labkit.mr.rpc import (
    ExampleArgs,
    ExampleReply,
    Task,
    TaskArgs,
    TaskReply,
    TaskType,
    coordinator_sock,
)

__all__ = [
    "CallError",
    "KeyValue",
    "ihash",
    "worker",
    "call_example",
    "call",
    "get_task",
    "task_done",
    "do_map_task",
    "do_reduce_task",
    "shuffle",
]

_FNV_OFFSET = 0x811C9DC5
_FNV_PRIME = 0x01000193


class CallError(Exception):
    """The coordinator could not carry out an RPC."""


@dataclass(frozen=True)
class KeyValue:
    """One key/value pair emitted by a map function."""

    key: str
    value: str


MapFunc = Callable[[str, str], Iterable[KeyValue]]
ReduceFunc = Callable[[str, list], str]


def ihash(key: str) -> int:
    """32-bit FNV-1a hash of the key, masked to a non-negative int.

    ``ihash(key) % n_reduce`` chooses the reduce task for a key.
    """
    h = _FNV_OFFSET
    for byte in key.encode("utf-8"):
        h ^= byte
        h = (h * _FNV_PRIME) & 0xFFFFFFFF
    return h & 0x7FFFFFFF


def _to_wire(args: Any) -> dict:
    if args is None:
        return {}
    to_dict = getattr(args, "to_dict", None)
    if callable(to_dict):
        return to_dict()
    if dataclasses.is_dataclass(args) and not isinstance(args, type):
        return dataclasses.asdict(args)
    if isinstance(args, dict):
        return dict(args)
    raise TypeError(f"cannot send arguments of type {type(args).__name__}")


def call(rpcname: str, args: Any, sockname: Optional[str] = None) -> dict:
    """Send an RPC to the coordinator and return the reply's fields.

    Raises ConnectionError if the coordinator cannot be reached and
    CallError if it reports a failure.
    """
    path = sockname or coordinator_sock()
    request = json.dumps({"method": rpcname, "args": _to_wire(args)}) + "\n"
    conn = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
    try:
        conn.connect(path)
    except OSError as exc:
        conn.close()
        raise ConnectionError(f"dialing: {exc}") from exc
    with conn:
        conn.sendall(request.encode("utf-8"))
        with conn.makefile("rb") as reader:
            line = reader.readline()
    if not line:
        raise CallError(f"{rpcname}: connection closed without a reply")
    response = json.loads(line)
    if "error" in response:
        raise CallError(response["error"])
    return response.get("reply") or {}


def call_example(sockname: Optional[str] = None) -> Optional[int]:
    """Send the Example RPC; return reply.y, or None if the call failed."""
    try:
        reply = ExampleReply(**call("Coordinator.Example", ExampleArgs(x=99), sockname))
    except CallError as exc:
        print(exc)
        print("call failed!")
        return None
    print(f"reply.Y {reply.y}")
    return reply.y


def get_task(sockname: Optional[str] = None) -> Task:
    """Ask the coordinator for work; an empty (exit) task if the call fails."""
    try:
        data = call("Coordinator.DistributeTask", TaskArgs(), sockname)
    except CallError as exc:
        print(exc)
        print("get task failed")
        return Task()
    task = Task.from_dict(data)
    print(f"get task {task.task_id}")
    return task


def task_done(task_reply: TaskReply, sockname: Optional[str] = None) -> bool:
    """Report a finished task; return whether the coordinator took it."""
    try:
        call("Coordinator.ReplyTask", task_reply, sockname)
    except CallError as exc:
        print(exc)
        return False
    print(f"Task Done!{task_reply.task_id}")
    return True


def do_map_task(task: Task, mapf: MapFunc) -> TaskReply:
    """Run map over the task's files and write one intermediate file per reduce bucket."""
    reduce_num = task.reduce_num
    buckets: list[list[KeyValue]] = [[] for _ in range(reduce_num)]
    for file_name in task.files:
        contents = Path(file_name).read_text(encoding="utf-8")
        for kv in mapf(file_name, contents):
            buckets[ihash(kv.key) % reduce_num].append(kv)

    result = []
    for index, bucket in enumerate(buckets):
        file_name = f"mr-tmp-{task.task_id}-{index}"
        result.append(file_name)
        with open(file_name, "w", encoding="utf-8", newline="") as out:
            for kv in bucket:
                out.write(
                    json.dumps({"Key": kv.key, "Value": kv.value}, separators=(",", ":"), ensure_ascii=False)
                    + "\n"
                )
    return TaskReply(task_id=task.task_id, task_type=TaskType.MAP, result=result)


def do_reduce_task(task: Task, reducef: ReduceFunc) -> TaskReply:
    """Reduce every key found in the task's files into ``mr-out-<task id>``."""
    intermediate = shuffle(task.files)
    with open(f"mr-out-{task.task_id}", "w", encoding="utf-8", newline="") as out:
        for key, group in itertools.groupby(intermediate, key=lambda kv: kv.key):
            output = reducef(key, [kv.value for kv in group])
            out.write(f"{key} {output}\n")
    return TaskReply(task_id=task.task_id)


def shuffle(files: Iterable[str]) -> list[KeyValue]:
    """Read the key/value pairs from intermediate files, sorted by key.

    Reading a file stops at the first line that does not decode.
    """
    kva: list[KeyValue] = []
    for file_name in files:
        with open(file_name, encoding="utf-8") as source:
            for line in source:
                if not line.strip():
                    continue
                try:
                    record = json.loads(line)
                    kva.append(KeyValue(record["Key"], record["Value"]))
                except (json.JSONDecodeError, KeyError, TypeError):
                    break
    kva.sort(key=lambda kv: kv.key)
    return kva


def worker(mapf: MapFunc, reducef: ReduceFunc, sockname: Optional[str] = None) -> None:
    """Fetch and run tasks until the coordinator says to exit."""
    while True:
        task = get_task(sockname)
        if task.task_type == TaskType.EXIT:
            print("All tasks are in progress, Worker exit")
            return
        if task.task_type == TaskType.MAP:
            task_done(do_map_task(task, mapf), sockname)
        elif task.task_type == TaskType.REDUCE:
            task_done(do_reduce_task(task, reducef), sockname)