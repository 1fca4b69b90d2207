"""MapReduce coordinator: hands out map then reduce tasks and tracks their progress."""

from __future__ import annotations

import contextlib
import json
import os
import socketserver
import threading
import time
from collections import deque
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Callable, Optional

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
    "TaskState",
    "TaskMetaInfo",
    "TaskMetaHolder",
    "Phase",
    "Coordinator",
    "make_coordinator",
]


class TaskState(Enum):
    WAITING = 0
    RUNNING = 1
    DONE = 2


@dataclass
class TaskMetaInfo:
    task: Task
    state: TaskState = TaskState.WAITING
    start_time: float = field(default_factory=time.monotonic)


@dataclass
class TaskMetaHolder:
    """Bookkeeping for every task created so far."""

    meta_map: dict[int, TaskMetaInfo] = field(default_factory=dict)
    done_count: int = 0

    def add_task(self, task: Task) -> None:
        self.meta_map[task.task_id] = TaskMetaInfo(task)

    def run_task(self, task_id: int) -> None:
        meta = self.meta_map[task_id]
        meta.state = TaskState.RUNNING
        meta.start_time = time.monotonic()

    def done_task(self, task_id: int) -> bool:
        """Mark a task done; False if it is unknown or already done."""
        meta = self.meta_map.get(task_id)
        if meta is None or meta.state is TaskState.DONE:
            return False
        meta.state = TaskState.DONE
        self.done_count += 1
        return True


class Phase(Enum):
    INIT = 0
    MAP = 1
    REDUCE = 2
    DONE = 3


class _TaskChannel:
    """An unbounded FIFO of tasks that can be closed."""

    def __init__(self) -> None:
        self._items: deque[Task] = deque()
        self._cond = threading.Condition()
        self._closed = False

    def put(self, task: Task) -> bool:
        with self._cond:
            if self._closed:
                return False
            self._items.append(task)
            self._cond.notify()
            return True

    def get(self) -> Optional[Task]:
        """Next task, blocking; None once closed and drained."""
        with self._cond:
            while not self._items and not self._closed:
                self._cond.wait()
            return self._items.popleft() if self._items else None

    def close(self) -> None:
        with self._cond:
            self._closed = True
            self._cond.notify_all()


class _Handler(socketserver.StreamRequestHandler):
    def handle(self) -> None:
        line = self.rfile.readline()
        if line:
            self.wfile.write(self.server.coordinator._handle(line))


class _UnixServer(socketserver.ThreadingUnixStreamServer):
    daemon_threads = True

    def __init__(self, path: str, coordinator: Coordinator) -> None:
        self.coordinator = coordinator
        super().__init__(path, _Handler)


class Coordinator:
    """Distributes tasks to workers over a UNIX-domain socket."""

    def __init__(
        self,
        files: list[str],
        n_reduce: int,
        *,
        task_timeout: float = 10.0,
        check_interval: float = 1.0,
    ) -> None:
        self._holder_lock = threading.Lock()
        self._state_lock = threading.Lock()
        self._reduce_files_lock = threading.Lock()
        self._channel = _TaskChannel()
        self._stopped = threading.Event()
        self._server: Optional[_UnixServer] = None
        self._sockname: Optional[str] = None
        self._task_timeout = task_timeout
        self._check_interval = check_interval
        self.map_files = list(files)
        self.map_num = len(self.map_files)
        self.reduce_num = n_reduce
        self.reduce_files: list[list[str]] = [[] for _ in range(n_reduce)]
        self.next_task_id = 0
        self.task_meta_holder = TaskMetaHolder()
        self.phase = Phase.INIT

    # ------------------------------------------------------------ handlers

    def example(self, args: ExampleArgs) -> ExampleReply:
        return ExampleReply(y=args.x + 1)

    def distribute_task(self, args: TaskArgs) -> Task:
        """Hand out the next waiting task, blocking until one is available.

        Returns an exit task once all work is finished.
        """
        while True:
            task = self._channel.get()
            if task is None:
                return Task(task_type=TaskType.EXIT)
            with self._holder_lock:
                if self.task_meta_holder.meta_map[task.task_id].state is TaskState.WAITING:
                    self.task_meta_holder.run_task(task.task_id)
                    return replace(task, files=list(task.files))

    def reply_task(self, task_reply: TaskReply) -> Task:
        """Record a finished task and advance the phase when it completes."""
        with self._holder_lock:
            newly_done = self.task_meta_holder.done_task(task_reply.task_id)
            count = self.task_meta_holder.done_count
        if newly_done:
            if task_reply.task_type == TaskType.MAP:
                self._collect_intermediate(task_reply.result)
            with self._state_lock:
                if count in (self.map_num, self.map_num + self.reduce_num):
                    self._to_next_phase()
        return Task()

    def done(self) -> bool:
        """Whether the entire job has finished."""
        with self._state_lock:
            return self.phase is Phase.DONE

    # --------------------------------------------------------------- server

    def server(self, sockname: Optional[str] = None) -> None:
        """Listen for workers on a UNIX-domain socket and start the job."""
        path = sockname or coordinator_sock()
        with contextlib.suppress(FileNotFoundError):
            os.remove(path)
        self._server = _UnixServer(path, self)
        self._sockname = path
        with self._state_lock:
            self._to_next_phase()
        threading.Thread(target=self._check_timeout, daemon=True).start()
        threading.Thread(target=self._server.serve_forever, daemon=True).start()

    def close(self) -> None:
        """Stop serving and remove the socket."""
        self._stopped.set()
        self._channel.close()
        if self._server is not None:
            self._server.shutdown()
            self._server.server_close()
            self._server = None
        if self._sockname is not None:
            with contextlib.suppress(FileNotFoundError):
                os.remove(self._sockname)
            self._sockname = None

    def __enter__(self) -> Coordinator:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    # ------------------------------------------------------------ internals

    def _collect_intermediate(self, files: list[str]) -> None:
        with self._reduce_files_lock:
            for file_name in files:
                suffix = file_name.rsplit("-", 1)[-1]
                try:
                    num = int(suffix)
                except ValueError as exc:
                    print("conversion failed:", exc)
                    continue
                if not 0 <= num < self.reduce_num:
                    print("reduceNum:", self.reduce_num, "num:", num)
                    continue
                self.reduce_files[num].append(file_name)

    def _make_tasks(self, task_type: TaskType, file_lists: list[list[str]]) -> None:
        tasks = []
        for files in file_lists:
            tasks.append(
                Task(task_id=self.next_task_id, task_type=task_type, files=list(files), reduce_num=self.reduce_num)
            )
            self.next_task_id += 1
        with self._holder_lock:
            for task in tasks:
                self.task_meta_holder.add_task(task)
        for task in tasks:
            self._channel.put(task)

    def _make_map_tasks(self) -> None:
        self._make_tasks(TaskType.MAP, [[name] for name in self.map_files])

    def _make_reduce_tasks(self) -> None:
        with self._reduce_files_lock:
            file_lists = [list(files) for files in self.reduce_files]
        self._make_tasks(TaskType.REDUCE, file_lists)

    def _to_next_phase(self) -> None:
        # Caller holds the state lock.
        if self.phase is Phase.INIT:
            self.phase = Phase.MAP
            threading.Thread(target=self._make_map_tasks, daemon=True).start()
        elif self.phase is Phase.MAP:
            self.phase = Phase.REDUCE
            threading.Thread(target=self._make_reduce_tasks, daemon=True).start()
        elif self.phase is Phase.REDUCE:
            self.phase = Phase.DONE
            self._channel.close()

    def _check_timeout(self) -> None:
        while not self._stopped.wait(self._check_interval):
            with self._state_lock:
                if self.phase is Phase.DONE:
                    return
            with self._holder_lock:
                now = time.monotonic()
                for meta in self.task_meta_holder.meta_map.values():
                    if meta.state is TaskState.RUNNING and now - meta.start_time > self._task_timeout:
                        print(f"task timeout{meta.task.task_id}")
                        meta.state = TaskState.WAITING
                        self._channel.put(meta.task)

    def _rpc_handlers(self) -> dict[str, Callable[[dict], dict]]:
        return {
            "Coordinator.Example": lambda data: vars(self.example(ExampleArgs(**data))),
            "Coordinator.DistributeTask": lambda data: self.distribute_task(TaskArgs()).to_dict(),
            "Coordinator.ReplyTask": lambda data: self.reply_task(TaskReply.from_dict(data)).to_dict(),
        }

    def _handle(self, line: bytes) -> bytes:
        try:
            request = json.loads(line)
            method = request["method"]
            handler = self._rpc_handlers().get(method)
            if handler is None:
                raise LookupError(f"rpc: can't find method {method}")
            body = {"reply": handler(request.get("args") or {})}
        except Exception as exc:  # reported back to the caller
            body = {"error": str(exc)}
        return (json.dumps(body) + "\n").encode("utf-8")


def make_coordinator(files: list[str], n_reduce: int, sockname: Optional[str] = None) -> Coordinator:
    """Create a coordinator for the input files and start serving."""
    coordinator = Coordinator(files, n_reduce)
    coordinator.server(sockname)
    return coordinator