"""Linearizability checking of operation and event histories."""

from __future__ import annotations

import queue
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Optional

from labkit.porcupine.bitset import Bitset
from labkit.porcupine.model import CheckResult, Event, EventKind, Model, Operation

__all__ = [
    "LinearizationInfo",
    "check_operations",
    "check_operations_timeout",
    "check_operations_verbose",
    "check_events",
    "check_events_timeout",
    "check_events_verbose",
]


@dataclass(frozen=True)
class _Entry:
    kind: EventKind
    value: Any
    id: int
    time: int
    client_id: int


@dataclass
class LinearizationInfo:
    """Per partition: the entries checked and the longest partial linearizations."""

    history: list[list[_Entry]] = field(default_factory=list)
    partial_linearizations: list[list[list[int]]] = field(default_factory=list)


def _make_entries(history: list[Operation]) -> list[_Entry]:
    entries: list[_Entry] = []
    for op_id, operation in enumerate(history):
        entries.append(_Entry(EventKind.CALL, operation.input, op_id, operation.call, operation.client_id))
        entries.append(_Entry(EventKind.RETURN, operation.output, op_id, operation.ret, operation.client_id))
    # On equal timestamps, calls come before returns.
    entries.sort(key=lambda e: (e.time, e.kind is EventKind.RETURN))
    return entries


def _renumber(events: list[Event]) -> list[Event]:
    mapping: dict[int, int] = {}
    renumbered = []
    for event in events:
        new_id = mapping.setdefault(event.id, len(mapping))
        renumbered.append(Event(event.kind, event.value, new_id, event.client_id))
    return renumbered


def _convert_entries(events: list[Event]) -> list[_Entry]:
    # The position in the history serves as the time.
    return [
        _Entry(event.kind, event.value, event.id, index, event.client_id)
        for index, event in enumerate(events)
    ]


class _Node:
    __slots__ = ("value", "match", "id", "next", "prev")

    def __init__(self, value: Any, match: Optional[_Node], node_id: int) -> None:
        self.value = value
        self.match = match  # the return node for a call; None for a return
        self.id = node_id
        self.next: Optional[_Node] = None
        self.prev: Optional[_Node] = None


def _insert_before(node: _Node, mark: Optional[_Node]) -> _Node:
    if mark is not None:
        before = mark.prev
        mark.prev = node
        node.next = mark
        if before is not None:
            node.prev = before
            before.next = node
    return node


def _list_length(node: Optional[_Node]) -> int:
    count = 0
    while node is not None:
        node = node.next
        count += 1
    return count


def _make_linked_entries(entries: list[_Entry]) -> Optional[_Node]:
    root: Optional[_Node] = None
    returns: dict[int, _Node] = {}
    for elem in reversed(entries):
        if elem.kind is EventKind.RETURN:
            node = _Node(elem.value, None, elem.id)
            returns[elem.id] = node
        else:
            node = _Node(elem.value, returns.get(elem.id), elem.id)
        _insert_before(node, root)
        root = node
    return root


def _lift(entry: _Node) -> None:
    entry.prev.next = entry.next
    entry.next.prev = entry.prev
    match = entry.match
    match.prev.next = match.next
    if match.next is not None:
        match.next.prev = match.prev


def _unlift(entry: _Node) -> None:
    match = entry.match
    match.prev.next = match
    if match.next is not None:
        match.next.prev = match
    entry.prev.next = entry
    entry.next.prev = entry


def _cache_contains(model: Model, cache: dict[Bitset, list[Any]], linearized: Bitset, state: Any) -> bool:
    return any(model.equal(state, seen) for seen in cache.get(linearized, ()))


def _check_single(
    model: Model, history: list[_Entry], compute_partial: bool, kill: threading.Event
) -> tuple[bool, list[Optional[list[int]]]]:
    entry = _make_linked_entries(history)
    n = _list_length(entry) // 2
    linearized = Bitset(n)
    cache: dict[Bitset, list[Any]] = {}
    calls: list[tuple[_Node, Any]] = []
    # Longest linearizable prefix that includes each entry; shared lists.
    longest: list[Optional[list[int]]] = [None] * n

    state = model.init()
    head = _insert_before(_Node(None, None, -1), entry)
    while head.next is not None:
        if kill.is_set():
            return False, longest
        if entry.match is not None:
            ok, new_state = model.step(state, entry.value, entry.match.value)
            if ok:
                new_linearized = linearized.copy().set(entry.id)
                if not _cache_contains(model, cache, new_linearized, new_state):
                    cache.setdefault(new_linearized, []).append(new_state)
                    calls.append((entry, state))
                    state = new_state
                    linearized.set(entry.id)
                    _lift(entry)
                    entry = head.next
                else:
                    entry = entry.next
            else:
                entry = entry.next
        else:
            if not calls:
                return False, longest
            if compute_partial:
                seq: Optional[list[int]] = None
                for node, _ in calls:
                    current = longest[node.id]
                    if current is None or len(calls) > len(current):
                        if seq is None:
                            seq = [n_.id for n_, _ in calls]
                        longest[node.id] = seq
            entry, state = calls.pop()
            linearized.clear(entry.id)
            _unlift(entry)
            entry = entry.next
    full = [node.id for node, _ in calls]
    return True, [full] * n


def _check_parallel(
    model: Model, history: list[list[_Entry]], compute_info: bool, timeout: Optional[float]
) -> tuple[CheckResult, LinearizationInfo]:
    results: queue.Queue[tuple[bool, Optional[BaseException]]] = queue.Queue()
    longest: list[list[Optional[list[int]]]] = [[] for _ in history]
    kill = threading.Event()

    def run(index: int, subhistory: list[_Entry]) -> None:
        try:
            ok, partial = _check_single(model, subhistory, compute_info, kill)
        except BaseException as exc:  # handed back to the caller
            results.put((False, exc))
            return
        longest[index] = partial
        results.put((ok, None))

    for index, subhistory in enumerate(history):
        threading.Thread(target=run, args=(index, subhistory), daemon=True).start()

    deadline = time.monotonic() + timeout if timeout and timeout > 0 else None
    ok = True
    timed_out = False
    count = 0
    while count < len(history):
        remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
        try:
            result, error = results.get(timeout=remaining)
        except queue.Empty:
            # A timeout may hide an illegal history.
            timed_out = True
            kill.set()
            break
        count += 1
        if error is not None:
            kill.set()
            raise error
        ok = ok and result
        if not ok and not compute_info:
            kill.set()
            break

    info = LinearizationInfo()
    if compute_info:
        while count < len(history):
            _, error = results.get()
            count += 1
            if error is not None:
                raise error
        partials_by_partition = []
        for partition_longest in longest:
            unique: dict[int, list[int]] = {}
            for seq in partition_longest:
                if seq is not None:
                    unique.setdefault(id(seq), seq)
            partials_by_partition.append([list(seq) for seq in unique.values()])
        info.history = history
        info.partial_linearizations = partials_by_partition

    if not ok:
        return CheckResult.ILLEGAL, info
    if timed_out:
        return CheckResult.UNKNOWN, info
    return CheckResult.OK, info


def _check_events(
    model: Model, history: list[Event], verbose: bool, timeout: Optional[float]
) -> tuple[CheckResult, LinearizationInfo]:
    partitions = model.partition_event(history)
    entries = [_convert_entries(_renumber(sub)) for sub in partitions]
    return _check_parallel(model, entries, verbose, timeout)


def _check_operations(
    model: Model, history: list[Operation], verbose: bool, timeout: Optional[float]
) -> tuple[CheckResult, LinearizationInfo]:
    partitions = model.partition(history)
    entries = [_make_entries(sub) for sub in partitions]
    return _check_parallel(model, entries, verbose, timeout)


def check_operations(model: Model, history: list[Operation]) -> bool:
    """Return whether the history is linearizable."""
    result, _ = _check_operations(model, history, False, None)
    return result is CheckResult.OK


def check_operations_timeout(model: Model, history: list[Operation], timeout: float) -> CheckResult:
    """Check with a timeout in seconds (0 means none); UNKNOWN on timeout."""
    result, _ = _check_operations(model, history, False, timeout)
    return result


def check_operations_verbose(
    model: Model, history: list[Operation], timeout: float
) -> tuple[CheckResult, LinearizationInfo]:
    """Check and also return partial linearizations for each partition."""
    return _check_operations(model, history, True, timeout)


def check_events(model: Model, history: list[Event]) -> bool:
    """Return whether the event history is linearizable."""
    result, _ = _check_events(model, history, False, None)
    return result is CheckResult.OK


def check_events_timeout(model: Model, history: list[Event], timeout: float) -> CheckResult:
    """Check with a timeout in seconds (0 means none); UNKNOWN on timeout."""
    result, _ = _check_events(model, history, False, timeout)
    return result


def check_events_verbose(
    model: Model, history: list[Event], timeout: float
) -> tuple[CheckResult, LinearizationInfo]:
    """Check and also return partial linearizations for each partition."""
    return _check_events(model, history, True, timeout)