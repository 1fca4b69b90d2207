"""Histories and models for linearizability checking."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional

__all__ = [
    "Operation",
    "EventKind",
    "Event",
    "Model",
    "CheckResult",
    "no_partition",
    "no_partition_event",
    "shallow_equal",
    "default_describe_operation",
    "default_describe_state",
]


@dataclass(frozen=True)
class Operation:
    """A completed call: its input, output and invocation/response times."""

    input: Any
    call: int
    output: Any
    ret: int
    client_id: int = 0


class EventKind(Enum):
    CALL = False
    RETURN = True


@dataclass(frozen=True)
class Event:
    """One half of an operation; call and return share an ``id``."""

    kind: EventKind
    value: Any
    id: int
    client_id: int = 0


def no_partition(history: list[Operation]) -> list[list[Operation]]:
    return [list(history)]


def no_partition_event(history: list[Event]) -> list[list[Event]]:
    return [list(history)]


def shallow_equal(state1: Any, state2: Any) -> bool:
    return state1 == state2


def default_describe_operation(input: Any, output: Any) -> str:
    return f"{input} -> {output}"


def default_describe_state(state: Any) -> str:
    return f"{state}"


@dataclass
class Model:
    """A sequential specification.

    ``step(state, input, output)`` returns whether the step is allowed and the
    new state; it must not mutate ``state``. Omitted hooks get defaults.
    """

    init: Callable[[], Any]
    step: Callable[[Any, Any, Any], tuple[bool, Any]]
    partition: Optional[Callable[[list[Operation]], list[list[Operation]]]] = None
    partition_event: Optional[Callable[[list[Event]], list[list[Event]]]] = None
    equal: Optional[Callable[[Any, Any], bool]] = None
    describe_operation: Optional[Callable[[Any, Any], str]] = None
    describe_state: Optional[Callable[[Any], str]] = None

    def __post_init__(self) -> None:
        if self.partition is None:
            self.partition = no_partition
        if self.partition_event is None:
            self.partition_event = no_partition_event
        if self.equal is None:
            self.equal = shallow_equal
        if self.describe_operation is None:
            self.describe_operation = default_describe_operation
        if self.describe_state is None:
            self.describe_state = default_describe_state


class CheckResult(str, Enum):
    UNKNOWN = "Unknown"  # timed out
    OK = "Ok"
    ILLEGAL = "Illegal"