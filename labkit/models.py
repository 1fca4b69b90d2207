"""Key/value store model for linearizability checking."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from labkit.porcupine.model import Model, Operation

__all__ = [
    "GET",
    "PUT",
    "APPEND",
    "KvInput",
    "KvOutput",
    "kv_partition",
    "kv_init",
    "kv_step",
    "kv_describe_operation",
    "KV_MODEL",
]

GET = 0
PUT = 1
APPEND = 2


@dataclass(frozen=True)
class KvInput:
    op: int  # GET, PUT or APPEND
    key: str
    value: str = ""


@dataclass(frozen=True)
class KvOutput:
    value: str = ""


def kv_partition(history: list[Operation]) -> list[list[Operation]]:
    """Split a history by key, partitions ordered by key."""
    groups: dict[str, list[Operation]] = {}
    for operation in history:
        groups.setdefault(operation.input.key, []).append(operation)
    return [groups[key] for key in sorted(groups)]


def kv_init() -> str:
    # A single key's value: histories are partitioned by key.
    return ""


def kv_step(state: str, input: KvInput, output: KvOutput) -> tuple[bool, Any]:
    if input.op == GET:
        return output.value == state, state
    if input.op == PUT:
        return True, input.value
    return True, state + input.value


def kv_describe_operation(input: KvInput, output: KvOutput) -> str:
    if input.op == GET:
        return f"get('{input.key}') -> '{output.value}'"
    if input.op == PUT:
        return f"put('{input.key}', '{input.value}')"
    if input.op == APPEND:
        return f"append('{input.key}', '{input.value}')"
    return "<invalid>"


KV_MODEL = Model(
    init=kv_init,
    step=kv_step,
    partition=kv_partition,
    describe_operation=kv_describe_operation,
)