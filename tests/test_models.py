from labkit.models import (
    APPEND,
    GET,
    KV_MODEL,
    PUT,
    KvInput,
    KvOutput,
    kv_describe_operation,
    kv_init,
    kv_partition,
    kv_step,
)
from labkit.porcupine.model import Operation


def _op(op, key, value="", out=""):
    return Operation(input=KvInput(op, key, value), call=0, output=KvOutput(out), ret=1)


def test_partition_groups_by_sorted_key():
    b1 = _op(PUT, "b", "1")
    a1 = _op(GET, "a")
    b2 = _op(APPEND, "b", "2")
    assert kv_partition([b1, a1, b2]) == [[a1], [b1, b2]]


def test_init_is_empty_value():
    assert kv_init() == ""


def test_step_get_checks_state():
    assert kv_step("v", KvInput(GET, "k"), KvOutput("v")) == (True, "v")
    ok, state = kv_step("v", KvInput(GET, "k"), KvOutput("w"))
    assert not ok
    assert state == "v"


def test_step_put_replaces_and_append_concatenates():
    assert kv_step("old", KvInput(PUT, "k", "new"), KvOutput()) == (True, "new")
    assert kv_step("ab", KvInput(APPEND, "k", "cd"), KvOutput()) == (True, "ab" + "cd")


def test_describe_operations():
    assert kv_describe_operation(KvInput(GET, "k"), KvOutput("v")) == "get('k') -> 'v'"
    assert kv_describe_operation(KvInput(PUT, "k", "v"), KvOutput()) == "put('k', 'v')"
    assert kv_describe_operation(KvInput(APPEND, "k", "v"), KvOutput()) == "append('k', 'v')"
    assert kv_describe_operation(KvInput(9, "k"), KvOutput()) == "<invalid>"


def test_model_wiring():
    assert KV_MODEL.init() == ""
    assert KV_MODEL.step("", KvInput(PUT, "k", "x"), KvOutput()) == (True, "x")
    assert KV_MODEL.equal("x", "x")
    ops = [_op(PUT, "z"), _op(PUT, "y")]
    assert KV_MODEL.partition(ops) == [[ops[1]], [ops[0]]]