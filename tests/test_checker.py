import time

import pytest

from labkit.models import APPEND, GET, KV_MODEL, PUT, KvInput, KvOutput
from labkit.porcupine.checker import (
    check_events,
    check_events_timeout,
    check_events_verbose,
    check_operations,
    check_operations_timeout,
    check_operations_verbose,
)
from labkit.porcupine.model import CheckResult, Event, EventKind, Model, Operation


def put(key, value, call, ret, client=0):
    return Operation(KvInput(PUT, key, value), call, KvOutput(), ret, client)


def append(key, value, call, ret, client=0):
    return Operation(KvInput(APPEND, key, value), call, KvOutput(), ret, client)


def get(key, value, call, ret, client=0):
    return Operation(KvInput(GET, key), call, KvOutput(value), ret, client)


def test_empty_history_is_linearizable():
    assert check_operations(KV_MODEL, []) is True


def test_sequential_history_ok():
    history = [put("x", "a", 0, 1), append("x", "b", 2, 3), get("x", "ab", 4, 5)]
    assert check_operations(KV_MODEL, history) is True


def test_sequential_wrong_read_is_illegal():
    history = [put("x", "a", 0, 1), get("x", "b", 2, 3)]
    assert check_operations(KV_MODEL, history) is False
    assert check_operations_timeout(KV_MODEL, history, 0) is CheckResult.ILLEGAL


def test_concurrent_read_may_see_old_value():
    history = [put("x", "1", 0, 10, 0), get("x", "", 1, 3, 1)]
    assert check_operations(KV_MODEL, history) is True


def test_stale_read_after_write_is_illegal():
    history = [put("x", "1", 0, 10, 0), get("x", "", 11, 12, 1)]
    assert check_operations(KV_MODEL, history) is False


def test_equal_timestamps_make_operations_concurrent():
    # The get's call at time 5 is ordered before the put's return at time 5.
    history = [put("x", "1", 0, 5, 0), get("x", "", 5, 10, 1)]
    assert check_operations(KV_MODEL, history) is True


def test_partitions_checked_independently():
    good = [put("x", "1", 0, 1), get("y", "", 2, 3), get("x", "1", 4, 5)]
    assert check_operations(KV_MODEL, good) is True
    bad = good + [get("y", "1", 6, 7)]
    assert check_operations(KV_MODEL, bad) is False


def test_verbose_ok_gives_full_linearization():
    history = [put("x", "a", 0, 1), append("x", "b", 2, 3), get("x", "ab", 4, 5)]
    result, info = check_operations_verbose(KV_MODEL, history, 0)
    assert result is CheckResult.OK
    assert len(info.history) == 1
    assert len(info.history[0]) == 2 * len(history)
    assert len(info.partial_linearizations[0]) == 1
    assert sorted(info.partial_linearizations[0][0]) == list(range(len(history)))


def test_verbose_illegal_gives_prefixes():
    history = [put("x", "1", 0, 1), get("x", "2", 2, 3)]
    result, info = check_operations_verbose(KV_MODEL, history, 0)
    assert result is CheckResult.ILLEGAL
    assert info.partial_linearizations == [[[0]]]


def test_non_verbose_info_is_empty():
    result, info = check_operations_verbose(KV_MODEL, [], 0)
    assert result is CheckResult.OK
    assert info.history == []


def test_timeout_gives_unknown():
    def slow_step(state, inp, out):
        time.sleep(0.3)
        return True, state

    model = Model(init=lambda: 0, step=slow_step)
    history = [Operation(i, 2 * i, None, 2 * i + 1) for i in range(5)]
    assert check_operations_timeout(model, history, 0.01) is CheckResult.UNKNOWN


def test_generous_timeout_gives_ok():
    history = [put("x", "1", 0, 1), get("x", "1", 2, 3)]
    assert check_operations_timeout(KV_MODEL, history, 5.0) is CheckResult.OK


def test_step_exception_propagates():
    def bad_step(state, inp, out):
        raise ValueError("boom")

    model = Model(init=lambda: 0, step=bad_step)
    with pytest.raises(ValueError):
        check_operations(model, [Operation(1, 0, None, 1)])


def register_model():
    def step(state, inp, out):
        kind, arg = inp
        if kind == "w":
            return True, arg
        return out == state, state

    return Model(init=lambda: 0, step=step)


def test_events_linearizable():
    events = [
        Event(EventKind.CALL, ("w", 5), 10, 0),
        Event(EventKind.CALL, ("r", None), 20, 1),
        Event(EventKind.RETURN, None, 10, 0),
        Event(EventKind.RETURN, 0, 20, 1),
    ]
    assert check_events(register_model(), events) is True


def test_events_illegal():
    events = [
        Event(EventKind.CALL, ("w", 5), 10, 0),
        Event(EventKind.RETURN, None, 10, 0),
        Event(EventKind.CALL, ("r", None), 20, 1),
        Event(EventKind.RETURN, 0, 20, 1),
    ]
    assert check_events(register_model(), events) is False
    assert check_events_timeout(register_model(), events, 0) is CheckResult.ILLEGAL


def test_events_verbose_renumbers_ids():
    events = [
        Event(EventKind.CALL, ("w", 5), 42, 0),
        Event(EventKind.RETURN, None, 42, 0),
        Event(EventKind.CALL, ("r", None), 7, 0),
        Event(EventKind.RETURN, 5, 7, 0),
    ]
    result, info = check_events_verbose(register_model(), events, 0)
    assert result is CheckResult.OK
    assert sorted(entry.id for entry in info.history[0]) == [0, 0, 1, 1]
    assert info.partial_linearizations[0] == [[0, 1]]