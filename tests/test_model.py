from labkit.porcupine.model import (
    CheckResult,
    Event,
    EventKind,
    Model,
    Operation,
    default_describe_operation,
    default_describe_state,
    no_partition,
    no_partition_event,
    shallow_equal,
)


def _history():
    return [
        Operation(input="a", call=0, output="b", ret=1),
        Operation(input="c", call=2, output="d", ret=3, client_id=1),
    ]


def test_no_partition_keeps_everything_together():
    history = _history()
    parts = no_partition(history)
    assert parts == [history]
    assert parts[0] is not history


def test_no_partition_event():
    events = [Event(EventKind.CALL, "x", 0), Event(EventKind.RETURN, "y", 0)]
    assert no_partition_event(events) == [events]


def test_shallow_equal():
    assert shallow_equal("x", "x")
    assert not shallow_equal("x", "y")


def test_default_descriptions():
    assert default_describe_operation(1, 2) == "1 -> 2"
    assert default_describe_state([1]) == "[1]"


def test_model_fills_defaults():
    model = Model(init=lambda: 0, step=lambda s, i, o: (True, s))
    assert model.partition is no_partition
    assert model.partition_event is no_partition_event
    assert model.equal is shallow_equal
    assert model.describe_operation is default_describe_operation
    assert model.describe_state is default_describe_state


def test_model_keeps_explicit_hooks():
    def describe(state):
        return "state"

    model = Model(init=lambda: 0, step=lambda s, i, o: (True, s), describe_state=describe)
    assert model.describe_state(5) == "state"
    assert model.step(3, None, None) == (True, 3)


def test_check_result_values():
    assert CheckResult("Ok") is CheckResult.OK
    assert CheckResult("Illegal") is CheckResult.ILLEGAL
    assert CheckResult("Unknown") is CheckResult.UNKNOWN


def test_event_kind_from_flag():
    assert EventKind(True) is EventKind.RETURN
    assert EventKind(False) is EventKind.CALL