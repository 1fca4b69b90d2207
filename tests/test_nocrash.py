import os
from unittest import mock

from labkit.mr.worker import KeyValue
from labkit.mrapps import nocrash


def test_map_never_exits_on_low_draw():
    with mock.patch.object(nocrash.secrets, "randbelow", return_value=0), \
            mock.patch.object(os, "_exit") as exit_mock:
        result = nocrash.mapf("f", "ab")
    assert result == [
        KeyValue("a", "f"),
        KeyValue("b", "1"),
        KeyValue("c", "2"),
        KeyValue("d", "xyzzy"),
    ]
    assert exit_mock.call_count == 0


def test_map_output():
    result = nocrash.mapf("pg-x.txt", "some text")
    assert result == [
        KeyValue("a", "pg-x.txt"),
        KeyValue("b", str(len("pg-x.txt"))),
        KeyValue("c", str(len("some text"))),
        KeyValue("d", "xyzzy"),
    ]


def test_reduce_sorted_join():
    assert nocrash.reducef("a", ["y.txt", "x.txt"]) == "x.txt y.txt"
    assert nocrash.reducef("a", []) == ""