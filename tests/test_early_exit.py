from unittest import mock

from labkit.mr.worker import KeyValue
from labkit.mrapps import early_exit


def test_map_emits_filename():
    assert early_exit.mapf("pg-being_ernest.txt", "anything") == [
        KeyValue("pg-being_ernest.txt", "1")
    ]


def test_reduce_slow_keys_sleep():
    with mock.patch.object(early_exit.time, "sleep") as sleep_mock:
        assert early_exit.reducef("pg-sherlock_holmes.txt", ["1"]) == "1"
        assert early_exit.reducef("pg-tom_sawyer.txt", ["1", "1"]) == "2"
    assert sleep_mock.call_args_list == [mock.call(3), mock.call(3)]


def test_reduce_other_keys_do_not_sleep():
    with mock.patch.object(early_exit.time, "sleep") as sleep_mock:
        assert early_exit.reducef("pg-grimm.txt", ["1"] * 4) == "4"
    assert sleep_mock.call_count == 0