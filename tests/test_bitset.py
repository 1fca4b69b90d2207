import pytest

from labkit.porcupine.bitset import Bitset


def test_set_get_clear_roundtrip():
    bits = Bitset(100)
    positions = [0, 3, 63, 64, 99]
    for pos in positions:
        bits.set(pos)
    assert all(bits.get(pos) for pos in positions)
    assert not bits.get(1)
    bits.clear(63)
    assert not bits.get(63)
    assert bits.get(64)


def test_popcount_counts_distinct_positions():
    bits = Bitset(50)
    positions = [1, 7, 7, 20, 49]
    for pos in positions:
        bits.set(pos)
    assert bits.popcount() == len(set(positions))


def test_iter_yields_sorted_positions():
    bits = Bitset(130)
    positions = [129, 5, 64, 5]
    for pos in positions:
        bits.set(pos)
    assert list(bits) == sorted(set(positions))


def test_set_returns_self_for_chaining():
    bits = Bitset(10)
    assert bits.set(2).set(4) is bits
    assert bits.popcount() == 2


def test_copy_is_independent():
    original = Bitset(10).set(1)
    duplicate = original.copy()
    duplicate.set(2)
    assert original == Bitset(10).set(1)
    assert duplicate.get(2)
    assert not original.get(2)


def test_equality_and_hash():
    a = Bitset(10).set(3)
    b = Bitset(10).set(3)
    assert a == b
    assert hash(a) == hash(b)
    assert a != Bitset(10)
    assert a != Bitset(200).set(3)


def test_capacity_rounds_up_to_chunk():
    bits = Bitset(65)
    bits.set(127)
    assert bits.get(127)
    with pytest.raises(IndexError):
        bits.set(128)


def test_out_of_range_positions():
    with pytest.raises(IndexError):
        Bitset(0).get(0)
    with pytest.raises(IndexError):
        Bitset(10).set(-1)
    with pytest.raises(ValueError):
        Bitset(-1)