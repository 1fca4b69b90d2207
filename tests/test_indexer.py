from labkit.mrapps import indexer


def test_map_emits_each_word_once_with_document():
    result = indexer.mapf("doc.txt", "b a b, a c")
    assert sorted(kv.key for kv in result) == ["a", "b", "c"]
    assert {kv.value for kv in result} == {"doc.txt"}


def test_map_empty_document():
    assert indexer.mapf("doc.txt", "123 !!") == []


def test_reduce_sorts_and_counts():
    assert indexer.reducef("word", ["z", "x", "y"]) == "3 x,y,z"


def test_reduce_independent_of_order():
    values = ["pg-b.txt", "pg-a.txt", "pg-c.txt"]
    assert indexer.reducef("k", values) == indexer.reducef("k", list(reversed(values)))