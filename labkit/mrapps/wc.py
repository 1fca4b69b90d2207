"""Word-count application for MapReduce."""

from __future__ import annotations

from itertools import groupby

from labkit.mr.worker import KeyValue

__all__ = ["mapf", "reducef"]


def _words(text: str) -> list[str]:
    """Split text into maximal runs of letters."""
    return ["".join(run) for is_letter, run in groupby(text, str.isalpha) if is_letter]


def mapf(filename: str, contents: str) -> list[KeyValue]:
    """Emit ("word", "1") for every word in the contents; the file name is ignored."""
    return [KeyValue(word, "1") for word in _words(contents)]


def reducef(key: str, values: list[str]) -> str:
    """Return the number of occurrences of the word."""
    return str(len(values))