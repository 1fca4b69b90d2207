"""Inverted-index application for MapReduce."""

from __future__ import annotations

from itertools import groupby

from labkit.mr.worker import KeyValue

__all__ = ["mapf", "reducef"]


def mapf(document: str, value: str) -> list[KeyValue]:
    """Emit (word, document) once for each distinct word in the document."""
    words = ("".join(run) for is_letter, run in groupby(value, str.isalpha) if is_letter)
    return [KeyValue(word, document) for word in dict.fromkeys(words)]


def reducef(key: str, values: list[str]) -> str:
    """Return the number of documents and their sorted, comma-separated names."""
    documents = sorted(values)
    return f"{len(documents)} {','.join(documents)}"