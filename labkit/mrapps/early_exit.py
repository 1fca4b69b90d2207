"""MapReduce application whose slow reduce tasks expose workers that exit early."""

from __future__ import annotations

import time

from labkit.mr.worker import KeyValue

__all__ = ["mapf", "reducef"]


def mapf(filename: str, contents: str) -> list[KeyValue]:
    """Emit the file name once per input file."""
    return [KeyValue(filename, "1")]


def reducef(key: str, values: list[str]) -> str:
    """Return how many times the file occurred; some keys take a long time."""
    if "sherlock" in key or "tom" in key:
        time.sleep(3)
    return str(len(values))