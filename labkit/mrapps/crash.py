"""MapReduce application that sometimes crashes and sometimes stalls.

It tests the framework's ability to recover from failed workers.
"""

from __future__ import annotations

import os
import secrets
import time

from labkit.mr.worker import KeyValue

__all__ = ["maybe_crash", "mapf", "reducef"]


def maybe_crash() -> None:
    """Exit about a third of the time, delay up to ten seconds another third."""
    roll = secrets.randbelow(1000)
    if roll < 330:
        os._exit(1)
    elif roll < 660:
        ms = secrets.randbelow(10 * 1000)
        time.sleep(ms / 1000)


def mapf(filename: str, contents: str) -> list[KeyValue]:
    maybe_crash()
    return [
        KeyValue("a", filename),
        KeyValue("b", str(len(filename.encode("utf-8")))),
        KeyValue("c", str(len(contents.encode("utf-8")))),
        KeyValue("d", "xyzzy"),
    ]


def reducef(key: str, values: list[str]) -> str:
    maybe_crash()
    # Sorted for deterministic output.
    return " ".join(sorted(values))