"""MapReduce application that counts how often map tasks run.

Each map invocation leaves a marker file in the working directory; reduce
counts them, so duplicated task assignments show up in the output.
"""

from __future__ import annotations

import itertools
import os
import random
import time
from pathlib import Path

from labkit.mr.worker import KeyValue

__all__ = ["mapf", "reducef"]

_PREFIX = "mr-worker-jobcount"
_invocations = itertools.count()


def mapf(filename: str, contents: str) -> list[KeyValue]:
    marker = Path(f"{_PREFIX}-{os.getpid()}-{next(_invocations)}")
    marker.write_text("x")
    time.sleep((2000 + random.randrange(3000)) / 1000)
    return [KeyValue("a", "x")]


def reducef(key: str, values: list[str]) -> str:
    return str(sum(1 for name in os.listdir(".") if name.startswith(_PREFIX)))