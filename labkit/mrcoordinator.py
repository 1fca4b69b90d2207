"""Start the MapReduce coordinator.

Usage: mrcoordinator inputfiles...
"""

from __future__ import annotations

import sys
import time
from typing import Optional, Sequence

from labkit.mr.coordinator import make_coordinator

__all__ = ["main"]

_N_REDUCE = 10


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = list(sys.argv[1:] if argv is None else argv)
    if not args:
        print("Usage: mrcoordinator inputfiles...", file=sys.stderr)
        return 1
    with make_coordinator(args, _N_REDUCE) as coordinator:
        while not coordinator.done():
            time.sleep(1)
        time.sleep(1)
    return 0


if __name__ == "__main__":
    sys.exit(main())