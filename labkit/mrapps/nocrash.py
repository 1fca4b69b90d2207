"""The crash application without the crashes."""

from __future__ import annotations

import secrets

from labkit.mr.worker import KeyValue

__all__ = ["maybe_crash", "mapf", "reducef"]


def maybe_crash() -> None:
    """Draw a random number as the crashing variant does, but never crash."""
    secrets.randbelow(1000)


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