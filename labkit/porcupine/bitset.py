"""Fixed-capacity bit set, stored in 64-bit chunks."""

from __future__ import annotations

from typing import Iterator

__all__ = ["Bitset"]

_CHUNK = 64


class Bitset:
    """A set of small non-negative integers.

    The capacity is the requested size rounded up to a whole number of
    64-bit chunks; positions outside it raise IndexError.
    """

    __slots__ = ("_chunks", "_bits")

    def __init__(self, nbits: int = 0) -> None:
        if nbits < 0:
            raise ValueError("bitset size must be non-negative")
        self._chunks = -(-nbits // _CHUNK)
        self._bits = 0

    @property
    def capacity(self) -> int:
        return self._chunks * _CHUNK

    def _check(self, pos: int) -> None:
        if not 0 <= pos < self.capacity:
            raise IndexError(f"bit {pos} out of range for capacity {self.capacity}")

    def set(self, pos: int) -> Bitset:
        self._check(pos)
        self._bits |= 1 << pos
        return self

    def clear(self, pos: int) -> Bitset:
        self._check(pos)
        self._bits &= ~(1 << pos)
        return self

    def get(self, pos: int) -> bool:
        self._check(pos)
        return bool((self._bits >> pos) & 1)

    def popcount(self) -> int:
        return self._bits.bit_count()

    def copy(self) -> Bitset:
        other = Bitset.__new__(Bitset)
        other._chunks = self._chunks
        other._bits = self._bits
        return other

    def __iter__(self) -> Iterator[int]:
        bits = self._bits
        pos = 0
        while bits:
            if bits & 1:
                yield pos
            bits >>= 1
            pos += 1

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Bitset):
            return NotImplemented
        return self._chunks == other._chunks and self._bits == other._bits

    def __hash__(self) -> int:
        return hash((self._chunks, self._bits))

    def __repr__(self) -> str:
        return f"Bitset(capacity={self.capacity}, bits={list(self)})"