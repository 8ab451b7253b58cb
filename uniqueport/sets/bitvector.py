"""Fixed-length bit vector and its persisted byte encoding.

Bit ``i`` of a vector lives in byte ``i // 8`` at position ``i % 8`` (LSB first).
Padding bits past ``length`` in the last byte are always zero.

The encoded blob is an 8-byte big-endian length header followed by the packed
bits. Nothing outside this package reads the blob, but decoding is strict: a
blob whose header disagrees with the configured range length is rejected rather
than silently truncated or padded.
"""

from __future__ import annotations

import struct

from uniqueport.exceptions import FormatError

_HEADER = struct.Struct(">Q")


def _byte_length(length: int) -> int:
    return (length + 7) // 8


class BitVector:
    """Mutable, fixed-length sequence of bits."""

    __slots__ = ("_length", "_bits")

    def __init__(self, length: int, bits: bytes | bytearray | None = None) -> None:
        if length < 0:
            raise ValueError(f"BitVector length must be non-negative, got {length}")
        self._length = length
        if bits is None:
            self._bits = bytearray(_byte_length(length))
        else:
            if len(bits) != _byte_length(length):
                raise ValueError(f"Expected {_byte_length(length)} bytes for {length} bits, got {len(bits)}")
            self._bits = bytearray(bits)

    @classmethod
    def full(cls, length: int) -> BitVector:
        """A vector of ``length`` bits, all set."""
        vector = cls(length)
        whole, remainder = divmod(length, 8)
        vector._bits[:whole] = b"\xff" * whole
        if remainder:
            vector._bits[whole] = (1 << remainder) - 1
        return vector

    def __len__(self) -> int:
        return self._length

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, BitVector):
            return NotImplemented
        return self._length == other._length and self._bits == other._bits

    def __repr__(self) -> str:
        return f"BitVector(length={self._length}, count={self.count()})"

    def _check_index(self, index: int) -> None:
        if not 0 <= index < self._length:
            raise IndexError(f"Bit index {index} out of range for length {self._length}")

    def test(self, index: int) -> bool:
        self._check_index(index)
        return bool(self._bits[index >> 3] & (1 << (index & 7)))

    def set(self, index: int) -> None:
        self._check_index(index)
        self._bits[index >> 3] |= 1 << (index & 7)

    def clear(self, index: int) -> None:
        self._check_index(index)
        self._bits[index >> 3] &= ~(1 << (index & 7)) & 0xFF

    def count(self) -> int:
        """Number of set bits."""
        return int.from_bytes(self._bits, "little").bit_count()

    def next_set(self, start: int = 0) -> int | None:
        """Index of the lowest set bit at or after ``start``, or None."""
        if start >= self._length:
            return None
        start = max(start, 0)
        byte_index = start >> 3
        current = self._bits[byte_index] & (0xFF << (start & 7)) & 0xFF
        while True:
            if current:
                index = (byte_index << 3) + ((current & -current).bit_length() - 1)
                return index if index < self._length else None
            byte_index += 1
            if byte_index >= len(self._bits):
                return None
            current = self._bits[byte_index]

    def copy(self) -> BitVector:
        return BitVector(self._length, self._bits)

    def to_bytes(self) -> bytes:
        return bytes(self._bits)


def encode(vector: BitVector) -> bytes:
    return _HEADER.pack(len(vector)) + vector.to_bytes()


def decode(blob: bytes, expected_length: int) -> BitVector:
    """Parse a blob written by ``encode``.

    Raises:
        FormatError: the blob is malformed, or it holds a vector whose length
            is not ``expected_length``.
    """
    if len(blob) < _HEADER.size:
        raise FormatError(f"blob of {len(blob)} bytes is shorter than the {_HEADER.size} byte header")

    (length,) = _HEADER.unpack_from(blob)
    payload = blob[_HEADER.size :]
    if len(payload) != _byte_length(length):
        raise FormatError(f"header says {length} bits but payload has {len(payload)} bytes")

    remainder = length % 8
    if remainder and payload[-1] >> remainder:
        raise FormatError(f"bits set past the end of a {length} bit vector")

    if length != expected_length:
        raise FormatError(f"stored vector has {length} bits, expected {expected_length}")

    return BitVector(length, payload)
