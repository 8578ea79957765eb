"""Big-endian field access over byte buffers.

Every multi-byte field in the cookie and the TOC is stored big-endian;
decoding goes through ``FieldReader`` so there is exactly one place that
knows the byte order.
"""

from __future__ import annotations

import struct

from relic.core.errors import MismatchError

_U8 = struct.Struct(">B")
_U32 = struct.Struct(">I")


class FieldReader:
    def __init__(self, buffer: bytes, base: int = 0):
        self._buffer = buffer
        self._base = base

    def __len__(self) -> int:
        return len(self._buffer) - self._base

    def _check(self, offset: int, size: int) -> int:
        start = self._base + offset
        if offset < 0 or start + size > len(self._buffer):
            available = max(0, len(self._buffer) - start)
            raise MismatchError("Field Size", available, size)
        return start

    def u8(self, offset: int) -> int:
        value: int = _U8.unpack_from(self._buffer, self._check(offset, 1))[0]
        return value

    def u32(self, offset: int) -> int:
        value: int = _U32.unpack_from(self._buffer, self._check(offset, 4))[0]
        return value

    def raw(self, offset: int, size: int) -> bytes:
        start = self._check(offset, size)
        return bytes(self._buffer[start : start + size])

    def window(self, offset: int) -> FieldReader:
        """A reader whose offset 0 is ``offset`` in this one."""
        return FieldReader(self._buffer, self._check(offset, 0))


__all__ = ["FieldReader"]
