from __future__ import annotations

import struct
from typing import BinaryIO

from .errors import TruncatedError


_U32 = struct.Struct("<I")


def read_exact(f: BinaryIO, n: int) -> bytes:
    b = f.read(n)
    if len(b) != n:
        raise TruncatedError(f"Unexpected EOF: wanted {n} bytes, got {len(b)}")
    return b


def read_u32(f: BinaryIO) -> int:
    return _U32.unpack(read_exact(f, _U32.size))[0]


def read_blob(f: BinaryIO) -> bytes:
    """Read a u32 length prefix followed by that many bytes."""
    n = read_u32(f)
    return read_exact(f, n) if n else b""


def unpack_u32(buf: bytes, offset: int = 0) -> int:
    return _U32.unpack_from(buf, offset)[0]
