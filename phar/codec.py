from __future__ import annotations

import zlib
from typing import Callable, Optional

from .constants import ENT_COMPRESSED_NONE, ENT_COMPRESSED_GZ, ENT_COMPRESSED_BZ2
from .errors import MalformedEntry, UnsupportedCompression


Inflate = Callable[[bytes], bytes]

_NAMES = {
    ENT_COMPRESSED_NONE: "none",
    ENT_COMPRESSED_GZ: "gzip",
    ENT_COMPRESSED_BZ2: "bzip2",
}


def compression_name(compression: int) -> str:
    return _NAMES.get(compression, f"0x{compression:04x}")


def bounded_inflate(data: bytes, expected_len: int) -> bytes:
    """Inflate a raw deflate stream, bounded to ``expected_len`` (+1 to detect overrun)."""
    d = zlib.decompressobj(-zlib.MAX_WBITS)
    try:
        out = d.decompress(data, expected_len + 1)
    except zlib.error as exc:
        raise MalformedEntry(f"inflate failed: {exc}")
    if len(out) > expected_len:
        raise MalformedEntry("Inflated content exceeds declared size")
    return out


class Codec:
    def __init__(self, compression: int, inflate: Optional[Inflate] = None):
        self.compression = compression
        self.inflate = inflate

    def _inflate(self, data: bytes, expected_len: int) -> bytes:
        if self.inflate is None:
            return bounded_inflate(data, expected_len)
        try:
            return self.inflate(data)
        except zlib.error as exc:
            raise MalformedEntry(f"inflate failed: {exc}")

    def decompress(self, data: bytes, expected_len: int) -> bytes:
        if self.compression == ENT_COMPRESSED_NONE:
            return data
        if self.compression == ENT_COMPRESSED_GZ:
            raw = self._inflate(data, expected_len)
            if len(raw) != expected_len:
                raise MalformedEntry(
                    f"Inflated length {len(raw)} does not match declared size {expected_len}"
                )
            return raw
        # bzip2 and unknown methods: fail fast
        raise UnsupportedCompression(f"unsupported compression method: {compression_name(self.compression)}")
