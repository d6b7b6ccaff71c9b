from __future__ import annotations

import io
from typing import BinaryIO

from .bytematch import has_suffix
from .constants import HALT_TOKEN, HALT_PEEK_SIZE
from .errors import MalformedStub


def _closing_tail_len(peek: bytes) -> int:
    """Number of peeked bytes that still belong to the stub.

    Recognized tails: ``" ?>"`` or ``"\\n?>"``, optionally followed by
    ``"\\n"`` or ``"\\r\\n"``. Anything else belongs to the manifest.
    """
    if peek[0:1] not in (b" ", b"\n") or peek[1:3] != b"?>":
        return 0
    if peek[3:4] == b"\r":
        if peek[4:5] != b"\n":
            raise MalformedStub("Stub close tag has '\\r' without '\\n'")
        return 5
    if peek[3:4] == b"\n":
        return 4
    return 3


def read_stub(f: BinaryIO) -> bytes:
    """
    Scans the stream from its current position for ``__HALT_COMPILER();``.

    Returns the stub bytes up to and including the terminator and any closing
    tag tail, and leaves the stream positioned at the first manifest byte.
    """
    stub = bytearray()
    while True:
        b = f.read(1)
        if not b:
            raise MalformedStub("Stub terminator __HALT_COMPILER(); not found")
        stub += b
        if has_suffix(stub, HALT_TOKEN):
            break
    peek = f.read(HALT_PEEK_SIZE)
    if len(peek) != HALT_PEEK_SIZE:
        raise MalformedStub("Archive ends right after the stub terminator")
    keep = _closing_tail_len(peek)
    f.seek(keep - len(peek), io.SEEK_CUR)
    stub += peek[:keep]
    return bytes(stub)
