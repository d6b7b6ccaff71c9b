from __future__ import annotations

import struct
from dataclasses import dataclass, fields
from typing import BinaryIO, Optional

from .binio import read_exact, read_blob
from .codec import Codec, Inflate, compression_name
from .constants import (
    ENT_COMPRESSION_MASK,
    ENT_COMPRESSED_NONE,
    ENT_PERM_MASK,
    ENT_PERM_DEF_DIR,
    ENT_PERM_DEF_FILE,
)
from .errors import MalformedEntry


# uncompressed_size, timestamp, compressed_size, crc32, flags
_ENTRY_FIXED = struct.Struct("<IIIII")


class EntryKey:
    """Table key: entry name (compared case-insensitively) plus kind."""

    __slots__ = ("name", "is_dir", "_folded")

    def __init__(self, name: str, is_dir: bool = False):
        if name is None:
            raise ValueError("EntryKey name must not be None")
        self.name = name
        self.is_dir = bool(is_dir)
        self._folded = name.casefold()

    @classmethod
    def file(cls, name: str) -> "EntryKey":
        return cls(name, False)

    @classmethod
    def directory(cls, name: str) -> "EntryKey":
        return cls(name, True)

    def __eq__(self, other):
        if not isinstance(other, EntryKey):
            return NotImplemented
        return self._folded == other._folded and self.is_dir == other.is_dir

    def __hash__(self):
        return hash((self._folded, self.is_dir))

    def __repr__(self):
        return f"EntryKey({self.name!r}, is_dir={self.is_dir})"

    def __str__(self):
        return self.name


@dataclass(frozen=True)
class EntryHeader:
    name: str
    uncompressed_size: int
    timestamp: int
    compressed_size: int
    checksum: int
    flags: int
    metadata: bytes
    is_directory: bool
    stored_permissions: int = 0

    @property
    def is_file(self) -> bool:
        return not self.is_directory

    @property
    def compression(self) -> int:
        return self.flags & ENT_COMPRESSION_MASK

    @property
    def is_compressed(self) -> bool:
        return self.compression != ENT_COMPRESSED_NONE

    @property
    def permissions(self) -> int:
        return self.flags & ENT_PERM_MASK

    @property
    def key(self) -> EntryKey:
        return EntryKey(self.name, self.is_directory)


@dataclass(frozen=True)
class Entry(EntryHeader):
    data: bytes = b""

    @classmethod
    def from_header(cls, header: EntryHeader, data: bytes) -> "Entry":
        values = {f.name: getattr(header, f.name) for f in fields(EntryHeader)}
        return cls(data=data, **values)

    @property
    def content(self) -> str:
        """Entry data decoded as UTF-8 text. Use ``data`` for binary entries."""
        return self.data.decode("utf-8")

    @property
    def size(self) -> int:
        return len(self.data)


def read_entry_header(f: BinaryIO, supports_directories: bool) -> EntryHeader:
    """
    Decodes one entry header at the current stream position.

    Layout: u32 name length, name, five u32 fields (uncompressed size,
    timestamp, compressed size, CRC32, flags), u32 metadata length, metadata.

    Entry kind is decided here, once: a name ending in ``/`` is a directory
    only when the archive version supports directories. The matching default
    permission pattern is OR-ed into the flags and one trailing ``/`` is
    stripped from directory names. The permission bits as written are kept
    in ``stored_permissions``.
    """
    raw_name = read_blob(f)
    try:
        name = raw_name.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise MalformedEntry(f"Entry name is not valid UTF-8: {exc}")
    usize, timestamp, csize, checksum, flags = _ENTRY_FIXED.unpack(read_exact(f, _ENTRY_FIXED.size))
    stored_perms = flags & ENT_PERM_MASK

    is_dir = name.endswith("/") and supports_directories
    if is_dir:
        flags |= ENT_PERM_DEF_DIR
        name = name[:-1]
    else:
        flags |= ENT_PERM_DEF_FILE

    metadata = read_blob(f)

    if (flags & ENT_COMPRESSION_MASK) == ENT_COMPRESSED_NONE and usize != csize:
        raise MalformedEntry(
            f"Entry {name!r}: uncompressed size {usize} != compressed size {csize} for uncompressed entry"
        )
    return EntryHeader(
        name=name,
        uncompressed_size=usize,
        timestamp=timestamp,
        compressed_size=csize,
        checksum=checksum,
        flags=flags,
        metadata=metadata,
        is_directory=is_dir,
        stored_permissions=stored_perms,
    )


def read_entry_content(f: BinaryIO, header: EntryHeader, inflate: Optional[Inflate] = None) -> Entry:
    payload = read_exact(f, header.compressed_size)
    codec = Codec(header.compression, inflate)
    try:
        data = codec.decompress(payload, header.uncompressed_size)
    except MalformedEntry as exc:
        raise MalformedEntry(f"Entry {header.name!r} ({compression_name(header.compression)}): {exc}")
    return Entry.from_header(header, data)
