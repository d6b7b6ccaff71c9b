from __future__ import annotations

import struct
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import BinaryIO, Dict, Iterator, List, Mapping, NamedTuple, Optional, Tuple

from .binio import read_exact, read_blob, read_u32
from .codec import Inflate
from .constants import DIR_SUPPORT_VERSION, MIN_MANIFEST_LEN
from .entry import Entry, EntryHeader, EntryKey, read_entry_content, read_entry_header
from .errors import MalformedManifest


# entry_count u32, packed version u16 (big-endian nibbles), global flags u32
_MANIFEST_FIXED = struct.Struct("<I2sI")


class ApiVersion(NamedTuple):
    major: int
    minor: int
    patch: int

    @classmethod
    def unpack(cls, raw: bytes) -> "ApiVersion":
        word = (raw[0] << 8) | (raw[1] & 0xF0)
        return cls(word >> 12, (word >> 8) & 0xF, (word >> 4) & 0xF)

    def __str__(self):
        return f"{self.major}.{self.minor}.{self.patch}"


@dataclass(frozen=True)
class Manifest:
    manifest_length: int
    version: ApiVersion
    global_flags: int
    alias: Optional[str]
    global_metadata: bytes
    entries: Mapping[EntryKey, Entry]
    order: Tuple[Entry, ...] = field(default=(), repr=False)

    @property
    def supports_directories(self) -> bool:
        return self.version >= DIR_SUPPORT_VERSION

    def get(self, name: str) -> Optional[Entry]:
        """Entry for ``name``; the file wins when a file and a directory share it."""
        entry = self.entries.get(EntryKey.file(name))
        if entry is None:
            entry = self.entries.get(EntryKey.directory(name))
        return entry

    def get_file(self, name: str) -> Optional[Entry]:
        return self.entries.get(EntryKey.file(name))

    def entry_list(self) -> List[Entry]:
        return list(self.order)

    def files(self) -> List[Entry]:
        return [e for e in self.order if e.is_file]

    def directories(self) -> List[Entry]:
        return [e for e in self.order if e.is_directory]

    def __len__(self):
        return len(self.entries)

    def __iter__(self) -> Iterator[Entry]:
        return iter(self.order)

    def __contains__(self, name) -> bool:
        return isinstance(name, str) and self.get(name) is not None


def read_manifest(f: BinaryIO, inflate: Optional[Inflate] = None) -> Manifest:
    """
    Decodes the manifest starting at its u32 length field.

    Every entry header is read before any payload: the format stores all
    headers contiguously, and payload positions follow from the header sizes.
    """
    manifest_length = read_u32(f)
    if manifest_length < MIN_MANIFEST_LEN:
        raise MalformedManifest(f"Manifest length {manifest_length} is below minimum {MIN_MANIFEST_LEN}")
    entry_count, raw_version, global_flags = _MANIFEST_FIXED.unpack(read_exact(f, _MANIFEST_FIXED.size))
    version = ApiVersion.unpack(raw_version)
    alias_raw = read_blob(f)
    try:
        alias = alias_raw.decode("utf-8") if alias_raw else None
    except UnicodeDecodeError as exc:
        raise MalformedManifest(f"Alias is not valid UTF-8: {exc}")
    global_metadata = read_blob(f)
    supports_dir = version >= DIR_SUPPORT_VERSION

    headers: List[EntryHeader] = []
    for _ in range(entry_count):
        headers.append(read_entry_header(f, supports_dir))

    entries: Dict[EntryKey, Entry] = {}
    order: List[Entry] = []
    for header in headers:
        entry = read_entry_content(f, header, inflate)
        key = EntryKey(entry.name, is_dir=not entry.is_file)
        if key in entries:
            raise MalformedManifest(f"Duplicate entry {entry.name!r}")
        entries[key] = entry
        order.append(entry)

    return Manifest(
        manifest_length=manifest_length,
        version=version,
        global_flags=global_flags,
        alias=alias,
        global_metadata=global_metadata,
        entries=MappingProxyType(entries),
        order=tuple(order),
    )
