from __future__ import annotations

import os
import sys
import zlib
from dataclasses import dataclass
from typing import BinaryIO, List, Optional

from .bytematch import has_prefix
from .codec import Inflate
from .constants import (
    ZIP_MAGIC,
    GZIP_MAGIC,
    BZIP2_MAGIC,
    SNIFF_SIZE,
    GFLAG_HAS_SIGNATURE,
    PUBKEY_SUFFIX,
)
from .entry import Entry
from .errors import PharError, UnsupportedContainer
from .manifest import ApiVersion, Manifest, read_manifest
from .signature import Signature, parse_signature, verify_signature
from .stub import read_stub


_WRAPPERS = (
    (ZIP_MAGIC, "zip"),
    (GZIP_MAGIC, "gzip"),
    (BZIP2_MAGIC, "bzip2"),
)


@dataclass(frozen=True)
class Archive:
    stub: bytes
    manifest: Manifest
    source_name: Optional[str] = None
    signature: Optional[Signature] = None

    @property
    def stub_text(self) -> str:
        return self.stub.decode("utf-8", errors="replace")

    @property
    def version(self) -> ApiVersion:
        return self.manifest.version

    @property
    def alias(self) -> Optional[str]:
        return self.manifest.alias

    @property
    def has_signature(self) -> bool:
        return bool(self.manifest.global_flags & GFLAG_HAS_SIGNATURE)

    def get(self, name: str) -> Optional[Entry]:
        return self.manifest.get(name)

    def get_file(self, name: str) -> Optional[Entry]:
        return self.manifest.get_file(name)

    def list(self) -> List[Entry]:
        return self.manifest.entry_list()


def sniff_container(head: bytes) -> Optional[str]:
    """Name of the wrapper format ``head`` starts with, or None for a plain PHAR."""
    for magic, name in _WRAPPERS:
        if has_prefix(head, magic):
            return name
    return None


def read_archive(f: BinaryIO, source_name: Optional[str] = None, inflate: Optional[Inflate] = None) -> Archive:
    """
    Parses a PHAR archive from a seekable binary stream.

    Order of work on the single stream cursor:
    1.  Sniff the first four bytes; zip/gzip/bzip2 wrappers are rejected
        without further reads.
    2.  Rewind and scan the stub up to ``__HALT_COMPILER();``.
    3.  Decode the manifest: global header, all entry headers, then all
        entry payloads.
    4.  When the archive declares a signature, decode the trailer.
    """
    f.seek(0)
    head = f.read(SNIFF_SIZE)
    wrapper = sniff_container(head)
    if wrapper is not None:
        raise UnsupportedContainer(f"{wrapper}-based phar archives are not supported")
    f.seek(0)
    stub = read_stub(f)
    manifest = read_manifest(f, inflate)
    signature = None
    if manifest.global_flags & GFLAG_HAS_SIGNATURE:
        tail_offset = f.tell()
        signature = parse_signature(f.read(), tail_offset)
        if signature is None:
            print(
                f"Warning: {source_name or 'archive'} declares a signature but no valid trailer was found",
                file=sys.stderr,
            )
    return Archive(stub=stub, manifest=manifest, source_name=source_name, signature=signature)


def open_archive(path: str, inflate: Optional[Inflate] = None) -> Archive:
    with open(path, "rb") as f:
        return read_archive(f, source_name=path, inflate=inflate)


def verify_archive(f: BinaryIO, archive: Archive, public_key: Optional[bytes] = None) -> bool:
    """
    Checks entry checksums and, when declared, the archive signature.

    1.  **CRC32:** every file entry's decoded data must match its stored checksum.
    2.  **Signature:** the trailer must be present and match the bytes from
        offset 0 up to the signature. OpenSSL signatures need ``public_key``.

    Returns:
        True if all checks pass, False otherwise.
    """
    ok = True
    for e in archive.manifest:
        if not e.is_file:
            continue
        if zlib.crc32(e.data) & 0xFFFFFFFF != e.checksum:
            ok = False
    if archive.has_signature:
        sig = archive.signature
        if sig is None:
            return False
        f.seek(0)
        signed = f.read(sig.signed_length)
        if len(signed) != sig.signed_length or not verify_signature(sig, signed, public_key):
            ok = False
    return ok


class ArchiveReader:
    def __init__(self, path: str, inflate: Optional[Inflate] = None, public_key: Optional[str] = None):
        self.path = path
        self.f: Optional[BinaryIO] = None
        self.archive: Optional[Archive] = None
        self.inflate = inflate
        self.public_key = public_key

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def open(self) -> Archive:
        if self.f is not None:
            return self.archive
        self.f = open(self.path, "rb")
        try:
            self.archive = read_archive(self.f, source_name=self.path, inflate=self.inflate)
        except (PharError, OSError) as exc:
            # Ensure file handle is closed on failure to avoid leaks
            self.close()
            raise exc
        return self.archive

    def close(self):
        if self.f is not None:
            self.f.close()
            self.f = None

    def _require(self) -> Archive:
        if self.f is None or self.archive is None:
            raise RuntimeError("Archive not open")
        return self.archive

    def list(self) -> List[Entry]:
        return self._require().list()

    def get(self, name: str) -> Optional[Entry]:
        return self._require().get(name)

    def get_file(self, name: str) -> Optional[Entry]:
        return self._require().get_file(name)

    def _load_public_key(self) -> Optional[bytes]:
        key_path = self.public_key
        if key_path is None:
            candidate = self.path + PUBKEY_SUFFIX
            if os.path.exists(candidate):
                key_path = candidate
        if key_path is None:
            return None
        with open(key_path, "rb") as kf:
            return kf.read()

    def verify(self) -> bool:
        archive = self._require()
        key = self._load_public_key() if archive.signature is not None and archive.signature.is_openssl else None
        return verify_archive(self.f, archive, public_key=key)

    def extract(self, entry: Entry, out_path: str):
        self._require()
        if entry.is_directory:
            os.makedirs(out_path, exist_ok=True)
            return
        os.makedirs(os.path.dirname(out_path) or ".", exist_ok=True)
        with open(out_path, "wb") as wf:
            wf.write(entry.data)
