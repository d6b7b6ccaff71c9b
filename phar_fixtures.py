"""In-memory PHAR builder used by the test suite."""

from __future__ import annotations

import hashlib
import struct
import zlib
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from Cryptodome.Hash import SHA1, SHA256, SHA512
from Cryptodome.Signature import pkcs1_15

from phar.constants import (
    ENT_COMPRESSED_GZ,
    GFLAG_HAS_SIGNATURE,
    SIG_MAGIC,
    SIG_MD5,
    SIG_SHA1,
    SIG_SHA256,
    SIG_SHA512,
    SIG_OPENSSL,
    SIG_OPENSSL_SHA256,
    SIG_OPENSSL_SHA512,
)


DEFAULT_STUB = b"<?php\n__HALT_COMPILER(); ?>\r\n"


def u32(v: int) -> bytes:
    return struct.pack("<I", v)


def blob(b: bytes) -> bytes:
    return u32(len(b)) + b


def pack_version(version: Tuple[int, int, int]) -> bytes:
    major, minor, patch = version
    return bytes([(major << 4) | minor, patch << 4])


def raw_deflate(data: bytes) -> bytes:
    c = zlib.compressobj(6, zlib.DEFLATED, -zlib.MAX_WBITS)
    return c.compress(data) + c.flush()


@dataclass
class FileSpec:
    name: str
    data: bytes = b""
    flags: int = 0
    timestamp: int = 1_700_000_000
    metadata: bytes = b""
    gz: bool = False
    crc: Optional[int] = None
    usize: Optional[int] = None
    csize: Optional[int] = None
    payload: Optional[bytes] = None

    def encoded(self) -> bytes:
        if self.payload is not None:
            return self.payload
        return raw_deflate(self.data) if self.gz else self.data

    def header(self) -> bytes:
        payload = self.encoded()
        name = self.name.encode("utf-8")
        flags = self.flags | (ENT_COMPRESSED_GZ if self.gz else 0)
        return (
            blob(name)
            + u32(len(self.data) if self.usize is None else self.usize)
            + u32(self.timestamp)
            + u32(len(payload) if self.csize is None else self.csize)
            + u32(zlib.crc32(self.data) & 0xFFFFFFFF if self.crc is None else self.crc)
            + u32(flags)
            + blob(self.metadata)
        )


def build_manifest(
    files: Sequence[FileSpec],
    *,
    version: Tuple[int, int, int] = (1, 1, 1),
    global_flags: int = 0,
    alias: str = "",
    metadata: bytes = b"",
    entry_count: Optional[int] = None,
) -> bytes:
    body = (
        u32(len(files) if entry_count is None else entry_count)
        + pack_version(version)
        + u32(global_flags)
        + blob(alias.encode("utf-8"))
        + blob(metadata)
        + b"".join(f.header() for f in files)
    )
    return u32(len(body)) + body


def sign(data: bytes, sig_flags: int, private_key=None) -> bytes:
    if sig_flags == SIG_MD5:
        return hashlib.md5(data).digest() + u32(sig_flags) + SIG_MAGIC
    if sig_flags == SIG_SHA1:
        return hashlib.sha1(data).digest() + u32(sig_flags) + SIG_MAGIC
    if sig_flags == SIG_SHA256:
        return hashlib.sha256(data).digest() + u32(sig_flags) + SIG_MAGIC
    if sig_flags == SIG_SHA512:
        return hashlib.sha512(data).digest() + u32(sig_flags) + SIG_MAGIC
    hashes = {SIG_OPENSSL: SHA1, SIG_OPENSSL_SHA256: SHA256, SIG_OPENSSL_SHA512: SHA512}
    sig = pkcs1_15.new(private_key).sign(hashes[sig_flags].new(data))
    return sig + u32(len(sig)) + u32(sig_flags) + SIG_MAGIC


def build_phar(
    files: Sequence[FileSpec] = (),
    *,
    stub: bytes = DEFAULT_STUB,
    version: Tuple[int, int, int] = (1, 1, 1),
    global_flags: int = 0,
    alias: str = "",
    metadata: bytes = b"",
    sig_flags: Optional[int] = None,
    private_key=None,
) -> bytes:
    if sig_flags is not None:
        global_flags |= GFLAG_HAS_SIGNATURE
    out = stub + build_manifest(
        files, version=version, global_flags=global_flags, alias=alias, metadata=metadata
    )
    out += b"".join(f.encoded() for f in files)
    if sig_flags is not None:
        out += sign(out, sig_flags, private_key)
    return out


def sample_files() -> List[FileSpec]:
    return [
        FileSpec("src/", b""),
        FileSpec("src/index.php", b"<?php echo 'hello';\n"),
        FileSpec("src/lib.php", b"<?php function f() { return 42; }\n" * 20, gz=True),
        FileSpec("README.md", "# Title\nünïcode\n".encode("utf-8"), flags=0o644),
    ]
