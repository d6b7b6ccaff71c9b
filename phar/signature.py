from __future__ import annotations

import hmac
from dataclasses import dataclass
from typing import Optional

from Cryptodome.Hash import MD5, SHA1, SHA256, SHA512
from Cryptodome.PublicKey import RSA
from Cryptodome.Signature import pkcs1_15

from .binio import unpack_u32
from .constants import (
    SIG_MAGIC,
    SIG_DIGEST_SIZES,
    SIG_NAMES,
    SIG_MD5,
    SIG_SHA1,
    SIG_SHA256,
    SIG_SHA512,
    SIG_OPENSSL,
    SIG_OPENSSL_SHA256,
    SIG_OPENSSL_SHA512,
)


_HASHES = {
    SIG_MD5: MD5,
    SIG_SHA1: SHA1,
    SIG_SHA256: SHA256,
    SIG_SHA512: SHA512,
    SIG_OPENSSL: SHA1,
    SIG_OPENSSL_SHA256: SHA256,
    SIG_OPENSSL_SHA512: SHA512,
}

_OPENSSL_FLAGS = (SIG_OPENSSL, SIG_OPENSSL_SHA256, SIG_OPENSSL_SHA512)


@dataclass(frozen=True)
class Signature:
    flags: int
    value: bytes
    signed_length: int

    @property
    def kind(self) -> str:
        return SIG_NAMES.get(self.flags, f"0x{self.flags:04x}")

    @property
    def is_openssl(self) -> bool:
        return self.flags in _OPENSSL_FLAGS


def parse_signature(tail: bytes, tail_offset: int) -> Optional[Signature]:
    """
    Decodes a signature trailer from the bytes following the last payload.

    ``tail_offset`` is the archive offset of ``tail[0]``. Layouts (read from
    the end): ``digest | u32 flags | GBMB`` for hash signatures and
    ``signature | u32 length | u32 flags | GBMB`` for OpenSSL signatures.
    Returns None when the trailer is absent or not recognized.
    """
    if len(tail) < 8 or tail[-4:] != SIG_MAGIC:
        return None
    flags = unpack_u32(tail, len(tail) - 8)
    if flags in SIG_DIGEST_SIZES:
        n = SIG_DIGEST_SIZES[flags]
        end = len(tail) - 8
    elif flags in _OPENSSL_FLAGS:
        if len(tail) < 12:
            return None
        n = unpack_u32(tail, len(tail) - 12)
        end = len(tail) - 12
    else:
        return None
    start = end - n
    if start < 0:
        return None
    return Signature(flags=flags, value=tail[start:end], signed_length=tail_offset + start)


def verify_signature(sig: Signature, signed: bytes, public_key: Optional[bytes] = None) -> bool:
    """Check ``sig`` over ``signed``. OpenSSL signatures need a PEM ``public_key``."""
    h = _HASHES[sig.flags].new(signed)
    if not sig.is_openssl:
        return hmac.compare_digest(h.digest(), sig.value)
    if not public_key:
        return False
    try:
        key = RSA.import_key(public_key)
        pkcs1_15.new(key).verify(h, sig.value)
    except (ValueError, TypeError):
        return False
    return True
