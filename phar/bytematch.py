from __future__ import annotations

from typing import Optional


def has_prefix(data: Optional[bytes], prefix: Optional[bytes]) -> bool:
    """True when ``data`` starts with every byte of ``prefix``.

    Length mismatches and ``None`` inputs yield False rather than raising.
    """
    if data is None or prefix is None:
        return False
    if len(data) < len(prefix):
        return False
    return data[: len(prefix)] == prefix


def has_suffix(data: Optional[bytearray], suffix: Optional[bytes]) -> bool:
    # Called after every appended byte while scanning the stub; compares
    # only the tail instead of slicing the whole accumulator.
    if data is None or suffix is None:
        return False
    n = len(suffix)
    if len(data) < n:
        return False
    if n == 0:
        return True
    if data[-1] != suffix[-1]:
        return False
    return data[-n:] == suffix
