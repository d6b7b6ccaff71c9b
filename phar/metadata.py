from __future__ import annotations

from typing import Any

import phpserialize

from .errors import MetadataError


def load_metadata(blob: bytes) -> Any:
    """Decode a PHP ``serialize()`` metadata blob; empty blobs yield None.

    Strings are decoded as UTF-8 and PHP objects become ``phpserialize.phpobject``.
    """
    if not blob:
        return None
    try:
        return phpserialize.loads(blob, decode_strings=True, object_hook=phpserialize.phpobject)
    except (ValueError, TypeError, UnicodeDecodeError) as exc:
        raise MetadataError(f"Malformed serialized metadata: {exc}")
