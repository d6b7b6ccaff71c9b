from __future__ import annotations

def norm_path(p: str) -> str:
    """Normalize an entry name to a relative forward-slash path for extraction.

    Rules:
    - Convert backslashes to slashes
    - Strip leading/trailing slashes
    - Remove empty and '.' segments
    - Reject '..' segments and NUL characters
    """
    if "\x00" in p:
        raise ValueError("Path may not contain NUL")
    p = p.replace("\\", "/").strip("/")
    parts = [q for q in p.split("/") if q not in ("", ".")]
    for q in parts:
        if q == "..":
            raise ValueError("Path may not contain '..'")
    return "/".join(parts)
