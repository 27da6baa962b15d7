"""HTTP header helpers for file downloads."""
from __future__ import annotations

from typing import Optional
from urllib.parse import quote


def sanitize_filename(filename: Optional[str], fallback: str = "download") -> str:
    """Strip CR/LF, quotes and surrounding spaces; empty results use ``fallback``."""
    if not filename:
        return fallback
    cleaned = filename.replace("\r", " ").replace("\n", " ").replace('"', "").strip()
    return cleaned or fallback


def attachment_disposition(filename: str) -> str:
    """``Content-Disposition`` for a download, with an RFC 5987 form for non-ASCII names."""
    safe = sanitize_filename(filename)
    ascii_name = safe.encode("ascii", errors="replace").decode("ascii").replace("?", "_")
    value = f'attachment; filename="{ascii_name}"'
    if ascii_name != safe:
        value += f"; filename*=UTF-8''{quote(safe)}"
    return value
