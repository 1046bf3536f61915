from __future__ import annotations

import locale


def decode_subprocess_output(data: bytes | None) -> str:
    if not data:
        return ""

    preferred = locale.getpreferredencoding(False) or "utf-8"
    seen: set[str] = set()
    for encoding in ("utf-8", preferred, "latin-1"):
        normalized = encoding.lower().strip()
        if not normalized or normalized in seen:
            continue
        seen.add(normalized)
        try:
            return data.decode(normalized)
        except UnicodeDecodeError:
            continue

    return data.decode("utf-8", errors="replace")


def truncate_diagnostic(text: str, limit: int) -> str:
    """Collapse a diagnostic to at most ``limit`` characters, marking the cut."""
    text = text.strip()
    if limit <= 0 or len(text) <= limit:
        return text
    marker = " ...[truncated]"
    if limit <= len(marker):
        return text[:limit]
    return text[: limit - len(marker)].rstrip() + marker
