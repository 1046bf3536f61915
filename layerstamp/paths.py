from __future__ import annotations

from pathlib import Path

from layerstamp.errors import AccessDenied


def resolve_within(root: Path, name: str) -> Path:
    """Resolve ``name`` under ``root``; anything escaping the root is rejected."""
    if not name or "\x00" in name:
        raise AccessDenied()
    root_resolved = root.resolve(strict=False)
    candidate = (root_resolved / name).resolve(strict=False)
    if candidate != root_resolved and root_resolved not in candidate.parents:
        raise AccessDenied(details=name)
    return candidate
