"""
Legacy arc parameter parsing.

Older templates carry the arc angle inside a free-form command fragment, e.g.
``-distort Arc 15`` or ``-rotate 180 -distort Arc "15 180"``. New templates set
``arcDistort`` directly; this module can go once the old exports are migrated.
"""
from __future__ import annotations

import re

ARC_PATTERN = re.compile(r"Arc\s+([\"']?)(-?\d+(?:\.\d+)?)")


def extract_arc_angle(arc: str | None) -> float | None:
    if not arc:
        return None
    match = ARC_PATTERN.search(arc)
    if not match:
        return None
    return float(match.group(2))
