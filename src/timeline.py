"""Audio chunk timeline math.

Each chunk occupies ``effective_duration`` seconds on the render timeline;
chunks play back to back, so the start time of chunk ``i`` is the sum of the
effective durations of the chunks before it.
"""
from __future__ import annotations

from typing import Iterable, Optional

from src.models import AudioChunk

MIN_EFFECTIVE_DURATION = 2.0


def effective_duration(measured: Optional[float], minimum: float = MIN_EFFECTIVE_DURATION) -> float:
    """Floor a measured duration at ``minimum`` seconds (missing counts as 0)."""
    return max(float(minimum), float(measured or 0.0))


def recompute_start_times(
    chunks: Iterable[AudioChunk],
    minimum: float = MIN_EFFECTIVE_DURATION,
) -> list[AudioChunk]:
    """Return copies of ``chunks`` with effective durations and start times filled in."""
    updated: list[AudioChunk] = []
    cursor = 0.0
    for chunk in chunks:
        eff = effective_duration(chunk.duration, minimum)
        updated.append(chunk.model_copy(update={"effective_duration": eff, "start_time": cursor}))
        cursor += eff
    return updated


def total_duration(chunks: Iterable[AudioChunk], minimum: float = MIN_EFFECTIVE_DURATION) -> float:
    return sum(effective_duration(c.duration, minimum) for c in chunks)
