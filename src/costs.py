"""Approximate Fal.ai spend for generated media (USD)."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from src.models import TEXT_TO_IMAGE_ITEM_ID, GeneratedMedia, HistoryItem

SEEDANCE_FPS = 24

IMAGE_COSTS = {
    "nano-banana": 0.04,
    "seedream-v3": 0.03,
    "seedream": 0.03,
}


def video_dimensions(resolution: str) -> tuple[int, int]:
    """``"720p"`` -> ``(1280, 720)`` assuming 16:9."""
    height = int(resolution.rstrip("p"))
    return round(height * 16 / 9), height


def _seedance_cost(rate: float) -> Callable[[str, str], float]:
    def cost(resolution: str, duration: str) -> float:
        width, height = video_dimensions(resolution)
        tokens = height * width * SEEDANCE_FPS * int(duration) / 1024
        return tokens / 1_000_000 * rate

    return cost


def _hailuo_standard_cost(resolution: str, duration: str) -> float:
    per_second = 0.045 if resolution == "768p" else 0.017
    return int(duration) * per_second


@dataclass(frozen=True)
class VideoModelDetail:
    name: str
    resolutions: tuple[str, ...]
    durations: tuple[str, ...]
    calculate_cost: Callable[[str, str], float]
    description: str


_SEEDANCE_DURATIONS = tuple(str(n) for n in range(3, 13))

VIDEO_MODEL_DETAILS: dict[str, VideoModelDetail] = {
    "seedance-pro": VideoModelDetail(
        "Seedance Pro",
        ("1080p", "720p", "480p"),
        _SEEDANCE_DURATIONS,
        _seedance_cost(2.5),
        "Offers good quality and control. A 1080p 5-second video costs ~$0.62.",
    ),
    "seedance-lite": VideoModelDetail(
        "Seedance Lite",
        ("1080p", "720p", "480p"),
        _SEEDANCE_DURATIONS,
        _seedance_cost(1.8),
        "A faster, lower-cost alternative. A 720p 5-second video costs ~$0.18.",
    ),
    "hailuo-2-pro": VideoModelDetail(
        "Hailuo 2 Pro",
        ("1080p",),
        ("6",),
        lambda _res, dur: int(dur) * 0.08,
        "High-quality 1080p generation. Recommended for scenes with fast movement.",
    ),
    "hailuo-2-standard": VideoModelDetail(
        "Hailuo 2 Standard",
        ("768p", "512p"),
        ("6", "10"),
        _hailuo_standard_cost,
        "Generates 768p or 512p video. A 6s 768p video costs ~$0.27.",
    ),
}


def estimate_video_cost(model: str, resolution: str, duration: str) -> float:
    detail = VIDEO_MODEL_DETAILS.get(model)
    if detail is None:
        return 0.0
    return detail.calculate_cost(resolution, duration)


def calculate_media_cost(media: GeneratedMedia) -> float:
    if media.type == "image" and media.model in IMAGE_COSTS:
        return IMAGE_COSTS[media.model]
    if media.type == "video" and media.model and media.resolution and media.duration:
        return estimate_video_cost(media.model, media.resolution, media.duration)
    return 0.0


def calculate_history_item_cost(item: HistoryItem) -> float:
    # Text-to-image generations are not tied to a character.
    if item.id == TEXT_TO_IMAGE_ITEM_ID:
        return 0.0
    return sum(calculate_media_cost(m) for p in item.image_prompts for m in p.generated_media)
