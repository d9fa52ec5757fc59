"""Brand catalogue and competitor-name replacement for marketing copy."""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Iterable, Mapping, Optional

from src.config import DEFAULT_BRAND_PATTERNS

PACKSHOT_SIZES: tuple[str, ...] = (
    "vertical",
    "square",
    "horizontal",
    "chunked-v2",
    "chunked-square",
    "chunked-horizontal",
    "text-emoji",
    "text-emoji-v2",
)


@dataclass(frozen=True)
class Brand:
    id: str
    name: str
    # Storage paths inside the ``videos`` bucket, keyed by template size.
    packshots: dict[str, str] = field(default_factory=dict)

    def packshot_path(self, size: str) -> Optional[str]:
        return self.packshots.get(size)


def _packshots(vertical: str, square: str, horizontal: str) -> dict[str, str]:
    by_ratio = {"9x16": vertical, "1x1": square, "16x9": horizontal}
    ratio_for_size = {
        "vertical": "9x16",
        "square": "1x1",
        "horizontal": "16x9",
        "chunked-v2": "9x16",
        "chunked-square": "1x1",
        "chunked-horizontal": "16x9",
        "text-emoji": "9x16",
        "text-emoji-v2": "9x16",
    }
    return {size: f"packshots/{by_ratio[ratio]}" for size, ratio in ratio_for_size.items()}


AVAILABLE_BRANDS: tuple[Brand, ...] = (
    Brand(
        "datemyage",
        "DateMyAge",
        _packshots("DateMyAge_packshot_9x16.mp4", "DateMyAge_packshot_1x1.mp4", "DateMyAge_packshot_16x9.mp4"),
    ),
    Brand(
        "dating",
        "Dating.Com",
        _packshots(
            "dc_packshot_simple_languages_1080x1920.mp4",
            "dc_packshot_simple_languages_1080x1080.mp4",
            "dc_packshot_simple_languages_1920x1080.mp4",
        ),
    ),
    Brand(
        "eurodate",
        "EuroDate",
        _packshots("EuroDate_packshot_9x16.mp4", "EuroDate_packshot_1x1.mp4", "EuroDate_packshot_16x9.mp4"),
    ),
    Brand(
        "ourlove",
        "OurLove",
        _packshots("OurLove_packshot_9x16.mp4", "OurLove_packshot_1x1.mp4", "OurLove_packshot_16x9.mp4"),
    ),
)


def get_brand(brand_id: str) -> Optional[Brand]:
    for brand in AVAILABLE_BRANDS:
        if brand.id == brand_id:
            return brand
    return None


def _pattern_regex(patterns: Iterable[str]) -> Optional[re.Pattern]:
    # Longest first so "Date My Age" wins over any shorter overlapping name.
    names = sorted({p for p in patterns if p}, key=len, reverse=True)
    if not names:
        return None
    return re.compile("|".join(re.escape(n) for n in names), re.IGNORECASE)


def apply_brand_replacement(
    text: str,
    brand_name: str,
    patterns: Optional[Iterable[str]] = None,
) -> str:
    """Replace every known competitor name in ``text`` with ``brand_name``.

    Names that already sit inside an occurrence of ``brand_name`` are left
    alone, so running the replacement twice gives the same text.
    """
    if not text or not brand_name:
        return text
    regex = _pattern_regex(DEFAULT_BRAND_PATTERNS if patterns is None else patterns)
    if regex is None:
        return text
    kept = [m.span() for m in re.finditer(re.escape(brand_name), text, re.IGNORECASE)]

    def replace(match: re.Match) -> str:
        start, end = match.span()
        if any(s <= start and end <= e for s, e in kept):
            return match.group(0)
        return brand_name

    return regex.sub(replace, text)


def apply_custom_replacements(text: str, mapping: Mapping[str, str]) -> str:
    """Apply user supplied find/replace pairs, case-insensitively, in order."""
    result = text
    for find, replace in mapping.items():
        find = (find or "").strip()
        if not find:
            continue
        result = re.sub(re.escape(find), lambda _m, r=replace: r, result, flags=re.IGNORECASE)
    return result
