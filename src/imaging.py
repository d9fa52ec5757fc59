"""Crop-box math and Pillow helpers for the image cropper.

All coordinates are in source-image pixels.
"""
from __future__ import annotations

from dataclasses import dataclass, replace
from io import BytesIO
from typing import Optional

from PIL import Image

MIN_CROP_SIZE_PX = 40
JPEG_QUALITY = 90

ASPECT_RATIOS: dict[str, Optional[float]] = {
    "9:16": 9 / 16,
    "1:1": 1.0,
    "4:3": 4 / 3,
    "16:9": 16 / 9,
    "Original": None,
}


@dataclass(frozen=True)
class CropRect:
    x: float
    y: float
    width: float
    height: float

    def box(self) -> tuple[int, int, int, int]:
        return (
            int(round(self.x)),
            int(round(self.y)),
            int(round(self.x + self.width)),
            int(round(self.y + self.height)),
        )


def centered_crop(width: int, height: int, aspect: Optional[float]) -> CropRect:
    """Largest crop of ``aspect`` (w/h) centered in a ``width`` x ``height`` image."""
    if width <= 0 or height <= 0:
        raise ValueError("Image has no pixels.")
    target = aspect if aspect else width / height
    image_aspect = width / height
    if image_aspect > target:
        crop_h = float(height)
        crop_w = crop_h * target
    else:
        crop_w = float(width)
        crop_h = crop_w / target
    return CropRect((width - crop_w) / 2, (height - crop_h) / 2, crop_w, crop_h)


def move_crop(crop: CropRect, dx: float, dy: float, width: int, height: int) -> CropRect:
    """Translate ``crop`` keeping it inside the image."""
    x = max(0.0, min(crop.x + dx, width - crop.width))
    y = max(0.0, min(crop.y + dy, height - crop.height))
    return replace(crop, x=x, y=y)


def resize_crop(
    crop: CropRect,
    corner: str,
    dx: float,
    width: int,
    height: int,
    aspect: Optional[float] = None,
    min_size: float = MIN_CROP_SIZE_PX,
) -> CropRect:
    """Drag ``corner`` (``tl``/``tr``/``bl``/``br``) horizontally by ``dx``, keeping the aspect ratio."""
    if corner not in {"tl", "tr", "bl", "br"}:
        raise ValueError(f"Unknown corner: {corner}")
    ratio = aspect if aspect else crop.width / crop.height
    left_edge = corner in {"tl", "bl"}
    top_edge = corner in {"tl", "tr"}

    w = crop.width - dx if left_edge else crop.width + dx
    w = max(w, min_size, min_size * ratio)
    h = w / ratio

    x = crop.x + crop.width - w if left_edge else crop.x
    y = crop.y + crop.height - h if top_edge else crop.y

    if x < 0:
        w += x
        x = 0.0
        h = w / ratio
    if y < 0:
        h += y
        y = 0.0
        w = h * ratio
    if x + w > width:
        w = width - x
        h = w / ratio
    if y + h > height:
        h = height - y
        w = h * ratio

    x = min(max(0.0, x), width - w)
    y = min(max(0.0, y), height - h)
    return CropRect(x, y, w, h)


def crop_image(data: bytes, crop: CropRect) -> bytes:
    """Crop encoded image ``data`` and return JPEG bytes."""
    with Image.open(BytesIO(data)) as img:
        out = img.convert("RGB").crop(crop.box())
    buf = BytesIO()
    out.save(buf, format="JPEG", quality=JPEG_QUALITY)
    return buf.getvalue()


def image_size(data: bytes) -> tuple[int, int]:
    with Image.open(BytesIO(data)) as img:
        return img.size


def crop_to_aspect(data: bytes, aspect_label: str) -> bytes:
    """Center-crop ``data`` to one of :data:`ASPECT_RATIOS`."""
    if aspect_label not in ASPECT_RATIOS:
        raise ValueError(f"Unknown aspect ratio: {aspect_label}")
    width, height = image_size(data)
    return crop_image(data, centered_crop(width, height, ASPECT_RATIOS[aspect_label]))
