from io import BytesIO

import pytest
from PIL import Image

from src.imaging import CropRect, centered_crop, crop_image, crop_to_aspect, image_size, move_crop, resize_crop


def _png(width: int, height: int) -> bytes:
    buf = BytesIO()
    Image.new("RGB", (width, height), (200, 120, 40)).save(buf, format="PNG")
    return buf.getvalue()


def test_centered_crop_for_wide_image() -> None:
    crop = centered_crop(1920, 1080, 1.0)
    assert crop == CropRect(420.0, 0.0, 1080.0, 1080.0)


def test_centered_crop_for_tall_image() -> None:
    crop = centered_crop(1000, 2000, 16 / 9)
    assert crop.width == 1000
    assert crop.height == pytest.approx(562.5)
    assert crop.y == pytest.approx(718.75)


def test_centered_crop_original_keeps_everything() -> None:
    assert centered_crop(640, 480, None) == CropRect(0.0, 0.0, 640.0, 480.0)
    with pytest.raises(ValueError):
        centered_crop(0, 480, 1.0)


def test_move_crop_is_clamped_to_image() -> None:
    crop = CropRect(100, 100, 200, 200)
    assert move_crop(crop, -500, 50, 1000, 1000) == CropRect(0.0, 150, 200, 200)
    assert move_crop(crop, 5000, 5000, 1000, 1000) == CropRect(800, 800, 200, 200)


def test_resize_keeps_aspect_and_anchor() -> None:
    crop = CropRect(100, 100, 200, 100)
    grown = resize_crop(crop, "br", 100, 1000, 1000)
    assert (grown.x, grown.y) == (100, 100)
    assert (grown.width, grown.height) == (300, 150)

    shrunk = resize_crop(crop, "tl", 100, 1000, 1000)
    assert shrunk.x + shrunk.width == pytest.approx(300)
    assert shrunk.y + shrunk.height == pytest.approx(200)
    assert shrunk.width / shrunk.height == pytest.approx(2.0)


def test_resize_respects_minimum_and_bounds() -> None:
    crop = CropRect(0, 0, 100, 100)
    assert resize_crop(crop, "br", -1000, 500, 500).width == 40
    big = resize_crop(crop, "br", 1000, 500, 300)
    assert (big.width, big.height) == (300, 300)
    with pytest.raises(ValueError):
        resize_crop(crop, "middle", 10, 500, 500)


def test_crop_image_outputs_jpeg_of_box_size() -> None:
    out = crop_image(_png(400, 300), CropRect(50, 50, 100, 80))
    with Image.open(BytesIO(out)) as img:
        assert img.format == "JPEG"
        assert img.size == (100, 80)


def test_crop_to_aspect() -> None:
    assert image_size(crop_to_aspect(_png(400, 300), "1:1")) == (300, 300)
    with pytest.raises(ValueError):
        crop_to_aspect(_png(10, 10), "2:1")
