import pytest

from src.costs import calculate_history_item_cost, calculate_media_cost, estimate_video_cost, video_dimensions
from src.models import TEXT_TO_IMAGE_ITEM_ID, CharacterProfile, GeneratedMedia, HistoryItem, ImagePrompt


def test_video_dimensions_assume_16_9() -> None:
    assert video_dimensions("720p") == (1280, 720)
    assert video_dimensions("1080p") == (1920, 1080)


@pytest.mark.parametrize(
    ("model", "resolution", "duration", "expected"),
    [
        ("seedance-pro", "1080p", "5", 0.6075),
        ("seedance-lite", "720p", "5", 0.1944),
        ("hailuo-2-standard", "768p", "6", 0.27),
        ("hailuo-2-standard", "512p", "10", 0.17),
        ("hailuo-2-pro", "1080p", "6", 0.48),
        ("unknown", "1080p", "6", 0.0),
    ],
)
def test_estimate_video_cost(model, resolution, duration, expected) -> None:
    assert estimate_video_cost(model, resolution, duration) == pytest.approx(expected)


def test_media_cost_by_type() -> None:
    assert calculate_media_cost(GeneratedMedia(prompt="p", url="u", model="nano-banana")) == 0.04
    assert calculate_media_cost(GeneratedMedia(prompt="p", url="u", model="seedream-v3")) == 0.03
    assert calculate_media_cost(GeneratedMedia(prompt="p", url="u", model="luma-photon-reframe")) == 0.0
    video = GeneratedMedia(prompt="p", url="u", type="video", model="hailuo-2-pro", resolution="1080p", duration="6")
    assert calculate_media_cost(video) == pytest.approx(0.48)
    assert calculate_media_cost(GeneratedMedia(prompt="p", url="u", type="video", model="hailuo-2-pro")) == 0.0


def _item(item_id: str) -> HistoryItem:
    media = [
        GeneratedMedia(prompt="p", url="u1", model="nano-banana"),
        GeneratedMedia(prompt="p", url="u2", model="nano-banana"),
        GeneratedMedia(prompt="p", url="u3", type="video", model="hailuo-2-pro", resolution="1080p", duration="6"),
    ]
    return HistoryItem(
        id=item_id,
        timestamp=1,
        image_id=item_id,
        character_profile=CharacterProfile(name="Mira"),
        image_prompts=[ImagePrompt(scene="s", prompt="p", generated_media=media)],
    )


def test_history_item_cost_sums_media() -> None:
    assert calculate_history_item_cost(_item("1")) == pytest.approx(0.56)


def test_text_to_image_item_has_no_cost() -> None:
    assert calculate_history_item_cost(_item(TEXT_TO_IMAGE_ITEM_ID)) == 0.0
