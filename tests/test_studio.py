import json

import pytest

from src import studio
from src.blob_cache import BlobCache, is_cache_key
from src.jobs import JobRegistry
from src.media_jobs import MediaJobTracker
from src.models import TEXT_TO_IMAGE_ITEM_ID, CharacterProfile, GeneratedMedia


class _FakeStore:
    def __init__(self):
        self.saved = []
        self.deleted = []

    def next_version(self, key) -> int:
        return len(self.saved) + 1

    def save(self, item, version=None) -> bool:
        self.saved.append(item.model_copy(deep=True))
        return True

    def delete(self, image_id) -> bool:
        self.deleted.append(image_id)
        return True


class _FakeModels:
    def __init__(self, replies):
        self.replies = list(replies)

    def generate_content(self, model, contents, config=None):
        return type("Resp", (), {"text": self.replies.pop(0)})()


class _FakeGemini:
    def __init__(self, *replies):
        self.models = _FakeModels(replies)


_PROFILE_REPLY = json.dumps(
    {"name": "Mira", "personality": "warm", "backstory": "b", "livingPlace": "Porto, Portugal", "style": "Surfer"}
)
_SCENES_REPLY = json.dumps([{"scene": "🏄 Surf", "prompt": "Mira surfing"}, {"scene": "☕ Cafe", "prompt": "Mira at cafe"}])


@pytest.fixture
def tracker(tmp_path):
    tracker = MediaJobTracker(
        JobRegistry(max_workers=2),
        BlobCache(tmp_path / "media.db"),
        _FakeStore(),
        download=lambda url: (b"remote-bytes", "image/png"),
    )
    yield tracker
    tracker.registry.shutdown()


@pytest.fixture
def item(tracker):
    return studio.create_history_item(
        tracker, b"photo", "image/jpeg", "normal", "ugc", client=_FakeGemini(_PROFILE_REPLY, _SCENES_REPLY)
    )


def test_create_history_item_caches_upload_and_saves(tracker, item) -> None:
    assert item.character_profile.name == "Mira"
    assert [p.scene for p in item.image_prompts] == ["🏄 Surf", "☕ Cafe"]
    assert item.image_id == item.id
    assert studio.source_image(tracker, item).data == b"photo"
    assert studio.source_image(tracker, item, companion=True) is None
    assert tracker.history_store.saved[-1].id == item.id


def test_couple_mode_requires_companion(tracker) -> None:
    with pytest.raises(ValueError):
        studio.create_history_item(tracker, b"photo", "image/jpeg", "couple", client=_FakeGemini())
    with pytest.raises(ValueError):
        studio.create_history_item(tracker, b"", "image/jpeg", client=_FakeGemini())


def test_couple_item_keeps_companion_photo(tracker) -> None:
    item = studio.create_history_item(
        tracker,
        b"photo",
        "image/jpeg",
        "couple",
        companion=b"partner",
        client=_FakeGemini(_PROFILE_REPLY, _SCENES_REPLY),
    )
    assert item.companion_image_id == f"{item.id}-companion"
    assert studio.source_image(tracker, item, companion=True).data == b"partner"


def test_update_profile_requires_name(tracker, item) -> None:
    with pytest.raises(ValueError):
        studio.update_profile(tracker, item, CharacterProfile(name="  "))
    studio.update_profile(tracker, item, CharacterProfile(name="Ana", style="Rebel"))
    assert tracker.history_store.saved[-1].character_profile.name == "Ana"


def test_reimagine_replaces_scene_but_keeps_media(tracker, item) -> None:
    prompt = item.image_prompts[0]
    prompt.generated_media.append(GeneratedMedia(prompt="old", url="https://x/old.png"))
    prompt.generated_image_url = "https://x/old.png"
    prompt.variations = ["v1"]
    reply = json.dumps({"scene": "🎨 Painting", "prompt": "Mira painting"})

    studio.reimagine_scene(tracker, item, 0, "painting", client=_FakeGemini(reply))

    assert (prompt.scene, prompt.prompt) == ("🎨 Painting", "Mira painting")
    assert prompt.variations == []
    assert prompt.generated_image_url is None
    assert len(prompt.generated_media) == 1


def test_favorites_toggle_and_delete(tracker, item) -> None:
    key = tracker.cache.put(b"img", "image/png")
    item.image_prompts[1].generated_media.append(GeneratedMedia(prompt="p", url=key))
    item.image_prompts[1].generated_image_url = key

    assert studio.toggle_favorite(tracker, item, key) is True
    assert [m.url for m in studio.favorites(item)] == [key]
    assert studio.toggle_favorite(tracker, item, key) is False
    with pytest.raises(KeyError):
        studio.toggle_favorite(tracker, item, "missing")

    assert studio.delete_media(tracker, item, 1, key) is True
    assert item.image_prompts[1].generated_media == []
    assert item.image_prompts[1].generated_image_url is None
    assert tracker.cache.get(key) is None
    assert studio.delete_media(tracker, item, 1, key) is False


def test_delete_history_item_removes_row_and_blobs(tracker, item) -> None:
    key = tracker.cache.put(b"img", "image/png")
    item.image_prompts[0].generated_media.append(GeneratedMedia(prompt="p", url=key))

    assert studio.delete_history_item(tracker, item) is True
    assert tracker.history_store.deleted == [item.image_id]
    assert tracker.cache.get(key) is None
    assert tracker.cache.get(item.image_id) is None


def test_reframe_and_edit_append_cached_media(tracker, item) -> None:
    media = studio.apply_reframe(
        tracker, item, 0, b"img", "16:9", reframe_fn=lambda image, ratio, content_type: "https://fal/reframed.png"
    )
    assert media.scene == "AI Reframe"
    assert is_cache_key(media.url)

    edited = studio.apply_edit(
        tracker,
        item,
        0,
        "add sunglasses",
        b"img",
        2,
        edit_fn=lambda prompt, image, n, content_type: [
            GeneratedMedia(prompt=prompt, url=f"https://fal/edit-{i}.png", model="nano-banana") for i in range(n)
        ],
    )
    assert len(edited) == 2
    assert len(item.image_prompts[0].generated_media) == 3


def test_text_to_image_item_is_created_once(tracker) -> None:
    history = []

    def generate(prompt, n, ratio):
        return [GeneratedMedia(prompt=prompt, url=f"https://fal/t2i-{i}.png", model="seedream-v3") for i in range(n)]

    item, results = studio.generate_text_to_image(tracker, history, "a lighthouse", 2, generate_fn=generate)
    again, _ = studio.generate_text_to_image(tracker, history, "a harbour", 1, generate_fn=generate)

    assert item is again
    assert [h.id for h in history] == [TEXT_TO_IMAGE_ITEM_ID]
    assert item.image_prompts[0].prompt == "a harbour"
    assert len(item.image_prompts[0].generated_media) == 3
    assert len(results) == 2
