"""Character-studio workflows used by the pages.

Each function takes the shared :class:`MediaJobTracker` so edits to a
history item happen under the item's lock and are saved through the same
history store the generation jobs use.
"""
from __future__ import annotations

import logging
import random
import time
from typing import Callable, Optional

from src import fal_service, gemini_service
from src.blob_cache import Blob, BlobCacheError, is_cache_key
from src.media_jobs import MediaJobTracker
from src.models import (
    TEXT_TO_IMAGE_ITEM_ID,
    CharacterProfile,
    GeneratedMedia,
    HistoryItem,
    ImagePrompt,
)
from src.settings_store import SettingsStore

_logger = logging.getLogger(__name__)

TEXT_TO_IMAGE_SCENE = "Image Generation"


def new_item_id() -> str:
    return str(int(time.time() * 1000))


def _cache_upload(tracker: MediaJobTracker, key: str, data: bytes, mime_type: str) -> None:
    try:
        tracker.cache.put_with_id(key, data, mime_type)
    except BlobCacheError as exc:
        _logger.warning("Could not cache uploaded image %s: %s", key, exc)


def create_history_item(
    tracker: MediaJobTracker,
    image: bytes,
    mime_type: str,
    mode: str = "normal",
    style: str = "ugc",
    *,
    companion: Optional[bytes] = None,
    companion_mime_type: str = "image/jpeg",
    environment: Optional[str] = None,
    store: Optional[SettingsStore] = None,
    client=None,
    rng: Optional[random.Random] = None,
) -> HistoryItem:
    """Cache the upload, derive a profile and scene prompts, and save the new item."""
    if not image:
        raise ValueError("Upload a photo first.")
    if mode == "couple" and not companion:
        raise ValueError("Couple mode needs a second photo.")

    item_id = new_item_id()
    _cache_upload(tracker, item_id, image, mime_type)
    companion_id = None
    if companion:
        companion_id = f"{item_id}-companion"
        _cache_upload(tracker, companion_id, companion, companion_mime_type)

    profile = gemini_service.generate_character_profile(image, mime_type, store=store, client=client)
    prompts = gemini_service.generate_image_prompts(
        profile, mode, style, environment, store=store, client=client, rng=rng
    )
    item = HistoryItem(
        id=item_id,
        timestamp=int(item_id),
        image_id=item_id,
        companion_image_id=companion_id,
        character_profile=profile,
        image_prompts=prompts,
        generation_mode=mode,
        generation_style=style,
    )
    tracker.persist(item)
    _logger.info("Created character %s (%s, %s) with %d scenes", profile.name, mode, style, len(prompts))
    return item


def source_image(tracker: MediaJobTracker, item: HistoryItem, companion: bool = False) -> Optional[Blob]:
    key = item.companion_image_id if companion else item.image_id
    if not key:
        return None
    try:
        return tracker.cache.get(key)
    except BlobCacheError as exc:
        _logger.warning("Could not read source image %s: %s", key, exc)
        return None


def regenerate_prompts(
    tracker: MediaJobTracker,
    item: HistoryItem,
    *,
    environment: Optional[str] = None,
    store: Optional[SettingsStore] = None,
    client=None,
    rng: Optional[random.Random] = None,
) -> HistoryItem:
    """Replace the scene prompts; media generated so far is discarded with them."""
    prompts = gemini_service.generate_image_prompts(
        item.character_profile,
        item.generation_mode,
        item.generation_style,
        environment,
        store=store,
        client=client,
        rng=rng,
    )
    with tracker.item_lock(item.id):
        item.image_prompts = prompts
    tracker.persist(item)
    return item


def update_profile(tracker: MediaJobTracker, item: HistoryItem, profile: CharacterProfile) -> HistoryItem:
    if not profile.name.strip():
        raise ValueError("The character needs a name.")
    with tracker.item_lock(item.id):
        item.character_profile = profile
    tracker.persist(item)
    return item


def update_prompt_text(tracker: MediaJobTracker, item: HistoryItem, index: int, text: str) -> None:
    with tracker.item_lock(item.id):
        item.image_prompts[index].prompt = text
    tracker.persist(item)


def add_variations(
    tracker: MediaJobTracker,
    item: HistoryItem,
    index: int,
    *,
    store: Optional[SettingsStore] = None,
    client=None,
) -> list[str]:
    variations = gemini_service.generate_prompt_variations(
        item.image_prompts[index].prompt, store=store, client=client
    )
    with tracker.item_lock(item.id):
        item.image_prompts[index].variations = variations
    tracker.persist(item)
    return variations


def reimagine_scene(
    tracker: MediaJobTracker,
    item: HistoryItem,
    index: int,
    new_activity: str,
    *,
    consistent_env: Optional[str] = None,
    store: Optional[SettingsStore] = None,
    client=None,
) -> ImagePrompt:
    """Rewrite one scene for a new activity.  Media already generated for it is kept."""
    result = gemini_service.reimagine_scene_prompt(
        item.character_profile,
        new_activity,
        item.generation_style,
        item.generation_mode,
        consistent_env,
        store=store,
        client=client,
    )
    with tracker.item_lock(item.id):
        prompt = item.image_prompts[index]
        prompt.scene = result.scene
        prompt.prompt = result.prompt
        prompt.variations = []
        prompt.generated_image_url = None
        prompt.generation_error = None
    tracker.persist(item)
    return prompt


def set_main_image(tracker: MediaJobTracker, item: HistoryItem, index: int, url: str) -> None:
    with tracker.item_lock(item.id):
        item.image_prompts[index].generated_image_url = url
        item.image_prompts[index].generation_error = None
    tracker.persist(item)


def toggle_favorite(tracker: MediaJobTracker, item: HistoryItem, url: str) -> bool:
    """Flip the favorite flag of the media stored at ``url``; returns the new value."""
    new_value = None
    with tracker.item_lock(item.id):
        for prompt in item.image_prompts:
            for media in prompt.generated_media:
                if media.url == url:
                    if new_value is None:
                        new_value = not media.is_favorite
                    media.is_favorite = new_value
    if new_value is None:
        raise KeyError(f"No media with URL {url}")
    tracker.persist(item)
    return new_value


def favorites(item: HistoryItem) -> list[GeneratedMedia]:
    return [m for p in item.image_prompts for m in p.generated_media if m.is_favorite]


def _forget_blob(tracker: MediaJobTracker, value: Optional[str]) -> None:
    if not is_cache_key(value):
        return
    try:
        tracker.cache.delete(value)
    except BlobCacheError as exc:
        _logger.warning("Could not delete cached blob %s: %s", value, exc)


def delete_media(tracker: MediaJobTracker, item: HistoryItem, index: int, url: str) -> bool:
    with tracker.item_lock(item.id):
        prompt = item.image_prompts[index]
        kept = [m for m in prompt.generated_media if m.url != url]
        removed = len(kept) != len(prompt.generated_media)
        prompt.generated_media = kept
        if prompt.generated_image_url == url:
            prompt.generated_image_url = None
    if not removed:
        return False
    _forget_blob(tracker, url)
    tracker.persist(item)
    return True


def delete_history_item(tracker: MediaJobTracker, item: HistoryItem) -> bool:
    """Remove the remote row and every cached blob the item references."""
    ok = True
    if tracker.history_store is not None:
        ok = tracker.history_store.delete(item.image_id)
    with tracker.item_lock(item.id):
        keys = [item.image_id, item.companion_image_id]
        for prompt in item.image_prompts:
            keys.append(prompt.generated_image_url)
            keys.extend(m.url for m in prompt.generated_media)
    for key in keys:
        _forget_blob(tracker, key)
    return ok


# ---------------------------------------------------------------------------
# Creation page tools
# ---------------------------------------------------------------------------

def apply_edit(
    tracker: MediaJobTracker,
    item: HistoryItem,
    index: int,
    instruction: str,
    image: bytes,
    num_images: int = 1,
    *,
    content_type: str = "image/jpeg",
    edit_fn: Callable[..., list[GeneratedMedia]] = fal_service.edit_image,
) -> list[GeneratedMedia]:
    results = edit_fn(instruction, image, num_images, content_type=content_type)
    for media in results:
        tracker.append_media(item, index, media)
    return results


def apply_reframe(
    tracker: MediaJobTracker,
    item: HistoryItem,
    index: int,
    image: bytes,
    aspect_ratio: str,
    *,
    content_type: str = "image/jpeg",
    reframe_fn: Callable[..., str] = fal_service.reframe_image,
) -> GeneratedMedia:
    url = reframe_fn(image, aspect_ratio, content_type=content_type)
    media = GeneratedMedia(
        prompt=f"Reframe to {aspect_ratio}",
        url=url,
        type="image",
        model="luma-photon-reframe",
        scene="AI Reframe",
    )
    tracker.append_media(item, index, media)
    return media


# ---------------------------------------------------------------------------
# Text-to-image generations
# ---------------------------------------------------------------------------

def new_text_to_image_item() -> HistoryItem:
    return HistoryItem(
        id=TEXT_TO_IMAGE_ITEM_ID,
        timestamp=int(time.time() * 1000),
        image_id=TEXT_TO_IMAGE_ITEM_ID,
        character_profile=CharacterProfile(name="Text to Image"),
        image_prompts=[ImagePrompt(scene=TEXT_TO_IMAGE_SCENE, prompt="")],
    )


def find_text_to_image_item(history: list[HistoryItem]) -> Optional[HistoryItem]:
    return next((h for h in history if h.id == TEXT_TO_IMAGE_ITEM_ID), None)


def generate_text_to_image(
    tracker: MediaJobTracker,
    history: list[HistoryItem],
    prompt: str,
    num_images: int = 1,
    aspect_ratio: str = "1:1",
    *,
    generate_fn: Callable[..., list[GeneratedMedia]] = fal_service.generate_images_from_text,
) -> tuple[HistoryItem, list[GeneratedMedia]]:
    """Generate images from ``prompt`` and file them under the shared text-to-image item.

    ``history`` gains the item when it does not exist yet.
    """
    results = generate_fn(prompt, num_images, aspect_ratio)
    item = find_text_to_image_item(history)
    if item is None:
        item = new_text_to_image_item()
        history.insert(0, item)
    with tracker.item_lock(item.id):
        item.timestamp = int(time.time() * 1000)
        item.image_prompts[0].prompt = prompt
    for media in results:
        tracker.append_media(item, 0, media)
    return item, results
