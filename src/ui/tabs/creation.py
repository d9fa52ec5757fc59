"""Creation page: crop, AI edit, reframe and text-to-image."""
from __future__ import annotations

from typing import Optional

import streamlit as st

from src import gemini_service, studio
from src.blob_cache import BlobCacheError, download_bytes, is_cache_key
from src.fal_service import REFRAME_ASPECT_RATIOS
from src.imaging import (
    ASPECT_RATIOS,
    MIN_CROP_SIZE_PX,
    centered_crop,
    crop_image,
    image_size,
    move_crop,
    resize_crop,
)
from src.models import HistoryItem
from src.ui.state import get_tracker, history, media_source, select_item, show_error

_TEXT_TO_IMAGE_RATIOS = ["1:1", "9:16", "16:9", "4:3", "3:4"]


def _load_bytes(value: str) -> Optional[tuple[bytes, str]]:
    if is_cache_key(value):
        blob = get_tracker().cache.get(value)
        return (blob.data, blob.mime_type) if blob else None
    try:
        return download_bytes(value)
    except Exception as exc:
        show_error("Could not download media", exc)
        return None


def _pick_target() -> Optional[tuple[HistoryItem, int]]:
    items = [h for h in history() if h.image_prompts]
    if not items:
        return None
    target = st.session_state.get("creation_target")
    default_item = 0
    if target:
        default_item = next((n for n, h in enumerate(items) if h.id == target[0]), 0)
    item = st.selectbox(
        "Character",
        items,
        index=default_item,
        format_func=lambda h: h.character_profile.name or h.id,
        key="creation_item",
    )
    default_scene = target[1] if target and target[0] == item.id and target[1] < len(item.image_prompts) else 0
    index = st.selectbox(
        "Scene",
        range(len(item.image_prompts)),
        index=default_scene,
        format_func=lambda i: f"{i + 1}. {item.image_prompts[i].scene}",
        key=f"creation_scene_{item.id}",
    )
    select_item(item)
    return item, index


def _pick_image(item: HistoryItem, index: int) -> Optional[str]:
    prompt = item.image_prompts[index]
    choices = [m.url for m in prompt.generated_media if m.type == "image"]
    if prompt.generated_image_url and prompt.generated_image_url not in choices:
        choices.insert(0, prompt.generated_image_url)
    if not choices:
        st.info("This scene has no images yet. Generate one in the Character Studio.")
        return None
    picked = st.radio(
        "Image",
        range(len(choices)),
        format_func=lambda n: f"Image {n + 1}",
        horizontal=True,
        key=f"creation_image_{item.id}_{index}",
    )
    src = media_source(choices[picked])
    if src:
        st.image(src, width=360)
    return choices[picked]


def _render_crop(item: HistoryItem, index: int, value: str) -> None:
    label = st.selectbox("Aspect ratio", list(ASPECT_RATIOS), key="crop_aspect")
    loaded = _load_bytes(value)
    if loaded is None:
        return
    data, _mime = loaded
    width, height = image_size(data)
    aspect = ASPECT_RATIOS[label]
    crop = centered_crop(width, height, aspect)
    shrink = st.slider("Zoom in (px)", 0, max(1, int(crop.width) - MIN_CROP_SIZE_PX), 0, key="crop_zoom")
    if shrink:
        crop = resize_crop(crop, "br", -shrink, width, height, aspect)
    dx = st.slider("Shift horizontally", -width // 2, width // 2, 0, key="crop_dx")
    dy = st.slider("Shift vertically", -height // 2, height // 2, 0, key="crop_dy")
    crop = move_crop(crop, dx, dy, width, height)
    cropped = crop_image(data, crop)
    st.image(cropped, caption=f"{int(crop.width)}×{int(crop.height)}", width=360)
    if st.button("Save crop", key="crop_save"):
        try:
            key = get_tracker().cache.put(cropped, "image/jpeg")
        except BlobCacheError as exc:
            show_error("Could not save the crop", exc)
            return
        studio.set_main_image(get_tracker(), item, index, key)
        st.toast("Cropped image set as the scene's main image.")


def _render_edit(item: HistoryItem, index: int, value: str) -> None:
    loaded = _load_bytes(value)
    if loaded is None:
        return
    data, mime = loaded
    instruction_key = f"edit_instruction_{item.id}_{index}"
    if st.button("Suggest an edit", key="edit_suggest"):
        with st.spinner("Looking at the image..."):
            try:
                st.session_state[instruction_key] = gemini_service.generate_edit_suggestion(data, mime)
            except Exception as exc:
                show_error("Could not suggest an edit", exc)
    instruction = st.text_area("Edit instruction", key=instruction_key)
    count = st.slider("Images", 1, 4, 1, key="edit_count")
    if st.button("Apply edit", type="primary", key="edit_go"):
        with st.spinner("Editing..."):
            try:
                results = studio.apply_edit(get_tracker(), item, index, instruction, data, count, content_type=mime)
            except Exception as exc:
                show_error("Edit failed", exc)
            else:
                st.toast(f"Added {len(results)} edited image(s).")
                st.rerun()


def _render_reframe(item: HistoryItem, index: int, value: str) -> None:
    ratio = st.selectbox("Target aspect ratio", REFRAME_ASPECT_RATIOS, key="reframe_ratio")
    if st.button("Reframe", type="primary", key="reframe_go"):
        loaded = _load_bytes(value)
        if loaded is None:
            return
        data, mime = loaded
        with st.spinner("Reframing..."):
            try:
                studio.apply_reframe(get_tracker(), item, index, data, ratio, content_type=mime)
            except Exception as exc:
                show_error("Reframe failed", exc)
            else:
                st.toast("Reframed image added.")
                st.rerun()


def _render_text_to_image() -> None:
    prompt = st.text_area("Describe the image", key="t2i_prompt")
    left, right = st.columns(2)
    count = left.slider("Images", 1, 4, 1, key="t2i_count")
    ratio = right.selectbox("Aspect ratio", _TEXT_TO_IMAGE_RATIOS, key="t2i_ratio")
    if st.button("Generate", type="primary", key="t2i_go"):
        with st.spinner("Generating..."):
            try:
                _item, results = studio.generate_text_to_image(get_tracker(), history(), prompt, count, ratio)
            except Exception as exc:
                show_error("Generation failed", exc)
                return
        cols = st.columns(max(1, len(results)))
        for col, media in zip(cols, results):
            with col:
                src = media_source(media.url)
                if src:
                    st.image(src, width="stretch")


def tab_creation() -> None:
    st.subheader("Creation")
    target = _pick_target()
    value = _pick_image(*target) if target else None

    crop_tab, edit_tab, reframe_tab, t2i_tab = st.tabs(["✂️ Crop", "🪄 AI Edit", "🖼️ Reframe", "✨ Text to Image"])
    for tab, render in ((crop_tab, _render_crop), (edit_tab, _render_edit), (reframe_tab, _render_reframe)):
        with tab:
            if target is None:
                st.info("Create a character first.")
            elif value:
                render(*target, value)
    with t2i_tab:
        _render_text_to_image()
