"""Character Studio: upload a photo, conjure a character and its scenes.

Per-scene image and video renders run as background jobs; the job panels
re-render every couple of seconds while anything is pending.
"""
from __future__ import annotations

import streamlit as st

from src import gemini_service, studio
from src.activities import ACTIVITY_CATEGORIES, get_activities
from src.blob_cache import is_cache_key
from src.costs import VIDEO_MODEL_DETAILS, calculate_history_item_cost, estimate_video_cost
from src.jobs import JobState
from src.media_jobs import VIDEO_JOB
from src.models import (
    GENERATION_MODES,
    GENERATION_STYLES,
    CharacterProfile,
    HistoryItem,
    VideoGenerationParams,
)
from src.ui.state import (
    add_history_item,
    get_settings_store,
    get_tracker,
    media_source,
    selected_item,
    show_error,
)

_MODE_LABELS = {
    "normal": "Normal",
    "selfie": "Selfie",
    "romantic": "Romantic",
    "date": "Date",
    "couple": "Couple",
}


# ---------------------------------------------------------------------------
# Upload / create
# ---------------------------------------------------------------------------

def _render_uploader() -> None:
    st.markdown("#### New character")
    upload = st.file_uploader("Character photo", type=["png", "jpg", "jpeg", "webp"], key="studio_upload")

    left, right = st.columns(2)
    with left:
        mode = st.radio(
            "Generation mode",
            GENERATION_MODES,
            format_func=_MODE_LABELS.get,
            horizontal=True,
            key="generation_mode",
        )
    with right:
        style = st.radio("Style", GENERATION_STYLES, format_func=str.upper, horizontal=True, key="generation_style")

    companion = None
    if mode == "couple":
        companion = st.file_uploader("Partner photo", type=["png", "jpg", "jpeg", "webp"], key="studio_companion")
    environment = None
    if mode == "date":
        environment = st.text_input(
            "Date environment",
            key="date_environment",
            placeholder="e.g. a cosy Italian trattoria with warm candle light",
        )

    if st.button("✨ Conjure character", type="primary", disabled=upload is None, width="stretch"):
        with st.spinner("Creating character profile and scenes..."):
            try:
                item = studio.create_history_item(
                    get_tracker(),
                    upload.getvalue(),
                    upload.type or "image/jpeg",
                    mode,
                    style,
                    companion=companion.getvalue() if companion else None,
                    companion_mime_type=(companion.type if companion else None) or "image/jpeg",
                    environment=environment or None,
                    store=get_settings_store(),
                )
            except Exception as exc:
                show_error("Could not create character", exc)
                return
        add_history_item(item)
        st.toast(f"{item.character_profile.name} is ready.")
        st.rerun()


# ---------------------------------------------------------------------------
# Profile
# ---------------------------------------------------------------------------

def _render_profile(item: HistoryItem) -> None:
    profile = item.character_profile
    image_col, profile_col = st.columns([1, 2])
    with image_col:
        src = media_source(item.image_id)
        if src:
            st.image(src, width="stretch")
        else:
            st.caption("Source photo is not cached on this machine.")
    with profile_col:
        st.markdown(f"### {profile.name}")
        st.caption(f"{profile.living_place} · {profile.style}")
        st.write(profile.personality)
        st.write(profile.backstory)
        st.caption(f"Spend so far: ${calculate_history_item_cost(item):.2f}")

        with st.expander("Edit profile"):
            with st.form(f"profile_form_{item.id}"):
                name = st.text_input("Name", value=profile.name)
                personality = st.text_area("Personality", value=profile.personality)
                backstory = st.text_area("Backstory", value=profile.backstory, max_chars=300)
                living_place = st.text_input("Living place", value=profile.living_place)
                style = st.text_input("Style", value=profile.style)
                if st.form_submit_button("Save profile"):
                    try:
                        studio.update_profile(
                            get_tracker(),
                            item,
                            CharacterProfile(
                                name=name,
                                personality=personality,
                                backstory=backstory,
                                living_place=living_place,
                                style=style,
                            ),
                        )
                    except ValueError as exc:
                        st.error(str(exc))
                    else:
                        st.toast("Profile saved.")
                        st.rerun()


# ---------------------------------------------------------------------------
# Scene cards
# ---------------------------------------------------------------------------

def _source_bytes(item: HistoryItem):
    blob = studio.source_image(get_tracker(), item)
    if blob is None:
        st.error("The source photo is not in the local cache; re-upload the character to render images.")
        return None, None
    companion = studio.source_image(get_tracker(), item, companion=True)
    return blob, companion


@st.fragment(run_every=2)
def _render_jobs(item: HistoryItem, index: int) -> None:
    tracker = get_tracker()
    jobs = tracker.jobs_for(item.id, index)
    for job in jobs:
        if job.state is JobState.PENDING:
            last = job.progress[-1] if job.progress else "Queued"
            cols = st.columns([4, 1])
            cols[0].info(f"{'🎬' if job.kind == VIDEO_JOB else '🖼️'} {job.label[:60]}… {last}")
            if cols[1].button("Cancel", key=f"cancel_{job.id}"):
                tracker.cancel(job.id)
                st.rerun()
        else:
            cols = st.columns([4, 1])
            cols[0].error(f"{job.label[:60]}: {job.error}")
            if cols[1].button("Dismiss", key=f"dismiss_{job.id}"):
                tracker.dismiss(job.id)
                st.rerun()
    prompt = item.image_prompts[index]
    if prompt.generated_media and not jobs:
        st.caption(f"{len(prompt.generated_media)} media generated")


def _render_media(item: HistoryItem, index: int) -> None:
    prompt = item.image_prompts[index]
    if not prompt.generated_media:
        return
    cols = st.columns(3)
    for n, media in enumerate(prompt.generated_media):
        with cols[n % 3]:
            src = media_source(media.url)
            if src is None:
                st.caption("Media not available on this machine.")
            elif media.type == "video":
                st.video(src)
            else:
                st.image(src, width="stretch")
            star = "★" if media.is_favorite else "☆"
            a, b, c = st.columns(3)
            if a.button(star, key=f"fav_{item.id}_{index}_{n}"):
                studio.toggle_favorite(get_tracker(), item, media.url)
                st.rerun()
            if media.type == "image" and b.button("Main", key=f"main_{item.id}_{index}_{n}"):
                studio.set_main_image(get_tracker(), item, index, media.url)
                st.rerun()
            if c.button("🗑", key=f"del_{item.id}_{index}_{n}"):
                studio.delete_media(get_tracker(), item, index, media.url)
                st.rerun()


def _render_video_controls(item: HistoryItem, index: int) -> None:
    prompt = item.image_prompts[index]
    source_url = prompt.generated_image_url
    if not source_url:
        st.caption("Generate or pick a main image first.")
        return

    motion_key = f"motion_{item.id}_{index}"
    if st.button("Suggest motion", key=f"suggest_motion_{item.id}_{index}"):
        with st.spinner("Writing motion prompt..."):
            try:
                st.session_state[motion_key] = gemini_service.generate_motion_prompt(
                    prompt.prompt, store=get_settings_store()
                )
            except Exception as exc:
                show_error("Could not write motion prompt", exc)
    motion = st.text_area("Motion prompt", key=motion_key)

    model = st.selectbox(
        "Model",
        list(VIDEO_MODEL_DETAILS),
        format_func=lambda m: VIDEO_MODEL_DETAILS[m].name,
        key=f"video_model_{item.id}_{index}",
    )
    detail = VIDEO_MODEL_DETAILS[model]
    st.caption(detail.description)
    res_col, dur_col = st.columns(2)
    resolution = res_col.selectbox("Resolution", detail.resolutions, key=f"video_res_{item.id}_{index}_{model}")
    duration = dur_col.selectbox("Duration (s)", detail.durations, key=f"video_dur_{item.id}_{index}_{model}")
    st.caption(f"Estimated cost: ${estimate_video_cost(model, resolution, duration):.2f}")

    if st.button("🎬 Generate video", key=f"gen_video_{item.id}_{index}", type="primary"):
        try:
            blob = get_tracker().cache.get(source_url) if is_cache_key(source_url) else None
            get_tracker().start_video_job(
                item,
                index,
                VideoGenerationParams(prompt=motion, model=model, resolution=resolution, duration=duration),
                source_url,
                source_image=blob.data if blob else None,
            )
        except Exception as exc:
            show_error("Could not start video", exc)
        else:
            st.toast("Video generation started.")


def _render_reimagine(item: HistoryItem, index: int) -> None:
    activities = get_activities(get_settings_store())
    category = st.selectbox("Category", ACTIVITY_CATEGORIES, key=f"re_cat_{item.id}_{index}")
    options = ["(custom)"] + activities.get(category, [])
    picked = st.selectbox("Activity", options, key=f"re_act_{item.id}_{index}")
    custom = st.text_input("Or describe a new activity", key=f"re_custom_{item.id}_{index}")
    new_activity = custom if picked == "(custom)" else picked
    if st.button("Reimagine scene", key=f"re_go_{item.id}_{index}"):
        with st.spinner("Reimagining..."):
            try:
                studio.reimagine_scene(
                    get_tracker(),
                    item,
                    index,
                    new_activity,
                    consistent_env=st.session_state.get("date_environment") or None,
                    store=get_settings_store(),
                )
            except Exception as exc:
                show_error("Could not reimagine scene", exc)
            else:
                st.rerun()


def _render_prompt_card(item: HistoryItem, index: int) -> None:
    prompt = item.image_prompts[index]
    with st.container(border=True):
        st.markdown(f"**{index + 1}. {prompt.scene}**")
        main = media_source(prompt.generated_image_url) if prompt.generated_image_url else None
        if main:
            st.image(main, width=320)
        if prompt.generation_error:
            st.error(prompt.generation_error)

        text = st.text_area("Prompt", value=prompt.prompt, key=f"prompt_{item.id}_{index}", height=160)
        if text != prompt.prompt:
            studio.update_prompt_text(get_tracker(), item, index, text)

        chosen = [text]
        if prompt.variations:
            chosen += [
                v for n, v in enumerate(prompt.variations)
                if st.checkbox(v, key=f"var_{item.id}_{index}_{n}")
            ]

        a, b, c = st.columns(3)
        if a.button("🖼️ Generate image", key=f"gen_img_{item.id}_{index}", width="stretch"):
            blob, companion = _source_bytes(item)
            if blob is not None:
                get_tracker().start_image_jobs(
                    item,
                    index,
                    chosen,
                    blob.data,
                    companion=companion.data if companion else None,
                    content_type=blob.mime_type,
                )
                st.toast(f"Started {len(chosen)} image job(s).")
        if b.button("Variations", key=f"vars_{item.id}_{index}", width="stretch"):
            with st.spinner("Writing variations..."):
                try:
                    studio.add_variations(get_tracker(), item, index, store=get_settings_store())
                except Exception as exc:
                    show_error("Could not generate variations", exc)
                else:
                    st.rerun()
        if c.button("Open in Creation", key=f"create_{item.id}_{index}", width="stretch"):
            st.session_state.creation_target = (item.id, index)
            st.switch_page("pages/2_Creation.py")

        with st.expander("Reimagine"):
            _render_reimagine(item, index)
        with st.expander("Video"):
            _render_video_controls(item, index)

        _render_jobs(item, index)
        _render_media(item, index)


def _render_generate_all(item: HistoryItem) -> None:
    tracker = get_tracker()
    pending = tracker.pending_scene_indices(item.id)
    labels = {i: f"{i + 1}. {p.scene}" for i, p in enumerate(item.image_prompts)}
    with st.expander("Generate all scenes"):
        picked = st.multiselect(
            "Scenes",
            [i for i in labels if i not in pending],
            default=[i for i, p in enumerate(item.image_prompts) if not p.generated_image_url and i not in pending],
            format_func=labels.get,
            key=f"gen_all_{item.id}",
        )
        if pending:
            st.caption(f"{len(pending)} scene(s) rendering.")
        if st.button("Generate selected", key=f"gen_all_go_{item.id}", disabled=not picked):
            blob, companion = _source_bytes(item)
            if blob is not None:
                tracker.generate_scene_images(
                    item,
                    picked,
                    blob.data,
                    companion=companion.data if companion else None,
                    content_type=blob.mime_type,
                )
                st.toast(f"Rendering {len(picked)} scene(s).")


def tab_character_studio() -> None:
    st.subheader("Character Studio")
    _render_uploader()

    item = selected_item()
    if item is None:
        st.info("Conjure a character or open one from the history sidebar.")
        return

    st.divider()
    _render_profile(item)

    top_left, top_right = st.columns(2)
    with top_left:
        if st.button("Regenerate scenes", width="stretch"):
            with st.spinner("Writing new scenes..."):
                try:
                    studio.regenerate_prompts(
                        get_tracker(),
                        item,
                        environment=st.session_state.get("date_environment") or None,
                        store=get_settings_store(),
                    )
                except Exception as exc:
                    show_error("Could not regenerate scenes", exc)
                else:
                    st.rerun()
    with top_right:
        favs = studio.favorites(item)
        st.caption(f"{len(favs)} favorite(s) · {_MODE_LABELS[item.generation_mode]} · {item.generation_style.upper()}")

    _render_generate_all(item)
    for index in range(len(item.image_prompts)):
        _render_prompt_card(item, index)

    get_tracker().registry.prune()
