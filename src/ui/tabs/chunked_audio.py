"""Chunked Audio: text lines -> voiced chunks with clips -> branded Creatomate renders."""
from __future__ import annotations

import streamlit as st

from src import chunked_audio
from src.brand import apply_custom_replacements
from src.creatomate import AVAILABLE_MUSIC, CHUNKED_TEMPLATES, RenderOptions, Variant
from src.models import AudioChunk, UploadedVideo
from src.sheets import SheetsClient, text_block_lines
from src.supabase_storage import VIDEOS_BUCKET, public_url, upload_video
from src.timeline import total_duration
from src.tts import AVAILABLE_VOICES, DEFAULT_VOICE_ID
from src.ui.state import get_config, show_error
from src.ui.tabs.rendering import pick_brands, pick_templates, render_status, start_render

_KEY = "chunked"


def _chunks() -> list[AudioChunk]:
    return st.session_state.get("chunks") or []


def _set_chunks(chunks: list[AudioChunk]) -> None:
    st.session_state.chunks = chunks


def _parse_replacements(raw: str) -> dict[str, str]:
    mapping = {}
    for line in raw.splitlines():
        if "=>" in line:
            find, replace = line.split("=>", 1)
            if find.strip():
                mapping[find.strip()] = replace.strip()
    return mapping


def _render_source() -> None:
    config = get_config()
    sheet_tab, paste_tab = st.tabs(["Google Sheet", "Paste text"])
    with sheet_tab:
        spreadsheet_id = st.text_input("Spreadsheet ID", value=config.spreadsheet_id, key="sheet_id")
        row_number = st.number_input("Row", min_value=2, value=2, step=1, key="sheet_row")
        if st.button("Load row", key="sheet_load"):
            with st.spinner("Reading sheet..."):
                try:
                    block = SheetsClient.from_config(config).get_text_block(spreadsheet_id, int(row_number))
                except Exception as exc:
                    show_error("Could not read the sheet", exc)
                    return
            if block is None:
                st.warning(f"Row {row_number} is empty.")
                return
            st.session_state.text_block = block
            st.session_state.chunk_source_text = "\n".join(text_block_lines(block))
    with paste_tab:
        st.text_area("One chunk per line", key="chunk_source_text", height=200)

    replacements = st.text_area(
        "Replacements (one `find => replace` per line)", key="chunk_replacements", height=80
    )
    if st.button("Build chunks", type="primary"):
        mapping = _parse_replacements(replacements)
        lines = [
            apply_custom_replacements(line, mapping)
            for line in (st.session_state.get("chunk_source_text") or "").splitlines()
        ]
        chunks = chunked_audio.chunks_from_texts(lines, config.max_chunks, config.min_chunk_duration)
        if not chunks:
            st.warning("Nothing to build; add some text first.")
            return
        _set_chunks(chunks)
        st.rerun()


def _render_chunk(chunk: AudioChunk, voice_id: str) -> None:
    config = get_config()
    with st.container(border=True):
        head, timing = st.columns([3, 1])
        head.markdown(f"**Chunk {chunk.id}**")
        if chunk.start_time is not None:
            timing.caption(f"@{chunk.start_time:.2f}s · {chunk.effective_duration or 0:.2f}s")

        text = st.text_area("Text", value=chunk.text, key=f"chunk_text_{chunk.id}", height=80)
        if text != chunk.text:
            _set_chunks(chunked_audio.update_text(_chunks(), chunk.id, text, config.min_chunk_duration))

        if chunk.audio_url:
            st.audio(chunk.audio_url)

        clip = st.file_uploader("Clip", type=["mp4", "mov", "webm"], key=f"chunk_clip_{chunk.id}")
        if clip is not None and (chunk.video is None or chunk.video.name != clip.name):
            with st.spinner("Uploading clip..."):
                url = upload_video(clip.getvalue(), clip.name, clip.type or "video/mp4")
            if url:
                video = UploadedVideo(url=url, path=url.rsplit("/", 1)[-1], name=clip.name)
                _set_chunks(chunked_audio.attach_video(_chunks(), chunk.id, video))
            else:
                st.error("Clip upload failed. Check the Supabase configuration.")
        elif chunk.video is not None:
            st.caption(f"🎞 {chunk.video.name}")

        gen_col, del_col = st.columns(2)
        if gen_col.button("Generate audio", key=f"chunk_gen_{chunk.id}", width="stretch"):
            with st.spinner("Synthesizing..."):
                try:
                    _set_chunks(
                        chunked_audio.generate_chunk_audio(
                            _chunks(), chunk.id, voice_id, minimum=config.min_chunk_duration
                        )
                    )
                except Exception as exc:
                    show_error(f"Chunk {chunk.id}", exc)
                else:
                    st.rerun()
        if del_col.button("Remove", key=f"chunk_del_{chunk.id}", width="stretch"):
            try:
                _set_chunks(chunked_audio.remove_chunk(_chunks(), chunk.id, config.min_chunk_duration))
            except ValueError as exc:
                st.warning(str(exc))
            else:
                st.rerun()


def _render_chunks() -> str:
    config = get_config()
    voice_id = st.selectbox(
        "Voice",
        list(AVAILABLE_VOICES),
        index=list(AVAILABLE_VOICES).index(st.session_state.get("voice_id") or DEFAULT_VOICE_ID),
        format_func=AVAILABLE_VOICES.get,
    )
    st.session_state.voice_id = voice_id

    for chunk in list(_chunks()):
        _render_chunk(chunk, voice_id)

    add_col, all_col = st.columns(2)
    if add_col.button("Add chunk", width="stretch", disabled=len(_chunks()) >= config.max_chunks):
        _set_chunks(
            chunked_audio.add_chunk(_chunks(), max_chunks=config.max_chunks, minimum=config.min_chunk_duration)
        )
        st.rerun()
    if all_col.button("Generate all audio", type="primary", width="stretch"):
        errors = []
        with st.spinner("Synthesizing chunks one at a time..."):
            _set_chunks(
                chunked_audio.generate_all_audio(
                    _chunks(),
                    voice_id,
                    minimum=config.min_chunk_duration,
                    on_chunk=lambda c, err: errors.append(f"Chunk {c.id}: {err}") if err else None,
                )
            )
        for message in errors:
            st.error(message)
        if not errors:
            st.rerun()

    st.caption(f"Total voiceover: {total_duration(_chunks(), config.min_chunk_duration):.2f}s")
    return voice_id


def _render_output(voice_id: str) -> None:
    config = get_config()
    st.markdown("#### Render")
    templates = pick_templates(CHUNKED_TEMPLATES, _KEY)
    brand_ids = pick_brands(_KEY)

    text_mode = any(t.text_mode for t in templates)
    subtitle_visibility = audio_volume = None
    music_url = None
    if text_mode:
        subtitle_visibility = st.slider("Subtitle visibility (%)", 0, 100, 100, key="chunk_subtitle_vis")
        audio_volume = st.slider("Voice volume (%)", 0, 100, 100, key="chunk_volume")
        tracks = {m.id: m for m in AVAILABLE_MUSIC}
        music_id = st.selectbox(
            "Music", ["", *tracks], format_func=lambda i: tracks[i].name if i else "None", key="chunk_music"
        )
        if music_id:
            music_url = public_url(VIDEOS_BUCKET, tracks[music_id].path)

    chunks = chunked_audio.ready_chunks(_chunks(), config.min_chunk_duration)
    patterns = config.brand_patterns
    minimum = config.min_chunk_duration

    def options_for(variant: Variant) -> RenderOptions:
        variant_chunks = chunks
        brand_name = None
        if variant.brand is not None:
            brand_name = variant.brand.name
            variant_chunks = chunked_audio.rebrand_chunks(
                chunks, brand_name, voice_id, patterns=patterns, minimum=minimum
            )
        return RenderOptions(
            enable_subtitles=True,
            chunks=variant_chunks,
            text_blocks=[c.text for c in chunks],
            subtitle_visibility=subtitle_visibility,
            audio_volume=audio_volume,
            music_url=music_url,
            brand_name=brand_name,
            brand_patterns=patterns,
        )

    missing_audio = [c.id for c in chunks if not c.audio_url]
    if missing_audio and not text_mode:
        st.caption(f"Chunks without audio: {', '.join(map(str, missing_audio))}")
    if st.button("Render variants", type="primary", disabled=not chunks or not templates, key="chunk_render"):
        try:
            start_render(_KEY, templates, brand_ids, "", options_for)
        except Exception as exc:
            show_error("Could not start rendering", exc)

    render_status(_KEY)


def tab_chunked_audio() -> None:
    st.subheader("Chunked Audio")
    st.caption("Build a voiced video chunk by chunk, then render it in every size and brand.")
    _render_source()
    if not _chunks():
        return
    st.divider()
    voice_id = _render_chunks()
    st.divider()
    _render_output(voice_id)
