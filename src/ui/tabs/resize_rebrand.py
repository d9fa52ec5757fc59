import streamlit as st

from src.creatomate import RESIZE_TEMPLATES, RenderOptions
from src.models import UploadedVideo
from src.supabase_storage import upload_video
from src.ui.tabs.rendering import pick_brands, pick_templates, render_status, start_render

_KEY = "resize"


def _render_upload() -> None:
    upload = st.file_uploader("Video with voiceover", type=["mp4", "mov", "webm"], key="resize_upload")
    if upload is None:
        return
    current = st.session_state.get("uploaded_video")
    if current is not None and current.name == upload.name:
        return
    with st.spinner("Uploading video..."):
        url = upload_video(upload.getvalue(), upload.name, upload.type or "video/mp4")
    if not url:
        st.error("Upload failed. Check the Supabase configuration.")
        return
    st.session_state.uploaded_video = UploadedVideo(url=url, path=url.rsplit("/", 1)[-1], name=upload.name)
    st.toast("Video uploaded.")


def tab_resize_rebrand() -> None:
    st.subheader("Resize & Rebrand")
    st.caption("Upload a finished video; render it in other sizes and with brand packshots.")

    _render_upload()
    video: UploadedVideo = st.session_state.get("uploaded_video")
    if video is not None:
        st.video(video.url)

    templates = pick_templates(RESIZE_TEMPLATES, _KEY)
    brand_ids = pick_brands(_KEY)
    subtitles = st.checkbox("Burn in subtitles", value=True, key="resize_subtitles")

    if st.button("Render variants", type="primary", disabled=video is None or not templates):
        try:
            start_render(
                _KEY,
                templates,
                brand_ids,
                video.url,
                lambda _variant: RenderOptions(enable_subtitles=subtitles),
            )
        except Exception as exc:
            st.error(f"Could not start rendering: {exc}")

    render_status(_KEY)
