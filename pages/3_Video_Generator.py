import streamlit as st

from src.ui.state import init_state, require_passcode

st.set_page_config(page_title="Video Generator · Conjuring Studio", page_icon="🎬", layout="wide")
require_passcode()
init_state()

st.title("🎬 Video Generator")
st.caption("Render many size and brand variants of one video with Creatomate.")

resize_col, chunked_col = st.columns(2)
with resize_col:
    with st.container(border=True):
        st.markdown("### 📐 Resize & Rebrand")
        st.write("No copywriting. Upload a video that already has its voiceover.")
        st.page_link("pages/4_Resize_and_Rebrand.py", label="Start", icon="📐")
with chunked_col:
    with st.container(border=True):
        st.markdown("### 🎙️ Chunked Audio")
        st.write("Start from a sheet row or pasted lines, voice each chunk and pair it with a clip.")
        st.page_link("pages/5_Chunked_Audio.py", label="Start", icon="🎙️")
