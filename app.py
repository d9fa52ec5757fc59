import logging

import streamlit as st

from src.ui.state import history, init_state, require_passcode
from src.ui.tabs.history import render_history_sidebar

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")


def main() -> None:
    st.set_page_config(page_title="Conjuring Studio", layout="wide")
    require_passcode()
    init_state()
    render_history_sidebar()

    st.title("Conjuring Studio")
    st.caption("Characters, scenes and marketing videos from a single photo or a single sheet row.")

    studio_col, video_col = st.columns(2)
    with studio_col:
        with st.container(border=True):
            st.markdown("### 🧙 Character Studio")
            st.write("Upload a photo, get a character with a backstory and a set of scenes, then render them.")
            st.page_link("pages/1_Character_Studio.py", label="Open Character Studio", icon="✨")
            st.page_link("pages/2_Creation.py", label="Creation tools", icon="🪄")
    with video_col:
        with st.container(border=True):
            st.markdown("### 🎬 Video Generator")
            st.write("Resize and rebrand a finished video, or build one from voiced text chunks.")
            st.page_link("pages/3_Video_Generator.py", label="Open Video Generator", icon="🎬")

    items = history()
    if items:
        st.caption(f"{len(items)} saved character(s). Open one from the sidebar.")


if __name__ == "__main__":
    main()
