import streamlit as st

from src.ui.state import init_state, require_passcode
from src.ui.tabs.history import render_history_sidebar
from src.ui.tabs.chunked_audio import tab_chunked_audio

st.set_page_config(page_title="Chunked Audio · Conjuring Studio", page_icon="🎙️", layout="wide")
require_passcode()
init_state()
render_history_sidebar()
tab_chunked_audio()
