import streamlit as st

from src.ui.state import init_state, require_passcode
from src.ui.tabs.history import render_history_sidebar
from src.ui.tabs.studio_settings import tab_studio_settings

st.set_page_config(page_title="Settings · Conjuring Studio", page_icon="⚙️", layout="wide")
require_passcode()
init_state()
render_history_sidebar()
tab_studio_settings()
