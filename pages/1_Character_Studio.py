import streamlit as st

from src.ui.state import init_state, require_passcode
from src.ui.tabs.history import render_history_sidebar
from src.ui.tabs.character_studio import tab_character_studio

st.set_page_config(page_title="Character Studio · Conjuring Studio", page_icon="🧙", layout="wide")
require_passcode()
init_state()
render_history_sidebar()
tab_character_studio()
