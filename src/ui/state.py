import logging
from typing import Optional

import streamlit as st

from src.blob_cache import BlobCache
from src.config import StudioConfig, load_config
from src.jobs import JobRegistry
from src.media_jobs import MediaJobTracker
from src.models import HistoryItem
from src.settings_store import SettingsStore
from src.supabase_storage import HistoryStore

_logger = logging.getLogger(__name__)


def require_passcode() -> None:
    expected = load_config().app_passcode
    if not expected:
        return

    st.session_state.setdefault("auth_ok", False)
    if st.session_state.auth_ok:
        return

    st.title("🔒 Conjuring Studio")
    code = st.text_input("Passcode", type="password")
    if st.button("Enter", type="primary"):
        st.session_state.auth_ok = code == expected
        if not st.session_state.auth_ok:
            st.error("Incorrect passcode.")
        st.rerun()
    st.stop()


# ----------------------------
# Shared services (one per server process)
# ----------------------------

def get_config() -> StudioConfig:
    return load_config()


@st.cache_resource
def get_settings_store() -> SettingsStore:
    return SettingsStore(get_config().settings_path)


@st.cache_resource
def get_blob_cache() -> BlobCache:
    return BlobCache(get_config().blob_cache_path)


@st.cache_resource
def get_registry() -> JobRegistry:
    return JobRegistry(max_workers=get_config().max_job_workers)


@st.cache_resource
def get_history_store() -> HistoryStore:
    user_id = get_settings_store().get_or_create_user_id()
    _logger.info("History store for %s", user_id)
    return HistoryStore(user_id)


@st.cache_resource
def get_tracker() -> MediaJobTracker:
    return MediaJobTracker(get_registry(), get_blob_cache(), get_history_store())


# ----------------------------
# Session state
# ----------------------------

def init_state() -> None:
    st.session_state.setdefault("history", None)
    st.session_state.setdefault("selected_item_id", "")
    st.session_state.setdefault("generation_mode", "normal")
    st.session_state.setdefault("generation_style", "ugc")
    st.session_state.setdefault("date_environment", "")
    st.session_state.setdefault("chunks", [])
    st.session_state.setdefault("voice_id", "")
    st.session_state.setdefault("text_block", None)
    st.session_state.setdefault("uploaded_video", None)
    st.session_state.setdefault("variants", [])
    if st.session_state.history is None:
        st.session_state.history = get_history_store().load()


def history() -> list[HistoryItem]:
    if st.session_state.get("history") is None:
        st.session_state.history = get_history_store().load()
    return st.session_state.history


def reload_history() -> None:
    st.session_state.history = get_history_store().load()


def selected_item() -> Optional[HistoryItem]:
    item_id = st.session_state.get("selected_item_id", "")
    return next((h for h in history() if h.id == item_id), None)


def select_item(item: Optional[HistoryItem]) -> None:
    st.session_state.selected_item_id = item.id if item else ""


def add_history_item(item: HistoryItem) -> None:
    items = [h for h in history() if h.id != item.id]
    items.insert(0, item)
    st.session_state.history = items
    select_item(item)


def remove_history_item(item_id: str) -> None:
    st.session_state.history = [h for h in history() if h.id != item_id]
    if st.session_state.get("selected_item_id") == item_id:
        st.session_state.selected_item_id = ""


def media_source(value: Optional[str]) -> Optional[str]:
    """Displayable source for a stored media reference."""
    return get_blob_cache().display_source(value)


def show_error(prefix: str, exc: Exception) -> None:
    _logger.error("%s: %s", prefix, exc)
    st.error(f"{prefix}: {exc}")
