import streamlit as st

from src.activities import (
    ACTIVITY_CATEGORIES,
    get_activities,
    get_activity_counts,
    get_archetypes,
    reset_activities,
    reset_activity_counts,
    reset_archetypes,
    save_activities,
    save_activity_counts,
    save_archetypes,
)
from src.prompts import PROMPT_KEYS, PromptConfig, get_prompts, reset_prompts, save_prompts
from src.ui.state import get_settings_store


def _render_prompts() -> None:
    store = get_settings_store()
    prompts = get_prompts(store)
    edited = {}
    for key in PROMPT_KEYS:
        with st.expander(key):
            model = st.text_input("Model", value=prompts[key].model, key=f"prompt_model_{key}")
            text = st.text_area("Template", value=prompts[key].prompt, height=300, key=f"prompt_text_{key}")
            edited[key] = PromptConfig(prompt=text, model=model)
    save_col, reset_col = st.columns(2)
    if save_col.button("Save prompts", type="primary", width="stretch"):
        save_prompts(store, edited)
        st.toast("Prompts saved.")
    if reset_col.button("Reset prompts", width="stretch"):
        reset_prompts(store)
        for key in PROMPT_KEYS:
            st.session_state.pop(f"prompt_model_{key}", None)
            st.session_state.pop(f"prompt_text_{key}", None)
        st.rerun()


def _render_activities() -> None:
    store = get_settings_store()
    activities = get_activities(store)
    counts = get_activity_counts(store)
    edited_lists, edited_counts = {}, {}
    for category in ACTIVITY_CATEGORIES:
        with st.expander(category):
            edited_counts[category] = st.number_input(
                "Scenes per set", 0, 9, counts.get(category, 0), key=f"count_{category}"
            )
            raw = st.text_area(
                "Activities (one per line)", "\n".join(activities[category]), height=200, key=f"acts_{category}"
            )
            edited_lists[category] = raw.splitlines()
    save_col, reset_col = st.columns(2)
    if save_col.button("Save activities", type="primary", width="stretch"):
        save_activities(store, edited_lists)
        save_activity_counts(store, edited_counts)
        st.toast("Activities saved.")
    if reset_col.button("Reset activities", width="stretch"):
        reset_activities(store)
        reset_activity_counts(store)
        for category in ACTIVITY_CATEGORIES:
            st.session_state.pop(f"count_{category}", None)
            st.session_state.pop(f"acts_{category}", None)
        st.rerun()


def _render_archetypes() -> None:
    store = get_settings_store()
    raw = st.text_area("Archetypes (one per line)", "\n".join(get_archetypes(store)), height=240, key="archetypes")
    save_col, reset_col = st.columns(2)
    if save_col.button("Save archetypes", type="primary", width="stretch"):
        save_archetypes(store, raw.splitlines())
        st.toast("Archetypes saved.")
    if reset_col.button("Reset archetypes", width="stretch"):
        reset_archetypes(store)
        st.session_state.pop("archetypes", None)
        st.rerun()


def tab_studio_settings() -> None:
    st.subheader("Studio settings")
    st.caption("Stored on this machine. API keys come from Streamlit secrets or the environment only.")
    prompts_tab, activities_tab, archetypes_tab = st.tabs(["Prompts", "Activities", "Archetypes"])
    with prompts_tab:
        _render_prompts()
    with activities_tab:
        _render_activities()
    with archetypes_tab:
        _render_archetypes()
