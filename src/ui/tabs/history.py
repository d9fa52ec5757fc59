import streamlit as st

from src import studio
from src.costs import calculate_history_item_cost
from src.models import TEXT_TO_IMAGE_ITEM_ID
from src.ui.state import (
    get_tracker,
    history,
    media_source,
    reload_history,
    remove_history_item,
    select_item,
    show_error,
)


def render_history_sidebar() -> None:
    """Saved characters, newest first, with per-item cost and delete."""
    with st.sidebar:
        st.markdown("### History")
        if st.button("Refresh", key="history_refresh", width="stretch"):
            reload_history()
            st.rerun()

        items = history()
        if not items:
            st.caption("No characters yet.")
            return

        for item in items:
            is_text_to_image = item.id == TEXT_TO_IMAGE_ITEM_ID
            with st.container(border=True):
                thumb_col, info_col = st.columns([1, 2])
                with thumb_col:
                    if not is_text_to_image:
                        thumb = media_source(item.image_id)
                        if thumb:
                            st.image(thumb, width="stretch")
                with info_col:
                    st.markdown(f"**{item.character_profile.name or 'Untitled'}**")
                    if not is_text_to_image:
                        st.caption(
                            f"{item.generation_mode} · {item.generation_style} · "
                            f"${calculate_history_item_cost(item):.2f}"
                        )
                open_col, delete_col = st.columns(2)
                with open_col:
                    if st.button("Open", key=f"history_open_{item.id}", width="stretch"):
                        select_item(item)
                        st.switch_page("pages/1_Character_Studio.py")
                with delete_col:
                    if st.button("Delete", key=f"history_delete_{item.id}", width="stretch"):
                        try:
                            ok = studio.delete_history_item(get_tracker(), item)
                        except Exception as exc:
                            show_error("Could not delete", exc)
                        else:
                            remove_history_item(item.id)
                            if not ok:
                                st.toast("Removed locally; the remote copy could not be deleted.")
                            st.rerun()
