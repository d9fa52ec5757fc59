"""Shared Creatomate render controls for the Resize & Rebrand and Chunked Audio pages.

Renders run as one registry job per batch; the variant objects are updated
in place by the worker and the status panel polls them.
"""
from __future__ import annotations

from typing import Callable, Optional

import streamlit as st

from src.brand import AVAILABLE_BRANDS
from src.creatomate import (
    CreatomateClient,
    CreatomateTemplate,
    RenderOptions,
    Variant,
    plan_variants,
    render_variants,
)
from src.jobs import JobState
from src.supabase_storage import VIDEOS_BUCKET, public_url
from src.ui.state import get_config, get_registry

RENDER_JOB = "render"


def pick_templates(templates: tuple[CreatomateTemplate, ...], key: str) -> list[CreatomateTemplate]:
    names = {t.size: f"{t.name} ({t.dimensions})" for t in templates}
    sizes = st.multiselect(
        "Sizes",
        list(names),
        default=list(names)[:1],
        format_func=names.get,
        key=f"{key}_sizes",
    )
    return [t for t in templates if t.size in sizes]


def pick_brands(key: str) -> list[str]:
    names = {b.id: b.name for b in AVAILABLE_BRANDS}
    return st.multiselect(
        "Brands (leave empty for resize only)",
        list(names),
        format_func=names.get,
        key=f"{key}_brands",
    )


def packshot_url(variant: Variant) -> Optional[str]:
    path = variant.packshot_path
    return public_url(VIDEOS_BUCKET, path) if path else None


def start_render(
    key: str,
    templates: list[CreatomateTemplate],
    brand_ids: list[str],
    video_url: str,
    options_for: Callable[[Variant], RenderOptions],
) -> None:
    config = get_config()
    client = CreatomateClient(config.creatomate_api_key)
    variants = plan_variants(templates, brand_ids)
    if not variants:
        st.warning("Pick at least one size.")
        return
    st.session_state[f"{key}_variants"] = variants

    def work(token, progress):
        progress(f"Rendering {len(variants)} variant(s)")
        return render_variants(
            client,
            variants,
            video_url,
            options_for=options_for,
            packshot_url_for=packshot_url,
            max_concurrent=config.max_concurrent_renders,
            cancel=token,
        )

    st.session_state[f"{key}_job"] = get_registry().submit(
        RENDER_JOB, work, owner=("render", key), label=f"{len(variants)} variant(s)"
    )


@st.fragment(run_every=3)
def render_status(key: str) -> None:
    variants: list[Variant] = st.session_state.get(f"{key}_variants") or []
    if not variants:
        return
    job_id = st.session_state.get(f"{key}_job")
    job = get_registry().get(job_id) if job_id else None

    done = sum(1 for v in variants if v.status in {"completed", "error", "cancelled"})
    st.progress(done / len(variants), text=f"{done} of {len(variants)} variants finished")
    if job is not None and job.state is JobState.PENDING:
        if st.button("Cancel rendering", key=f"{key}_cancel"):
            get_registry().cancel(job_id)
            st.rerun()

    for variant in variants:
        with st.container(border=True):
            st.markdown(f"**{variant.name}** · {variant.template.dimensions}")
            if variant.status == "completed" and variant.url:
                st.video(variant.url)
                st.link_button("Download", variant.url)
            elif variant.status == "error":
                st.error(variant.error or "Rendering failed")
            elif variant.status == "cancelled":
                st.caption("Cancelled")
            elif variant.status == "generating":
                st.progress(min(1.0, variant.progress), text="Rendering…")
            else:
                st.caption("Queued")
