"""Connection diagnostics page.

Shows which keys are configured and lets you verify that the app can read
from and write to Supabase and the local blob cache before a session.
"""
import time
import traceback

import streamlit as st

from src.blob_cache import BlobCacheError
from src.models import CharacterProfile, HistoryItem
from src.supabase_storage import HISTORY_TABLE, VIDEOS_BUCKET, HistoryStore, get_client
from src.ui.state import get_blob_cache, get_config, get_settings_store, require_passcode

st.set_page_config(page_title="Diagnostics · Conjuring Studio", page_icon="🔌")
require_passcode()
st.title("🔌 Diagnostics")
st.caption("Use this page to confirm the studio is connected before a production run.")

# ---------------------------------------------------------------------------
# 1. Credentials
# ---------------------------------------------------------------------------
st.subheader("1. Credentials")

config = get_config()
checks = {
    "GEMINI_API_KEY": config.gemini_api_key,
    "FAL_KEY": config.fal_api_key,
    "ELEVENLABS_API_KEY": config.elevenlabs_api_key,
    "CREATOMATE_API_KEY": config.creatomate_api_key,
    "SUPABASE_URL": config.supabase_url,
    "SUPABASE_KEY": config.supabase_key,
    "GOOGLE_SERVICE_ACCOUNT_JSON": config.google_service_account_json,
    "GOOGLE_SHEETS_SPREADSHEET_ID": config.spreadsheet_id,
}
for name, value in checks.items():
    if value:
        masked = value[:4] + "..." + value[-4:] if len(value) > 12 else "set"
        st.success(f"{name}: `{masked}`")
    else:
        st.warning(f"{name} is missing.")
st.caption(
    f"Gemini model `{config.gemini_model}` · chunk floor {config.min_chunk_duration}s · "
    f"{config.max_job_workers} job workers · {config.max_concurrent_renders} concurrent renders"
)

# ---------------------------------------------------------------------------
# 2. Local storage
# ---------------------------------------------------------------------------
st.subheader("2. Local Storage")
st.write(f"Settings file: `{config.settings_path}`")
st.write(f"User ID: `{get_settings_store().get_or_create_user_id()}`")
try:
    cache = get_blob_cache()
    key = cache.put(b"diagnostics", "text/plain")
    blob = cache.get(key)
    cache.delete(key)
    if blob is not None and blob.data == b"diagnostics":
        st.success(f"Blob cache at `{config.blob_cache_path}` is readable and writable.")
    else:
        st.error("Blob cache write succeeded but the read-back did not match.")
except BlobCacheError as exc:
    st.error(f"Blob cache unavailable: {exc}")

# ---------------------------------------------------------------------------
# 3. Supabase
# ---------------------------------------------------------------------------
st.subheader("3. Supabase")
sb = get_client()
if sb is None:
    st.info(
        "Add your Supabase credentials to `.streamlit/secrets.toml`:\n"
        "```toml\n"
        "SUPABASE_URL = \"https://<ref>.supabase.co\"\n"
        "SUPABASE_KEY = \"<your-anon-key>\"\n"
        "```"
    )
    st.stop()

try:
    resp = sb.table(HISTORY_TABLE).select("image_id,timestamp").limit(5).execute()
    st.success(f"Read from `{HISTORY_TABLE}` succeeded. Rows returned: {len(resp.data or [])}")
except Exception as exc:
    st.error(f"Read failed: {exc}")
    st.code(traceback.format_exc())

if st.button("Run Write Test", type="primary"):
    store = HistoryStore("__diagnostics__")
    test_item = HistoryItem(
        id="__diagnostics_test__",
        timestamp=int(time.time() * 1000),
        image_id="__diagnostics_test__",
        character_profile=CharacterProfile(name="Diagnostics"),
    )
    if not store.save(test_item):
        st.error(
            "Write test failed. Common causes:\n"
            f"- The `{HISTORY_TABLE}` table or its (user_id, image_id) unique constraint is missing\n"
            "- Row Level Security is blocking the key"
        )
    else:
        loaded = store.load()
        st.success(f"Upsert succeeded; read-back returned {len(loaded)} row(s).")
        if store.delete(test_item.image_id):
            st.success("Test row deleted. Supabase is working correctly!")

try:
    buckets = sb.storage.list_buckets()
    existing = {b.name for b in buckets} if buckets else set()
    if VIDEOS_BUCKET in existing:
        st.success(f"Bucket `{VIDEOS_BUCKET}` exists.")
    else:
        st.warning(f"Bucket `{VIDEOS_BUCKET}` NOT found. Create it as a public bucket.")
except Exception as exc:
    st.error(f"Could not list storage buckets: {exc}")
    st.caption("This may be normal if the key lacks storage.read permissions.")
