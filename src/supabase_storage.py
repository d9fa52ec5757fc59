"""Supabase cloud storage helpers.

Provides a thin wrapper around the Supabase Python client for the studio's
history rows and uploaded media.  All functions degrade gracefully when
Supabase credentials are not configured: callers receive ``None`` /
``False`` / ``[]`` instead of exceptions and the local blob cache keeps
working.

Buckets expected in Supabase Storage
-------------------------------------
  videos   - uploaded chunk videos, generated speech, packshots (packshots/)
             and music tracks (music/)

Tables expected in Supabase Database
--------------------------------------
  user_history   - one row per character, unique on (user_id, image_id)
"""
from __future__ import annotations

import logging
import re
import threading
import time
from typing import Callable, Optional

from src.config import get_secret
from src.models import HistoryItem

_logger = logging.getLogger(__name__)

HISTORY_TABLE = "user_history"
VIDEOS_BUCKET = "videos"

# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

_PLACEHOLDER_URLS = {"", "https://xxxxxxxxxxxx.supabase.co"}
_PLACEHOLDER_KEYS = {"", "your-anon-public-key", "your-anon-key-here"}

# Module-level cached client (one per Python process / Streamlit session).
_client = None


def _get_credentials() -> tuple[str, str]:
    url = get_secret("SUPABASE_URL").strip()
    key = get_secret("SUPABASE_KEY").strip()
    return url, key


def is_configured() -> bool:
    """Return True when valid (non-placeholder) Supabase credentials exist."""
    url, key = _get_credentials()
    return (
        bool(url)
        and url not in _PLACEHOLDER_URLS
        and bool(key)
        and key not in _PLACEHOLDER_KEYS
    )


def get_client():
    """Return a cached Supabase client, or None if not configured."""
    global _client
    if _client is not None:
        return _client
    if not is_configured():
        return None
    url, key = _get_credentials()
    try:
        from supabase import create_client  # type: ignore

        _client = create_client(url, key)
        return _client
    except Exception as exc:
        _logger.warning("Supabase client could not be created: %s", exc)
        return None


# ---------------------------------------------------------------------------
# History rows
# ---------------------------------------------------------------------------

def history_row(user_id: str, item: HistoryItem) -> dict:
    return {
        "user_id": user_id,
        "image_id": item.image_id,
        "character_profile": item.character_profile.to_record(),
        "image_prompts": [p.to_record() for p in item.image_prompts],
        "generation_mode": item.generation_mode,
        "generation_style": item.generation_style,
        "timestamp": item.timestamp,
    }


def history_item_from_row(row: dict) -> HistoryItem:
    return HistoryItem(
        id=row["image_id"],
        image_id=row["image_id"],
        timestamp=int(row.get("timestamp") or 0),
        character_profile=row.get("character_profile") or {"name": ""},
        image_prompts=row.get("image_prompts") or [],
        generation_mode=row.get("generation_mode") or "normal",
        generation_style=row.get("generation_style") or "ugc",
    )


class HistoryStore:
    """History rows for one (pseudo) user.

    Saves for the same item are serialized, and each save is stamped with a
    version when it is issued.  A save whose version is older than one that
    already committed is skipped, so a slow early write can never overwrite
    a later one.
    """

    def __init__(self, user_id: str, client_factory: Optional[Callable[[], object]] = None):
        self.user_id = user_id
        self._client_factory = client_factory or get_client
        self._meta_lock = threading.Lock()
        self._locks: dict[str, threading.Lock] = {}
        self._issued: dict[str, int] = {}
        self._committed: dict[str, int] = {}

    def next_version(self, key: str) -> int:
        """Issue the next save version for ``key``.

        Callers that snapshot an item under their own lock should take the
        version inside that same lock and pass it to :meth:`save`.
        """
        with self._meta_lock:
            version = self._issued.get(key, 0) + 1
            self._issued[key] = version
        return version

    def _save_lock(self, key: str) -> threading.Lock:
        with self._meta_lock:
            return self._locks.setdefault(key, threading.Lock())

    def save(self, item: HistoryItem, version: Optional[int] = None) -> bool:
        """Upsert ``item``.  Returns True on success or when superseded by a newer save."""
        key = item.image_id
        row = history_row(self.user_id, item)
        if version is None:
            version = self.next_version(key)
        with self._save_lock(key):
            if version < self._committed.get(key, 0):
                _logger.info("Skipping stale history save for %s (v%s)", key, version)
                return True
            sb = self._client_factory()
            if sb is None:
                return False
            try:
                sb.table(HISTORY_TABLE).upsert(row, on_conflict="user_id,image_id").execute()
            except Exception as exc:
                _logger.warning("Failed to save history item %s: %s", key, exc)
                return False
            self._committed[key] = version
            return True

    def load(self) -> list[HistoryItem]:
        """Return all history items for this user, newest first."""
        sb = self._client_factory()
        if sb is None:
            return []
        try:
            resp = (
                sb.table(HISTORY_TABLE)
                .select("*")
                .eq("user_id", self.user_id)
                .order("timestamp", desc=True)
                .execute()
            )
        except Exception as exc:
            _logger.warning("Failed to load history: %s", exc)
            return []

        items = []
        for row in resp.data or []:
            try:
                items.append(history_item_from_row(row))
            except Exception as exc:
                _logger.warning("Skipping unreadable history row %s: %s", row.get("image_id"), exc)
        return items

    def delete(self, image_id: str) -> bool:
        sb = self._client_factory()
        if sb is None:
            return False
        try:
            sb.table(HISTORY_TABLE).delete().eq("user_id", self.user_id).eq("image_id", image_id).execute()
            return True
        except Exception as exc:
            _logger.warning("Failed to delete history item %s: %s", image_id, exc)
            return False


# ---------------------------------------------------------------------------
# Storage (file upload) operations
# ---------------------------------------------------------------------------

def upload_bytes(
    bucket: str,
    storage_path: str,
    data: bytes,
    content_type: str,
) -> Optional[str]:
    """Upload *data* to a Supabase Storage bucket and return the public URL."""
    sb = get_client()
    if sb is None:
        return None
    try:
        sb.storage.from_(bucket).upload(
            storage_path,
            data,
            {"content-type": content_type, "upsert": "true"},
        )
        return sb.storage.from_(bucket).get_public_url(storage_path)
    except Exception as exc:
        _logger.warning("Upload to %s/%s failed: %s", bucket, storage_path, exc)
        return None


def public_url(bucket: str, storage_path: str) -> Optional[str]:
    sb = get_client()
    if sb is None:
        return None
    try:
        return sb.storage.from_(bucket).get_public_url(storage_path)
    except Exception as exc:
        _logger.warning("Could not resolve public URL for %s/%s: %s", bucket, storage_path, exc)
        return None


def _safe_filename(name: str) -> str:
    cleaned = re.sub(r"[^A-Za-z0-9._-]+", "_", (name or "").strip())
    return cleaned or "video.mp4"


def upload_video(data: bytes, filename: str, content_type: str = "video/mp4") -> Optional[str]:
    """Upload a user video to the root of the ``videos`` bucket.

    Returns None if Supabase is not configured or the upload fails.
    """
    storage_path = f"{int(time.time() * 1000)}-{_safe_filename(filename)}"
    return upload_bytes(VIDEOS_BUCKET, storage_path, data, content_type)
