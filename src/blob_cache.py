"""Local blob cache for generated media.

Generation APIs return short-lived URLs; the bytes are copied into a local
SQLite table so history entries keep working after those URLs expire.
Entries are addressed by opaque keys (``media-<ms>-<random>``) which are
stored in place of the transient URL on the owning history item.
"""
from __future__ import annotations

import base64
import logging
import secrets
import sqlite3
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import requests

_logger = logging.getLogger(__name__)

KEY_PREFIX = "media-"


class BlobCacheError(RuntimeError):
    """The local cache could not be read or written."""


@dataclass(frozen=True)
class Blob:
    data: bytes
    mime_type: str

    @property
    def size(self) -> int:
        return len(self.data)

    def to_data_url(self) -> str:
        encoded = base64.b64encode(self.data).decode("ascii")
        return f"data:{self.mime_type};base64,{encoded}"


def new_key() -> str:
    return f"{KEY_PREFIX}{int(time.time() * 1000)}-{secrets.token_hex(4)}"


def is_cache_key(value: Optional[str]) -> bool:
    """True for cache keys, False for http(s)/data URLs and empty values."""
    if not value:
        return False
    return not value.startswith(("http://", "https://", "data:", "blob:"))


class BlobCache:
    def __init__(self, db_path: Path):
        self.db_path = Path(db_path)
        self._initialised = False

    def _connect(self) -> sqlite3.Connection:
        try:
            if not self._initialised:
                self.db_path.parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(self.db_path)
            if not self._initialised:
                with conn:
                    conn.execute("PRAGMA journal_mode=WAL;")
                    conn.execute(
                        """
                        CREATE TABLE IF NOT EXISTS blobs (
                            id TEXT PRIMARY KEY,
                            mime_type TEXT NOT NULL,
                            data BLOB NOT NULL,
                            created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
                        )
                        """
                    )
                self._initialised = True
            return conn
        except (OSError, sqlite3.Error) as exc:
            raise BlobCacheError(f"Blob cache unavailable at {self.db_path}: {exc}") from exc

    def put_with_id(self, key: str, data: bytes, mime_type: str) -> str:
        conn = self._connect()
        try:
            with conn:
                conn.execute(
                    """
                    INSERT INTO blobs (id, mime_type, data)
                    VALUES (?, ?, ?)
                    ON CONFLICT(id) DO UPDATE SET
                        mime_type=excluded.mime_type,
                        data=excluded.data
                    """,
                    (key, mime_type or "application/octet-stream", sqlite3.Binary(data)),
                )
        except sqlite3.Error as exc:
            raise BlobCacheError(f"Could not store blob {key}: {exc}") from exc
        finally:
            conn.close()
        return key

    def put(self, data: bytes, mime_type: str) -> str:
        return self.put_with_id(new_key(), data, mime_type)

    def get(self, key: str) -> Optional[Blob]:
        """Return the blob for ``key`` or ``None``; a missing key is not an error."""
        if not key:
            return None
        conn = self._connect()
        try:
            row = conn.execute("SELECT data, mime_type FROM blobs WHERE id = ?", (key,)).fetchone()
        except sqlite3.Error as exc:
            raise BlobCacheError(f"Could not read blob {key}: {exc}") from exc
        finally:
            conn.close()
        if row is None:
            return None
        return Blob(data=bytes(row[0]), mime_type=row[1])

    def resolve(self, key: str) -> Optional[str]:
        """Return a data URL suitable for ``st.image`` / ``st.video``."""
        blob = self.get(key)
        return blob.to_data_url() if blob is not None else None

    def delete(self, key: str) -> None:
        conn = self._connect()
        try:
            with conn:
                conn.execute("DELETE FROM blobs WHERE id = ?", (key,))
        except sqlite3.Error as exc:
            raise BlobCacheError(f"Could not delete blob {key}: {exc}") from exc
        finally:
            conn.close()

    def display_source(self, value: Optional[str]) -> Optional[str]:
        """Resolve a stored media reference (cache key or URL) for display."""
        if not is_cache_key(value):
            return value
        try:
            return self.resolve(value)
        except BlobCacheError as exc:
            _logger.warning("Could not resolve cached media %s: %s", value, exc)
            return None


def download_bytes(url: str, timeout: int = 120) -> tuple[bytes, str]:
    """Fetch a remote asset, returning ``(data, mime_type)``."""
    resp = requests.get(url, timeout=timeout)
    resp.raise_for_status()
    mime = (resp.headers.get("Content-Type") or "application/octet-stream").split(";")[0].strip()
    return resp.content, mime
