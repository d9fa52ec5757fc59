"""Centralised secret / configuration helpers.

Secrets are read from Streamlit secrets first and environment variables
second; they are never written to the local settings file.  Business rules
that used to be hard-coded (the 2 second chunk floor, the competitor brand
list, the TTS character limit) live on :class:`StudioConfig` as defaults so
they can be overridden in ``.streamlit/secrets.toml`` or the environment.
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Callable

_logger = logging.getLogger(__name__)

DEFAULT_BRAND_PATTERNS: tuple[str, ...] = (
    "DateMyAge",
    "Date My Age",
    "OurLove",
    "Our Love",
    "EuroDate",
    "Euro Date",
    "DatingClub",
    "Dating Club",
    "Dating.Com",
)


def _normalize(value: str) -> str:
    """Strip whitespace and surrounding quotes; reject known placeholder strings."""
    v = str(value or "").strip()
    if len(v) >= 2 and v[0] == v[-1] and v[0] in {'"', "'"}:
        v = v[1:-1].strip()
    low = v.lower()
    if low in {"none", "null", ""}:
        return ""
    # Unfilled template values such as PASTE_KEY_HERE or YOUR_FAL_KEY.
    if low.startswith(("paste_", "paste-", "your_", "your-", "replace_me", "changeme", "xxx")):
        return ""
    if low.endswith(("_here", "-here")):
        return ""
    return v


def get_secret(name: str, default: str = "") -> str:
    """Return a secret value, searching Streamlit secrets then env vars.

    Checks ``name``, ``name.lower()``, and ``name.upper()`` in that order.
    """
    candidates = list(dict.fromkeys([name, name.lower(), name.upper()]))

    try:
        import streamlit as st  # type: ignore

        if hasattr(st, "secrets"):
            for key in candidates:
                if key in st.secrets:
                    v = _normalize(str(st.secrets[key]))
                    if v:
                        return v
    except Exception:
        # No secrets.toml outside a Streamlit run; fall through to env vars.
        pass

    for key in candidates:
        v = _normalize(os.getenv(key, ""))
        if v:
            return v

    return _normalize(default)


def _as_float(raw: str, default: float) -> float:
    try:
        return float(raw) if raw else default
    except ValueError:
        _logger.warning("Ignoring non-numeric config value %r", raw)
        return default


def _as_int(raw: str, default: int) -> int:
    try:
        return int(raw) if raw else default
    except ValueError:
        _logger.warning("Ignoring non-integer config value %r", raw)
        return default


@dataclass(frozen=True)
class StudioConfig:
    gemini_api_key: str = ""
    fal_api_key: str = ""
    elevenlabs_api_key: str = ""
    creatomate_api_key: str = ""
    supabase_url: str = ""
    supabase_key: str = ""
    google_service_account_json: str = ""
    spreadsheet_id: str = ""
    app_passcode: str = ""

    gemini_model: str = "gemini-2.5-flash"
    min_chunk_duration: float = 2.0
    max_chunks: int = 10
    max_tts_chars: int = 5000
    max_job_workers: int = 4
    max_concurrent_renders: int = 2
    brand_patterns: tuple[str, ...] = DEFAULT_BRAND_PATTERNS
    data_dir: Path = field(default_factory=lambda: Path("data"))

    @property
    def blob_cache_path(self) -> Path:
        return self.data_dir / "blob_cache.db"

    @property
    def settings_path(self) -> Path:
        return self.data_dir / "studio_settings.json"


def build_config(lookup: Callable[[str, str], str] = get_secret) -> StudioConfig:
    """Build a :class:`StudioConfig` from ``lookup`` (``get_secret`` by default)."""
    patterns_raw = lookup("BRAND_PATTERNS", "")
    patterns = tuple(p.strip() for p in patterns_raw.split(",") if p.strip()) or DEFAULT_BRAND_PATTERNS

    return StudioConfig(
        gemini_api_key=lookup("GEMINI_API_KEY", "") or lookup("GOOGLE_API_KEY", ""),
        fal_api_key=lookup("FAL_KEY", ""),
        elevenlabs_api_key=lookup("ELEVENLABS_API_KEY", ""),
        creatomate_api_key=lookup("CREATOMATE_API_KEY", ""),
        supabase_url=lookup("SUPABASE_URL", ""),
        supabase_key=lookup("SUPABASE_KEY", ""),
        google_service_account_json=lookup("GOOGLE_SERVICE_ACCOUNT_JSON", ""),
        spreadsheet_id=lookup("GOOGLE_SHEETS_SPREADSHEET_ID", ""),
        app_passcode=lookup("APP_PASSCODE", ""),
        gemini_model=lookup("GEMINI_MODEL", "") or "gemini-2.5-flash",
        min_chunk_duration=_as_float(lookup("MIN_CHUNK_DURATION", ""), 2.0),
        max_chunks=_as_int(lookup("MAX_CHUNKS", ""), 10),
        max_tts_chars=_as_int(lookup("MAX_TTS_CHARS", ""), 5000),
        max_job_workers=_as_int(lookup("MAX_JOB_WORKERS", ""), 4),
        max_concurrent_renders=_as_int(lookup("MAX_CONCURRENT_RENDERS", ""), 2),
        brand_patterns=patterns,
        data_dir=Path(lookup("STUDIO_DATA_DIR", "") or "data"),
    )


@lru_cache(maxsize=1)
def load_config() -> StudioConfig:
    """Resolve the process-wide configuration once."""
    config = build_config()
    _logger.info(
        "Studio config resolved: gemini=%s fal=%s elevenlabs=%s creatomate=%s supabase=%s",
        bool(config.gemini_api_key),
        bool(config.fal_api_key),
        bool(config.elevenlabs_api_key),
        bool(config.creatomate_api_key),
        bool(config.supabase_url and config.supabase_key),
    )
    return config
