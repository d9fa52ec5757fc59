"""ElevenLabs text-to-speech for audio chunks.

``synthesize_speech`` validates the request before any network call, asks
ElevenLabs for MP3 audio, uploads it to the ``videos`` bucket and returns the
public URL with an estimated duration.  When Supabase is not configured the
audio comes back as a ``data:`` URL instead.

``handle_tts_request`` exposes the same operation as a JSON-in / JSON-out
contract: 400 for invalid text or voice, 500 for missing configuration or an
upstream failure.
"""
from __future__ import annotations

import base64
import logging
import time
from dataclasses import dataclass
from typing import Optional

import requests

from src import supabase_storage
from src.config import StudioConfig, load_config

_logger = logging.getLogger(__name__)

ELEVENLABS_TTS_URL = "https://api.elevenlabs.io/v1/text-to-speech/{voice_id}"
TTS_MODEL_ID = "eleven_multilingual_v2"
VOICE_SETTINGS = {"stability": 0.5, "similarity_boost": 0.75}
# Rough MP3 bitrate used for the duration estimate (128 kbps).
BYTES_PER_SECOND = 16000

AVAILABLE_VOICES: dict[str, str] = {
    "TX3LPaxmHKxFdv7VOQHJ": "Liam",
    "cgSgspJ2msm6clMCkdW9": "Jessica",
    "onwK4e9ZLuTAKqWW03F9": "Daniel",
    "pFZP5JQG7iQjIQuC4Bku": "Lily",
}
DEFAULT_VOICE_ID = "TX3LPaxmHKxFdv7VOQHJ"


class TTSError(RuntimeError):
    status_code = 500


class TTSValidationError(TTSError):
    status_code = 400


class TTSConfigError(TTSError):
    status_code = 500


class TTSUpstreamError(TTSError):
    status_code = 500


@dataclass(frozen=True)
class TTSResult:
    audio_url: str
    duration: float


def estimate_duration(num_bytes: int) -> float:
    return round(num_bytes / BYTES_PER_SECOND, 2)


def validate_request(text: Optional[str], voice_id: Optional[str], max_chars: int = 5000) -> tuple[str, str]:
    """Return the cleaned ``(text, voice_id)`` or raise :class:`TTSValidationError`."""
    if not isinstance(text, str) or not text.strip():
        raise TTSValidationError("Text is required.")
    if len(text) > max_chars:
        raise TTSValidationError(f"Text is too long ({len(text)} characters, maximum {max_chars}).")
    voice_id = (voice_id or "").strip()
    if voice_id not in AVAILABLE_VOICES:
        raise TTSValidationError(f"Unknown voice ID: {voice_id or '(empty)'}")
    return text, voice_id


def _store_audio(audio: bytes) -> str:
    path = f"generated-audio-{int(time.time() * 1000)}.mp3"
    url = supabase_storage.upload_bytes(supabase_storage.VIDEOS_BUCKET, path, audio, "audio/mpeg")
    if url:
        return url
    _logger.info("Supabase not available; returning generated audio inline")
    return "data:audio/mpeg;base64," + base64.b64encode(audio).decode("ascii")


def synthesize_speech(text: str, voice_id: str, *, config: Optional[StudioConfig] = None) -> TTSResult:
    config = config or load_config()
    text, voice_id = validate_request(text, voice_id, config.max_tts_chars)

    if not config.elevenlabs_api_key:
        raise TTSConfigError("ElevenLabs API key not configured (ELEVENLABS_API_KEY).")

    headers = {
        "xi-api-key": config.elevenlabs_api_key,
        "accept": "audio/mpeg",
        "content-type": "application/json",
    }
    payload = {"text": text, "model_id": TTS_MODEL_ID, "voice_settings": VOICE_SETTINGS}

    try:
        resp = requests.post(ELEVENLABS_TTS_URL.format(voice_id=voice_id), headers=headers, json=payload, timeout=60)
    except requests.RequestException as exc:
        raise TTSUpstreamError(f"ElevenLabs request failed: {exc}") from exc
    if resp.status_code >= 400:
        _logger.error("ElevenLabs error %s: %s", resp.status_code, resp.text[:300])
        raise TTSUpstreamError(f"ElevenLabs API error: {resp.status_code}")

    audio = resp.content
    return TTSResult(audio_url=_store_audio(audio), duration=estimate_duration(len(audio)))


def handle_tts_request(payload: dict, *, config: Optional[StudioConfig] = None) -> tuple[int, dict]:
    """``{text, voiceId}`` -> ``(status, {audioUrl, duration} | {error})``."""
    payload = payload or {}
    try:
        result = synthesize_speech(payload.get("text"), payload.get("voiceId"), config=config)
    except TTSError as exc:
        return exc.status_code, {"error": str(exc)}
    except Exception as exc:
        _logger.exception("Text-to-speech failed")
        return 500, {"error": str(exc)}
    return 200, {"audioUrl": result.audio_url, "duration": result.duration}
