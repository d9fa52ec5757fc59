"""Creatomate rendering for branded and resized marketing videos.

Public API
----------
build_modifications(template, video_url, packshot_url, options) -> dict
CreatomateClient(api_key).render_video(...) -> render_id
CreatomateClient.poll_render_status(render_id, ...) -> final video URL
plan_variants(templates, brand_ids) -> list[Variant]
render_variants(client, variants, ...) -> list[Variant]

Templates expose named elements (``Main_Video_1``, ``Audio_1``,
``element_subtitles_1``, ``Text-1``, ``Packshot`` ...) that the
modifications dict overrides.  Chunked templates lay their chunks out on the
timeline computed by ``src.timeline``; the packshot follows the last chunk.
"""
from __future__ import annotations

import logging
import random
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Optional

import requests

from src.brand import Brand, apply_brand_replacement, get_brand
from src.jobs import CancelToken, JobCancelled
from src.models import AudioChunk

_logger = logging.getLogger(__name__)

CREATOMATE_API = "https://api.creatomate.com/v2"

_POLL_INTERVAL_S = 6.0
_MAX_RATE_LIMIT_RETRIES = 5
_MAX_BACKOFF_S = 30.0
PACKSHOT_DURATION_S = 3
TEXT_BLOCK_DURATION_S = 2
MAX_TEMPLATE_CHUNKS = 10

CHUNKED_SIZES = {"chunked-v2", "chunked-square", "chunked-horizontal", "text-emoji", "text-emoji-v2"}
TEXT_SIZES = {"text-emoji", "text-emoji-v2"}


class CreatomateError(RuntimeError):
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code

    @property
    def retryable(self) -> bool:
        return self.status_code == 429


@dataclass(frozen=True)
class CreatomateTemplate:
    id: str
    name: str
    size: str
    dimensions: str
    main_video_field: str
    packshot_field: str = "Packshot"
    supports_subtitles: bool = False
    text_mode: bool = False


@dataclass(frozen=True)
class MusicTrack:
    id: str
    name: str
    path: str


_CHUNK_FIELDS = ",".join(f"Main_Video_{i}" for i in range(1, MAX_TEMPLATE_CHUNKS + 1))

RESIZE_TEMPLATES: tuple[CreatomateTemplate, ...] = (
    CreatomateTemplate(
        "41a34610-feae-4e0d-9725-b8157f7de781", "9:16 Vertical", "vertical", "1080x1920", "Main_Video",
        supports_subtitles=True,
    ),
    CreatomateTemplate(
        "c9aa2c57-d883-4a1e-85dd-020f4e911a70", "16:9 Horizontal", "horizontal", "1920x1080",
        "Main_Video_front, Main_Video_back", supports_subtitles=True,
    ),
    CreatomateTemplate(
        "41e18070-2198-43f2-9503-807fbbd5f749", "1:1 Square", "square", "1080x1080",
        "Main_Video_front, Main_Video_back", supports_subtitles=True,
    ),
)

CHUNKED_TEMPLATES: tuple[CreatomateTemplate, ...] = (
    CreatomateTemplate(
        "f355b779-a825-473e-bba3-434e404c7030", "9x16", "chunked-v2", "1080x1920", _CHUNK_FIELDS,
        supports_subtitles=True,
    ),
    CreatomateTemplate(
        "d858c331-52b5-4916-a2f5-f7e1ae4d7493", "1x1", "chunked-square", "1080x1080", _CHUNK_FIELDS,
        supports_subtitles=True,
    ),
    CreatomateTemplate(
        "105d7ae4-294c-496a-b7af-9b1c35af6dbe", "16x9", "chunked-horizontal", "1920x1080", _CHUNK_FIELDS,
        supports_subtitles=True,
    ),
    CreatomateTemplate(
        "bb27c72e-a8a7-4471-b412-d5cfd8a53381", "9x16 Text Emoji", "text-emoji", "1080x1920", _CHUNK_FIELDS,
        text_mode=True,
    ),
    CreatomateTemplate(
        "4a4c47f1-555c-414f-b45a-1905be6b591d", "9x16 Text Emoji V2", "text-emoji-v2", "1080x1920", _CHUNK_FIELDS,
        supports_subtitles=True, text_mode=True,
    ),
)

CREATOMATE_TEMPLATES: tuple[CreatomateTemplate, ...] = RESIZE_TEMPLATES + CHUNKED_TEMPLATES

AVAILABLE_MUSIC: tuple[MusicTrack, ...] = tuple(
    MusicTrack(track_id, name, f"music/{track_id}.wav")
    for track_id, name in (
        ("lucas_v2", "Lucas V2"),
        ("povdate_esp", "POV Date ESP"),
        ("nelson_v1", "Nelson V1"),
        ("variations_v1", "Variations V1"),
        ("variations_v2", "Variations V2"),
        ("variations_v3", "Variations V3"),
        ("variations_v4", "Variations V4"),
        ("benjamin", "Benjamin"),
        ("asher_v2", "Asher V2"),
        ("felix_v2", "Felix V2"),
    )
)


def get_template(size: str) -> Optional[CreatomateTemplate]:
    for template in CREATOMATE_TEMPLATES:
        if template.size == size:
            return template
    return None


@dataclass
class RenderOptions:
    enable_subtitles: bool = False
    chunks: Optional[list[AudioChunk]] = None
    text_blocks: Optional[list[str]] = None
    # Percentages (0-100) for the text-emoji-v2 template.
    subtitle_visibility: Optional[int] = None
    audio_volume: Optional[int] = None
    music_url: Optional[str] = None
    brand_name: Optional[str] = None
    brand_patterns: Optional[tuple[str, ...]] = None


# ---------------------------------------------------------------------------
# Modifications
# ---------------------------------------------------------------------------

def _branded_texts(options: RenderOptions) -> list[str]:
    texts = options.text_blocks or []
    if options.brand_name:
        texts = [apply_brand_replacement(t, options.brand_name, options.brand_patterns) for t in texts]
    return texts[:MAX_TEMPLATE_CHUNKS]


def _chunk_modifications(template: CreatomateTemplate, options: RenderOptions, mods: dict, has_packshot: bool) -> None:
    chunks = options.chunks or []
    total_audio = 0.0

    for i, chunk in enumerate(chunks, start=1):
        if chunk.video is not None and chunk.video.url:
            mods[f"Main_Video_{i}"] = chunk.video.url
            if template.size in {"chunked-square", "chunked-horizontal"}:
                mods[f"Main_Video_{i}_back"] = chunk.video.url
                mods[f"Main_Video_{i}_back.duration"] = "media"
            mods[f"Main_Video_{i}.duration"] = chunk.effective_duration or "media"
        if chunk.audio_url:
            mods[f"Audio_{i}"] = chunk.audio_url
            if chunk.start_time is not None:
                mods[f"Audio_{i}.time"] = chunk.start_time
        if chunk.effective_duration:
            total_audio += chunk.effective_duration
        if options.enable_subtitles:
            mods[f"element_subtitles_{i}.transcript_source"] = f"Audio_{i}"
            if chunk.start_time is not None:
                mods[f"element_subtitles_{i}.time"] = chunk.start_time

    if options.enable_subtitles:
        for i in range(1, MAX_TEMPLATE_CHUNKS + 1):
            mods[f"element_subtitles_{i}.transcript_source"] = f"Audio_{i}"

    if has_packshot:
        mods["Packshot.time"] = total_audio
        mods["Packshot.duration"] = "media"

    if template.size == "text-emoji":
        for i in range(1, MAX_TEMPLATE_CHUNKS + 1):
            mods[f"Main_Video_{i}.duration"] = TEXT_BLOCK_DURATION_S
        for i, text in enumerate(_branded_texts(options), start=1):
            mods[f"Text-{i}.text"] = text
        mods["Packshot.time"] = len(chunks) * TEXT_BLOCK_DURATION_S
        mods["Packshot.duration"] = "media"
        mods["duration"] = None

    elif template.size == "text-emoji-v2":
        audio_volume = f"{options.audio_volume}%" if options.audio_volume is not None else "100%"
        subtitle_opacity = f"{options.subtitle_visibility}%" if options.subtitle_visibility is not None else "100%"
        text_opacity = (
            f"{100 - options.subtitle_visibility}%" if options.subtitle_visibility is not None else "100%"
        )
        text_only = audio_volume == "0%"

        for i in range(1, MAX_TEMPLATE_CHUNKS + 1):
            chunk = chunks[i - 1] if i <= len(chunks) else None
            mods[f"Main_Video_{i}.duration"] = (
                chunk.effective_duration if chunk and chunk.effective_duration else TEXT_BLOCK_DURATION_S
            )

        for i, chunk in enumerate(chunks, start=1):
            mods[f"Audio_{i}.volume"] = audio_volume
            mods[f"element_subtitles_{i}.opacity"] = subtitle_opacity
            mods[f"element_subtitles_{i}.transcript_source"] = f"Audio_{i}"
            if chunk.start_time is not None:
                mods[f"Audio_{i}.time"] = chunk.start_time
                mods[f"element_subtitles_{i}.time"] = chunk.start_time

        for i, text in enumerate(_branded_texts(options), start=1):
            chunk = chunks[i - 1] if i <= len(chunks) else None
            mods[f"Text-{i}.text"] = text
            mods[f"Text-{i}.opacity"] = text_opacity
            if chunk is not None and chunk.start_time is not None:
                mods[f"Text-{i}.time"] = chunk.start_time
            if text_only:
                mods[f"Text-{i}.duration"] = TEXT_BLOCK_DURATION_S
            elif chunk is not None and chunk.effective_duration:
                mods[f"Text-{i}.duration"] = chunk.effective_duration

        if text_only:
            duration = len(chunks) * TEXT_BLOCK_DURATION_S + PACKSHOT_DURATION_S
        else:
            duration = total_audio + PACKSHOT_DURATION_S
        mods["duration"] = duration
        mods["Packshot.time"] = duration - PACKSHOT_DURATION_S
        mods["Packshot.duration"] = "media"
        if options.music_url:
            mods["Song"] = options.music_url
            mods["Song.duration"] = "media"

    else:
        mods["duration"] = total_audio + PACKSHOT_DURATION_S


def build_modifications(
    template: CreatomateTemplate,
    video_url: str,
    packshot_url: Optional[str] = None,
    options: Optional[RenderOptions] = None,
) -> dict[str, Any]:
    options = options or RenderOptions()
    mods: dict[str, Any] = {}
    has_packshot = bool(packshot_url and template.packshot_field)
    if has_packshot:
        mods[template.packshot_field] = packshot_url

    chunked = options.chunks is not None and template.size in CHUNKED_SIZES
    if chunked:
        _chunk_modifications(template, options, mods, has_packshot)
    else:
        for name in template.main_video_field.split(","):
            if name.strip():
                mods[name.strip()] = video_url

    if template.supports_subtitles and options.chunks is None:
        if options.enable_subtitles:
            mods["element_subtitles.visible"] = True
            mods["element_subtitles.transcript_source"] = (
                "Main_Video" if template.size == "vertical" else "Main_Video_front"
            )
        else:
            mods["element_subtitles.visible"] = False

    if template.size in TEXT_SIZES:
        mods["emoji_style"] = "apple"

    return mods


def split_text_into_lines(text: str, max_length: int) -> str:
    """Greedy word wrap joined with newlines (used for on-screen text)."""
    lines: list[str] = []
    current = ""
    for word in text.split(" "):
        candidate = word if not current else f"{current} {word}"
        if len(candidate) <= max_length:
            current = candidate
        else:
            if current:
                lines.append(current)
            current = word
    if current:
        lines.append(current)
    return "\n".join(lines) if lines else text


# ---------------------------------------------------------------------------
# HTTP client
# ---------------------------------------------------------------------------

class CreatomateClient:
    def __init__(self, api_key: str, *, timeout: int = 60, session: Optional[requests.Session] = None):
        if not api_key:
            raise CreatomateError("Creatomate API key not configured (CREATOMATE_API_KEY).")
        self._api_key = api_key
        self._timeout = timeout
        self._session = session or requests.Session()

    def _request(self, method: str, endpoint: str, payload: Optional[dict] = None) -> dict:
        url = f"{CREATOMATE_API}{endpoint}"
        _logger.info("Creatomate %s %s", method, url)
        try:
            resp = self._session.request(
                method,
                url,
                headers={"Authorization": f"Bearer {self._api_key}", "Content-Type": "application/json"},
                json=payload,
                timeout=self._timeout,
            )
        except requests.RequestException as exc:
            raise CreatomateError(f"Creatomate request failed: {exc}", status_code=429) from exc
        if resp.status_code >= 400:
            _logger.error("Creatomate API error %s: %s", resp.status_code, resp.text[:300])
            raise CreatomateError(
                f"Creatomate API error: {resp.status_code} - {resp.text[:300]}", status_code=resp.status_code
            )
        return resp.json()

    def render_video(
        self,
        template: CreatomateTemplate,
        video_url: str,
        packshot_url: Optional[str] = None,
        options: Optional[RenderOptions] = None,
    ) -> str:
        mods = build_modifications(template, video_url, packshot_url, options)
        data = self._request("POST", "/renders", {"template_id": template.id, "modifications": mods})
        # v2 may answer with a list of renders for multi-output templates.
        render = data[0] if isinstance(data, list) else data
        render_id = render.get("id")
        if not render_id:
            raise CreatomateError(f"Creatomate did not return a render id: {data}")
        _logger.info("Render %s started for template %s", render_id, template.name)
        return render_id

    def get_render_status(self, render_id: str) -> dict:
        return self._request("GET", f"/renders/{render_id}")

    def get_template(self, template_id: str) -> dict:
        return self._request("GET", f"/templates/{template_id}")

    def poll_render_status(
        self,
        render_id: str,
        *,
        on_progress: Optional[Callable[[float], None]] = None,
        cancel: Optional[CancelToken] = None,
        sleep: Callable[[float], None] = time.sleep,
        rng: Optional[random.Random] = None,
    ) -> str:
        """Wait for ``render_id`` to finish and return its URL.

        Rate-limit and network errors are retried with exponential backoff,
        up to five times in a row.
        """
        rng = rng or random.Random()
        wait = cancel.sleep if cancel is not None else sleep
        interval = _POLL_INTERVAL_S
        retries = 0
        wait(rng.uniform(0, 3))

        while True:
            try:
                status = self.get_render_status(render_id)
            except CreatomateError as exc:
                if exc.retryable and retries < _MAX_RATE_LIMIT_RETRIES:
                    retries += 1
                    delay = min(_MAX_BACKOFF_S, interval * 2 ** retries) + rng.uniform(0, 5)
                    _logger.warning(
                        "Render %s poll rate limited, retrying in %.0fs (%d/%d)",
                        render_id, delay, retries, _MAX_RATE_LIMIT_RETRIES,
                    )
                    wait(delay)
                    continue
                raise

            progress = status.get("progress")
            if progress and on_progress is not None:
                on_progress(float(progress))

            state = status.get("status")
            if state == "succeeded" and status.get("url"):
                return status["url"]
            if state == "failed":
                raise CreatomateError(status.get("error_message") or status.get("error") or "Rendering failed")

            retries = 0
            interval = max(_POLL_INTERVAL_S, interval * 0.9)
            wait(interval + rng.uniform(0, 2))


# ---------------------------------------------------------------------------
# Variants
# ---------------------------------------------------------------------------

@dataclass
class Variant:
    id: str
    name: str
    template: CreatomateTemplate
    brand: Optional[Brand] = None
    status: str = "pending"
    progress: float = 0.0
    url: Optional[str] = None
    error: Optional[str] = None

    @property
    def packshot_path(self) -> Optional[str]:
        return self.brand.packshot_path(self.template.size) if self.brand else None


def plan_variants(templates: Iterable[CreatomateTemplate], brand_ids: Iterable[str] = ()) -> list[Variant]:
    """One variant per (brand, template), or one per template when no brand is chosen."""
    templates = list(templates)
    brands = [b for b in (get_brand(bid) for bid in brand_ids) if b is not None]
    if not brands:
        return [Variant(id=f"resize-{t.size}", name=t.name, template=t) for t in templates]
    return [
        Variant(id=f"branded-{b.id}-{t.size}", name=f"{b.name} · {t.name}", template=t, brand=b)
        for b in brands
        for t in templates
    ]


def render_variants(
    client: CreatomateClient,
    variants: list[Variant],
    video_url: str,
    *,
    options_for: Callable[[Variant], RenderOptions] = lambda _v: RenderOptions(),
    packshot_url_for: Callable[[Variant], Optional[str]] = lambda _v: None,
    on_update: Optional[Callable[[Variant], None]] = None,
    max_concurrent: int = 2,
    cancel: Optional[CancelToken] = None,
) -> list[Variant]:
    """Render every variant with at most ``max_concurrent`` renders in flight.

    A failed variant is marked ``error`` and does not stop the others.  Once
    ``cancel`` is set no further render is started and unfinished variants
    are marked ``cancelled``.
    """
    lock = threading.Lock()

    def notify(variant: Variant) -> None:
        if on_update is not None:
            with lock:
                on_update(variant)

    def run(variant: Variant) -> Variant:
        try:
            if cancel is not None:
                cancel.raise_if_cancelled()
            variant.status = "generating"
            notify(variant)
            render_id = client.render_video(
                variant.template, video_url, packshot_url_for(variant), options_for(variant)
            )

            def progress(value: float) -> None:
                variant.progress = value
                notify(variant)

            variant.url = client.poll_render_status(render_id, on_progress=progress, cancel=cancel)
            variant.status = "completed"
            variant.progress = 1.0
        except JobCancelled:
            _logger.info("Variant %s cancelled", variant.id)
            variant.status = "cancelled"
        except Exception as exc:
            _logger.error("Variant %s failed: %s", variant.id, exc)
            variant.status = "error"
            variant.error = str(exc)
        notify(variant)
        return variant

    with ThreadPoolExecutor(max_workers=max(1, max_concurrent), thread_name_prefix="creatomate") as pool:
        return list(pool.map(run, variants))
