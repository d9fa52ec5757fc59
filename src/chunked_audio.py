"""Chunk list operations for the chunked-audio video scenario.

Chunks are kept as an ordered list of :class:`AudioChunk`.  Every function
returns a new list; after any change to audio the timeline is recomputed so
``start_time`` always equals the sum of the preceding effective durations.
"""
from __future__ import annotations

import logging
import time
from typing import Callable, Iterable, Optional

from src.brand import apply_brand_replacement
from src.models import AudioChunk, TextBlock, UploadedVideo
from src.sheets import text_block_lines
from src.timeline import MIN_EFFECTIVE_DURATION, recompute_start_times
from src.tts import TTSResult, synthesize_speech

_logger = logging.getLogger(__name__)

MAX_CHUNKS = 10

SpeechFn = Callable[[str, str], TTSResult]


def chunks_from_texts(
    texts: Iterable[str],
    max_chunks: int = MAX_CHUNKS,
    minimum: float = MIN_EFFECTIVE_DURATION,
) -> list[AudioChunk]:
    cleaned = [t.strip() for t in texts if t and t.strip()]
    chunks = [AudioChunk(id=i + 1, text=text) for i, text in enumerate(cleaned[:max_chunks])]
    return recompute_start_times(chunks, minimum)


def chunks_from_text_block(
    block: TextBlock,
    max_chunks: int = MAX_CHUNKS,
    minimum: float = MIN_EFFECTIVE_DURATION,
) -> list[AudioChunk]:
    return chunks_from_texts(text_block_lines(block), max_chunks, minimum)


def add_chunk(
    chunks: list[AudioChunk],
    text: str = "",
    max_chunks: int = MAX_CHUNKS,
    minimum: float = MIN_EFFECTIVE_DURATION,
) -> list[AudioChunk]:
    if len(chunks) >= max_chunks:
        raise ValueError(f"A video can have at most {max_chunks} chunks.")
    new_id = max((c.id for c in chunks), default=0) + 1
    return recompute_start_times([*chunks, AudioChunk(id=new_id, text=text)], minimum)


def remove_chunk(chunks: list[AudioChunk], chunk_id: int, minimum: float = MIN_EFFECTIVE_DURATION) -> list[AudioChunk]:
    if len(chunks) <= 1:
        raise ValueError("At least one chunk is required.")
    return recompute_start_times([c for c in chunks if c.id != chunk_id], minimum)


def update_text(chunks: list[AudioChunk], chunk_id: int, text: str, minimum: float = MIN_EFFECTIVE_DURATION) -> list[AudioChunk]:
    """Change a chunk's text; its audio no longer matches so it is cleared."""
    updated = []
    for c in chunks:
        if c.id == chunk_id and c.text != text:
            c = c.model_copy(update={"text": text, "audio_url": None, "duration": None})
        updated.append(c)
    return recompute_start_times(updated, minimum)


def attach_video(chunks: list[AudioChunk], chunk_id: int, video: Optional[UploadedVideo]) -> list[AudioChunk]:
    return [c.model_copy(update={"video": video}) if c.id == chunk_id else c for c in chunks]


def generate_chunk_audio(
    chunks: list[AudioChunk],
    chunk_id: int,
    voice_id: str,
    *,
    speech_fn: SpeechFn = synthesize_speech,
    minimum: float = MIN_EFFECTIVE_DURATION,
) -> list[AudioChunk]:
    """Synthesize one chunk and return the list with a recomputed timeline."""
    target = next((c for c in chunks if c.id == chunk_id), None)
    if target is None:
        raise KeyError(f"No chunk with id {chunk_id}")
    if not target.text.strip():
        raise ValueError("Chunk text is empty.")

    result = speech_fn(target.text, voice_id)
    updated = [
        c.model_copy(update={"audio_url": result.audio_url, "duration": result.duration, "is_generating": False})
        if c.id == chunk_id
        else c
        for c in chunks
    ]
    return recompute_start_times(updated, minimum)


def generate_all_audio(
    chunks: list[AudioChunk],
    voice_id: str,
    *,
    speech_fn: SpeechFn = synthesize_speech,
    delay_s: float = 1.0,
    minimum: float = MIN_EFFECTIVE_DURATION,
    on_chunk: Optional[Callable[[AudioChunk, Optional[str]], None]] = None,
) -> list[AudioChunk]:
    """Synthesize every chunk that has text but no audio, one request at a time.

    A failed chunk is reported through ``on_chunk(chunk, error)`` and left
    without audio; the remaining chunks are still generated.
    """
    pending = [c.id for c in chunks if c.text.strip() and not c.audio_url]
    for n, chunk_id in enumerate(pending):
        try:
            chunks = generate_chunk_audio(chunks, chunk_id, voice_id, speech_fn=speech_fn, minimum=minimum)
            error = None
        except Exception as exc:
            _logger.error("Audio generation failed for chunk %s: %s", chunk_id, exc)
            error = str(exc)
        if on_chunk is not None:
            on_chunk(next(c for c in chunks if c.id == chunk_id), error)
        if delay_s and n < len(pending) - 1:
            time.sleep(delay_s)
    return recompute_start_times(chunks, minimum)


def rebrand_chunks(
    chunks: list[AudioChunk],
    brand_name: str,
    voice_id: str,
    *,
    patterns: Optional[Iterable[str]] = None,
    speech_fn: SpeechFn = synthesize_speech,
    minimum: float = MIN_EFFECTIVE_DURATION,
) -> list[AudioChunk]:
    """Rewrite chunk texts for ``brand_name``; only changed texts get new audio."""
    updated = list(chunks)
    for chunk in chunks:
        branded = apply_brand_replacement(chunk.text, brand_name, patterns)
        if branded == chunk.text and chunk.audio_url:
            continue
        updated = [
            c.model_copy(update={"text": branded, "audio_url": None, "duration": None}) if c.id == chunk.id else c
            for c in updated
        ]
        if branded.strip():
            updated = generate_chunk_audio(updated, chunk.id, voice_id, speech_fn=speech_fn, minimum=minimum)
    return recompute_start_times(updated, minimum)


def ready_chunks(chunks: list[AudioChunk], minimum: float = MIN_EFFECTIVE_DURATION) -> list[AudioChunk]:
    """Chunks with text, laid out back to back."""
    return recompute_start_times([c for c in chunks if c.text.strip()], minimum)
