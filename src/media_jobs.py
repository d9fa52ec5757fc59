"""Per-scene image and video generation jobs.

Each requested render is its own job in the shared :class:`JobRegistry`, so
one failure never affects its siblings.  When a job succeeds its media entry
is appended to the owning prompt with the provider's transient URL (the page
can show it immediately), the bytes are copied into the blob cache, the entry
is re-pointed at the cache key and the history item is saved.  If the cache
is unavailable the transient URL is kept.

All mutations of a history item happen under that item's lock, against the
live object, so concurrent completions never drop each other's entries.
"""
from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

from src import fal_service
from src.blob_cache import BlobCache, BlobCacheError, download_bytes
from src.jobs import JobRegistry, JobSnapshot, JobState
from src.models import GeneratedMedia, HistoryItem, VideoGenerationParams
from src.supabase_storage import HistoryStore

_logger = logging.getLogger(__name__)

IMAGE_JOB = "image"
VIDEO_JOB = "video"
SCENE_JOB = "scene"

VISIBLE_STATES = (JobState.PENDING, JobState.FAILED)


class MediaJobTracker:
    def __init__(
        self,
        registry: JobRegistry,
        cache: BlobCache,
        history_store: Optional[HistoryStore] = None,
        *,
        image_fn: Callable[..., str] = fal_service.generate_image,
        video_fn: Callable[..., str] = fal_service.generate_video,
        download: Callable[[str], tuple[bytes, str]] = download_bytes,
    ):
        self.registry = registry
        self.cache = cache
        self.history_store = history_store
        self._image_fn = image_fn
        self._video_fn = video_fn
        self._download = download
        self._locks_guard = threading.Lock()
        self._item_locks: dict[str, threading.RLock] = {}

    # ------------------------------------------------------------------
    # Shared helpers
    # ------------------------------------------------------------------

    def item_lock(self, item_id: str) -> threading.RLock:
        with self._locks_guard:
            return self._item_locks.setdefault(item_id, threading.RLock())

    def _cache_remote(self, url: str) -> Optional[str]:
        try:
            data, mime = self._download(url)
            return self.cache.put(data, mime)
        except BlobCacheError as exc:
            _logger.warning("Blob cache unavailable, keeping transient URL: %s", exc)
        except Exception as exc:
            _logger.warning("Could not fetch %s for caching, keeping transient URL: %s", url, exc)
        return None

    def persist(self, item: HistoryItem) -> bool:
        if self.history_store is None:
            return False
        # The version must be issued together with the snapshot it stamps.
        with self.item_lock(item.id):
            snapshot = item.model_copy(deep=True)
            version = self.history_store.next_version(snapshot.image_id)
        ok = self.history_store.save(snapshot, version=version)
        if not ok:
            _logger.warning("History item %s was not persisted", item.id)
        return ok

    def append_media(self, item: HistoryItem, prompt_index: int, media: GeneratedMedia) -> None:
        lock = self.item_lock(item.id)
        with lock:
            item.image_prompts[prompt_index].generated_media.append(media)
        key = self._cache_remote(media.url)
        if key is not None:
            with lock:
                media.url = key
        self.persist(item)

    # ------------------------------------------------------------------
    # Job starters
    # ------------------------------------------------------------------

    def start_image_jobs(
        self,
        item: HistoryItem,
        prompt_index: int,
        prompts: list[str],
        image: bytes,
        *,
        model: str = "nano-banana",
        companion: Optional[bytes] = None,
        content_type: str = "image/jpeg",
    ) -> list[str]:
        """Start one image job per prompt text; returns the job IDs."""
        scene = item.image_prompts[prompt_index].scene
        job_ids = []
        for text in prompts:
            if not text.strip():
                continue

            def work(token, progress, text=text):
                progress("Generating image")
                return self._image_fn(
                    text, image, companion=companion, model=model, content_type=content_type, cancel=token
                )

            def merge(url, text=text):
                media = GeneratedMedia(prompt=text, url=url, type="image", model=model, scene=scene)
                self.append_media(item, prompt_index, media)

            job_ids.append(
                self.registry.submit(
                    IMAGE_JOB, work, owner=(item.id, prompt_index), label=text[:80], on_success=merge
                )
            )
        return job_ids

    def start_video_job(
        self,
        item: HistoryItem,
        prompt_index: int,
        params: VideoGenerationParams,
        source_url: str,
        *,
        source_image: Optional[bytes] = None,
    ) -> str:
        if not params.prompt.strip():
            raise ValueError("A motion prompt is required to generate a video.")
        scene = item.image_prompts[prompt_index].scene

        def work(token, progress):
            return self._video_fn(
                params.prompt,
                source_url,
                params.resolution,
                params.duration,
                params.model,
                image=source_image,
                on_progress=progress,
                cancel=token,
            )

        def merge(url):
            media = GeneratedMedia(
                prompt=params.prompt,
                url=url,
                type="video",
                model=params.model,
                scene=scene,
                resolution=params.resolution,
                duration=params.duration,
            )
            self.append_media(item, prompt_index, media)

        return self.registry.submit(
            VIDEO_JOB, work, owner=(item.id, prompt_index), label=params.prompt[:80], on_success=merge
        )

    def generate_scene_images(
        self,
        item: HistoryItem,
        indices: list[int],
        image: bytes,
        *,
        model: str = "nano-banana",
        companion: Optional[bytes] = None,
        content_type: str = "image/jpeg",
    ) -> list[str]:
        """Render the main image of each selected scene; errors land on the prompt."""
        job_ids = []
        for index in indices:
            prompt = item.image_prompts[index]
            with self.item_lock(item.id):
                prompt.generation_error = None

            def work(token, progress, text=prompt.prompt):
                return self._image_fn(
                    text, image, companion=companion, model=model, content_type=content_type, cancel=token
                )

            def merge(url, index=index):
                lock = self.item_lock(item.id)
                with lock:
                    item.image_prompts[index].generated_image_url = url
                key = self._cache_remote(url)
                if key is not None:
                    with lock:
                        item.image_prompts[index].generated_image_url = key
                self.persist(item)

            def fail(error, index=index):
                with self.item_lock(item.id):
                    item.image_prompts[index].generation_error = error
                self.persist(item)

            job_ids.append(
                self.registry.submit(
                    SCENE_JOB,
                    work,
                    owner=(item.id, index),
                    label=prompt.scene,
                    on_success=merge,
                    on_failure=fail,
                )
            )
        return job_ids

    # ------------------------------------------------------------------
    # Projection / control
    # ------------------------------------------------------------------

    def jobs_for(self, item_id: str, prompt_index: int, kind: Optional[str] = None) -> tuple[JobSnapshot, ...]:
        """Pending and failed jobs for one scene (succeeded ones are already merged)."""
        return self.registry.snapshot(owner=(item_id, prompt_index), kind=kind, states=VISIBLE_STATES)

    def pending_scene_indices(self, item_id: str) -> set[int]:
        return {
            snap.owner[1]
            for snap in self.registry.snapshot(kind=SCENE_JOB, states=(JobState.PENDING,))
            if snap.owner and snap.owner[0] == item_id
        }

    def cancel(self, job_id: str) -> Optional[JobSnapshot]:
        return self.registry.cancel(job_id)

    def dismiss(self, job_id: str) -> bool:
        return self.registry.dismiss(job_id)
