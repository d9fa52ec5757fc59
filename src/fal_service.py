"""Fal.ai image and video generation.

Public API
----------
generate_image(prompt, image, ...) -> str
generate_images_from_text(prompt, num_images, aspect_ratio, ...) -> list[GeneratedMedia]
reframe_image(image, aspect_ratio, ...) -> str
edit_image(prompt, image, num_images, ...) -> list[GeneratedMedia]
generate_video(prompt, image_url, resolution, duration, model, ...) -> str

Requests go through the Fal queue: submit, poll status, fetch the result.
Polling checks the caller's :class:`~src.jobs.CancelToken` between polls and
cancels the queued request upstream when it is set.  Every failure is
re-raised as :class:`FalServiceError` with the provider detail text.
"""
from __future__ import annotations

import logging
import time
from typing import Any, Callable, Optional

import fal_client

from src.config import load_config
from src.jobs import CancelToken, JobCancelled
from src.models import GeneratedMedia
from src.prompt_optimizer import optimize_prompt

_logger = logging.getLogger(__name__)

_POLL_INTERVAL_S = 2.0

NANO_BANANA_EDIT = "fal-ai/nano-banana/edit"
SEEDREAM_TEXT_TO_IMAGE = "fal-ai/bytedance/seedream/v3/text-to-image"
LUMA_REFRAME = "fal-ai/luma-photon/flash/reframe"

VIDEO_ENDPOINTS = {
    "seedance-pro": "fal-ai/bytedance/seedance/v1/pro/image-to-video",
    "seedance-lite": "fal-ai/bytedance/seedance/v1/lite/image-to-video",
    "hailuo-2-standard": "fal-ai/minimax/hailuo-02/standard/image-to-video",
    "hailuo-2-pro": "fal-ai/minimax/hailuo-02/pro/image-to-video",
}

REFRAME_ASPECT_RATIOS = ("1:1", "16:9", "9:16", "4:3", "3:4", "21:9", "9:21")

_SEEDREAM_SIZES = {
    "1:1": "square_hd",
    "16:9": "landscape_16_9",
    "9:16": "portrait_16_9",
    "4:3": "landscape_4_3",
    "3:4": "portrait_4_3",
}


class FalServiceError(RuntimeError):
    pass


def _client() -> fal_client.SyncClient:
    key = load_config().fal_api_key
    if not key:
        raise FalServiceError("Fal.ai API key not found. Set FAL_KEY in secrets or the environment.")
    return fal_client.SyncClient(key=key)


def _detail(exc: Exception) -> str:
    detail = getattr(exc, "detail", None) or str(exc)
    return str(detail) or "An unknown error occurred."


def _log_messages(logs: Any) -> list[str]:
    messages = []
    for entry in logs or []:
        msg = entry.get("message") if isinstance(entry, dict) else str(entry)
        if msg:
            messages.append(str(msg))
    return messages


def _run(
    client,
    application: str,
    arguments: dict,
    *,
    cancel: Optional[CancelToken] = None,
    on_progress: Optional[Callable[[str], None]] = None,
) -> dict:
    """Submit ``arguments`` to ``application`` and wait for the result."""
    handle = client.submit(application, arguments=arguments)
    seen = 0
    while True:
        if cancel is not None and cancel.cancelled:
            try:
                handle.cancel()
            except Exception as exc:
                _logger.warning("Could not cancel Fal request %s: %s", getattr(handle, "request_id", "?"), exc)
            raise JobCancelled()

        status = handle.status(with_logs=True)
        if isinstance(status, fal_client.InProgress) and on_progress is not None:
            messages = _log_messages(status.logs)
            for msg in messages[seen:]:
                on_progress(msg)
            seen = max(seen, len(messages))
        if isinstance(status, fal_client.Completed):
            break

        if cancel is not None:
            try:
                cancel.sleep(_POLL_INTERVAL_S)
            except JobCancelled:
                continue
        else:
            time.sleep(_POLL_INTERVAL_S)

    result = handle.get()
    if not isinstance(result, dict):
        raise FalServiceError(f"Unexpected Fal response type for {application}: {type(result).__name__}")
    return result


def _call(fn, *args, **kwargs):
    try:
        return fn(*args, **kwargs)
    except (JobCancelled, FalServiceError):
        raise
    except Exception as exc:
        _logger.error("Fal.ai service error: %s", exc)
        raise FalServiceError(f"Fal.ai API Error: {_detail(exc)}") from exc


def upload_image(image: bytes, content_type: str = "image/jpeg", *, client=None) -> str:
    client = client or _client()
    ext = "png" if content_type == "image/png" else "jpg"
    return _call(client.upload, image, content_type, f"image-{int(time.time() * 1000)}.{ext}")


def _first_image_url(output: dict, what: str) -> str:
    images = output.get("images") or []
    if not images or not images[0].get("url"):
        _logger.error("Invalid Fal response for %s: %s", what, output)
        raise FalServiceError(f"The {what} API did not return a valid image URL.")
    return images[0]["url"]


def _media_from_images(output: dict, prompt: str, model: str, scene: str) -> list[GeneratedMedia]:
    images = output.get("images") or []
    if not images:
        raise FalServiceError("The API did not return any valid image URLs.")
    return [
        GeneratedMedia(
            prompt=prompt,
            url=img["url"],
            type="image",
            model=model,
            width=img.get("width"),
            height=img.get("height"),
            size=img.get("file_size"),
            scene=scene,
            seed=output.get("seed"),
        )
        for img in images
        if img.get("url")
    ]


def generate_image(
    prompt: str,
    image: bytes,
    *,
    companion: Optional[bytes] = None,
    model: str = "nano-banana",
    content_type: str = "image/jpeg",
    cancel: Optional[CancelToken] = None,
    client=None,
) -> str:
    """Render ``prompt`` with the character photo (and optional companion photo)."""
    client = client or _client()
    optimized = optimize_prompt(prompt, "nano-banana")
    _logger.info("nano-banana prompt (%s requested): %s", model, optimized)

    image_urls = [upload_image(image, content_type, client=client)]
    if companion:
        image_urls.append(upload_image(companion, content_type, client=client))

    output = _call(
        _run, client, NANO_BANANA_EDIT, {"prompt": optimized, "image_urls": image_urls}, cancel=cancel
    )
    return _first_image_url(output, "image generation")


def generate_images_from_text(
    prompt: str,
    num_images: int = 1,
    aspect_ratio: str = "1:1",
    *,
    cancel: Optional[CancelToken] = None,
    client=None,
) -> list[GeneratedMedia]:
    if not prompt.strip():
        raise ValueError("Prompt is required.")
    client = client or _client()
    arguments = {
        "prompt": prompt,
        "num_images": num_images,
        "image_size": _SEEDREAM_SIZES.get(aspect_ratio, "square_hd"),
    }
    output = _call(_run, client, SEEDREAM_TEXT_TO_IMAGE, arguments, cancel=cancel)
    return _media_from_images(output, prompt, "seedream-v3", "Image Generation")


def reframe_image(
    image: bytes,
    aspect_ratio: str,
    *,
    content_type: str = "image/jpeg",
    cancel: Optional[CancelToken] = None,
    client=None,
) -> str:
    if aspect_ratio not in REFRAME_ASPECT_RATIOS:
        raise ValueError(f"Unsupported aspect ratio {aspect_ratio!r}; choose one of {', '.join(REFRAME_ASPECT_RATIOS)}.")
    client = client or _client()
    image_url = upload_image(image, content_type, client=client)
    output = _call(
        _run, client, LUMA_REFRAME, {"image_url": image_url, "aspect_ratio": aspect_ratio}, cancel=cancel
    )
    return _first_image_url(output, "AI reframe")


def edit_image(
    prompt: str,
    image: bytes,
    num_images: int = 1,
    *,
    content_type: str = "image/jpeg",
    cancel: Optional[CancelToken] = None,
    client=None,
) -> list[GeneratedMedia]:
    if not prompt.strip():
        raise ValueError("Describe the edit first.")
    client = client or _client()
    image_url = upload_image(image, content_type, client=client)
    arguments = {
        "prompt": optimize_prompt(prompt, "nano-banana"),
        "image_urls": [image_url],
        "num_images": num_images,
    }
    output = _call(_run, client, NANO_BANANA_EDIT, arguments, cancel=cancel)
    return _media_from_images(output, prompt, "nano-banana", "AI Edit")


def video_arguments(model: str, prompt: str, image_url: str, resolution: str, duration: str) -> tuple[str, dict]:
    """Return ``(endpoint, arguments)`` for an image-to-video request."""
    if model not in VIDEO_ENDPOINTS:
        raise ValueError(f"Unsupported video model: {model}")
    if model.startswith("seedance"):
        args = {"prompt": prompt, "image_url": image_url, "resolution": resolution, "duration": duration}
    else:
        args = {
            "prompt": prompt,
            "image_url": image_url,
            "duration_in_seconds": int(duration),
            "height": int(resolution.rstrip("p")),
        }
    return VIDEO_ENDPOINTS[model], args


def generate_video(
    prompt: str,
    image_url: str,
    resolution: str,
    duration: str,
    model: str,
    *,
    image: Optional[bytes] = None,
    on_progress: Optional[Callable[[str], None]] = None,
    cancel: Optional[CancelToken] = None,
    client=None,
) -> str:
    """Animate a still.  Pass ``image`` bytes when ``image_url`` is not publicly reachable."""
    client = client or _client()
    if image is not None or not image_url.startswith(("http://", "https://")):
        if image is None:
            raise ValueError("Source image bytes are required for a non-public image URL.")
        image_url = upload_image(image, client=client)

    endpoint, arguments = video_arguments(model, prompt, image_url, resolution, duration)
    output = _call(_run, client, endpoint, arguments, cancel=cancel, on_progress=on_progress)
    video = output.get("video") or {}
    if not video.get("url"):
        _logger.error("Invalid Fal response for video generation: %s", output)
        raise FalServiceError("The API did not return a valid video URL.")
    return video["url"]
