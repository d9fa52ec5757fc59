import pytest

from src import blob_cache
from src.blob_cache import BlobCache, BlobCacheError, is_cache_key


def test_put_get_delete(tmp_path) -> None:
    cache = BlobCache(tmp_path / "cache" / "media.db")

    key = cache.put(b"\x89PNG...", "image/png")
    assert key.startswith("media-")

    blob = cache.get(key)
    assert blob is not None
    assert blob.data == b"\x89PNG..."
    assert blob.mime_type == "image/png"
    assert blob.size == 7

    cache.delete(key)
    assert cache.get(key) is None


def test_put_with_id_overwrites(tmp_path) -> None:
    cache = BlobCache(tmp_path / "media.db")
    cache.put_with_id("123", b"old", "image/jpeg")
    cache.put_with_id("123", b"new", "image/webp")

    blob = cache.get("123")
    assert blob.data == b"new"
    assert blob.mime_type == "image/webp"


def test_missing_and_empty_keys_are_not_errors(tmp_path) -> None:
    cache = BlobCache(tmp_path / "media.db")
    assert cache.get("media-unknown") is None
    assert cache.get("") is None
    assert cache.resolve("media-unknown") is None


def test_display_source_resolves_keys_and_passes_urls(tmp_path) -> None:
    cache = BlobCache(tmp_path / "media.db")
    key = cache.put(b"abc", "image/png")

    assert cache.display_source(key) == "data:image/png;base64,YWJj"
    assert cache.display_source("https://cdn.example.com/a.png") == "https://cdn.example.com/a.png"
    assert cache.display_source(None) is None


def test_unwritable_location_raises_cache_error(tmp_path) -> None:
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("file")
    cache = BlobCache(blocker / "media.db")

    with pytest.raises(BlobCacheError):
        cache.put(b"x", "image/png")


def test_display_source_swallows_cache_errors(tmp_path) -> None:
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("file")
    cache = BlobCache(blocker / "media.db")

    assert cache.display_source("media-1-abc") is None


def test_is_cache_key() -> None:
    assert is_cache_key("media-1-abcd")
    assert is_cache_key("1712345678901")
    assert not is_cache_key("https://fal.media/x.png")
    assert not is_cache_key("data:image/png;base64,AAAA")
    assert not is_cache_key("")
    assert not is_cache_key(None)


def test_download_bytes_strips_charset(monkeypatch) -> None:
    class _Resp:
        content = b"video"
        headers = {"Content-Type": "video/mp4; charset=binary"}

        def raise_for_status(self):
            return None

    monkeypatch.setattr(blob_cache.requests, "get", lambda url, timeout: _Resp())
    assert blob_cache.download_bytes("https://example.com/v.mp4") == (b"video", "video/mp4")
