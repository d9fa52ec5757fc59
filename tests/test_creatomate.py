import random

import pytest
import requests

from src import creatomate
from src.creatomate import (
    CreatomateClient,
    CreatomateError,
    RenderOptions,
    build_modifications,
    get_template,
    plan_variants,
    render_variants,
)
from src.jobs import CancelToken
from src.models import AudioChunk, UploadedVideo
from src.timeline import recompute_start_times


class _Resp:
    def __init__(self, status_code=200, body=None, text=""):
        self.status_code = status_code
        self._body = body
        self.text = text

    def json(self):
        return self._body


class _FakeSession:
    def __init__(self, responses):
        self.responses = list(responses)
        self.calls = []

    def request(self, method, url, headers, json, timeout):
        self.calls.append((method, url, json))
        resp = self.responses.pop(0)
        if isinstance(resp, Exception):
            raise resp
        return resp


def _chunks() -> list[AudioChunk]:
    raw = [
        AudioChunk(id=1, text="Meet on DateMyAge", audio_url="https://a/1.mp3", duration=0.7,
                   video=UploadedVideo(url="https://v/1.mp4")),
        AudioChunk(id=2, text="Today", audio_url="https://a/2.mp3", duration=5.3,
                   video=UploadedVideo(url="https://v/2.mp4")),
    ]
    return recompute_start_times(raw)


def test_resize_vertical_with_subtitles() -> None:
    mods = build_modifications(
        get_template("vertical"), "https://v/main.mp4", "https://p/pack.mp4", RenderOptions(enable_subtitles=True)
    )

    assert mods == {
        "Packshot": "https://p/pack.mp4",
        "Main_Video": "https://v/main.mp4",
        "element_subtitles.visible": True,
        "element_subtitles.transcript_source": "Main_Video",
    }


def test_resize_horizontal_sets_front_and_back() -> None:
    mods = build_modifications(get_template("horizontal"), "https://v/main.mp4")

    assert mods["Main_Video_front"] == "https://v/main.mp4"
    assert mods["Main_Video_back"] == "https://v/main.mp4"
    assert mods["element_subtitles.visible"] is False
    assert "Packshot" not in mods


def test_chunked_template_lays_out_chunks_and_packshot() -> None:
    mods = build_modifications(
        get_template("chunked-square"),
        "",
        "https://p/pack.mp4",
        RenderOptions(enable_subtitles=True, chunks=_chunks()),
    )

    assert mods["Main_Video_1"] == "https://v/1.mp4"
    assert mods["Main_Video_1_back"] == "https://v/1.mp4"
    assert mods["Main_Video_1.duration"] == 2.0
    assert mods["Main_Video_2.duration"] == 5.3
    assert mods["Audio_2.time"] == 2.0
    assert mods["element_subtitles_2.time"] == 2.0
    assert mods["element_subtitles_10.transcript_source"] == "Audio_10"
    assert mods["Packshot.time"] == pytest.approx(7.3)
    assert mods["duration"] == pytest.approx(10.3)
    assert "element_subtitles.visible" not in mods


def test_text_emoji_uses_fixed_blocks_and_brands_text() -> None:
    options = RenderOptions(chunks=_chunks(), text_blocks=["Meet on DateMyAge", "Today"], brand_name="OurLove")
    mods = build_modifications(get_template("text-emoji"), "", "https://p/pack.mp4", options)

    assert mods["Text-1.text"] == "Meet on OurLove"
    assert mods["Main_Video_7.duration"] == 2
    assert mods["Packshot.time"] == 4
    assert mods["duration"] is None
    assert mods["emoji_style"] == "apple"


def test_text_emoji_v2_percentages_and_music() -> None:
    options = RenderOptions(
        chunks=_chunks(),
        text_blocks=["a", "b"],
        subtitle_visibility=30,
        audio_volume=80,
        music_url="https://m/song.wav",
    )
    mods = build_modifications(get_template("text-emoji-v2"), "", "https://p/pack.mp4", options)

    assert mods["Audio_1.volume"] == "80%"
    assert mods["element_subtitles_1.opacity"] == "30%"
    assert mods["Text-1.opacity"] == "70%"
    assert mods["Text-2.time"] == 2.0
    assert mods["duration"] == pytest.approx(10.3)
    assert mods["Packshot.time"] == pytest.approx(7.3)
    assert mods["Song"] == "https://m/song.wav"


def test_text_emoji_v2_muted_voice_uses_fixed_text_duration() -> None:
    options = RenderOptions(chunks=_chunks(), text_blocks=["a", "b"], audio_volume=0)
    mods = build_modifications(get_template("text-emoji-v2"), "", None, options)

    assert mods["Text-1.duration"] == 2
    assert mods["duration"] == 2 * 2 + 3


def test_split_text_into_lines() -> None:
    assert creatomate.split_text_into_lines("one two three four", 9) == "one two\nthree\nfour"
    assert creatomate.split_text_into_lines("", 5) == ""


def test_plan_variants() -> None:
    templates = [get_template("vertical"), get_template("square")]

    plain = plan_variants(templates)
    assert [v.id for v in plain] == ["resize-vertical", "resize-square"]
    assert plain[0].packshot_path is None

    branded = plan_variants(templates, ["eurodate", "unknown", "ourlove"])
    assert [v.id for v in branded] == [
        "branded-eurodate-vertical",
        "branded-eurodate-square",
        "branded-ourlove-vertical",
        "branded-ourlove-square",
    ]
    assert branded[1].name == "EuroDate · 1:1 Square"
    assert branded[1].packshot_path == "packshots/EuroDate_packshot_1x1.mp4"


def test_client_requires_api_key() -> None:
    with pytest.raises(CreatomateError):
        CreatomateClient("")


def test_render_video_posts_template_and_accepts_list_reply() -> None:
    session = _FakeSession([_Resp(body=[{"id": "r-1", "status": "planned"}])])
    client = CreatomateClient("key", session=session)

    assert client.render_video(get_template("square"), "https://v/main.mp4") == "r-1"
    method, url, payload = session.calls[0]
    assert (method, url) == ("POST", "https://api.creatomate.com/v2/renders")
    assert payload["template_id"] == get_template("square").id
    assert payload["modifications"]["Main_Video_front"] == "https://v/main.mp4"


def test_poll_retries_rate_limits_with_backoff() -> None:
    session = _FakeSession(
        [
            _Resp(429, text="slow down"),
            requests.ConnectionError("reset"),
            _Resp(body={"status": "rendering", "progress": 0.5}),
            _Resp(body={"status": "succeeded", "url": "https://cdn/out.mp4"}),
        ]
    )
    client = CreatomateClient("key", session=session)
    waits, progress = [], []

    url = client.poll_render_status(
        "r-1", on_progress=progress.append, sleep=waits.append, rng=random.Random(3)
    )

    assert url == "https://cdn/out.mp4"
    assert progress == [0.5]
    assert len(waits) == 4
    assert 12 <= waits[1] <= 17
    assert 24 <= waits[2] <= 29


def test_poll_gives_up_after_five_rate_limits() -> None:
    session = _FakeSession([_Resp(429, text="slow down")] * 6)
    client = CreatomateClient("key", session=session)

    with pytest.raises(CreatomateError) as err:
        client.poll_render_status("r-1", sleep=lambda _s: None)
    assert err.value.status_code == 429
    assert len(session.calls) == 6


def test_poll_raises_render_failure_message() -> None:
    session = _FakeSession([_Resp(body={"status": "failed", "error_message": "Source video unreachable"})])
    client = CreatomateClient("key", session=session)

    with pytest.raises(CreatomateError, match="Source video unreachable"):
        client.poll_render_status("r-1", sleep=lambda _s: None)


def test_poll_does_not_retry_client_errors() -> None:
    session = _FakeSession([_Resp(404, text="not found")])
    client = CreatomateClient("key", session=session)

    with pytest.raises(CreatomateError, match="404"):
        client.poll_render_status("r-1", sleep=lambda _s: None)


class _StubClient:
    def __init__(self, failing_sizes=()):
        self.failing_sizes = set(failing_sizes)
        self.started = []

    def render_video(self, template, video_url, packshot_url=None, options=None):
        self.started.append(template.size)
        if template.size in self.failing_sizes:
            raise CreatomateError("template rejected")
        return f"render-{template.size}"

    def poll_render_status(self, render_id, on_progress=None, cancel=None):
        on_progress(0.5)
        return f"https://cdn/{render_id}.mp4"


def test_render_variants_isolates_failures() -> None:
    variants = plan_variants([get_template("vertical"), get_template("square"), get_template("horizontal")])
    updates = []

    result = render_variants(
        _StubClient(failing_sizes={"square"}),
        variants,
        "https://v/main.mp4",
        on_update=lambda v: updates.append((v.id, v.status)),
    )

    assert [v.status for v in result] == ["completed", "error", "completed"]
    assert result[0].url == "https://cdn/render-vertical.mp4"
    assert result[0].progress == 1.0
    assert result[1].error == "template rejected"
    assert ("resize-square", "generating") in updates


def test_render_variants_starts_nothing_once_cancelled() -> None:
    variants = plan_variants([get_template("vertical"), get_template("square")], ["datemyage", "eurodate"])
    client = _StubClient()
    token = CancelToken()
    token.cancel()

    result = render_variants(client, variants, "https://v/main.mp4", cancel=token)

    assert client.started == []
    assert {v.status for v in result} == {"cancelled"}
    assert all(v.error is None for v in result)


class _CancellingClient(_StubClient):
    def __init__(self, token):
        super().__init__()
        self.token = token

    def poll_render_status(self, render_id, on_progress=None, cancel=None):
        self.token.cancel()
        cancel.raise_if_cancelled()


def test_cancel_during_poll_stops_remaining_variants() -> None:
    variants = plan_variants([get_template("vertical"), get_template("square"), get_template("horizontal")])
    token = CancelToken()
    client = _CancellingClient(token)

    result = render_variants(client, variants, "https://v/main.mp4", max_concurrent=1, cancel=token)

    assert client.started == ["vertical"]
    assert [v.status for v in result] == ["cancelled", "cancelled", "cancelled"]
