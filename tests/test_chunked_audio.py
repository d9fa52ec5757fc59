import pytest

from src import chunked_audio
from src.models import TextBlock, UploadedVideo
from src.tts import TTSResult


class _FakeSpeech:
    def __init__(self, fail_on=()):
        self.calls = []
        self.fail_on = set(fail_on)

    def __call__(self, text, voice_id):
        self.calls.append((text, voice_id))
        if text in self.fail_on:
            raise RuntimeError("quota exceeded")
        return TTSResult(audio_url=f"https://a/{len(self.calls)}.mp3", duration=len(text) / 10)


def test_chunks_from_texts_skips_blank_and_caps() -> None:
    chunks = chunked_audio.chunks_from_texts(["  first ", "", "second", "third"], max_chunks=2)
    assert [(c.id, c.text) for c in chunks] == [(1, "first"), (2, "second")]


def test_chunks_from_text_block_keeps_column_order() -> None:
    block = TextBlock(id="block-2", hook="Hook", cta="Join now", body_line1="Body")
    assert [c.text for c in chunked_audio.chunks_from_text_block(block)] == ["Hook", "Join now", "Body"]


def test_add_and_remove_chunk_limits() -> None:
    chunks = chunked_audio.chunks_from_texts(["a", "b"])
    chunks = chunked_audio.add_chunk(chunks, "c", max_chunks=3)
    assert [c.id for c in chunks] == [1, 2, 3]

    with pytest.raises(ValueError):
        chunked_audio.add_chunk(chunks, max_chunks=3)

    chunks = chunked_audio.remove_chunk(chunks, 2)
    assert [c.id for c in chunks] == [1, 3]
    assert chunked_audio.add_chunk(chunks)[-1].id == 4

    with pytest.raises(ValueError):
        chunked_audio.remove_chunk(chunked_audio.chunks_from_texts(["only"]), 1)


def test_new_chunks_are_placed_on_the_timeline() -> None:
    chunks = chunked_audio.chunks_from_texts(["a", "b"])
    assert [(c.start_time, c.effective_duration) for c in chunks] == [(0.0, 2.0), (2.0, 2.0)]

    chunks = chunked_audio.add_chunk(chunks, "c", minimum=1.5)
    assert [c.start_time for c in chunks] == [0.0, 1.5, 3.0]


def test_generate_chunk_audio_recomputes_timeline() -> None:
    speech = _FakeSpeech()
    chunks = chunked_audio.chunks_from_texts(["Hi", "A much longer sentence here", "Bye"])

    chunks = chunked_audio.generate_chunk_audio(chunks, 2, "voice", speech_fn=speech)

    assert chunks[1].audio_url == "https://a/1.mp3"
    assert chunks[1].duration == pytest.approx(2.7)
    assert [c.start_time for c in chunks] == pytest.approx([0.0, 2.0, 4.7])
    assert speech.calls == [("A much longer sentence here", "voice")]


def test_generate_chunk_audio_rejects_unknown_and_empty() -> None:
    chunks = chunked_audio.add_chunk(chunked_audio.chunks_from_texts(["Hi"]))
    with pytest.raises(KeyError):
        chunked_audio.generate_chunk_audio(chunks, 9, "voice", speech_fn=_FakeSpeech())
    with pytest.raises(ValueError):
        chunked_audio.generate_chunk_audio(chunks, 2, "voice", speech_fn=_FakeSpeech())


def test_generate_all_audio_continues_past_failures() -> None:
    speech = _FakeSpeech(fail_on={"broken"})
    chunks = chunked_audio.chunks_from_texts(["one", "broken", "three"])
    reports = []

    chunks = chunked_audio.generate_all_audio(
        chunks, "voice", speech_fn=speech, delay_s=0, on_chunk=lambda c, err: reports.append((c.id, err))
    )

    assert [c.audio_url is not None for c in chunks] == [True, False, True]
    assert reports == [(1, None), (2, "quota exceeded"), (3, None)]
    assert [c.start_time for c in chunks] == [0.0, 2.0, 4.0]


def test_update_text_clears_stale_audio() -> None:
    chunks = chunked_audio.generate_chunk_audio(
        chunked_audio.chunks_from_texts(["Hello there friend"]), 1, "voice", speech_fn=_FakeSpeech()
    )

    same = chunked_audio.update_text(chunks, 1, "Hello there friend")
    assert same[0].audio_url is not None

    changed = chunked_audio.update_text(chunks, 1, "Hello")
    assert changed[0].audio_url is None
    assert changed[0].duration is None
    assert changed[0].effective_duration == 2.0


def test_attach_video() -> None:
    chunks = chunked_audio.chunks_from_texts(["a", "b"])
    video = UploadedVideo(url="https://v/clip.mp4", name="clip.mp4")

    chunks = chunked_audio.attach_video(chunks, 2, video)

    assert chunks[0].video is None
    assert chunks[1].video == video


def test_rebrand_only_regenerates_changed_chunks() -> None:
    speech = _FakeSpeech()
    chunks = chunked_audio.generate_all_audio(
        chunked_audio.chunks_from_texts(["Join DateMyAge today", "It is free"]), "voice", speech_fn=speech, delay_s=0
    )
    speech.calls.clear()

    branded = chunked_audio.rebrand_chunks(chunks, "EuroDate", "voice", speech_fn=speech)

    assert branded[0].text == "Join EuroDate today"
    assert speech.calls == [("Join EuroDate today", "voice")]
    assert branded[1].audio_url == chunks[1].audio_url
    assert chunks[0].text == "Join DateMyAge today"


def test_ready_chunks_drops_empty_and_relays_timeline() -> None:
    chunks = chunked_audio.add_chunk(chunked_audio.chunks_from_texts(["a"]))
    chunks = chunked_audio.add_chunk(chunks, "c")

    ready = chunked_audio.ready_chunks(chunks, minimum=1.5)

    assert [c.id for c in ready] == [1, 3]
    assert [c.start_time for c in ready] == [0.0, 1.5]
