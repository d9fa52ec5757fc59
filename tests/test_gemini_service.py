import json
import random

import pytest

from src import gemini_service
from src.models import CharacterProfile


class _FakeModels:
    def __init__(self, replies):
        self.replies = list(replies)
        self.calls = []

    def generate_content(self, model, contents, config=None):
        self.calls.append({"model": model, "contents": contents, "config": config})
        text = self.replies.pop(0)
        return type("Resp", (), {"text": text})()


class _FakeClient:
    def __init__(self, *replies):
        self.models = _FakeModels(replies)


_PROFILE = CharacterProfile(
    name="Mira", personality="curious", backstory="Grew up by the sea.", living_place="Lisbon, Portugal", style="Surfer"
)


def test_character_profile_is_parsed_from_camel_case_json() -> None:
    reply = json.dumps(
        {
            "name": "Mira",
            "personality": "curious",
            "backstory": "Grew up by the sea.",
            "livingPlace": "Lisbon, Portugal",
            "style": "Surfer",
        }
    )
    client = _FakeClient(reply)

    profile = gemini_service.generate_character_profile(b"jpeg", "image/jpeg", client=client)

    assert profile == _PROFILE
    call = client.models.calls[0]
    assert "Surfer" in call["contents"][1]
    assert call["config"].response_mime_type == "application/json"


def test_unparseable_profile_raises_with_raw_text() -> None:
    client = _FakeClient("not json at all")
    with pytest.raises(ValueError, match="not json at all"):
        gemini_service.generate_character_profile(b"jpeg", "image/jpeg", client=client)


def test_image_prompts_fill_template_with_activities_and_style() -> None:
    reply = json.dumps([{"scene": "🏄 Surf", "prompt": "Mira surfing"}, {"scene": "☕ Cafe", "prompt": "Mira at cafe"}])
    client = _FakeClient(reply)

    prompts = gemini_service.generate_image_prompts(_PROFILE, "normal", "ugc", client=client, rng=random.Random(1))

    assert [p.scene for p in prompts] == ["🏄 Surf", "☕ Cafe"]
    sent = client.models.calls[0]["contents"][0]
    assert '"livingPlace": "Lisbon, Portugal"' in sent
    assert "{selectedActivities}" not in sent
    assert "{styleAppendix}" not in sent
    assert "NO DEPTH OF FIELD" in sent


def test_date_prompts_use_environment_and_drop_outfit_lines() -> None:
    reply = json.dumps(
        [{"scene": "Arrival", "prompt": "Mira arrives\nEnvironment: bistro\nOutfit: red dress\nEmotion: shy"}]
    )
    client = _FakeClient(reply)

    (prompt,) = gemini_service.generate_image_prompts(
        _PROFILE, "date", "cinematic", "a candle-lit bistro", client=client
    )

    assert "Outfit" not in prompt.prompt
    assert prompt.prompt == "Mira arrives\nEnvironment: bistro\nEmotion: shy"
    sent = client.models.calls[0]["contents"][0]
    assert "a candle-lit bistro" in sent
    assert "{dateEnvironment}" not in sent


def test_prompt_list_must_be_a_list() -> None:
    client = _FakeClient(json.dumps({"scene": "x", "prompt": "y"}))
    with pytest.raises(ValueError, match="expected a list"):
        gemini_service.generate_image_prompts(_PROFILE, "normal", "ugc", client=client)


def test_prompt_list_entries_must_be_objects() -> None:
    client = _FakeClient(json.dumps(["Mira surfing", "Mira painting"]))
    with pytest.raises(ValueError, match="Failed to parse prompts: expected a list of objects"):
        gemini_service.generate_image_prompts(_PROFILE, "normal", "ugc", client=client)


def test_variations_and_motion() -> None:
    client = _FakeClient(json.dumps(["one", "two", "three"]), "  She turns and smiles.  ")

    assert gemini_service.generate_prompt_variations("Mira surfing", client=client) == ["one", "two", "three"]
    assert gemini_service.generate_motion_prompt("Mira surfing", client=client) == "She turns and smiles."
    assert "Mira surfing" in client.models.calls[0]["contents"][0]
    assert client.models.calls[1]["config"] is None


def test_bad_variations_reply_raises() -> None:
    with pytest.raises(ValueError, match="Could not generate prompt variations"):
        gemini_service.generate_prompt_variations("x", client=_FakeClient("oops"))


def test_reimagine_keeps_date_environment_and_strips_outfit() -> None:
    reply = json.dumps({"scene": "🎨 Painting", "prompt": "Mira painting\nOutfit: apron\nEmotion: calm"})
    client = _FakeClient(reply)

    result = gemini_service.reimagine_scene_prompt(
        _PROFILE, " painting a mural ", "ugc", "date", consistent_env="a rooftop at sunset", client=client
    )

    assert result.scene == "🎨 Painting"
    assert result.prompt == "Mira painting\nEmotion: calm"
    sent = client.models.calls[0]["contents"][0]
    assert "a rooftop at sunset" in sent
    assert "painting a mural" in sent


def test_reimagine_requires_activity() -> None:
    with pytest.raises(ValueError):
        gemini_service.reimagine_scene_prompt(_PROFILE, "  ", "ugc", "normal", client=_FakeClient())


def test_strip_outfit_lines_is_case_insensitive() -> None:
    assert gemini_service.strip_outfit_lines("a\n  OUTFIT: jeans\nb") == "a\nb"
