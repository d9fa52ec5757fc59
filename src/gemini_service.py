"""Character profile and scene prompt generation with Gemini.

Public API
----------
generate_character_profile(image, mime_type, ...) -> CharacterProfile
generate_image_prompts(profile, mode, style, environment=None, ...) -> list[ImagePrompt]
generate_prompt_variations(original_prompt, ...) -> list[str]
generate_motion_prompt(image_prompt, ...) -> str
reimagine_scene_prompt(profile, new_activity, style, mode, consistent_env=None, ...) -> ImagePrompt
generate_edit_suggestion(image, mime_type, ...) -> str

Structured calls send a JSON response schema and validate the reply with the
pydantic models from ``src.models``.  A reply that cannot be parsed raises
``ValueError`` carrying the raw response text.
"""
from __future__ import annotations

import json
import logging
import random
from typing import Any, Optional

from google import genai
from google.genai import types

from src.activities import get_activities, get_activity_counts, get_archetypes, select_activities
from src.config import load_config
from src.models import CharacterProfile, ImagePrompt
from src.prompts import fill_template, get_prompt_config, prompt_key_for_mode, style_appendix
from src.settings_store import SettingsStore

_logger = logging.getLogger(__name__)

_PROFILE_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "name": {"type": "STRING", "description": "A plausible first name for the character."},
        "personality": {"type": "STRING", "description": "The character's personality in a few words."},
        "backstory": {"type": "STRING", "description": "The character's short backstory (maximum 300 characters)."},
        "livingPlace": {"type": "STRING", "description": "The character's plausible living place (City, Country)."},
        "style": {"type": "STRING", "description": "The character's style. This must be chosen from a predefined list."},
    },
    "required": ["name", "personality", "backstory", "livingPlace", "style"],
}

_SCENE_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "scene": {"type": "STRING", "description": "A short title for the scene that includes a relevant emoji."},
        "prompt": {"type": "STRING", "description": "The full English prompt for image generation."},
    },
    "required": ["scene", "prompt"],
}

_PROMPT_LIST_SCHEMA = {
    "type": "ARRAY",
    "description": "A list of photorealistic image prompts in English.",
    "items": _SCENE_SCHEMA,
}

_VARIATIONS_SCHEMA = {
    "type": "ARRAY",
    "description": "A list of 3 creative variations of the provided prompt.",
    "items": {"type": "STRING", "description": "A single prompt variation."},
}

_EDIT_SUGGESTION_TEXT = (
    "Based on the provided image of a person, suggest a creative and interesting edit that could be made. "
    "The suggestion should be a concise instruction for an image editing AI. For example: "
    '"Change his t-shirt to a hawaiian shirt", or "Add a pair of sunglasses".'
)


def _client() -> genai.Client:
    key = load_config().gemini_api_key
    if not key:
        raise RuntimeError("Gemini API key not found. Set GEMINI_API_KEY in secrets or the environment.")
    return genai.Client(api_key=key)


def _generate(client, model: str, parts: list, schema: Optional[dict] = None) -> str:
    config = None
    if schema is not None:
        config = types.GenerateContentConfig(response_mime_type="application/json", response_schema=schema)
    resp = client.models.generate_content(model=model, contents=parts, config=config)
    return (getattr(resp, "text", None) or "").strip()


def _parse_json(text: str, what: str) -> Any:
    try:
        return json.loads(text)
    except (TypeError, ValueError) as exc:
        _logger.error("Failed to parse Gemini response for %s: %s", what, text[:500])
        raise ValueError(f"Failed to parse {what}: {exc}. Response was: {text}") from exc


def strip_outfit_lines(prompt: str) -> str:
    """Remove ``Outfit:`` lines; date scenes take the outfit from the source photo."""
    return "\n".join(line for line in prompt.split("\n") if not line.strip().lower().startswith("outfit:"))


def generate_character_profile(
    image: bytes,
    mime_type: str,
    *,
    store: Optional[SettingsStore] = None,
    client=None,
) -> CharacterProfile:
    client = client or _client()
    archetypes = ", ".join(get_archetypes(store))

    schema = json.loads(json.dumps(_PROFILE_SCHEMA))
    schema["properties"]["style"]["description"] = f"The character's style. Choose one from this list: {archetypes}."
    instruction = (
        "Based on the provided image, create a plausible first name, a personality, a short backstory "
        "(max 300 characters), a living place (City, Country), and a style for this character. "
        f"For the style, choose one from the following list: {archetypes}."
    )

    text = _generate(
        client,
        load_config().gemini_model,
        [types.Part.from_bytes(data=image, mime_type=mime_type), instruction],
        schema,
    )
    data = _parse_json(text, "character profile")
    try:
        return CharacterProfile.model_validate(data)
    except Exception as exc:
        raise ValueError(f"Failed to parse character profile: {exc}. Response was: {text}") from exc


def generate_image_prompts(
    profile: CharacterProfile,
    mode: str,
    style: str,
    environment: Optional[str] = None,
    *,
    store: Optional[SettingsStore] = None,
    client=None,
    rng: Optional[random.Random] = None,
) -> list[ImagePrompt]:
    client = client or _client()
    config = get_prompt_config(prompt_key_for_mode(mode), store)

    selected = select_activities(mode, get_activities(store), get_activity_counts(store), rng)
    template = config.prompt
    if mode == "date" and environment:
        template = fill_template(template, dateEnvironment=environment)
    template = fill_template(
        template,
        selectedActivities="\n".join(selected),
        styleAppendix=style_appendix(style),
    )

    profile_json = json.dumps(profile.to_record(), indent=2, ensure_ascii=False)
    text = _generate(
        client,
        config.model,
        [f"Character Profile:\n{profile_json}\n\nPrompt Template:\n{template}"],
        _PROMPT_LIST_SCHEMA,
    )
    data = _parse_json(text, "prompts")
    if not isinstance(data, list):
        raise ValueError(f"Failed to parse prompts: expected a list. Response was: {text}")
    if not all(isinstance(p, dict) for p in data):
        raise ValueError(f"Failed to parse prompts: expected a list of objects. Response was: {text}")

    prompts = [ImagePrompt(scene=str(p.get("scene", "")), prompt=str(p.get("prompt", ""))) for p in data]
    if mode == "date":
        for p in prompts:
            p.prompt = strip_outfit_lines(p.prompt)
    return prompts


def generate_prompt_variations(
    original_prompt: str,
    *,
    store: Optional[SettingsStore] = None,
    client=None,
) -> list[str]:
    client = client or _client()
    config = get_prompt_config("variations", store)
    text = _generate(
        client,
        config.model,
        [fill_template(config.prompt, originalPrompt=original_prompt)],
        _VARIATIONS_SCHEMA,
    )
    try:
        data = json.loads(text)
    except ValueError as exc:
        _logger.error("Failed to parse variations from Gemini: %s", text[:500])
        raise ValueError("Could not generate prompt variations.") from exc
    if not isinstance(data, list):
        raise ValueError("Could not generate prompt variations.")
    return [str(v) for v in data]


def generate_motion_prompt(
    image_prompt: str,
    *,
    store: Optional[SettingsStore] = None,
    client=None,
) -> str:
    client = client or _client()
    config = get_prompt_config("motion", store)
    return _generate(client, config.model, [fill_template(config.prompt, imagePrompt=image_prompt)])


def _date_context(consistent_env: Optional[str]) -> str:
    if consistent_env:
        return (
            "This is for a 'Date' sequence. The environment MUST be identical to this: "
            f'"{consistent_env}". Do NOT describe an outfit.'
        )
    return (
        "This is for a 'Date' sequence. Maintain a consistent environment as if it's the same day. "
        "Do NOT describe an outfit."
    )


def reimagine_scene_prompt(
    profile: CharacterProfile,
    new_activity: str,
    style: str,
    mode: str,
    consistent_env: Optional[str] = None,
    *,
    store: Optional[SettingsStore] = None,
    client=None,
) -> ImagePrompt:
    if not new_activity.strip():
        raise ValueError("Describe the new activity first.")
    client = client or _client()
    config = get_prompt_config("reimagine", store)

    text_prompt = fill_template(
        config.prompt,
        characterName=profile.name,
        personality=profile.personality,
        style=profile.style,
        newActivity=new_activity.strip(),
        modeContext=_date_context(consistent_env) if mode == "date" else "",
        styleAppendix=style_appendix(style),
    )
    text = _generate(client, config.model, [text_prompt], _SCENE_SCHEMA)
    data = _parse_json(text, "reimagine response")
    if not isinstance(data, dict):
        raise ValueError(f"Failed to parse reimagine response: expected an object. Response was: {text}")

    result = ImagePrompt(scene=str(data.get("scene", "")), prompt=str(data.get("prompt", "")))
    if mode == "date":
        result.prompt = strip_outfit_lines(result.prompt)
    return result


def generate_edit_suggestion(image: bytes, mime_type: str, *, client=None) -> str:
    client = client or _client()
    return _generate(
        client,
        load_config().gemini_model,
        [types.Part.from_bytes(data=image, mime_type=mime_type), _EDIT_SUGGESTION_TEXT],
    )
