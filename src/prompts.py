"""Gemini prompt templates used by the character studio.

Templates use ``{placeholder}`` markers that are substituted with
``str.replace`` (never ``str.format``), so user-edited templates may contain
other braces safely.  Stored templates are merged over the defaults so new
keys keep working for older settings files.
"""
from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from typing import Optional

from src.settings_store import SettingsStore

_logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gemini-2.5-flash"

PROMPT_KEYS = (
    "sceneGeneration",
    "sceneGenerationSelfie",
    "sceneGenerationRomantic",
    "sceneGenerationDate",
    "sceneGenerationCouple",
    "variations",
    "motion",
    "reimagine",
)

UGC_STYLE_APPENDIX = """- Very important : ***⚠️ NO DEPTH OF FIELD, NO BOKEH, FLAT FOCUS, SHARP BACKGROUND*** (REQUIRED)
- No alcohol
- Smartphone photo, authentic user-generated content style, imperfect framing. Bad angle. Flat colors, whitish tones, low contrast, washed-out look, natural daylight.
- Texture like real phone picture: slight noise, compression artifacts, not ultra sharp, glare
- Details: slightly imperfections on the textures of the scene (scratches, dust, stains, marks)
- Vibe: raw, simple, authentic, natural, realistic social media photo.
- NOT cinematic, NOT professional studio, NOT ultra high definition, NOT color graded.
- Aspect ratio: 9:16"""

CINEMATIC_STYLE_APPENDIX = """- No alcohol
- Cinematic perspective, professional composition, dynamic framing
- Ultra-high resolution, detailed textures, crystal sharpness
- Studio-quality color grading: deep blacks, balanced highlights, cinematic tones
- Realistic cinematic imperfections: subtle film grain, natural lens flares, slight motion blur when appropriate
- Atmosphere: immersive, dramatic, evocative, like a still from a movie
- Aspect ratio: 9:16"""

_SCENE_RULES = """Additional rules for the entire list:
- Do not give specific details about the character's face in the scene description, but use the "Emotion" line for facial expressions.
- No topless scene
- No other people face
- Only one scene in the entire set can include a pet.
- Do not include the scene number in the title."""


def _activity_template(kind: str, goal: str, action_line: str) -> str:
    return f"""You are an AI assistant that generates a JSON object containing a list of 9 photorealistic {kind}image prompts.
For each prompt, you will generate a 'scene' (a short, descriptive title with a relevant emoji) and a 'prompt' (the full image generation prompt).

- Each of the 9 prompts must be based on one of the unique activities from the list provided below.
- {goal}

Activities to use:
{{selectedActivities}}

For the 'prompt' field of EACH of the 9 items, construct it using the following multi-line structure:

{action_line}

Environment: [Describe a coherent environment based on the character's living place and the activity]
Outfit: [Describe a coherent outfit for the scene based on the character's style]
Emotion: [Describe a varied but coherent emotion based on the activity and the character's personality]

{{styleAppendix}}

{_SCENE_RULES}"""


_DATE_TEMPLATE = """You are an AI assistant that generates a JSON object containing a list of exactly 9 photorealistic dating scene image prompts, in a specific, non-random order.
For each prompt, you will generate a 'scene' (a short, descriptive title with a relevant emoji) and a 'prompt' (the full image generation prompt).

**Core Concept:**
1. All 9 scenes must be part of a single, coherent date story.
2. The overall story is from a "first-person girlfriend" POV.

**Structure for EACH of the 9 prompts:**
For the 'prompt' field, construct it using the following multi-line structure. **DO NOT include an 'Outfit' line.** The character's outfit is determined by a source image, not this text prompt.

The structure is:
[Main action line]

Environment: [Description]
Emotion: [Description]

{styleAppendix}

**Scene Requirements & STRICT ORDER (Very Important):**
You must generate one prompt for each of the following scenes in this exact sequence:

1.  **Scene 1:** The character is driving.
    - The main action line for the prompt MUST be EXACTLY: `POV, eye-level view angle, picture from girlfriend, Passenger seat perspective side view, featuring (character name) driving a BMW, hands on the steering wheel.`
    - The Environment MUST be EXACTLY: `side road slight blurry speed`
    - The Emotion MUST be EXACTLY: `closed mouth smile to the camera`

2.  **Scene 2:** The character is opening the passenger door.
    - The main action line for the prompt MUST be EXACTLY: `POV from passenger seat, featuring (character name) outside of the car, through the passenger windows the passenger door`
    - The Environment MUST be `{dateEnvironment}`.
    - The Emotion MUST be EXACTLY: `Candide smile to the camera`

3.  **Scene 3:** They are drinking a beverage within the specified date environment (`{dateEnvironment}`).
4.  **Scene 4:** A close-up on the character's face as he laughs softly but sincerely. The environment is `{dateEnvironment}`.
5.  **Scene 5:** The character is walking next to his partner (the photographer), with his hands in his pockets, seen from a side view. The environment is `{dateEnvironment}`.
6.  **Scene 6:** The character is in a relaxed, "chill" position within the `{dateEnvironment}`.
7.  **Scene 7:** The character is walking, seen from a frontal view, in the `{dateEnvironment}`.
8.  **Scene 8:** The character is walking just ahead of his partner (the photographer), who is holding his hand. He is looking back slightly and smiling. The environment is `{dateEnvironment}`.
9.  **Scene 9 (Final Scene):** An "establishing shot" of the `{dateEnvironment}` ONLY, without any people, to capture the mood of the date.

Additional rules for the entire list:
- Do not give specific details about the character's face in the scene description, but use the "Emotion" line for facial expressions.
- No topless scenes.
- No other people's faces (except the partner's hand in scene 8).
- Do not include the scene number in the title."""

_COUPLE_TEMPLATE = """You are an AI assistant that generates a JSON object containing a list of 9 photorealistic couple-themed image prompts.
For each prompt, you will generate a 'scene' (a short, descriptive title with a relevant emoji) and a 'prompt' (the full image generation prompt).

- Each of the 9 prompts must be based on one of the unique activities from the list provided below.
- The goal is to create scenes featuring the main character and a companion character engaging in couple activities.

Activities to use:
{selectedActivities}

For the 'prompt' field of EACH of the 9 items, construct it using the following multi-line structure:

Smartphone picture of (character name) and his partner, (doing the activity)

Environment: [Describe a coherent environment based on the character's living place and the activity]
Outfit: [Describe a coherent outfit for the scene for both characters, based on their styles]
Emotion: [Describe a varied but coherent emotion for both characters based on the activity and their personalities]

{styleAppendix}

Additional rules for the entire list:
- Do not give specific details about the characters' faces in the scene description, but use the "Emotion" line for facial expressions.
- No topless scenes.
- Do not include the scene number in the title."""

_VARIATIONS_TEMPLATE = """You are an AI assistant for generating creative variations of an image prompt.
Given the original prompt below, generate a JSON array of 3 new, distinct, and creative variations.

- Each variation should be a complete, self-contained prompt.
- Maintain the core subject and multi-line structure of the original.
- Alter elements like camera angle, lighting, environment details, emotion, or time of day to create unique results.
- Do not change the aspect ratio.

Original Prompt:
{originalPrompt}"""

_REIMAGINE_TEMPLATE = """You are an AI assistant that generates a single photorealistic image prompt as a JSON object with 'scene' and 'prompt' keys.
The goal is to create a new scene for a character based on a new activity.

Character Name: {characterName}
Character Personality: {personality}
Character Style: {style}
New Activity: {newActivity}

{modeContext}

For the 'prompt' field, construct it using the following multi-line structure. **If the context above says not to describe an outfit, OMIT the 'Outfit' line entirely.**

Smartphone picture of (character name), (doing the new activity)

Environment: [Describe a coherent environment based on the character's living place and the new activity. Adhere to the context if provided.]
Outfit: [Describe a coherent outfit for the scene based on the character's style. Omit this line if instructed by the context.]
Emotion: [Describe a coherent emotion based on the new activity and the character's personality]

{styleAppendix}

For the 'scene' field, create a very short, descriptive title (max 5 words) with a relevant emoji.
Do not include other people's faces. No topless scenes."""

_MOTION_TEMPLATE = """You are an AI assistant that creates a short, descriptive video prompt based on a static image prompt. The video prompt should describe a subtle, brief action that brings the scene to life.

Rules:
- The output must be a single, concise sentence.
- It should describe a simple, realistic motion.
- It must not introduce new characters or radically change the scene.
- Focus on what the character is doing or what is happening in the environment.

Image Prompt:
{imagePrompt}

Video Prompt:"""


@dataclass(frozen=True)
class PromptConfig:
    prompt: str
    model: str = DEFAULT_MODEL


DEFAULT_PROMPTS: dict[str, PromptConfig] = {
    "sceneGeneration": PromptConfig(
        _activity_template(
            "",
            "The goal is to create scenes that look like a natural piece of life.",
            "Smartphone picture of (character name), (doing the activity)",
        )
    ),
    "sceneGenerationSelfie": PromptConfig(
        _activity_template(
            "selfie ",
            "The goal is to create scenes that look like authentic selfies, taken by the character themselves.",
            "POV, eye-level view angle, selfie taken by (character name), arm extended holding the phone, (doing the activity)",
        )
    ),
    "sceneGenerationRomantic": PromptConfig(
        _activity_template(
            "romantic ",
            "The goal is to create scenes featuring the character in romantic actions.",
            "Picture of (character name) (doing the activity)",
        )
    ),
    "sceneGenerationDate": PromptConfig(_DATE_TEMPLATE),
    "sceneGenerationCouple": PromptConfig(_COUPLE_TEMPLATE),
    "variations": PromptConfig(_VARIATIONS_TEMPLATE),
    "reimagine": PromptConfig(_REIMAGINE_TEMPLATE),
    "motion": PromptConfig(_MOTION_TEMPLATE),
}

_MODE_PROMPT_KEYS = {
    "selfie": "sceneGenerationSelfie",
    "romantic": "sceneGenerationRomantic",
    "date": "sceneGenerationDate",
    "couple": "sceneGenerationCouple",
}


def prompt_key_for_mode(mode: str) -> str:
    return _MODE_PROMPT_KEYS.get(mode, "sceneGeneration")


def style_appendix(style: str) -> str:
    return UGC_STYLE_APPENDIX if style == "ugc" else CINEMATIC_STYLE_APPENDIX


def fill_template(template: str, **values: str) -> str:
    """Replace every ``{name}`` marker for each keyword."""
    result = template
    for name, value in values.items():
        result = result.replace("{" + name + "}", value or "")
    return result


def get_prompts(store: Optional[SettingsStore]) -> dict[str, PromptConfig]:
    prompts = dict(DEFAULT_PROMPTS)
    if store is None:
        return prompts
    stored = store.get("prompts") or {}
    if not isinstance(stored, dict):
        _logger.warning("Ignoring malformed stored prompts")
        return prompts
    for key, value in stored.items():
        if key in prompts and isinstance(value, dict) and value.get("prompt"):
            prompts[key] = PromptConfig(prompt=str(value["prompt"]), model=str(value.get("model") or DEFAULT_MODEL))
    return prompts


def save_prompts(store: SettingsStore, prompts: dict[str, PromptConfig]) -> None:
    store.set("prompts", {key: asdict(cfg) for key, cfg in prompts.items() if key in DEFAULT_PROMPTS})


def reset_prompts(store: SettingsStore) -> dict[str, PromptConfig]:
    store.remove("prompts")
    return dict(DEFAULT_PROMPTS)


def get_prompt_config(key: str, store: Optional[SettingsStore] = None) -> PromptConfig:
    return get_prompts(store)[key]
