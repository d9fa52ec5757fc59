"""Adapt scene prompts to the image model that will consume them.

nano-banana follows short prompts (one or two sentences) far better than the
multi-line scene prompts Gemini produces; seedream takes them unchanged.
"""
from __future__ import annotations

import re

NANO_BANANA_MAX_CHARS = 150

_MAIN_ACTION_RE = re.compile(r"^(.*?)(?:\n\nEnvironment:|Environment:)", re.DOTALL)
_EMOTION_RE = re.compile(r"Emotion:\s*([^\n]+)", re.IGNORECASE)

_UGC_MARKERS = ("smartphone", "ugc", "user-generated", "phone picture")
_CINEMATIC_MARKERS = ("cinematic", "professional", "studio")


def simplify_prompt_for_nano_banana(full_prompt: str) -> str:
    match = _MAIN_ACTION_RE.search(full_prompt)
    main_action = match.group(1).strip() if match else full_prompt.split("\n")[0]

    emotion_match = _EMOTION_RE.search(full_prompt)
    emotion = emotion_match.group(1).strip() if emotion_match else ""

    lowered = full_prompt.lower()
    is_ugc = any(marker in lowered for marker in _UGC_MARKERS)
    is_cinematic = any(marker in lowered for marker in _CINEMATIC_MARKERS)

    simplified = main_action
    if emotion:
        simplified += f", {emotion}"
    if is_ugc:
        simplified += ". Smartphone photo, authentic UGC style, natural lighting"
    elif is_cinematic:
        simplified += ". Cinematic quality, professional lighting"

    if len(simplified) > NANO_BANANA_MAX_CHARS:
        first_sentence = simplified.split(".")[0]
        if is_ugc:
            marker = ". Smartphone photo, UGC style"
        elif is_cinematic:
            marker = ". Cinematic quality"
        else:
            marker = ""
        simplified = first_sentence + marker

    return simplified


def optimize_prompt(prompt: str, model: str) -> str:
    if model == "nano-banana":
        return simplify_prompt_for_nano_banana(prompt)
    return prompt
