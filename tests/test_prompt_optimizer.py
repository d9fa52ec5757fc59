from src.prompt_optimizer import NANO_BANANA_MAX_CHARS, optimize_prompt, simplify_prompt_for_nano_banana

_UGC_PROMPT = """Smartphone picture of Mira, running on a track

Environment: a sunny stadium in Lisbon
Outfit: running shorts
Emotion: focused and determined

- Smartphone photo, authentic user-generated content style"""


def test_keeps_main_action_and_emotion_with_ugc_marker() -> None:
    result = simplify_prompt_for_nano_banana(_UGC_PROMPT)

    assert result == (
        "Smartphone picture of Mira, running on a track, focused and determined. "
        "Smartphone photo, authentic UGC style, natural lighting"
    )


def test_cinematic_prompt_gets_cinematic_marker() -> None:
    prompt = "Mira on a rooftop\nEnvironment: city\nEmotion: calm\n- Cinematic perspective"
    assert simplify_prompt_for_nano_banana(prompt) == (
        "Mira on a rooftop, calm. Cinematic quality, professional lighting"
    )


def test_prompt_without_environment_uses_first_line() -> None:
    assert simplify_prompt_for_nano_banana("Mira reading\nsecond line") == "Mira reading"


def test_long_prompt_is_cut_to_first_sentence() -> None:
    action = "Smartphone picture of Mira " + "walking slowly along the old harbour wall " * 4
    prompt = f"{action.strip()}. Then more.\n\nEnvironment: harbour\nEmotion: relaxed"

    result = simplify_prompt_for_nano_banana(prompt)

    assert result.endswith(". Smartphone photo, UGC style")
    assert result.startswith("Smartphone picture of Mira walking")
    assert "relaxed" not in result


def test_short_result_stays_under_limit() -> None:
    assert len(simplify_prompt_for_nano_banana(_UGC_PROMPT)) <= NANO_BANANA_MAX_CHARS


def test_other_models_get_prompt_unchanged() -> None:
    assert optimize_prompt(_UGC_PROMPT, "seedream") == _UGC_PROMPT
    assert optimize_prompt(_UGC_PROMPT, "nano-banana") != _UGC_PROMPT
