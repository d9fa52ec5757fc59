from src.brand import AVAILABLE_BRANDS, apply_brand_replacement, apply_custom_replacements, get_brand


def test_replaces_every_known_competitor_case_insensitively() -> None:
    text = "Join DATEMYAGE today. Our Love and eurodate users moved to Dating.com."
    result = apply_brand_replacement(text, "OurLove")
    assert result == "Join OurLove today. OurLove and OurLove users moved to OurLove."


def test_longer_names_win_over_shorter_overlaps() -> None:
    assert apply_brand_replacement("Try Date My Age now", "EuroDate") == "Try EuroDate now"


def test_replacement_is_idempotent_for_each_brand() -> None:
    text = "Date My Age, OurLove, Euro Date and Dating Club are all great."
    for brand in AVAILABLE_BRANDS:
        once = apply_brand_replacement(text, brand.name)
        assert apply_brand_replacement(once, brand.name) == once


def test_replacement_is_idempotent_when_brand_contains_a_known_name() -> None:
    once = apply_brand_replacement("Try OurLove or EuroDate", "EuroDate Plus")
    assert once == "Try EuroDate Plus or EuroDate Plus"
    assert apply_brand_replacement(once, "EuroDate Plus") == once


def test_custom_patterns_and_empty_inputs() -> None:
    assert apply_brand_replacement("Meet Acme", "OurLove", patterns=["acme"]) == "Meet OurLove"
    assert apply_brand_replacement("", "OurLove") == ""
    assert apply_brand_replacement("DateMyAge", "") == "DateMyAge"


def test_special_characters_in_patterns_are_literal() -> None:
    # "Dating.Com" must not match "DatingXCom".
    assert apply_brand_replacement("DatingXCom", "OurLove") == "DatingXCom"


def test_custom_replacements_apply_in_order() -> None:
    result = apply_custom_replacements("Hello WORLD", {"world": "there", "hello": "Hi", "": "x"})
    assert result == "Hi there"


def test_brand_packshots_cover_every_template_size() -> None:
    brand = get_brand("eurodate")
    assert brand is not None
    assert brand.packshot_path("vertical") == "packshots/EuroDate_packshot_9x16.mp4"
    assert brand.packshot_path("chunked-square") == "packshots/EuroDate_packshot_1x1.mp4"
    assert brand.packshot_path("text-emoji-v2") == "packshots/EuroDate_packshot_9x16.mp4"
    assert get_brand("nope") is None
