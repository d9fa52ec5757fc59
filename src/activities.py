"""Activity lists, per-category scene counts and character archetypes.

Defaults below can be overridden from the settings page; stored values are
merged over the defaults per known category.
"""
from __future__ import annotations

import logging
import random
from typing import Optional

from src.settings_store import SettingsStore

_logger = logging.getLogger(__name__)

ACTIVITY_CATEGORIES: tuple[str, ...] = (
    "Sports activities",
    "Artistic activities",
    "Lifestyle & relaxation",
    "Daily life",
    "Original experiences",
    "Romantic Activities",
    "Date Activities",
    "Couple Activities",
)

DEFAULT_ACTIVITIES: dict[str, list[str]] = {
    "Sports activities": [
        "Track running", "Pool swimming", "Mountain biking", "Soccer match", "Basketball match",
        "Boxing training", "Tennis serve", "Wall climbing", "Ski descent", "Wave surfing",
        "Team rowing", "Martial arts combat", "Rugby tackle", "Indoor climbing", "Golf swing",
        "Skateboard trick", "Sunrise yoga", "Latin dance", "Scuba diving", "Kayaking",
    ],
    "Artistic activities": [
        "Canvas painting", "Marble sculpture", "Playing guitar", "Playing piano", "Wall graffiti",
        "Musician with guitar", "Singing into a microphone", "Photographer in action",
        "Cameraman filming", "Ink calligraphy", "Wheel pottery", "Tattooing in progress",
        "Orchestra conductor", "Poet writing", "Public reading", "Theatrical improvisation",
        "Exhibition visit",
    ],
    "Lifestyle & relaxation": [
        "Breakfast on the terrace", "Reading in a park", "Shopping in a boutique", "Picnic with friends",
        "Meal preparation", "Stroll in a lively street", "Walk in the forest", "Working in a cafe",
        "Evening on a rooftop", "Scooter ride", "Dog walk", "Meditation by a lake",
        "Remote work from home", "Plane trip", "Boat ride", "Nap in a hammock", "Hammam relaxation",
        "Spa with steam", "Shopping at the local market", "Beach walk",
    ],
    "Daily life": [
        "Brushing teeth", "Making coffee", "Grocery shopping", "Getting out of the car", "Folding laundry",
        "Talking on the phone", "Checking a smartphone", "Doing dishes", "Watching television",
        "Working at a desk", "Watering a plant", "Walking in the rain", "Cycling to work",
        "Tying shoelaces", "Looking out the window", "Cooking a simple dish", "Exiting a metro station",
        "Open-plan office meeting", "Shopping in an open market", "Downtown shopping",
    ],
    "Original experiences": [
        "Paragliding landing", "Going up in a hot air balloon", "Swing above the water",
        "Lighting a campfire", "Walking in a wheat field", "Reading perched in a tree",
        "Horseback riding by the water", "Stargazing with a telescope", "Sleeping in a hammock",
        "Admiring the view from a building rooftop", "Flying a kite", "Picking wildflowers",
        "Writing on a train", "Drinking tea in a yurt", "Diving into a mountain lake",
        "Playing music in the street", "Painting a mural", "Night under the stars",
        "Nap under a tree", "Watching a carousel at the fair",
    ],
    "Romantic Activities": [
        "Holding roses under rain", "Lighting candles for dinner", "Writing love on sand",
        "Drawing heart on window", "Carrying flowers behind back",
        "Hiding heart shape gift behind his back", "Hugging pillow while dreaming",
        "Carving initials into tree", "Men and woman hands touching with love",
        "Holding 2 plane tickets", "Bring breakfast in bed", "Holding beautiful restaurant door",
        "Playing guitar looking at camera", "Giving food from his fork in restaurant",
        "Putting parfum on his neck", "Smiling looking at his phone", "Pouring tea with care",
    ],
    "Date Activities": [
        "two steaming cups of coffee in a terrace",
        "Sharing a bucket of popcorn in cinema",
        "Night market: tasting ice cream or street food together.",
        "Impromptu dance in a lit alleyway.",
        "Flowered balcony: a discreet kiss, city lights in the background.",
        "Feeding birds playfully",
        "Opening car door",
        "Inviting to go in Photo Booth",
        "Drinking fresh juice in a bar",
    ],
    "Couple Activities": [
        "Cooking together in the kitchen", "Reading a book together on a sofa", "Feeding ducks by a pond",
        "Watching a movie under a blanket", "Sharing headphones while listening to music",
        "Looking at old photo albums together", "Decorating a Christmas tree", "Exploring a local market",
        "Riding a scooter/motorbike together", "Sharing breakfast in bed",
        "Holding hands while walking through autumn leaves", "Painting together on a canvas",
        "Drinking hot chocolate on a snowy day", "Playing video games as a team",
        "Building a puzzle on the floor", "Taking polaroid selfies together",
        "Sitting in the front seat of a car, one hand resting on the partner's thigh while driving",
        "Washing dishes side by side, playfully splashing water",
        "Folding laundry together and laughing at mismatched socks",
        "Grocery shopping together, one pushing the cart while the other adds items",
    ],
}

DEFAULT_ACTIVITY_COUNTS: dict[str, int] = {
    "Sports activities": 2,
    "Artistic activities": 2,
    "Lifestyle & relaxation": 2,
    "Daily life": 2,
    "Original experiences": 1,
    "Romantic Activities": 0,
    "Date Activities": 0,
    "Couple Activities": 0,
}

DEFAULT_ARCHETYPES: list[str] = [
    "Businessman", "Bohemian", "Adventurer", "Athlete", "Surfer", "Minimalist",
    "Rafined", "Rebel", "Skater", "Bike", "Gentleman", "Hipster",
]

# Scenes per generation request in the modes that draw from one category.
SCENES_PER_SET = 9


# ---------------------------------------------------------------------------
# Activities
# ---------------------------------------------------------------------------

def get_activities(store: Optional[SettingsStore]) -> dict[str, list[str]]:
    merged = {k: list(v) for k, v in DEFAULT_ACTIVITIES.items()}
    stored = store.get("activities") if store is not None else None
    if isinstance(stored, dict):
        for key, value in stored.items():
            if key in merged and isinstance(value, list):
                merged[key] = [str(v) for v in value]
    return merged


def save_activities(store: SettingsStore, activities: dict[str, list[str]]) -> None:
    cleaned = {
        key: [a.strip() for a in values if a and a.strip()]
        for key, values in activities.items()
        if key in DEFAULT_ACTIVITIES
    }
    store.set("activities", cleaned)


def reset_activities(store: SettingsStore) -> dict[str, list[str]]:
    store.remove("activities")
    return {k: list(v) for k, v in DEFAULT_ACTIVITIES.items()}


def get_activity_counts(store: Optional[SettingsStore]) -> dict[str, int]:
    counts = dict(DEFAULT_ACTIVITY_COUNTS)
    stored = store.get("activity_counts") if store is not None else None
    if isinstance(stored, dict):
        for key, value in stored.items():
            try:
                counts[key] = max(0, int(value))
            except (TypeError, ValueError):
                _logger.warning("Ignoring bad activity count for %s: %r", key, value)
    return counts


def save_activity_counts(store: SettingsStore, counts: dict[str, int]) -> None:
    store.set("activity_counts", {k: max(0, int(v)) for k, v in counts.items()})


def reset_activity_counts(store: SettingsStore) -> dict[str, int]:
    store.remove("activity_counts")
    return dict(DEFAULT_ACTIVITY_COUNTS)


def select_activities(
    mode: str,
    activities: dict[str, list[str]],
    counts: dict[str, int],
    rng: Optional[random.Random] = None,
) -> list[str]:
    """Pick the activities a scene-generation request is built from.

    ``date`` uses none (its template is a fixed story), ``romantic`` and
    ``couple`` draw nine from their own category, everything else draws
    ``counts[category]`` from every category with a positive count.
    """
    rng = rng or random.Random()
    if mode == "date":
        return []
    if mode == "romantic":
        plan = {"Romantic Activities": SCENES_PER_SET}
    elif mode == "couple":
        plan = {"Couple Activities": SCENES_PER_SET}
    else:
        plan = {cat: n for cat, n in counts.items() if n > 0}

    selected: list[str] = []
    for category, count in plan.items():
        pool = activities.get(category) or []
        if count <= 0 or not pool:
            continue
        selected.extend(rng.sample(pool, min(count, len(pool))))
    return selected


def activities_to_string(activities: dict[str, list[str]]) -> str:
    return "\n\n".join(f"{category}\n" + "\n".join(items) for category, items in activities.items())


def scene_requirements_string(counts: dict[str, int]) -> str:
    lines = [
        f"- {n} scene{'s' if n > 1 else ''} from {category}"
        for category, n in counts.items()
        if n > 0
    ]
    return "You must generate:\n" + "\n".join(lines) if lines else ""


# ---------------------------------------------------------------------------
# Archetypes
# ---------------------------------------------------------------------------

def get_archetypes(store: Optional[SettingsStore]) -> list[str]:
    stored = store.get("archetypes") if store is not None else None
    if isinstance(stored, list) and stored and all(isinstance(a, str) for a in stored):
        return list(stored)
    return list(DEFAULT_ARCHETYPES)


def save_archetypes(store: SettingsStore, archetypes: list[str]) -> None:
    store.set("archetypes", [a.strip() for a in archetypes if a and a.strip()])


def reset_archetypes(store: SettingsStore) -> list[str]:
    store.remove("archetypes")
    return list(DEFAULT_ARCHETYPES)
