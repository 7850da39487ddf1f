"""
Confirmation text sent to the trip chat after an import.

Template choice is a pure function of the seed so tests (and retries) get
the same wording; pass ``None`` for a fresh random pick.
"""

import random
from typing import Optional, Sequence, Union

from trip_importer.models.items import ImportSummary
from trip_importer.models.places import CategoryEnum

Seed = Union[int, str, random.Random, None]

CATEGORY_EMOJIS = {
    CategoryEnum.FOOD: "🍽️",
    CategoryEnum.ACCOMMODATION: "🏨",
    CategoryEnum.PLACE: "📍",
    CategoryEnum.SHOPPING: "🛍️",
    CategoryEnum.ACTIVITY: "🎯",
    CategoryEnum.TIP: "💡",
}

IMPORT_SAVED_TEMPLATES = (
    "✨ Saved {count} {spots} to your trip! Check them out in your saved items!",
    "Nice haul! {count} {spots} added to your trip 🗺️",
    "Done! {count} new {spots} saved. Your map is filling up ✨",
)

IMPORT_NOTHING_NEW_TEMPLATES = (
    "Hmm, looks like all those places were already in your trip! 🤔",
    "Those spots are already on your list, nothing new to add! 📝",
)

IMPORT_FAILED_TEMPLATES = (
    "Couldn't save those places right now. Try importing them again in a bit! 🙏",
    "Something went wrong saving those spots. Give it another try shortly!",
)

ITEM_SAVED_TEMPLATES = (
    'Got it! Added "{name}" to your {category} list! {emoji} {snippet}...',
    'Awesome find! "{name}" looks amazing! {emoji} Added to {category}! ✨',
    'Ooh, "{name}" sounds great! {emoji} Saved to your {category} list!',
    'Perfect! "{name}" is now in your {category} collection! {emoji}',
)


def select_template(seed: Seed, templates: Sequence[str]) -> str:
    """Pick one template; the same seed always picks the same entry."""
    if not templates:
        raise ValueError("No templates to choose from")
    rng = seed if isinstance(seed, random.Random) else random.Random(seed)
    return templates[rng.randrange(len(templates))]


def build_import_confirmation(summary: ImportSummary, seed: Seed = None) -> str:
    if summary.saved_count == 0:
        if summary.failed_count and not summary.skipped_duplicate_count:
            return select_template(seed, IMPORT_FAILED_TEMPLATES)
        return select_template(seed, IMPORT_NOTHING_NEW_TEMPLATES)
    spots = "spot" if summary.saved_count == 1 else "spots"
    return select_template(seed, IMPORT_SAVED_TEMPLATES).format(count=summary.saved_count, spots=spots)


def build_item_confirmation(
    name: str,
    category: CategoryEnum,
    description: str,
    seed: Seed = None,
    snippet_length: Optional[int] = 50,
) -> str:
    return select_template(seed, ITEM_SAVED_TEMPLATES).format(
        name=name,
        category=category.value,
        emoji=CATEGORY_EMOJIS.get(category, ""),
        snippet=description[:snippet_length],
    )
