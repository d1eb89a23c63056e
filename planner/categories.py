"""
categories.py -- Category ordering policy and lesson title synthesis.

Responsibility:
- Order the categories of a lesson by the fixed teaching-sequence priority list
- Synthesize a display title from the categories present in a lesson
"""

from __future__ import annotations

from typing import Iterable, Optional

# Lesson running order: known categories by position, everything else after.
CATEGORY_ORDER: list[str] = [
    "Welcome",
    "Kodaly Songs",
    "Kodaly Action Songs",
    "Action/Games Songs",
    "Rhythm Sticks",
    "Scarf Songs",
    "General Game",
    "Core Songs",
    "Parachute Games",
    "Percussion Games",
    "Goodbye",
    "Teaching Units",
]

_CATEGORY_RANK: dict[str, int] = {name: idx for idx, name in enumerate(CATEGORY_ORDER)}

WELCOME: str = "Welcome"
GOODBYE: str = "Goodbye"

# Checked in this order when a lesson is not a Welcome...Goodbye lesson.
FOCUS_TITLES: list[tuple[str, str]] = [
    ("Kodaly Songs", "Kodaly Lesson"),
    ("Rhythm Sticks", "Rhythm Sticks Lesson"),
    ("Percussion Games", "Percussion Lesson"),
    ("Scarf Songs", "Movement with Scarves"),
    ("Parachute Games", "Parachute Activities"),
    ("Action/Games Songs", "Action Games Lesson"),
]

UNTITLED: str = "Untitled Lesson"
STANDARD: str = "Standard Lesson"


def _sort_key(category: str) -> tuple[int, str]:
    return (_CATEGORY_RANK.get(category, len(CATEGORY_ORDER)), category)


def order_categories(categories: Iterable[str]) -> list[str]:
    """Known categories by priority index, unknown ones after them alphabetically."""
    return sorted(set(categories), key=_sort_key)


def synthesize_title(category_order: list[str]) -> str:
    """Advisory display title for a lesson, derived from its category order."""
    if not category_order:
        return UNTITLED

    if WELCOME in category_order and GOODBYE in category_order:
        main = [cat for cat in category_order if cat not in (WELCOME, GOODBYE)]
        if main:
            return f"{main[0]} Lesson"
        return STANDARD

    for category, title in FOCUS_TITLES:
        if category in category_order:
            return title

    return f"{category_order[0]} Lesson"


def resolve_title(explicit: Optional[str], category_order: list[str]) -> str:
    """An explicit, non-blank title wins over the synthesized one."""
    if explicit and explicit.strip():
        return explicit
    return synthesize_title(category_order)
