"""
catalog.py -- The activity library shown next to the plan builder.

Collects every activity of a merged lesson view, deduplicated by
(name, category), first occurrence kept. Activities leave the library
only as copies (Activity.copy_for_plan), so the same library entry can be
dropped into a plan more than once.
"""

from __future__ import annotations

import logging
from typing import Iterable, Mapping

from planner.models import Activity, LessonData

logger = logging.getLogger(__name__)


def build_library(
    lesson_data: Mapping[str, LessonData],
    lesson_ids: Iterable[str] | None = None,
) -> list[Activity]:
    """Unique activities across lessons, walking lessons in lesson_ids order."""
    order = list(lesson_ids) if lesson_ids is not None else list(lesson_data)
    order += [lesson_id for lesson_id in lesson_data if lesson_id not in order]

    seen: set[tuple[str, str]] = set()
    library: list[Activity] = []
    total = 0
    for lesson_id in order:
        lesson = lesson_data.get(lesson_id)
        if lesson is None:
            continue
        for activity in lesson.activities():
            total += 1
            if activity.identity in seen:
                continue
            seen.add(activity.identity)
            library.append(activity.model_copy(deep=True))

    logger.info("Activity library: %d total -> %d unique", total, len(library))
    return library


def find_activity(library: Iterable[Activity], name: str, category: str) -> Activity | None:
    for activity in library:
        if activity.identity == (name, category):
            return activity
    return None
