"""
parser.py -- Turn spreadsheet rows into grouped LessonData.

Responsibility:
- Read the fixed 11-column activity layout (header row ignored positionally)
- Apply the carry-forward rule for blank lesson-number cells
- Drop malformed rows silently
- Group activities per lesson and category, total their minutes
- Order categories and synthesize a title for each lesson
"""

from __future__ import annotations

import logging
import re
from collections import defaultdict
from typing import Any, Optional, Sequence

from planner.categories import order_categories, synthesize_title
from planner.models import Activity, LessonData, ParseResult

logger = logging.getLogger(__name__)

# Column positions in the activity sheet.
COL_LESSON = 0
COL_CATEGORY = 1
COL_NAME = 2
COL_DESCRIPTION = 3
COL_LEVEL = 4
COL_TIME = 5
COL_VIDEO = 6
COL_MUSIC = 7
COL_BACKING = 8
COL_RESOURCE = 9
COL_UNIT = 10

HEADER: list[str] = [
    "Lesson Number", "Category", "Activity Name", "Description", "Level",
    "Time (Mins)", "Video", "Music", "Backing", "Resource", "Unit Name",
]

MIN_POPULATED_CELLS: int = 3
DEFAULT_LESSON_ID: str = "1"

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


class TabularFormatError(ValueError):
    """The input as a whole is empty or not a table of rows."""


def _cell(row: Sequence[Any], index: int) -> str:
    """Cell text, trimmed. Missing cells and None are empty strings."""
    if index >= len(row):
        return ""
    value = row[index]
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value).strip()


def parse_minutes(text: str) -> int:
    """Leading-integer parse of a minutes cell; 0 on failure or negative."""
    match = _LEADING_INT.match(text)
    if not match:
        return 0
    minutes = int(match.group(1))
    return minutes if minutes >= 0 else 0


def _is_int(text: str) -> bool:
    try:
        int(text)
    except ValueError:
        return False
    return True


def _populated(row: Sequence[Any]) -> int:
    return sum(1 for value in row if value is not None and str(value).strip())


def build_lesson(activities: list[Activity], title: Optional[str] = None) -> LessonData:
    """Group activities by category and derive order, total and title."""
    grouped: dict[str, list[Activity]] = {}
    total = 0
    for activity in activities:
        grouped.setdefault(activity.category, []).append(activity)
        total += activity.time
    category_order = order_categories(grouped)
    return LessonData(
        grouped=grouped,
        category_order=category_order,
        total_time=total,
        eyfs_statements=[],
        title=title or synthesize_title(category_order),
    )


def parse_rows(rows: Any) -> ParseResult:
    """
    Parse raw tabular rows into per-lesson LessonData.

    Rows with fewer than 3 populated cells, or without a category or activity
    name, are dropped. A blank lesson-number cell carries forward the last
    non-blank one ("1" if none was seen yet).

    Raises:
        TabularFormatError: when there is no data at all, or the input is not
        a sequence of row sequences.
    """
    if not isinstance(rows, (list, tuple)) or not rows:
        raise TabularFormatError("No data found in the sheet.")
    if not all(isinstance(row, (list, tuple)) for row in rows):
        raise TabularFormatError("Sheet data is not a table of rows.")

    by_lesson: dict[str, list[Activity]] = defaultdict(list)
    categories: set[str] = set()
    seen_ids: set[str] = set()
    current_id = ""
    skipped = 0

    for row_num, row in enumerate(rows[1:], start=2):
        if _populated(row) < MIN_POPULATED_CELLS:
            skipped += 1
            continue

        lesson_id = _cell(row, COL_LESSON)
        category = _cell(row, COL_CATEGORY)
        name = _cell(row, COL_NAME)

        if lesson_id:
            current_id = lesson_id
        elif not current_id:
            current_id = DEFAULT_LESSON_ID

        if not category or not name:
            logger.debug("Skipping row %d: missing category or activity name", row_num)
            skipped += 1
            continue

        seen_ids.add(current_id)
        categories.add(category)
        by_lesson[current_id].append(
            Activity(
                name=name,
                description=_cell(row, COL_DESCRIPTION).replace('"', ""),
                time=parse_minutes(_cell(row, COL_TIME)),
                video_link=_cell(row, COL_VIDEO),
                music_link=_cell(row, COL_MUSIC),
                backing_link=_cell(row, COL_BACKING),
                resource_link=_cell(row, COL_RESOURCE),
                category=category,
                level=_cell(row, COL_LEVEL),
                unit_name=_cell(row, COL_UNIT),
                lesson_number=current_id,
            )
        )

    lesson_ids = sorted((i for i in seen_ids if _is_int(i)), key=int)
    excluded = sorted(seen_ids - set(lesson_ids))
    if excluded:
        logger.info("Lesson ids excluded from ordering (not integers): %s", excluded)

    lesson_data = {lesson_id: build_lesson(acts) for lesson_id, acts in by_lesson.items()}
    parsed = sum(len(acts) for acts in by_lesson.values())

    logger.info(
        "Parsed %d rows -> %d activities in %d lessons (%d rows skipped)",
        len(rows) - 1,
        parsed,
        len(lesson_data),
        skipped,
    )

    return ParseResult(
        lesson_data=lesson_data,
        lesson_ids=lesson_ids,
        categories=sorted(categories),
        rows_read=len(rows) - 1,
        activities_parsed=parsed,
    )
