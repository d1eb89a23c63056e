"""
samples.py -- Bootstrap datasets used when no tier holds data for a class.

SAMPLE_DATA rows use the same layout as an imported sheet and go through
the normal parser. placeholder_dataset() is the last resort: a single
renderable lesson whose activity text explains what went wrong.
"""

from __future__ import annotations

from planner.models import Activity, BaseDataset, LessonData, SheetInfo
from planner.parser import HEADER

SAMPLE_DATA: dict[str, list[list[str]]] = {
    "LKG": [
        HEADER,
        ["1", "Welcome", "Hello Everyone", "Hello Everyone Hello Everyone Hello Everyone It's time for music now!", "All", "3", "https://example.com/video", "", "", "", ""],
        ["1", "Kodaly Songs", "Cobbler Cobbler", "Sol/Mi - Song and Game. Children sit in a circle, sing Cobbler Cobbler Mend My Shoe. Keep the beat by tapping shoes with hands or rhythm sticks.", "All", "5", "", "https://example.com/music", "", "", ""],
        ["1", "Goodbye", "Goodbye Song", "Goodbye everyone, goodbye everyone, we'll see you next time.", "All", "2", "", "https://example.com/goodbye", "", "", ""],
        ["2", "Welcome", "Hello Friends", "Welcome song for class", "All", "3", "", "https://example.com/hello", "", "", ""],
        ["2", "Core Songs", "I am a Robot", "Robot movement activity with sounds", "EYFS U", "4", "", "https://example.com/robot", "", "", "Robot Unit"],
        ["2", "Goodbye", "See You Soon", "Goodbye song with actions", "All", "2", "", "https://example.com/goodbye", "", "", ""],
        ["3", "Welcome", "Good Morning", "Morning greeting song with actions", "All", "3", "", "https://example.com/morning", "", "", ""],
        ["3", "Action/Games Songs", "Bounce High Bounce Low", "Movement game with ball", "All", "4", "", "https://example.com/bounce", "", "", ""],
        ["3", "Goodbye", "Time to Go", "Farewell song with waves", "All", "2", "", "https://example.com/farewell", "", "", ""],
    ],
    "UKG": [
        HEADER,
        ["1", "Welcome", "Hello Friends", "Welcome song for UKG class", "All", "3", "", "https://example.com/hello", "", "", ""],
        ["1", "Core Songs", "I am a Robot", "Robot movement activity with sounds", "EYFS U", "4", "", "https://example.com/robot", "", "", "Robot Unit"],
        ["1", "Goodbye", "See You Soon", "Goodbye song with actions", "All", "2", "", "https://example.com/goodbye", "", "", ""],
        ["2", "Welcome", "Morning Circle", "Circle time greeting", "All", "3", "", "https://example.com/circle", "", "", ""],
        ["2", "Rhythm Sticks", "Tap and Stop", "Rhythm game with sticks", "EYFS U", "5", "", "https://example.com/rhythm", "", "", ""],
        ["2", "Goodbye", "Wave Goodbye", "Farewell with waving", "All", "2", "", "https://example.com/wave", "", "", ""],
    ],
    "Reception": [
        HEADER,
        ["1", "Welcome", "Good Morning", "Morning greeting song with actions", "All", "3", "", "https://example.com/morning", "", "", ""],
        ["1", "Action/Games Songs", "Bounce High Bounce Low", "Movement game with ball", "All", "4", "", "https://example.com/bounce", "", "", ""],
        ["1", "Goodbye", "Time to Go", "Farewell song with waves", "All", "2", "", "https://example.com/farewell", "", "", ""],
        ["2", "Welcome", "Hello Circle", "Circle time greeting", "All", "3", "", "https://example.com/hello-circle", "", "", ""],
        ["2", "Percussion Games", "Beat Makers", "Creating rhythms with percussion", "Reception", "6", "", "https://example.com/percussion", "", "", ""],
        ["2", "Goodbye", "Goodbye Friends", "Farewell song", "All", "2", "", "https://example.com/goodbye-friends", "", "", ""],
    ],
}

PLACEHOLDER_TITLE: str = "Error Loading Lesson"


def sample_rows(sheet: str) -> list[list[str]] | None:
    return SAMPLE_DATA.get(sheet)


def placeholder_dataset(sheet: SheetInfo, reason: str | None = None) -> BaseDataset:
    """One-lesson dataset that renders the failure as lesson content."""
    description = reason or f"Failed to load {sheet.display} data. Please refresh the page."
    activity = Activity(
        name="Data Loading Error",
        description=description,
        time=0,
        category="Welcome",
        level=sheet.sheet,
        lesson_number="1",
    )
    lesson = LessonData(
        grouped={"Welcome": [activity]},
        category_order=["Welcome"],
        total_time=0,
        eyfs_statements=[],
        title=PLACEHOLDER_TITLE,
    )
    return BaseDataset(
        all_lessons_data={"1": lesson},
        lesson_numbers=["1"],
        teaching_units=["Welcome", "Goodbye"],
        eyfs_statements={},
    )
