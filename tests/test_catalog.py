from __future__ import annotations

from planner.catalog import build_library, find_activity
from planner.parser import HEADER, parse_rows


def test_library_dedups_by_name_and_category(make_row):
    rows = [
        HEADER,
        make_row("1", "Welcome", "Hello", "3"),
        make_row("1", "Goodbye", "Bye", "2"),
        make_row("2", "Welcome", "Hello", "4"),
        make_row("2", "Goodbye", "Hello", "1"),
    ]
    result = parse_rows(rows)
    library = build_library(result.lesson_data, result.lesson_ids)

    assert [a.identity for a in library] == [("Hello", "Welcome"), ("Bye", "Goodbye"), ("Hello", "Goodbye")]
    # first occurrence kept
    assert find_activity(library, "Hello", "Welcome").time == 3
    assert find_activity(library, "Missing", "Welcome") is None


def test_library_entries_are_copies(three_lesson_rows):
    result = parse_rows(three_lesson_rows)
    library = build_library(result.lesson_data)

    library[0].name = "Renamed"
    assert result.lesson_data["1"].activities()[0].name == "Hello Song"
