from __future__ import annotations

from datetime import date

import pytest
from pydantic import ValidationError

from planner.models import (
    Activity,
    LessonData,
    LessonPlan,
    PlanInvariantError,
    resolve_sheet,
    week_number,
)


def _activity(name: str, minutes: int, category: str = "Welcome") -> Activity:
    return Activity(name=name, category=category, time=minutes)


class TestActivity:
    def test_wire_format_uses_client_keys(self):
        wire = Activity(name="Hello", category="Welcome", time=3, video_link="https://v").to_wire()

        assert wire["activity"] == "Hello"
        assert wire["videoLink"] == "https://v"
        assert wire["eyfsStandards"] == []
        assert wire["_uniqueId"] is None

    def test_parses_client_payload(self):
        activity = Activity.model_validate(
            {"activity": "Bye", "category": "Goodbye", "time": 2, "musicLink": "m", "_uniqueId": "u1"}
        )
        assert activity.name == "Bye"
        assert activity.music_link == "m"
        assert activity.unique_id == "u1"

    def test_negative_time_rejected(self):
        with pytest.raises(ValidationError):
            Activity(name="x", category="y", time=-1)


class TestLessonData:
    def test_grouped_keys_must_match_category_order(self):
        with pytest.raises(ValidationError):
            LessonData(grouped={"Welcome": [_activity("a", 1)]}, category_order=["Welcome", "Goodbye"])

    def test_duplicate_categories_rejected(self):
        with pytest.raises(ValidationError):
            LessonData(grouped={"Welcome": []}, category_order=["Welcome", "Welcome"])

    def test_activities_follow_category_order(self):
        lesson = LessonData(
            grouped={"Goodbye": [_activity("bye", 2, "Goodbye")], "Welcome": [_activity("hi", 3)]},
            category_order=["Welcome", "Goodbye"],
            total_time=5,
        )
        assert [a.name for a in lesson.activities()] == ["hi", "bye"]


class TestLessonPlan:
    def test_duration_derived_from_activities(self):
        plan = LessonPlan(class_name="LKG", activities=[_activity("a", 5), _activity("b", 3)])
        assert plan.duration == 8

    def test_mismatched_duration_rejected(self):
        with pytest.raises(ValidationError):
            LessonPlan(class_name="LKG", activities=[_activity("a", 5)], duration=4)

    def test_week_derived_from_date(self):
        assert LessonPlan(class_name="LKG", date=date(2024, 1, 15)).week == 3
        assert LessonPlan(class_name="LKG", date=date(2024, 1, 15), week=9).week == 9

    def test_add_copies_with_distinct_keys(self):
        source = _activity("Hello", 3)
        plan = LessonPlan(class_name="LKG")

        first = plan.add_activity(source)
        second = plan.add_activity(source)

        assert first.unique_id and second.unique_id
        assert first.unique_id != second.unique_id
        assert source.unique_id is None
        assert plan.duration == 6

        first.description = "changed"
        assert source.description == ""

    def test_remove_and_move_keep_duration(self):
        plan = LessonPlan(class_name="LKG")
        for name, minutes in [("a", 1), ("b", 2), ("c", 4)]:
            plan.add_activity(_activity(name, minutes))

        plan.move_activity(2, 0)
        assert [a.name for a in plan.activities] == ["c", "a", "b"]
        assert plan.duration == 7

        removed = plan.remove_activity(1)
        assert removed.name == "a"
        assert plan.duration == 6

    def test_drifted_duration_detected_on_next_mutation(self):
        plan = LessonPlan(class_name="LKG", activities=[_activity("a", 5)])
        plan.duration = 99
        with pytest.raises(PlanInvariantError):
            plan.move_activity(0, 0)

    def test_wire_round_trip(self):
        plan = LessonPlan(class_name="UKG", date=date(2024, 3, 4), title="Spring", lesson_number="2")
        plan.add_activity(_activity("Hello", 3))
        plan.update_notes("bring scarves")

        wire = plan.to_wire()
        assert wire["className"] == "UKG"
        assert wire["date"] == "2024-03-04"
        assert wire["lessonNumber"] == "2"

        restored = LessonPlan.model_validate(wire)
        assert restored.to_wire() == wire


@pytest.mark.parametrize(
    "day, week",
    [(date(2024, 1, 1), 1), (date(2024, 1, 7), 1), (date(2024, 1, 8), 2), (date(2024, 12, 31), 53)],
)
def test_week_number(day, week):
    assert week_number(day) == week


def test_resolve_sheet():
    assert resolve_sheet("UKG").display == "Upper Kindergarten"
    custom = resolve_sheet("Year1")
    assert custom.sheet == "Year1"
    assert custom.eyfs == "Year1 Statements"
