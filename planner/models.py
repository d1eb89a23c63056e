"""
models.py -- Pydantic models for the lesson planner core.

Defines: Activity, LessonData, LessonPlan, SheetInfo, BaseDataset,
LessonSource, LessonSnapshot, Ack/RemoteFailure, ParseResult, ImportSummary.
All data crossing component boundaries uses these models.

Persisted and remote payloads keep the camelCase keys the browser client
writes (allLessonsData, categoryOrder, videoLink, ...). Python code uses the
snake_case field names.
"""

from __future__ import annotations

import uuid
from datetime import date as Date
from datetime import datetime, timezone
from enum import Enum
from typing import Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


# ---------------------------------------------------------------------------
# Valid enumerations
# ---------------------------------------------------------------------------

PlanStatus = Literal["draft", "planned", "completed", "cancelled"]


class PlanInvariantError(AssertionError):
    """A LessonPlan's duration no longer matches its activities."""


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class WireModel(BaseModel):
    """Base for models persisted with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


# ---------------------------------------------------------------------------
# Classes ("sheets")
# ---------------------------------------------------------------------------

class SheetInfo(WireModel):
    """One independent dataset scope (an age group)."""

    sheet: str
    display: str
    eyfs: str = ""


SHEETS: dict[str, SheetInfo] = {
    "LKG": SheetInfo(sheet="LKG", display="Lower Kindergarten", eyfs="LKG Statements"),
    "UKG": SheetInfo(sheet="UKG", display="Upper Kindergarten", eyfs="UKG Statements"),
    "Reception": SheetInfo(sheet="Reception", display="Reception", eyfs="Reception Statements"),
}


def resolve_sheet(sheet: str | SheetInfo) -> SheetInfo:
    """Look up a built-in sheet by code; unknown codes get a bare SheetInfo."""
    if isinstance(sheet, SheetInfo):
        return sheet
    return SHEETS.get(sheet, SheetInfo(sheet=sheet, display=sheet, eyfs=f"{sheet} Statements"))


# ---------------------------------------------------------------------------
# Activities and lessons
# ---------------------------------------------------------------------------

class Activity(WireModel):
    """One teachable unit."""

    name: str = Field(alias="activity")
    description: str = ""
    time: int = Field(default=0, ge=0)
    video_link: str = ""
    music_link: str = ""
    backing_link: str = ""
    resource_link: str = ""
    vocals_link: str = ""
    image_link: str = ""
    category: str
    level: str = ""
    unit_name: str = ""
    lesson_number: str = ""
    eyfs_standards: list[str] = Field(default_factory=list)
    unique_id: Optional[str] = Field(default=None, alias="_uniqueId")

    @property
    def identity(self) -> tuple[str, str]:
        """Dedup identity: the (name, category) pair."""
        return (self.name, self.category)

    def copy_for_plan(self) -> Activity:
        """Deep copy with a fresh instance-scoped surrogate key."""
        return self.model_copy(deep=True, update={"unique_id": uuid.uuid4().hex})


class LessonData(WireModel):
    """Read model for one lesson id within one class."""

    grouped: dict[str, list[Activity]] = Field(default_factory=dict)
    category_order: list[str] = Field(default_factory=list)
    total_time: int = 0
    eyfs_statements: list[str] = Field(default_factory=list)
    title: Optional[str] = None

    @model_validator(mode="after")
    def _check_category_order(self) -> LessonData:
        if len(set(self.category_order)) != len(self.category_order):
            raise ValueError(f"duplicate categories in order: {self.category_order}")
        if set(self.grouped) != set(self.category_order):
            raise ValueError(
                f"grouped categories {sorted(self.grouped)} do not match "
                f"category order {self.category_order}"
            )
        return self

    def activities(self) -> list[Activity]:
        """All activities, in category order."""
        return [a for cat in self.category_order for a in self.grouped.get(cat, [])]


class LessonPlan(WireModel):
    """A user-authored, independently persisted lesson."""

    id: str = Field(default_factory=lambda: f"plan-{uuid.uuid4().hex[:12]}")
    date: Date = Field(default_factory=Date.today)
    week: Optional[int] = None
    class_name: str
    activities: list[Activity] = Field(default_factory=list)
    duration: Optional[int] = None
    notes: str = ""
    status: PlanStatus = "planned"
    title: Optional[str] = None
    term: Optional[str] = None
    unit_id: Optional[str] = None
    unit_name: Optional[str] = None
    lesson_number: Optional[str] = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @model_validator(mode="after")
    def _derive_week_and_check_duration(self) -> LessonPlan:
        if self.week is None:
            self.week = week_number(self.date)
        expected = sum(a.time for a in self.activities)
        if self.duration is None:
            self.duration = expected
        elif self.duration != expected:
            raise ValueError(f"plan {self.id}: duration {self.duration} != activity total {expected}")
        return self

    def check_duration(self) -> None:
        """Raise PlanInvariantError when duration no longer matches the activities."""
        expected = sum(a.time for a in self.activities)
        if self.duration != expected:
            raise PlanInvariantError(
                f"plan {self.id}: duration {self.duration} drifted from activity total {expected}"
            )

    def add_activity(self, activity: Activity) -> Activity:
        """Append a copy of activity and return the copy."""
        copy = activity.copy_for_plan()
        self.activities.append(copy)
        self.duration += copy.time
        self.check_duration()
        return copy

    def remove_activity(self, index: int) -> Activity:
        removed = self.activities.pop(index)
        self.duration -= removed.time
        self.check_duration()
        return removed

    def move_activity(self, from_index: int, to_index: int) -> None:
        moved = self.activities.pop(from_index)
        self.activities.insert(to_index, moved)
        self.check_duration()

    def update_notes(self, notes: str) -> None:
        self.notes = notes

    def touch(self) -> None:
        self.updated_at = utc_now()


def week_number(day: Date) -> int:
    """Week of the year, counting from 1 on January 1st."""
    return (day.timetuple().tm_yday - 1) // 7 + 1


# ---------------------------------------------------------------------------
# Persisted base dataset
# ---------------------------------------------------------------------------

class BaseDataset(WireModel):
    """The spreadsheet-derived lesson catalog for one class."""

    all_lessons_data: dict[str, LessonData] = Field(default_factory=dict)
    lesson_numbers: list[str] = Field(default_factory=list)
    teaching_units: list[str] = Field(default_factory=list)
    eyfs_statements: dict[str, list[str]] = Field(default_factory=dict)

    def is_empty(self) -> bool:
        return not self.all_lessons_data


class ParseResult(BaseModel):
    """Output of the record parser."""

    lesson_data: dict[str, LessonData]
    lesson_ids: list[str]
    categories: list[str]
    rows_read: int = 0
    activities_parsed: int = 0

    def to_dataset(self) -> BaseDataset:
        return BaseDataset(
            all_lessons_data=self.lesson_data,
            lesson_numbers=self.lesson_ids,
            teaching_units=self.categories,
            eyfs_statements={lesson_id: [] for lesson_id in self.lesson_ids},
        )


# ---------------------------------------------------------------------------
# Merged view
# ---------------------------------------------------------------------------

class BaseSource(WireModel):
    kind: Literal["base"] = "base"


class PlanSource(WireModel):
    kind: Literal["plan"] = "plan"
    plan_id: str


LessonSource = Union[BaseSource, PlanSource]


class EngineState(str, Enum):
    LOADING = "loading"
    READY = "ready"


class DataOrigin(str, Enum):
    """Which tier supplied the base dataset on the last load."""

    REMOTE = "remote"
    LOCAL = "local"
    SAMPLE = "sample"
    PLACEHOLDER = "placeholder"


class LessonSnapshot(BaseModel):
    """Read-only copy of the engine's merged view."""

    model_config = ConfigDict(frozen=True)

    sheet: SheetInfo
    state: EngineState
    origin: Optional[DataOrigin] = None
    generation: int = 0
    lesson_data: dict[str, LessonData] = Field(default_factory=dict)
    lesson_ids: list[str] = Field(default_factory=list)
    sources: dict[str, Union[BaseSource, PlanSource]] = Field(default_factory=dict)
    teaching_units: list[str] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Remote write outcomes
# ---------------------------------------------------------------------------

class Ack(BaseModel):
    """Remote tier accepted the write."""

    ok: Literal[True] = True
    sheet: Optional[str]
    dataset: str


class RemoteFailure(BaseModel):
    """Remote tier write did not happen; the local tier still holds the data."""

    ok: Literal[False] = False
    sheet: Optional[str]
    dataset: str
    error: str


RemoteWriteResult = Union[Ack, RemoteFailure]


# ---------------------------------------------------------------------------
# Import run summary
# ---------------------------------------------------------------------------

class ImportSummary(BaseModel):
    """Summary of one tabular import."""

    sheet: str
    rows_read: int
    activities_parsed: int
    lessons: int
    local_saved: bool
    remote: Optional[Union[Ack, RemoteFailure]] = None
    degraded: bool = False
    elapsed_seconds: float = 0.0
