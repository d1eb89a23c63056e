"""
aggregator.py -- The lesson aggregation engine for one planning session.

Responsibility:
- Load base lesson data for the active class (remote -> local -> sample ->
  placeholder) and every locally stored plan for that class
- Merge them by lesson id, plan data taking precedence
- Route every mutation (import, curriculum tags, titles, plan CRUD) through
  the persistence gateway and keep the merged view consistent
- Apply only the most recently started load when loads overlap

The engine never raises for storage or input problems; callers always get a
renderable view.
"""

from __future__ import annotations

import logging
import time
from datetime import date as Date
from typing import Any, Iterable, Optional

from planner import config
from planner.catalog import build_library, find_activity
from planner.converter import plan_lesson_id, plan_to_lesson_data, seed_plan_from_lesson
from planner.gateway import DATASET_LESSONS, PersistenceGateway
from planner.models import (
    Activity,
    BaseDataset,
    BaseSource,
    DataOrigin,
    EngineState,
    ImportSummary,
    LessonData,
    LessonPlan,
    LessonSnapshot,
    LessonSource,
    PlanSource,
    RemoteWriteResult,
    SheetInfo,
    resolve_sheet,
)
from planner.parser import TabularFormatError, parse_rows
from planner.samples import placeholder_dataset, sample_rows

logger = logging.getLogger(__name__)


def sort_lesson_ids(lesson_ids: Iterable[str]) -> list[str]:
    """Integer ids ascending, then any other ids lexicographically."""
    numeric: list[str] = []
    other: list[str] = []
    for lesson_id in set(lesson_ids):
        try:
            int(lesson_id)
        except ValueError:
            other.append(lesson_id)
        else:
            numeric.append(lesson_id)
    return sorted(numeric, key=int) + sorted(other)


def merge_lessons(
    dataset: BaseDataset,
    plans: Iterable[LessonPlan],
) -> tuple[dict[str, LessonData], list[str], dict[str, LessonSource]]:
    """
    Merge base lessons with plan-derived lessons.

    A plan is keyed by its base-lesson number, else by its own id, and
    replaces any base lesson with that key. When two plans share a key the
    most recently updated one wins. Per-lesson curriculum tags recorded in
    the base dataset are attached to whichever lesson ends up under the id.
    """
    lesson_data: dict[str, LessonData] = {
        lesson_id: lesson.model_copy(deep=True)
        for lesson_id, lesson in dataset.all_lessons_data.items()
    }
    sources: dict[str, LessonSource] = {lesson_id: BaseSource() for lesson_id in lesson_data}
    ids: set[str] = set(dataset.lesson_numbers)

    for plan in sorted(plans, key=lambda p: p.updated_at.timestamp()):
        key = plan_lesson_id(plan)
        previous = sources.get(key)
        if isinstance(previous, PlanSource):
            logger.warning(
                "Plans %s and %s both map to lesson %s; keeping %s",
                previous.plan_id, plan.id, key, plan.id,
            )
        lesson_data[key] = plan_to_lesson_data(plan)
        sources[key] = PlanSource(plan_id=plan.id)
        ids.add(key)

    for lesson_id, tags in dataset.eyfs_statements.items():
        lesson = lesson_data.get(lesson_id)
        if lesson is not None:
            lesson_data[lesson_id] = lesson.model_copy(update={"eyfs_statements": list(tags)})

    return lesson_data, sort_lesson_ids(ids), sources


class AggregationEngine:
    """Merged lesson view for the active class, plus its write operations."""

    def __init__(
        self,
        gateway: PersistenceGateway,
        sheet: str | SheetInfo = config.DEFAULT_SHEET,
    ) -> None:
        self.gateway = gateway
        self.sheet: SheetInfo = resolve_sheet(sheet)
        self.state: EngineState = EngineState.LOADING
        self.origin: Optional[DataOrigin] = None
        self._generation = 0
        self._applied_generation = 0
        self._dataset = BaseDataset()
        self._plans: list[LessonPlan] = []
        self._lesson_data: dict[str, LessonData] = {}
        self._lesson_ids: list[str] = []
        self._sources: dict[str, LessonSource] = {}

    # -- loading -------------------------------------------------------------------

    async def load(self) -> LessonSnapshot:
        """Rebuild the merged view for the active class."""
        self._generation += 1
        generation = self._generation
        sheet = self.sheet
        self.state = EngineState.LOADING
        logger.info("Load #%d for %s started", generation, sheet.sheet)

        dataset, origin = await self._read_base(sheet)

        if generation != self._generation:
            logger.info(
                "Load #%d for %s superseded by load #%d; discarding its result",
                generation, sheet.sheet, self._generation,
            )
            return self.snapshot()

        self._apply(generation, dataset, origin, self.gateway.load_plans(sheet.sheet))
        return self.snapshot()

    async def refresh(self) -> LessonSnapshot:
        return await self.load()

    async def switch_sheet(self, sheet: str | SheetInfo) -> LessonSnapshot:
        """Make another class active and load it."""
        self.sheet = resolve_sheet(sheet)
        return await self.load()

    async def _read_base(self, sheet: SheetInfo) -> tuple[BaseDataset, DataOrigin]:
        dataset, origin = await self.gateway.read_base(sheet.sheet)
        if dataset is not None and origin is not None:
            if origin is DataOrigin.LOCAL and self.gateway.remote is not None:
                result = await self.gateway.push_remote(DATASET_LESSONS, sheet.sheet, dataset.to_wire())
                if result.ok:
                    logger.info("Migrated %s data from local cache to remote", sheet.sheet)
            return dataset, origin
        return self._bootstrap(sheet)

    def _bootstrap(self, sheet: SheetInfo) -> tuple[BaseDataset, DataOrigin]:
        rows = sample_rows(sheet.sheet)
        if rows:
            logger.info("Loading sample data for %s", sheet.sheet)
            try:
                parsed = parse_rows(rows)
            except TabularFormatError as exc:
                logger.error("Sample data for %s is unusable: %s", sheet.sheet, exc)
            else:
                if parsed.lesson_data:
                    return parsed.to_dataset(), DataOrigin.SAMPLE
        logger.error("No sample data available for %s; using placeholder lesson", sheet.sheet)
        return placeholder_dataset(sheet), DataOrigin.PLACEHOLDER

    def _apply(
        self,
        generation: int,
        dataset: BaseDataset,
        origin: DataOrigin,
        plans: list[LessonPlan],
    ) -> None:
        lesson_data, lesson_ids, sources = merge_lessons(dataset, plans)
        self._dataset = dataset
        self._plans = plans
        self._lesson_data = lesson_data
        self._lesson_ids = lesson_ids
        self._sources = sources
        self.origin = origin
        self._applied_generation = generation
        self.state = EngineState.READY
        logger.info(
            "Load #%d for %s ready: %d lessons (%d from plans), base data from %s",
            generation,
            self.sheet.sheet,
            len(lesson_ids),
            sum(1 for s in sources.values() if isinstance(s, PlanSource)),
            origin.value,
        )

    # -- reads ---------------------------------------------------------------------

    def snapshot(self) -> LessonSnapshot:
        """Deep copy of the merged view; changes to it do not reach the engine."""
        return LessonSnapshot(
            sheet=self.sheet,
            state=self.state,
            origin=self.origin,
            generation=self._applied_generation,
            lesson_data={k: v.model_copy(deep=True) for k, v in self._lesson_data.items()},
            lesson_ids=list(self._lesson_ids),
            sources={k: v.model_copy() for k, v in self._sources.items()},
            teaching_units=list(self._dataset.teaching_units),
        )

    def lesson(self, lesson_id: str) -> Optional[LessonData]:
        lesson = self._lesson_data.get(lesson_id)
        return lesson.model_copy(deep=True) if lesson is not None else None

    def source(self, lesson_id: str) -> Optional[LessonSource]:
        return self._sources.get(lesson_id)

    def plans(self) -> list[LessonPlan]:
        return [plan.model_copy(deep=True) for plan in self._plans]

    def library(self) -> list[Activity]:
        return build_library(self._lesson_data, self._lesson_ids)

    def seed_plan(self, lesson_id: str, day: Optional[Date] = None) -> Optional[LessonPlan]:
        """Unsaved plan pre-filled from a lesson of the merged view."""
        lesson = self._lesson_data.get(lesson_id)
        if lesson is None:
            return None
        return seed_plan_from_lesson(lesson_id, lesson, self.sheet.sheet, day)

    # -- import ----------------------------------------------------------------------

    async def import_rows(self, rows: Any) -> ImportSummary:
        """Replace the class's base dataset with parsed rows and reload."""
        start = time.monotonic()
        sheet = self.sheet
        try:
            parsed = parse_rows(rows)
            if not parsed.lesson_data:
                raise TabularFormatError("No activities found in the sheet.")
        except TabularFormatError as exc:
            logger.error("Import for %s failed: %s", sheet.sheet, exc)
            self._generation += 1
            self._apply(
                self._generation,
                placeholder_dataset(sheet, f"Failed to import {sheet.display} data: {exc}"),
                DataOrigin.PLACEHOLDER,
                [],
            )
            return ImportSummary(
                sheet=sheet.sheet,
                rows_read=max(len(rows) - 1, 0) if isinstance(rows, (list, tuple)) else 0,
                activities_parsed=0,
                lessons=0,
                local_saved=False,
                degraded=True,
                elapsed_seconds=round(time.monotonic() - start, 3),
            )

        dataset = parsed.to_dataset()
        remote = await self.gateway.save_base(sheet.sheet, dataset)
        await self.load()

        summary = ImportSummary(
            sheet=sheet.sheet,
            rows_read=parsed.rows_read,
            activities_parsed=parsed.activities_parsed,
            lessons=len(parsed.lesson_data),
            local_saved=True,
            remote=remote,
            elapsed_seconds=round(time.monotonic() - start, 3),
        )
        logger.info(
            "Imported %d activities into %d lessons for %s (remote %s)",
            summary.activities_parsed, summary.lessons, sheet.sheet,
            "saved" if remote.ok else "failed",
        )
        return summary

    # -- curriculum tags ---------------------------------------------------------------

    async def add_tag(self, lesson_id: str, tag: str) -> Optional[RemoteWriteResult]:
        return await self._change_tags(lesson_id, tag, add=True)

    async def remove_tag(self, lesson_id: str, tag: str) -> Optional[RemoteWriteResult]:
        return await self._change_tags(lesson_id, tag, add=False)

    async def _change_tags(self, lesson_id: str, tag: str, add: bool) -> Optional[RemoteWriteResult]:
        lesson = self._lesson_data.get(lesson_id)
        if lesson is None:
            logger.warning("Cannot change curriculum tags of unknown lesson %s", lesson_id)
            return None

        tags = list(self._dataset.eyfs_statements.get(lesson_id, lesson.eyfs_statements))
        if add:
            if tag not in tags:
                tags.append(tag)
        else:
            tags = [t for t in tags if t != tag]

        self._lesson_data[lesson_id] = lesson.model_copy(update={"eyfs_statements": tags})
        self._dataset.eyfs_statements[lesson_id] = list(tags)
        base_lesson = self._dataset.all_lessons_data.get(lesson_id)
        if base_lesson is not None:
            self._dataset.all_lessons_data[lesson_id] = base_lesson.model_copy(
                update={"eyfs_statements": list(tags)}
            )
        return await self._save_dataset()

    # -- titles ------------------------------------------------------------------------

    async def set_title(self, lesson_id: str, title: str) -> Optional[RemoteWriteResult]:
        """
        Set a lesson's display title.

        Plan lessons update the plan (local tier only, returns None); base
        lessons update the base dataset and return the remote write result.
        """
        source = self._sources.get(lesson_id)
        if source is None:
            logger.warning("Cannot set title of unknown lesson %s", lesson_id)
            return None

        if isinstance(source, PlanSource):
            plan = next((p for p in self._plans if p.id == source.plan_id), None)
            if plan is None:
                logger.warning("Plan %s for lesson %s is no longer loaded", source.plan_id, lesson_id)
                return None
            plan.title = title
            plan.touch()
            self.gateway.upsert_plan(plan)
            await self.load()
            return None

        base_lesson = self._dataset.all_lessons_data.get(lesson_id)
        if base_lesson is None:
            logger.warning("Base lesson %s missing from dataset", lesson_id)
            return None
        self._dataset.all_lessons_data[lesson_id] = base_lesson.model_copy(update={"title": title})
        self._lesson_data[lesson_id] = self._lesson_data[lesson_id].model_copy(update={"title": title})
        return await self._save_dataset()

    async def _save_dataset(self) -> Optional[RemoteWriteResult]:
        if self.origin is DataOrigin.PLACEHOLDER:
            logger.warning("Not persisting placeholder data for %s", self.sheet.sheet)
            return None
        return await self.gateway.save_base(self.sheet.sheet, self._dataset)

    # -- plans -------------------------------------------------------------------------

    async def save_plan(self, plan: LessonPlan) -> LessonSnapshot:
        """
        Insert or update a plan by id, then reload the merged view.

        Raises PlanInvariantError, before anything is stored, when the plan's
        duration has drifted from its activities.
        """
        plan.check_duration()
        plan.touch()
        created = self.gateway.upsert_plan(plan)
        logger.info("%s plan %s for %s", "Created" if created else "Updated", plan.id, plan.class_name)
        return await self.load()

    async def delete_plan(self, plan_id: str) -> bool:
        """Delete a plan; tags held under a stand-alone plan's own id go with it."""
        plan = next((p for p in self._plans if p.id == plan_id), None)
        deleted = self.gateway.delete_plan(plan_id)
        if not deleted:
            logger.warning("No plan %s to delete", plan_id)
            return False

        logger.info("Deleted plan %s", plan_id)
        if plan is not None and plan_lesson_id(plan) == plan.id:
            if self._dataset.eyfs_statements.pop(plan.id, None) is not None:
                logger.info("Dropped curriculum tags of deleted plan %s", plan.id)
                await self._save_dataset()
        await self.load()
        return True

    async def add_library_activity(self, plan_id: str, name: str, category: str) -> Optional[LessonPlan]:
        """Copy an activity from the library into a plan and save it."""
        plan = next((p for p in self._plans if p.id == plan_id), None)
        if plan is None:
            logger.warning("No plan %s to add %s to", plan_id, name)
            return None
        activity = find_activity(self.library(), name, category)
        if activity is None:
            logger.warning("Activity %s (%s) is not in the %s library", name, category, self.sheet.sheet)
            return None
        plan.add_activity(activity)
        await self.save_plan(plan)
        return plan.model_copy(deep=True)
