"""
converter.py -- Convert between user-authored LessonPlans and LessonData.

A plan converted here has exactly the shape the parser produces, so consumers
cannot tell spreadsheet lessons from authored ones.
"""

from __future__ import annotations

import logging
from datetime import date as Date
from typing import Optional

from planner.categories import resolve_title
from planner.models import LessonData, LessonPlan
from planner.parser import build_lesson

logger = logging.getLogger(__name__)


def plan_to_lesson_data(plan: LessonPlan) -> LessonData:
    """Group a plan's activities by category; the plan's own title wins."""
    lesson = build_lesson(plan.activities)
    lesson.title = resolve_title(plan.title, lesson.category_order)
    return lesson


def plan_lesson_id(plan: LessonPlan) -> str:
    """Merge key for a plan: its base-lesson linkage, else its own id."""
    return plan.lesson_number or plan.id


def seed_plan_from_lesson(
    lesson_id: str,
    lesson: LessonData,
    class_name: str,
    day: Optional[Date] = None,
) -> LessonPlan:
    """Start a new plan from an existing lesson, copying every activity."""
    plan = LessonPlan(
        class_name=class_name,
        date=day or Date.today(),
        lesson_number=lesson_id,
        title=lesson.title,
    )
    for activity in lesson.activities():
        plan.add_activity(activity)
    logger.info(
        "Seeded plan %s from lesson %s (%d activities, %d mins)",
        plan.id, lesson_id, len(plan.activities), plan.duration,
    )
    return plan
