"""Resolve recurring weekday lessons onto concrete slots."""
from __future__ import annotations

from typing import Iterable, List, Mapping, Sequence

from .models import Assignment, AssignmentMap, RegularLesson, copy_map
from .slots import Slot


def regular_lessons_for_slot(lessons: Iterable[RegularLesson], slot: Slot) -> List[RegularLesson]:
    return [lesson for lesson in lessons if lesson.matches(slot)]


def lesson_assignment(lesson: RegularLesson) -> Assignment:
    return Assignment(
        instructor_id=lesson.instructor_id,
        learner_ids=tuple(lesson.learner_ids),
        subject=lesson.subject,
        is_regular=True,
    )


def apply_regular_lessons(
    assignments: Mapping[Slot, Sequence[Assignment]],
    lessons: Sequence[RegularLesson],
    slots: Iterable[Slot],
) -> AssignmentMap:
    """Return a copy of ``assignments`` with every matching lesson pinned as regular.

    A lesson already present in the slot (same instructor, regular) is not
    added again, so applying twice is harmless.
    """
    result = copy_map(assignments)
    for slot in slots:
        for lesson in regular_lessons_for_slot(lessons, slot):
            items = result.setdefault(slot, [])
            if any(a.is_regular and a.instructor_id == lesson.instructor_id for a in items):
                continue
            items.append(lesson_assignment(lesson))
    return result


__all__ = ["apply_regular_lessons", "lesson_assignment", "regular_lessons_for_slot"]
