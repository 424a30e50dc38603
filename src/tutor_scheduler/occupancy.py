"""Load counts over an in-progress assignment map.

Pure reads, recomputed on every call. Slot and period counts are small
(tens to low hundreds) so nothing is cached.

"Load" counts only non-regular assignments; date and period lookups include
regular lessons since those still occupy the person.
"""
from __future__ import annotations

import datetime
from typing import Iterator, List, Mapping, Sequence, Set, Tuple

from .models import Assignment
from .slots import Slot

AssignmentView = Mapping[Slot, Sequence[Assignment]]


def iter_assignments(assignments: AssignmentView) -> Iterator[Tuple[Slot, Assignment]]:
    for slot, items in assignments.items():
        for assignment in items:
            yield slot, assignment


def non_regular_count(items: Sequence[Assignment]) -> int:
    return sum(1 for a in items if not a.is_regular)


def instructor_load(assignments: AssignmentView, instructor_id: str) -> int:
    return sum(
        1
        for _, a in iter_assignments(assignments)
        if a.instructor_id == instructor_id and not a.is_regular
    )


def instructor_dates(assignments: AssignmentView, instructor_id: str) -> Set[datetime.date]:
    return {slot.date for slot, a in iter_assignments(assignments) if a.instructor_id == instructor_id}


def instructor_periods_on(
    assignments: AssignmentView, instructor_id: str, date: datetime.date
) -> List[int]:
    return sorted(
        {
            slot.period
            for slot, a in iter_assignments(assignments)
            if slot.date == date and a.instructor_id == instructor_id
        }
    )


def instructor_previous_learners(
    assignments: AssignmentView, instructor_id: str, slot: Slot
) -> Tuple[str, ...]:
    """Learners the instructor has in the period right before ``slot``."""
    for a in assignments.get(slot.shifted(-1), ()):
        if a.instructor_id == instructor_id:
            return a.learner_ids
    return ()


def learner_load(assignments: AssignmentView, learner_id: str) -> int:
    return sum(
        1
        for _, a in iter_assignments(assignments)
        if not a.is_regular and a.has_learner(learner_id)
    )


def learner_subject_load(assignments: AssignmentView, learner_id: str, subject: str) -> int:
    return sum(
        1
        for _, a in iter_assignments(assignments)
        if not a.is_regular and a.has_learner(learner_id) and a.subject_for(learner_id) == subject
    )


def learner_dates(assignments: AssignmentView, learner_id: str) -> Set[datetime.date]:
    return {slot.date for slot, a in iter_assignments(assignments) if a.has_learner(learner_id)}


def learner_periods_on(
    assignments: AssignmentView, learner_id: str, date: datetime.date
) -> List[int]:
    return sorted(
        {
            slot.period
            for slot, a in iter_assignments(assignments)
            if slot.date == date and a.has_learner(learner_id)
        }
    )


def pair_periods_on(
    assignments: AssignmentView, instructor_id: str, learner_id: str, date: datetime.date
) -> List[int]:
    return sorted(
        {
            slot.period
            for slot, a in iter_assignments(assignments)
            if slot.date == date and a.instructor_id == instructor_id and a.has_learner(learner_id)
        }
    )


def learner_adjacent_subjects(
    assignments: AssignmentView, learner_id: str, slot: Slot
) -> List[str]:
    """Subjects the learner studies in the periods just before and after ``slot``."""
    subjects = []
    for delta in (-1, 1):
        for a in assignments.get(slot.shifted(delta), ()):
            if a.has_learner(learner_id):
                subjects.append(a.subject_for(learner_id))
    return subjects


def remaining_quota(assignments: AssignmentView, learner) -> int:
    return learner.total_quota - learner_load(assignments, learner.id)


def remaining_subject_quota(assignments: AssignmentView, learner, subject: str) -> int:
    return learner.quota_for(subject) - learner_subject_load(assignments, learner.id, subject)


__all__ = [
    "instructor_dates",
    "instructor_load",
    "instructor_periods_on",
    "instructor_previous_learners",
    "iter_assignments",
    "learner_adjacent_subjects",
    "learner_dates",
    "learner_load",
    "learner_periods_on",
    "learner_subject_load",
    "non_regular_count",
    "pair_periods_on",
    "remaining_quota",
    "remaining_subject_quota",
]
