"""Compatibility predicates. All pure and order-independent where it matters."""
from __future__ import annotations

from typing import Iterable, List, Mapping, Optional

from .models import (
    GradeConstraint,
    Learner,
    PairConstraint,
    PersonKind,
    Polarity,
    RegularLesson,
    person_key,
)
from .slots import Slot
from .subjects import LeveledSubject, can_teach_subject


def constraint_for(
    constraints: Iterable[PairConstraint], id_a: str, id_b: str
) -> Optional[Polarity]:
    """Polarity of the constraint between two people, in either order."""
    for item in constraints:
        if (item.person_a == id_a and item.person_b == id_b) or (
            item.person_a == id_b and item.person_b == id_a
        ):
            return item.polarity
    return None


def grade_constraint_for(
    grade_constraints: Iterable[GradeConstraint], instructor_id: str, grade: str
) -> Optional[Polarity]:
    if not grade:
        return None
    for item in grade_constraints:
        if item.instructor_id == instructor_id and item.grade == grade:
            return item.polarity
    return None


def has_availability(
    availability: Mapping[str, Iterable[Slot]],
    kind: PersonKind,
    person_id: str,
    slot: Slot,
) -> bool:
    """Positive availability: only instructors, coordinators and requesters declare it."""
    return slot in availability.get(person_key(kind, person_id), ())


def is_learner_available(learner: Learner, slot: Slot) -> bool:
    """Learners declare the slots they cannot attend; unsubmitted learners attend none."""
    if not learner.submitted_at:
        return False
    if slot in learner.unavailable_slots:
        return False
    return slot.date not in learner.unavailable_dates


def is_regular_lesson_pair(
    lessons: Iterable[RegularLesson], instructor_id: str, learner_id: str
) -> bool:
    return any(
        lesson.instructor_id == instructor_id and learner_id in lesson.learner_ids
        for lesson in lessons
    )


def is_incompatible(
    pair_constraints: Iterable[PairConstraint],
    grade_constraints: Iterable[GradeConstraint],
    instructor_id: str,
    learner: Learner,
) -> bool:
    """Hard exclusion between an instructor and a learner, by pair or by grade."""
    if constraint_for(pair_constraints, instructor_id, learner.id) == Polarity.INCOMPATIBLE:
        return True
    return (
        grade_constraint_for(grade_constraints, instructor_id, learner.grade)
        == Polarity.INCOMPATIBLE
    )


def teachable_subjects(
    instructor_subjects: Iterable[LeveledSubject], learner: Learner
) -> List[str]:
    """The learner's desired subjects this instructor can teach, in the learner's order."""
    held = list(instructor_subjects)
    return [
        subject
        for subject in learner.subjects
        if can_teach_subject(held, learner.grade, subject)
    ]


def learners_conflict(pair_constraints: Iterable[PairConstraint], learner_ids: Iterable[str]) -> bool:
    """True if any two of the given learners are marked incompatible."""
    ids = list(learner_ids)
    constraints = list(pair_constraints)
    for idx, left in enumerate(ids):
        for right in ids[idx + 1:]:
            if constraint_for(constraints, left, right) == Polarity.INCOMPATIBLE:
                return True
    return False


__all__ = [
    "constraint_for",
    "grade_constraint_for",
    "has_availability",
    "is_incompatible",
    "is_learner_available",
    "is_regular_lesson_pair",
    "learners_conflict",
    "teachable_subjects",
]
