"""Domain objects shared by both schedulers.

Everything a run reads lives in :class:`ScheduleSnapshot` and is treated as
read-only; the only mutable state of a run is its assignment map.
"""
from __future__ import annotations

import datetime
import enum
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, List, Mapping, Optional, Sequence, Tuple

from .slots import Slot, build_slots
from .subjects import LeveledSubject

INTERVIEW_SUBJECT = "interview"


class PersonKind(str, enum.Enum):
    INSTRUCTOR = "instructor"
    LEARNER = "learner"
    COORDINATOR = "coordinator"
    REQUESTER = "requester"


class Polarity(str, enum.Enum):
    INCOMPATIBLE = "incompatible"
    RECOMMENDED = "recommended"


class SessionMode(str, enum.Enum):
    LESSON = "lesson"
    INTERVIEW = "interview"


def person_key(kind: PersonKind, person_id: str) -> str:
    """Availability map key, e.g. ``instructor:t1``."""
    return f"{PersonKind(kind).value}:{person_id}"


@dataclass(frozen=True)
class Instructor:
    id: str
    name: str
    subjects: Tuple[LeveledSubject, ...] = ()


@dataclass(frozen=True)
class Learner:
    id: str
    name: str
    grade: str
    # Ordered: insertion order is the learner's subject preference order.
    quotas: Mapping[str, int] = field(default_factory=dict)
    unavailable_slots: FrozenSet[Slot] = frozenset()
    unavailable_dates: FrozenSet[datetime.date] = frozenset()
    submitted_at: int = 0

    @property
    def subjects(self) -> List[str]:
        return list(self.quotas)

    @property
    def total_quota(self) -> int:
        return sum(self.quotas.values())

    def quota_for(self, subject: str) -> int:
        return self.quotas.get(subject, 0)


@dataclass(frozen=True)
class Coordinator:
    id: str
    name: str


@dataclass(frozen=True)
class Requester:
    id: str
    name: str
    submitted_at: int = 0


@dataclass(frozen=True)
class PairConstraint:
    person_a: str
    person_b: str
    polarity: Polarity


@dataclass(frozen=True)
class GradeConstraint:
    instructor_id: str
    grade: str
    polarity: Polarity


@dataclass(frozen=True)
class RegularLesson:
    instructor_id: str
    learner_ids: Tuple[str, ...]
    subject: str
    weekday: int
    period: int

    def matches(self, slot: Slot) -> bool:
        return slot.weekday == self.weekday and slot.period == self.period


@dataclass
class Assignment:
    """One instructor with 0-2 learners in one slot.

    ``learner_subjects`` overrides ``subject`` per learner so a pair can study
    different subjects side by side. Phases never mutate an Assignment that is
    already in a map; they replace it with :meth:`evolve`.
    """

    instructor_id: str
    learner_ids: Tuple[str, ...] = ()
    subject: str = ""
    learner_subjects: Optional[Dict[str, str]] = None
    is_regular: bool = False

    def subject_for(self, learner_id: str) -> str:
        if self.learner_subjects and learner_id in self.learner_subjects:
            return self.learner_subjects[learner_id]
        return self.subject

    def has_learner(self, learner_id: str) -> bool:
        return learner_id in self.learner_ids

    def evolve(self, **changes) -> "Assignment":
        values = {
            "instructor_id": self.instructor_id,
            "learner_ids": self.learner_ids,
            "subject": self.subject,
            "learner_subjects": dict(self.learner_subjects) if self.learner_subjects else None,
            "is_regular": self.is_regular,
        }
        values.update(changes)
        values["learner_ids"] = tuple(values["learner_ids"])
        return Assignment(**values)


AssignmentMap = Dict[Slot, List[Assignment]]


def copy_map(assignments: Mapping[Slot, Sequence[Assignment]]) -> AssignmentMap:
    """Shallow structural copy: new lists, new Assignment objects."""
    return {slot: [a.evolve() for a in items] for slot, items in assignments.items()}


class SubmissionKind(str, enum.Enum):
    INITIAL = "initial"
    UPDATE = "update"


@dataclass(frozen=True)
class SubmissionLogEntry:
    person_id: str
    person_kind: PersonKind
    kind: SubmissionKind
    submitted_at: int
    quotas: Optional[Mapping[str, int]] = None
    unavailable_slot_count: Optional[int] = None


@dataclass(frozen=True)
class SessionSettings:
    name: str = ""
    start_date: Optional[datetime.date] = None
    end_date: Optional[datetime.date] = None
    periods_per_day: int = 0
    holidays: FrozenSet[datetime.date] = frozenset()
    desk_capacity: Optional[int] = None
    last_run_at: int = 0
    mode: SessionMode = SessionMode.LESSON

    def build_slots(self) -> List[Slot]:
        return build_slots(self.start_date, self.end_date, self.periods_per_day, self.holidays)


@dataclass(frozen=True)
class ScheduleSnapshot:
    settings: SessionSettings
    instructors: Tuple[Instructor, ...] = ()
    learners: Tuple[Learner, ...] = ()
    coordinators: Tuple[Coordinator, ...] = ()
    requesters: Tuple[Requester, ...] = ()
    pair_constraints: Tuple[PairConstraint, ...] = ()
    grade_constraints: Tuple[GradeConstraint, ...] = ()
    regular_lessons: Tuple[RegularLesson, ...] = ()
    availability: Mapping[str, FrozenSet[Slot]] = field(default_factory=dict)
    assignments: Mapping[Slot, List[Assignment]] = field(default_factory=dict)
    recorded_outcomes: Mapping[Slot, List[Assignment]] = field(default_factory=dict)
    submission_log: Tuple[SubmissionLogEntry, ...] = ()
    slots: Optional[Tuple[Slot, ...]] = None

    def slot_list(self) -> List[Slot]:
        if self.slots is not None:
            return list(self.slots)
        return self.settings.build_slots()

    def instructor(self, instructor_id: str) -> Optional[Instructor]:
        return next((i for i in self.instructors if i.id == instructor_id), None)

    def learner(self, learner_id: str) -> Optional[Learner]:
        return next((l for l in self.learners if l.id == learner_id), None)

    def available_slots(self, kind: PersonKind, person_id: str) -> FrozenSet[Slot]:
        return self.availability.get(person_key(kind, person_id), frozenset())


__all__ = [
    "INTERVIEW_SUBJECT",
    "Assignment",
    "AssignmentMap",
    "Coordinator",
    "GradeConstraint",
    "Instructor",
    "Learner",
    "PairConstraint",
    "PersonKind",
    "Polarity",
    "RegularLesson",
    "Requester",
    "ScheduleSnapshot",
    "SessionMode",
    "SessionSettings",
    "SubmissionKind",
    "SubmissionLogEntry",
    "copy_map",
    "person_key",
]
