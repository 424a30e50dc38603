"""JSON boundary for schedule snapshots.

Structural checks (ids, quotas, periods, slot keys) live here so the
schedulers can assume a well-formed :class:`ScheduleSnapshot`.
"""
from __future__ import annotations

import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, NonNegativeInt, field_validator, model_validator

from .models import (
    Assignment,
    Coordinator,
    GradeConstraint,
    Instructor,
    Learner,
    PairConstraint,
    PersonKind,
    Polarity,
    Requester,
    RegularLesson,
    ScheduleSnapshot,
    SessionMode,
    SessionSettings,
    SubmissionKind,
    SubmissionLogEntry,
)
from .slots import Slot
from .subjects import LeveledSubject


def _check_slot_keys(keys) -> None:
    for key in keys:
        Slot.parse(key)


class SettingsModel(BaseModel):
    name: str = ""
    start_date: Optional[datetime.date] = None
    end_date: Optional[datetime.date] = None
    periods_per_day: NonNegativeInt = 0
    holidays: List[datetime.date] = Field(default_factory=list)
    desk_capacity: Optional[NonNegativeInt] = None
    last_run_at: NonNegativeInt = 0
    mode: SessionMode = SessionMode.LESSON

    @model_validator(mode="after")
    def check_range(self) -> "SettingsModel":
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("end_date is before start_date")
        return self

    def to_domain(self) -> SessionSettings:
        return SessionSettings(
            name=self.name,
            start_date=self.start_date,
            end_date=self.end_date,
            periods_per_day=self.periods_per_day,
            holidays=frozenset(self.holidays),
            desk_capacity=self.desk_capacity,
            last_run_at=self.last_run_at,
            mode=self.mode,
        )


class InstructorModel(BaseModel):
    id: str = Field(..., min_length=1)
    name: str = ""
    subjects: List[str] = Field(default_factory=list, description="Leveled subjects, e.g. 'math@middle'")

    @field_validator("subjects")
    @classmethod
    def parse_subjects(cls, value: List[str]) -> List[str]:
        for text in value:
            LeveledSubject.parse(text)
        return value

    def to_domain(self) -> Instructor:
        return Instructor(
            id=self.id,
            name=self.name or self.id,
            subjects=tuple(LeveledSubject.parse(s) for s in self.subjects),
        )


class LearnerModel(BaseModel):
    id: str = Field(..., min_length=1)
    name: str = ""
    grade: str = ""
    quotas: Dict[str, NonNegativeInt] = Field(default_factory=dict, description="Requested slots per subject")
    unavailable_slots: List[str] = Field(default_factory=list)
    unavailable_dates: List[datetime.date] = Field(default_factory=list)
    submitted_at: NonNegativeInt = 0

    @field_validator("unavailable_slots")
    @classmethod
    def parse_slots(cls, value: List[str]) -> List[str]:
        _check_slot_keys(value)
        return value

    def to_domain(self) -> Learner:
        return Learner(
            id=self.id,
            name=self.name or self.id,
            grade=self.grade,
            quotas=dict(self.quotas),
            unavailable_slots=frozenset(Slot.parse(k) for k in self.unavailable_slots),
            unavailable_dates=frozenset(self.unavailable_dates),
            submitted_at=self.submitted_at,
        )


class CoordinatorModel(BaseModel):
    id: str = Field(..., min_length=1)
    name: str = ""


class RequesterModel(BaseModel):
    id: str = Field(..., min_length=1)
    name: str = ""
    submitted_at: NonNegativeInt = 0


class PairConstraintModel(BaseModel):
    person_a: str
    person_b: str
    polarity: Polarity


class GradeConstraintModel(BaseModel):
    instructor_id: str
    grade: str
    polarity: Polarity


class RegularLessonModel(BaseModel):
    instructor_id: str
    learner_ids: List[str] = Field(..., min_length=1, max_length=2)
    subject: str
    weekday: int = Field(..., ge=0, le=6, description="0 = Monday")
    period: int = Field(..., ge=1)

    def to_domain(self) -> RegularLesson:
        return RegularLesson(
            instructor_id=self.instructor_id,
            learner_ids=tuple(self.learner_ids),
            subject=self.subject,
            weekday=self.weekday,
            period=self.period,
        )


class AssignmentModel(BaseModel):
    instructor_id: str = ""
    learner_ids: List[str] = Field(default_factory=list, max_length=2)
    subject: str = ""
    learner_subjects: Optional[Dict[str, str]] = None
    is_regular: bool = False

    def to_domain(self) -> Assignment:
        return Assignment(
            instructor_id=self.instructor_id,
            learner_ids=tuple(self.learner_ids),
            subject=self.subject,
            learner_subjects=dict(self.learner_subjects) if self.learner_subjects else None,
            is_regular=self.is_regular,
        )


class SubmissionLogModel(BaseModel):
    person_id: str
    person_kind: PersonKind = PersonKind.LEARNER
    kind: SubmissionKind = SubmissionKind.INITIAL
    submitted_at: NonNegativeInt = 0
    quotas: Optional[Dict[str, NonNegativeInt]] = None
    unavailable_slot_count: Optional[NonNegativeInt] = None

    def to_domain(self) -> SubmissionLogEntry:
        return SubmissionLogEntry(
            person_id=self.person_id,
            person_kind=self.person_kind,
            kind=self.kind,
            submitted_at=self.submitted_at,
            quotas=dict(self.quotas) if self.quotas is not None else None,
            unavailable_slot_count=self.unavailable_slot_count,
        )


AssignmentMapModel = Dict[str, List[AssignmentModel]]


def _map_to_domain(raw: AssignmentMapModel) -> Dict[Slot, List[Assignment]]:
    return {Slot.parse(key): [a.to_domain() for a in items] for key, items in raw.items()}


class SnapshotModel(BaseModel):
    model_config = ConfigDict(extra="allow")

    settings: SettingsModel = Field(default_factory=SettingsModel)
    instructors: List[InstructorModel] = Field(default_factory=list)
    learners: List[LearnerModel] = Field(default_factory=list)
    coordinators: List[CoordinatorModel] = Field(default_factory=list)
    requesters: List[RequesterModel] = Field(default_factory=list)
    pair_constraints: List[PairConstraintModel] = Field(default_factory=list)
    grade_constraints: List[GradeConstraintModel] = Field(default_factory=list)
    regular_lessons: List[RegularLessonModel] = Field(default_factory=list)
    availability: Dict[str, List[str]] = Field(
        default_factory=dict, description="'<kind>:<id>' -> slot keys"
    )
    assignments: AssignmentMapModel = Field(default_factory=dict)
    recorded_outcomes: AssignmentMapModel = Field(default_factory=dict)
    submission_log: List[SubmissionLogModel] = Field(default_factory=list)
    slots: Optional[List[str]] = None

    @field_validator("availability")
    @classmethod
    def check_availability(cls, value: Dict[str, List[str]]) -> Dict[str, List[str]]:
        kinds = {k.value for k in PersonKind}
        for key, slot_keys in value.items():
            kind, sep, person_id = key.partition(":")
            if not sep or kind not in kinds or not person_id:
                raise ValueError(f"Bad availability key '{key}'")
            _check_slot_keys(slot_keys)
        return value

    @field_validator("assignments", "recorded_outcomes")
    @classmethod
    def check_map_keys(cls, value: AssignmentMapModel) -> AssignmentMapModel:
        _check_slot_keys(value)
        return value

    @field_validator("slots")
    @classmethod
    def check_slots(cls, value: Optional[List[str]]) -> Optional[List[str]]:
        if value is not None:
            _check_slot_keys(value)
        return value

    @model_validator(mode="after")
    def check_references(self) -> "SnapshotModel":
        for label, people in (
            ("instructor", self.instructors),
            ("learner", self.learners),
            ("coordinator", self.coordinators),
            ("requester", self.requesters),
        ):
            ids = [p.id for p in people]
            duplicates = sorted({i for i in ids if ids.count(i) > 1})
            if duplicates:
                raise ValueError(f"Duplicate {label} ids: {', '.join(duplicates)}")

        instructor_ids = {i.id for i in self.instructors}
        learner_ids = {l.id for l in self.learners}
        for lesson in self.regular_lessons:
            if lesson.instructor_id not in instructor_ids:
                raise ValueError(f"Regular lesson references unknown instructor '{lesson.instructor_id}'")
            unknown = [lid for lid in lesson.learner_ids if lid not in learner_ids]
            if unknown:
                raise ValueError(f"Regular lesson references unknown learner(s): {', '.join(unknown)}")

        periods = self.settings.periods_per_day
        if periods:
            for lesson in self.regular_lessons:
                if lesson.period > periods:
                    raise ValueError(f"Regular lesson period {lesson.period} exceeds {periods} periods per day")
            for key in [*self.assignments, *self.recorded_outcomes, *(self.slots or [])]:
                if Slot.parse(key).period > periods:
                    raise ValueError(f"Slot '{key}' exceeds {periods} periods per day")
        return self

    def to_domain(self) -> ScheduleSnapshot:
        return ScheduleSnapshot(
            settings=self.settings.to_domain(),
            instructors=tuple(i.to_domain() for i in self.instructors),
            learners=tuple(l.to_domain() for l in self.learners),
            coordinators=tuple(Coordinator(id=c.id, name=c.name or c.id) for c in self.coordinators),
            requesters=tuple(
                Requester(id=r.id, name=r.name or r.id, submitted_at=r.submitted_at) for r in self.requesters
            ),
            pair_constraints=tuple(
                PairConstraint(c.person_a, c.person_b, c.polarity) for c in self.pair_constraints
            ),
            grade_constraints=tuple(
                GradeConstraint(c.instructor_id, c.grade, c.polarity) for c in self.grade_constraints
            ),
            regular_lessons=tuple(r.to_domain() for r in self.regular_lessons),
            availability={
                key: frozenset(Slot.parse(k) for k in slot_keys) for key, slot_keys in self.availability.items()
            },
            assignments=_map_to_domain(self.assignments),
            recorded_outcomes=_map_to_domain(self.recorded_outcomes),
            submission_log=tuple(e.to_domain() for e in self.submission_log),
            slots=tuple(Slot.parse(k) for k in self.slots) if self.slots is not None else None,
        )


class ScheduleOptions(BaseModel):
    yield_every: int = Field(5, ge=0, description="Phase 3 slots between cooperative yields; 0 disables")


class ScheduleRequest(BaseModel):
    model_config = ConfigDict(extra="allow")
    snapshot: SnapshotModel
    options: ScheduleOptions = Field(default_factory=ScheduleOptions)


class SnapshotRequest(BaseModel):
    name: str
    description: Optional[str] = None
    state: SnapshotModel


__all__ = [
    "AssignmentModel",
    "InstructorModel",
    "LearnerModel",
    "ScheduleOptions",
    "ScheduleRequest",
    "SettingsModel",
    "SnapshotModel",
    "SnapshotRequest",
]
