"""Small builders for domain objects used across the test suite."""
from __future__ import annotations

import datetime
from typing import Dict, Iterable, Mapping, Optional

from tutor_scheduler.models import (
    Instructor,
    Learner,
    PersonKind,
    ScheduleSnapshot,
    SessionSettings,
    person_key,
)
from tutor_scheduler.slots import Slot
from tutor_scheduler.subjects import LeveledSubject

MONDAY = datetime.date(2026, 7, 20)


def slot(period: int = 1, day: int = 0) -> Slot:
    return Slot(MONDAY + datetime.timedelta(days=day), period)


def instructor(instructor_id: str, *subjects: str) -> Instructor:
    return Instructor(
        id=instructor_id,
        name=instructor_id.upper(),
        subjects=tuple(LeveledSubject.parse(s) for s in (subjects or ("math",))),
    )


def learner(
    learner_id: str,
    quotas: Optional[Mapping[str, int]] = None,
    grade: str = "H1",
    submitted_at: int = 1000,
    unavailable: Iterable[Slot] = (),
    unavailable_dates: Iterable[datetime.date] = (),
) -> Learner:
    return Learner(
        id=learner_id,
        name=learner_id.upper(),
        grade=grade,
        quotas=dict(quotas if quotas is not None else {"math": 1}),
        unavailable_slots=frozenset(unavailable),
        unavailable_dates=frozenset(unavailable_dates),
        submitted_at=submitted_at,
    )


def availability(kind: PersonKind, entries: Mapping[str, Iterable[Slot]]) -> Dict[str, frozenset]:
    return {person_key(kind, person_id): frozenset(slots) for person_id, slots in entries.items()}


def snapshot(days: int = 1, periods: int = 2, desk_capacity: Optional[int] = None, **fields) -> ScheduleSnapshot:
    settings = SessionSettings(
        name="test",
        start_date=MONDAY,
        end_date=MONDAY + datetime.timedelta(days=days - 1),
        periods_per_day=periods,
        desk_capacity=desk_capacity,
        last_run_at=fields.pop("last_run_at", 0),
    )
    for key in ("instructors", "learners", "coordinators", "requesters", "pair_constraints",
                "grade_constraints", "regular_lessons", "submission_log"):
        if key in fields:
            fields[key] = tuple(fields[key])
    return ScheduleSnapshot(settings=settings, **fields)


def raw_snapshot(**overrides):
    """JSON-shaped snapshot: one math instructor, two learners, one school day."""
    data = {
        "settings": {
            "name": "summer",
            "start_date": "2026-07-20",
            "end_date": "2026-07-21",
            "periods_per_day": 2,
            "holidays": ["2026-07-21"],
        },
        "instructors": [{"id": "t1", "name": "Tanaka", "subjects": ["math@high", "english@middle"]}],
        "learners": [
            {"id": "a", "name": "Aoki", "grade": "H1", "quotas": {"math": 1}, "submitted_at": 1000},
            {"id": "b", "name": "Baba", "grade": "H2", "quotas": {"math": 1}, "submitted_at": 2000,
             "unavailable_slots": ["2026-07-20_2"]},
        ],
        "pair_constraints": [{"person_a": "t1", "person_b": "b", "polarity": "recommended"}],
        "availability": {"instructor:t1": ["2026-07-20_1", "2026-07-20_2"]},
        "assignments": {},
    }
    data.update(overrides)
    return data
