"""Priority function for new pairings.

The weights are empirical magnitudes carried over from the scheduling
practice this tool grew out of. They are kept as named constants so they
can be recalibrated against real outcomes; none of them is a business rule.
"""
from __future__ import annotations

import datetime
import math
from dataclasses import dataclass, field
from typing import Dict, Mapping, Sequence, Tuple

from . import occupancy
from .models import Learner
from .occupancy import AssignmentView
from .slots import Slot

BASE_SCORE = 100
SAME_DATE_BONUS = 80
NEW_DATE_PENALTY = -50
INSTRUCTOR_ADJACENT_BONUS = 20
FIRST_HALF_MAX_BONUS = 25
RECOMMENDED_PAIR_BONUS = 30
PAIR_ADJACENT_BONUS = 60
PAIR_SPLIT_PENALTY = -40
TWO_LEARNER_BONUS = 30
MIXED_SUBJECT_PENALTY = -15
REPEATED_SUBJECT_PENALTY = -20
LEARNER_SAME_DAY_PENALTY = -60
LEARNER_SAME_DAY_ADJACENT_RELIEF = 50
UNMET_QUOTA_WEIGHT = 10
COMMITTED_DATE_WEIGHT = -5
SUBMISSION_RANK_MAX_BONUS = 15
SUBMISSION_RANK_STEP = 2
INSTRUCTOR_LOAD_WEIGHT = -2


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def first_half_bonus(date_index: int, total_dates: int) -> int:
    """+25 on the first date of the range falling linearly to 0 on the last."""
    if total_dates <= 1:
        return 0
    return round_half_up(FIRST_HALF_MAX_BONUS * (1 - date_index / (total_dates - 1)))


def submission_rank_bonus(rank: int) -> int:
    return max(0, SUBMISSION_RANK_MAX_BONUS - rank * SUBMISSION_RANK_STEP)


@dataclass(frozen=True)
class LearnerFeatures:
    """What the score needs to know about one candidate learner."""

    learner_id: str
    recommended: bool = False
    booked_periods: Tuple[int, ...] = ()
    pair_periods: Tuple[int, ...] = ()
    adjacent_subjects: Tuple[str, ...] = ()
    unmet_quota: int = 0
    committed_dates: int = 0
    submission_rank: int = 0


@dataclass(frozen=True)
class ScoreContext:
    """Slot- and instructor-level inputs shared by every candidate plan."""

    period: int
    instructor_on_date: bool
    instructor_adjacent: bool
    date_bonus: int
    instructor_load: int
    learners: Mapping[str, LearnerFeatures] = field(default_factory=dict)


@dataclass(frozen=True)
class CandidatePlan:
    learner_ids: Tuple[str, ...]
    subjects: Mapping[str, str]
    is_mixed: bool = False

    @property
    def primary_subject(self) -> str:
        return self.subjects[self.learner_ids[0]]


def _is_adjacent(period: int, others: Sequence[int]) -> bool:
    return any(abs(other - period) == 1 for other in others)


def score(context: ScoreContext, plan: CandidatePlan) -> int:
    total = BASE_SCORE
    total += SAME_DATE_BONUS if context.instructor_on_date else NEW_DATE_PENALTY
    if context.instructor_adjacent:
        total += INSTRUCTOR_ADJACENT_BONUS
    total += context.date_bonus
    if len(plan.learner_ids) == 2:
        total += TWO_LEARNER_BONUS
    if plan.is_mixed:
        total += MIXED_SUBJECT_PENALTY

    for learner_id in plan.learner_ids:
        features = context.learners[learner_id]
        if features.recommended:
            total += RECOMMENDED_PAIR_BONUS
        if features.pair_periods:
            if _is_adjacent(context.period, features.pair_periods):
                total += PAIR_ADJACENT_BONUS
            else:
                total += PAIR_SPLIT_PENALTY
        if plan.subjects[learner_id] in features.adjacent_subjects:
            total += REPEATED_SUBJECT_PENALTY
        if features.booked_periods:
            total += LEARNER_SAME_DAY_PENALTY
            if _is_adjacent(context.period, features.booked_periods):
                total += LEARNER_SAME_DAY_ADJACENT_RELIEF
        total += UNMET_QUOTA_WEIGHT * features.unmet_quota
        total += COMMITTED_DATE_WEIGHT * features.committed_dates
        total += submission_rank_bonus(features.submission_rank)

    total += INSTRUCTOR_LOAD_WEIGHT * context.instructor_load
    return total


def learner_features(
    assignments: AssignmentView,
    learner: Learner,
    instructor_id: str,
    slot: Slot,
    *,
    recommended: bool,
    submission_rank: int,
) -> LearnerFeatures:
    date: datetime.date = slot.date
    return LearnerFeatures(
        learner_id=learner.id,
        recommended=recommended,
        booked_periods=tuple(occupancy.learner_periods_on(assignments, learner.id, date)),
        pair_periods=tuple(occupancy.pair_periods_on(assignments, instructor_id, learner.id, date)),
        adjacent_subjects=tuple(occupancy.learner_adjacent_subjects(assignments, learner.id, slot)),
        unmet_quota=occupancy.remaining_quota(assignments, learner),
        committed_dates=len(occupancy.learner_dates(assignments, learner.id)),
        submission_rank=submission_rank,
    )


def score_context(
    assignments: AssignmentView,
    instructor_id: str,
    slot: Slot,
    date_bonus: int,
    learners: Dict[str, LearnerFeatures],
) -> ScoreContext:
    periods = occupancy.instructor_periods_on(assignments, instructor_id, slot.date)
    return ScoreContext(
        period=slot.period,
        instructor_on_date=slot.date in occupancy.instructor_dates(assignments, instructor_id),
        instructor_adjacent=_is_adjacent(slot.period, periods),
        date_bonus=date_bonus,
        instructor_load=occupancy.instructor_load(assignments, instructor_id),
        learners=learners,
    )


__all__ = [
    "CandidatePlan",
    "LearnerFeatures",
    "ScoreContext",
    "first_half_bonus",
    "learner_features",
    "round_half_up",
    "score",
    "score_context",
    "submission_rank_bonus",
]
