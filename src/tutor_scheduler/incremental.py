"""Incremental scheduler: repair the previous plan, then extend it.

A run works through five phases, each taking the working assignment map and
returning it:

0. seed      recorded outcomes (frozen) + previous plan
1. repair    replace or drop instructors who vanished, drop learners who can
             no longer attend, enforce desk capacity
1.5 trim     give back slots learners no longer want, latest first
2. gap fill  top up single-learner assignments
3. new pairs greedy, score-driven placement of new assignments

Nothing infeasible raises: unfillable gaps simply stay empty and every
decision that changes the map is written to the change log.
"""
from __future__ import annotations

import asyncio
import logging
from collections import Counter
from dataclasses import dataclass
from itertools import combinations
from typing import (
    Awaitable,
    Callable,
    Dict,
    Generator,
    List,
    Optional,
    Sequence,
    Set,
    Tuple,
)

from . import occupancy
from .changes import ChangeAction, ChangeLogEntry, ChangeTracker
from .constraints import (
    constraint_for,
    grade_constraint_for,
    has_availability,
    is_incompatible,
    is_learner_available,
    is_regular_lesson_pair,
    learners_conflict,
    teachable_subjects,
)
from .explain import SubmissionExplainer, submission_ranks
from .models import (
    Assignment,
    AssignmentMap,
    Instructor,
    Learner,
    PersonKind,
    Polarity,
    ScheduleSnapshot,
    copy_map,
)
from .regular_lessons import apply_regular_lessons, lesson_assignment, regular_lessons_for_slot
from .scoring import (
    CandidatePlan,
    first_half_bonus,
    learner_features,
    score,
    score_context,
)
from .slots import Slot, ordered_dates
from .subjects import can_teach_subject

logger = logging.getLogger(__name__)

DEFAULT_YIELD_EVERY = 5


@dataclass
class IncrementalResult:
    assignments: AssignmentMap
    change_log: List[ChangeLogEntry]
    changed_signatures: Dict[Slot, List[str]]
    added_signatures: Dict[Slot, List[str]]
    change_details: Dict[Slot, Dict[str, str]]


class _Run:
    """Read-only indexes over the snapshot plus the run's change tracker."""

    def __init__(self, snapshot: ScheduleSnapshot, slots: Sequence[Slot]) -> None:
        self.snapshot = snapshot
        self.slots = list(slots)
        self.instructors: Dict[str, Instructor] = {i.id: i for i in snapshot.instructors}
        self.learners: Dict[str, Learner] = {l.id: l for l in snapshot.learners}
        self.frozen: Set[Slot] = set(snapshot.recorded_outcomes)
        self.desk_capacity = snapshot.settings.desk_capacity or 0
        self.ranks = submission_ranks(snapshot.submission_log)
        self.explainer = SubmissionExplainer(snapshot)
        self.tracker = ChangeTracker()

    def instructor_available(self, instructor_id: str, slot: Slot) -> bool:
        return has_availability(self.snapshot.availability, PersonKind.INSTRUCTOR, instructor_id, slot)

    def incompatible(self, instructor_id: str, learner: Learner) -> bool:
        return is_incompatible(
            self.snapshot.pair_constraints, self.snapshot.grade_constraints, instructor_id, learner
        )

    def conflicting(self, learner_ids: Sequence[str]) -> bool:
        return learners_conflict(self.snapshot.pair_constraints, learner_ids)

    def recommended(self, instructor_id: str, learner: Learner) -> bool:
        snap = self.snapshot
        return (
            is_regular_lesson_pair(snap.regular_lessons, instructor_id, learner.id)
            or constraint_for(snap.pair_constraints, instructor_id, learner.id) == Polarity.RECOMMENDED
            or grade_constraint_for(snap.grade_constraints, instructor_id, learner.grade)
            == Polarity.RECOMMENDED
        )

    def submission_rank(self, learner_id: str) -> int:
        return self.ranks.get(learner_id, len(self.ranks))

    def at_capacity(self, items: Sequence[Assignment]) -> bool:
        return self.desk_capacity > 0 and occupancy.non_regular_count(items) >= self.desk_capacity

    def learner_name(self, learner_id: str) -> str:
        learner = self.learners.get(learner_id)
        return learner.name if learner else learner_id

    def instructor_name(self, instructor_id: str) -> str:
        instructor = self.instructors.get(instructor_id)
        return instructor.name if instructor else "?"

    def editable(self, slot: Slot) -> bool:
        return slot not in self.frozen

    def result(self, assignments: AssignmentMap) -> IncrementalResult:
        return IncrementalResult(
            assignments=assignments,
            change_log=list(self.tracker.entries),
            changed_signatures=self.tracker.changed_signatures(),
            added_signatures=self.tracker.added_signatures(),
            change_details={slot: dict(d) for slot, d in self.tracker.details.items()},
        )


def _with_learners(assignment: Assignment, learner_ids: Sequence[str]) -> Assignment:
    """Copy of ``assignment`` restricted to ``learner_ids``, subjects preserved."""
    subjects = None
    if assignment.learner_subjects:
        subjects = {lid: assignment.subject_for(lid) for lid in learner_ids}
    return assignment.evolve(learner_ids=tuple(learner_ids), learner_subjects=subjects)


# -----------------------------
# Phase 0: seed
# -----------------------------
def seed(run: _Run) -> AssignmentMap:
    snapshot = run.snapshot
    assignments = copy_map(snapshot.recorded_outcomes)
    for slot, items in snapshot.assignments.items():
        if slot in run.frozen or not items:
            continue
        assignments[slot] = [a.evolve() for a in items]
    # Regular lessons only land on slots nothing has claimed yet.
    fresh = [slot for slot in run.slots if slot not in assignments]
    return apply_regular_lessons(assignments, snapshot.regular_lessons, fresh)


# -----------------------------
# Phase 1: repair
# -----------------------------
def _find_replacement(
    run: _Run, slot: Slot, assignment: Assignment, used: Set[str]
) -> Optional[Instructor]:
    learners = [run.learners[lid] for lid in assignment.learner_ids if lid in run.learners]
    for candidate in run.snapshot.instructors:
        if candidate.id in used or not run.instructor_available(candidate.id, slot):
            continue
        if all(
            can_teach_subject(candidate.subjects, learner.grade, assignment.subject_for(learner.id))
            and not run.incompatible(candidate.id, learner)
            for learner in learners
        ):
            return candidate
    return None


def _repair_instructor(
    run: _Run, slot: Slot, assignment: Assignment, used: Set[str]
) -> Optional[Assignment]:
    instructor = run.instructors.get(assignment.instructor_id)
    if instructor is not None and run.instructor_available(instructor.id, slot):
        return assignment

    tracker = run.tracker
    replacement = _find_replacement(run, slot, assignment, used)
    if instructor is None:
        if replacement is None:
            tracker.log(slot, ChangeAction.REMOVED, "Assignment removed (instructor deleted, no replacement available)")
            return None
        changed = assignment.evolve(instructor_id=replacement.id)
        note = f"{replacement.name} takes over (previous instructor deleted)"
        tracker.mark_changed(slot, changed, f"Instructor replaced: {note}")
        tracker.log(slot, ChangeAction.REPLACEMENT, note)
        return changed

    reason = run.explainer.instructor_change(instructor.id) or (
        f"{instructor.name} withdrew availability for this slot"
    )
    if replacement is None:
        tracker.log(slot, ChangeAction.REMOVED, f"Assignment removed: {instructor.name} is no longer available")
        return None
    changed = assignment.evolve(instructor_id=replacement.id)
    tracker.mark_changed(
        slot, changed, f"Instructor replaced: {instructor.name} -> {replacement.name}\nReason: {reason}"
    )
    tracker.log(
        slot,
        ChangeAction.REPLACEMENT,
        f"{instructor.name} -> {replacement.name} (availability withdrawn)",
    )
    return changed


def _learner_drop_reason(run: _Run, slot: Slot, assignment: Assignment, learner_id: str, kept: List[str]) -> str:
    learner = run.learners.get(learner_id)
    if learner is None:
        return "learner deleted"
    if not is_learner_available(learner, slot):
        return run.explainer.learner_change(learner_id) or f"{learner.name} marked this slot unavailable"
    if run.incompatible(assignment.instructor_id, learner):
        return f"{learner.name} is marked incompatible with {run.instructor_name(assignment.instructor_id)}"
    if run.conflicting([*kept, learner_id]):
        return f"{learner.name} is marked incompatible with the co-learner"
    return ""


def _repair_learners(run: _Run, slot: Slot, assignment: Assignment) -> Assignment:
    kept: List[str] = []
    removed: List[Tuple[str, str]] = []
    for learner_id in assignment.learner_ids:
        reason = _learner_drop_reason(run, slot, assignment, learner_id, kept)
        if reason:
            removed.append((learner_id, reason))
        else:
            kept.append(learner_id)
    if not removed:
        return assignment

    tracker = run.tracker
    for learner_id, reason in removed:
        tracker.log(
            slot,
            ChangeAction.LEARNER_REMOVED,
            f"{run.learner_name(learner_id)} removed\nReason: {reason}",
        )
    changed = _with_learners(assignment, kept)
    if kept:
        reasons = "\n".join(f"{run.learner_name(lid)}: {reason}" for lid, reason in removed)
        tracker.mark_changed(slot, changed, f"Learners removed:\n{reasons}")
    else:
        tracker.log(slot, ChangeAction.LEARNERS_CLEARED, "Only the instructor remains (schedule change)")
    return changed


def _enforce_capacity(run: _Run, slot: Slot, items: List[Assignment]) -> List[Assignment]:
    if run.desk_capacity <= 0:
        return items
    excess = occupancy.non_regular_count(items) - run.desk_capacity
    if excess <= 0:
        return items
    kept: List[Assignment] = []
    # Later entries were added later; they go first.
    for assignment in reversed(items):
        if excess > 0 and not assignment.is_regular:
            excess -= 1
            run.tracker.log(
                slot,
                ChangeAction.REMOVED,
                f"Assignment of {run.instructor_name(assignment.instructor_id)} removed (desk capacity {run.desk_capacity})",
            )
            continue
        kept.append(assignment)
    kept.reverse()
    return kept


def repair(run: _Run, assignments: AssignmentMap) -> AssignmentMap:
    for slot in run.slots:
        items = assignments.get(slot)
        if not items or not run.editable(slot):
            continue
        if all(a.is_regular for a in items):
            continue

        cleaned: List[Assignment] = []
        for position, assignment in enumerate(items):
            if assignment.is_regular:
                cleaned.append(assignment)
                continue
            used = {a.instructor_id for a in cleaned}
            used.update(a.instructor_id for a in items[position + 1:])
            repaired = _repair_instructor(run, slot, assignment, used)
            if repaired is None:
                continue
            cleaned.append(_repair_learners(run, slot, repaired))

        cleaned = _enforce_capacity(run, slot, cleaned)
        if not cleaned:
            # an emptied slot is fresh again
            lessons = regular_lessons_for_slot(run.snapshot.regular_lessons, slot)
            cleaned = [lesson_assignment(lesson) for lesson in lessons]
        if cleaned:
            assignments[slot] = cleaned
        else:
            del assignments[slot]
    return assignments


# -----------------------------
# Phase 1.5: trim over-allocation
# -----------------------------
def trim_over_allocation(run: _Run, assignments: AssignmentMap) -> AssignmentMap:
    allocated: Counter = Counter()
    for _, assignment in occupancy.iter_assignments(assignments):
        if assignment.is_regular:
            continue
        for learner_id in assignment.learner_ids:
            allocated[(learner_id, assignment.subject_for(learner_id))] += 1

    for slot in reversed(run.slots):
        items = assignments.get(slot)
        if not items or not run.editable(slot):
            continue
        for position, assignment in enumerate(items):
            if assignment.is_regular or not assignment.learner_ids:
                continue
            remaining: List[str] = []
            for learner_id in assignment.learner_ids:
                subject = assignment.subject_for(learner_id)
                learner = run.learners.get(learner_id)
                requested = learner.quota_for(subject) if learner else 0
                key = (learner_id, subject)
                if allocated[key] > requested:
                    allocated[key] -= 1
                    name = run.learner_name(learner_id)
                    reason = run.explainer.learner_change(learner_id) or (
                        f"{name} reduced requested {subject} slots to {requested}"
                    )
                    run.tracker.log(
                        slot,
                        ChangeAction.OVER_QUOTA_REMOVED,
                        f"{name} ({subject}) removed\nReason: {reason}",
                    )
                    continue
                remaining.append(learner_id)
            if len(remaining) == len(assignment.learner_ids):
                continue
            changed = _with_learners(assignment, remaining)
            items[position] = changed
            if remaining:
                run.tracker.mark_changed(slot, changed, "Learners removed after requested slots were reduced")
    return assignments


# -----------------------------
# Phase 2: fill open seats
# -----------------------------
def _unmet_subjects(assignments: AssignmentMap, instructor: Instructor, learner: Learner) -> List[str]:
    return [
        subject
        for subject in teachable_subjects(instructor.subjects, learner)
        if occupancy.remaining_subject_quota(assignments, learner, subject) > 0
    ]


def _gap_candidate(
    run: _Run, assignments: AssignmentMap, slot: Slot, items: Sequence[Assignment], assignment: Assignment
) -> Optional[Tuple[Learner, str]]:
    """Learner (and subject) to seat next to a lone learner, or None."""
    instructor = run.instructors.get(assignment.instructor_id)
    if instructor is None:
        return None
    used = {lid for a in items for lid in a.learner_ids}
    candidates = [
        learner
        for learner in run.snapshot.learners
        if learner.id not in used
        and is_learner_available(learner, slot)
        and not run.incompatible(instructor.id, learner)
        and not run.conflicting([*assignment.learner_ids, learner.id])
        and _unmet_subjects(assignments, instructor, learner)
    ]
    if not candidates:
        return None
    best = max(candidates, key=lambda l: occupancy.remaining_quota(assignments, l))
    return best, _unmet_subjects(assignments, instructor, best)[0]


def _seat(assignment: Assignment, learner: Learner, subject: str) -> Assignment:
    subjects = {lid: assignment.subject_for(lid) for lid in assignment.learner_ids}
    subjects[learner.id] = subject
    primary = assignment.subject if assignment.learner_ids else subject
    return assignment.evolve(
        learner_ids=(*assignment.learner_ids, learner.id),
        subject=primary,
        learner_subjects=subjects if set(subjects.values()) != {primary} else None,
    )


def fill_gaps(run: _Run, assignments: AssignmentMap) -> AssignmentMap:
    for slot in run.slots:
        items = assignments.get(slot)
        if not items or not run.editable(slot):
            continue
        for position in range(len(items)):
            assignment = items[position]
            if assignment.is_regular or len(assignment.learner_ids) >= 2:
                continue
            found = _gap_candidate(run, assignments, slot, items, assignment)
            if found is None:
                continue

            best, subject = found
            still_needed = occupancy.remaining_subject_quota(assignments, best, subject)
            changed = _seat(assignment, best, subject)
            items[position] = changed

            reason = run.explainer.learner_change(best.id) or (
                f"{best.name} still needs {still_needed} {subject} slot(s)"
            )
            run.tracker.mark_changed(slot, changed, f"Learner added: {best.name} ({subject})\nReason: {reason}")
            run.tracker.log(slot, ChangeAction.LEARNER_ADDED, f"{best.name} ({subject}) added")
    return assignments


# -----------------------------
# Phase 3: new pairs
# -----------------------------
def candidate_plans(
    assignments: AssignmentMap, instructor: Instructor, combo: Sequence[Learner]
) -> List[CandidatePlan]:
    """Same-subject plans first, then (for pairs) mixed-subject plans."""
    ids = tuple(l.id for l in combo)
    viable = [_unmet_subjects(assignments, instructor, learner) for learner in combo]
    plans = [
        CandidatePlan(ids, {lid: subject for lid in ids})
        for subject in viable[0]
        if all(subject in other for other in viable[1:])
    ]
    if len(combo) == 2:
        first, second = ids
        for subject_a in viable[0]:
            for subject_b in viable[1]:
                if subject_a != subject_b:
                    plans.append(CandidatePlan(ids, {first: subject_a, second: subject_b}, is_mixed=True))
    return plans


def _combos(learners: Sequence[Learner]) -> List[Tuple[Learner, ...]]:
    return [(l,) for l in learners] + list(combinations(learners, 2))


def best_plan(
    run: _Run,
    assignments: AssignmentMap,
    slot: Slot,
    instructor: Instructor,
    used_learners: Set[str],
    date_bonus: int,
) -> Optional[CandidatePlan]:
    eligible = [
        learner
        for learner in run.snapshot.learners
        if learner.id not in used_learners
        and is_learner_available(learner, slot)
        and not run.incompatible(instructor.id, learner)
        and teachable_subjects(instructor.subjects, learner)
    ]
    if not eligible:
        return None

    previous = set(occupancy.instructor_previous_learners(assignments, instructor.id, slot))
    features = {
        learner.id: learner_features(
            assignments,
            learner,
            instructor.id,
            slot,
            recommended=run.recommended(instructor.id, learner),
            submission_rank=run.submission_rank(learner.id),
        )
        for learner in eligible
    }
    context = score_context(assignments, instructor.id, slot, date_bonus, features)

    best: Optional[CandidatePlan] = None
    best_score = 0
    for combo in _combos(eligible):
        if any(learner.id in previous for learner in combo):
            continue
        if len(combo) == 2 and run.conflicting([combo[0].id, combo[1].id]):
            continue
        for plan in candidate_plans(assignments, instructor, combo):
            value = score(context, plan)
            if best is None or value > best_score:
                best, best_score = plan, value
    return best


def _describe_addition(run: _Run, assignment: Assignment) -> str:
    names = ", ".join(
        f"{run.learner_name(lid)} ({assignment.subject_for(lid)})" for lid in assignment.learner_ids
    )
    parts = [f"New assignment: {run.instructor_name(assignment.instructor_id)} x {names}"]
    instructor_note = run.explainer.instructor_change(assignment.instructor_id)
    if instructor_note:
        parts.append(f"[instructor] {instructor_note}")
    learner_notes = [run.explainer.learner_change(lid) for lid in assignment.learner_ids]
    learner_notes = [note for note in learner_notes if note]
    if learner_notes:
        parts.append(f"[learners] {' / '.join(learner_notes)}")
    return " | ".join(parts)


def _top_up(
    run: _Run, assignments: AssignmentMap, slot: Slot, slot_items: List[Assignment], assignment: Assignment
) -> Assignment:
    """Seat a second learner next to a new lone learner when gap filling would.

    Afterwards the slot is a fixed point of :func:`fill_gaps`.
    """
    if len(assignment.learner_ids) != 1:
        return assignment
    found = _gap_candidate(run, assignments, slot, slot_items, assignment)
    if found is None:
        return assignment
    joined = _seat(assignment, *found)
    slot_items[slot_items.index(assignment)] = joined
    logger.debug("Seated %s next to %s at %s", found[0].id, assignment.learner_ids[0], slot.key)
    return joined


def fill_new_pairs(
    run: _Run, assignments: AssignmentMap, yield_every: int = DEFAULT_YIELD_EVERY
) -> Generator[None, None, AssignmentMap]:
    dates = ordered_dates(run.slots)
    date_index = {date: idx for idx, date in enumerate(dates)}

    for processed, slot in enumerate(run.slots):
        if yield_every > 0 and processed and processed % yield_every == 0:
            yield

        if not run.editable(slot):
            continue
        existing = assignments.get(slot, [])
        if existing and all(a.is_regular for a in existing):
            continue
        if run.at_capacity(existing):
            continue

        slot_items = list(existing)
        used_instructors = {a.instructor_id for a in slot_items}
        used_learners = {lid for a in slot_items for lid in a.learner_ids}
        date_bonus = first_half_bonus(date_index[slot.date], len(dates))

        committed = {
            i.id: occupancy.instructor_dates(assignments, i.id)
            for i in run.snapshot.instructors
            if run.instructor_available(i.id, slot)
        }
        ranked = sorted(
            (i for i in run.snapshot.instructors if i.id in committed),
            key=lambda i: (slot.date not in committed[i.id], len(committed[i.id])),
        )

        added: List[Assignment] = []
        for instructor in ranked:
            if instructor.id in used_instructors:
                continue
            if run.at_capacity(slot_items):
                break
            plan = best_plan(run, assignments, slot, instructor, used_learners, date_bonus)
            if plan is None:
                continue
            assignment = Assignment(
                instructor_id=instructor.id,
                learner_ids=plan.learner_ids,
                subject=plan.primary_subject,
                learner_subjects=dict(plan.subjects) if plan.is_mixed else None,
            )
            slot_items.append(assignment)
            added.append(assignment)
            used_instructors.add(instructor.id)
            used_learners.update(plan.learner_ids)

        if added:
            assignments[slot] = slot_items
            added = [_top_up(run, assignments, slot, slot_items, a) for a in added]
            for assignment in added:
                detail = _describe_addition(run, assignment)
                run.tracker.mark_added(slot, assignment, detail)
                run.tracker.log(slot, ChangeAction.ADDED, detail)
    return assignments


# -----------------------------
# Entry points
# -----------------------------
def _phases(
    snapshot: ScheduleSnapshot, slots: Optional[Sequence[Slot]], yield_every: int
) -> Generator[None, None, IncrementalResult]:
    run = _Run(snapshot, snapshot.slot_list() if slots is None else slots)
    logger.info(
        "Incremental run over %d slots (%d instructors, %d learners)",
        len(run.slots),
        len(run.instructors),
        len(run.learners),
    )
    assignments = seed(run)
    assignments = repair(run, assignments)
    logger.debug("Repair done: %d log entries", len(run.tracker.entries))
    assignments = trim_over_allocation(run, assignments)
    logger.debug("Trim done: %d log entries", len(run.tracker.entries))
    assignments = fill_gaps(run, assignments)
    logger.debug("Gap fill done: %d log entries", len(run.tracker.entries))
    assignments = yield from fill_new_pairs(run, assignments, yield_every)
    logger.info("Incremental run finished with %d change(s)", len(run.tracker.entries))
    return run.result(assignments)


def schedule_incremental(
    snapshot: ScheduleSnapshot,
    slots: Optional[Sequence[Slot]] = None,
    yield_point: Optional[Callable[[], None]] = None,
    yield_every: int = DEFAULT_YIELD_EVERY,
) -> IncrementalResult:
    """Run all phases synchronously, calling ``yield_point`` between slot batches."""
    steps = _phases(snapshot, slots, yield_every)
    while True:
        try:
            next(steps)
        except StopIteration as done:
            return done.value
        if yield_point is not None:
            yield_point()


async def _release() -> None:
    await asyncio.sleep(0)


async def schedule_incremental_async(
    snapshot: ScheduleSnapshot,
    slots: Optional[Sequence[Slot]] = None,
    yield_point: Optional[Callable[[], Awaitable[None]]] = None,
    yield_every: int = DEFAULT_YIELD_EVERY,
) -> IncrementalResult:
    """Same as :func:`schedule_incremental`, awaiting the event loop between batches."""
    pause = yield_point or _release
    steps = _phases(snapshot, slots, yield_every)
    while True:
        try:
            next(steps)
        except StopIteration as done:
            return done.value
        await pause()


__all__ = [
    "DEFAULT_YIELD_EVERY",
    "IncrementalResult",
    "best_plan",
    "candidate_plans",
    "schedule_incremental",
    "schedule_incremental_async",
]
