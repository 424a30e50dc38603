"""First-come-first-served matcher for interview sessions.

Every submitted requester gets at most one slot with one coordinator, in
the order they submitted. There is no repair and no scoring; a requester
that cannot be placed is reported in ``unassigned``.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Set

from .constraints import constraint_for, has_availability
from .models import (
    INTERVIEW_SUBJECT,
    Assignment,
    AssignmentMap,
    PersonKind,
    Polarity,
    ScheduleSnapshot,
    copy_map,
)
from .occupancy import iter_assignments, non_regular_count
from .slots import Slot

logger = logging.getLogger(__name__)


@dataclass
class FcfsResult:
    assignments: AssignmentMap
    unassigned: List[str] = field(default_factory=list)


def _carry_over(snapshot: ScheduleSnapshot, slots: Sequence[Slot]) -> AssignmentMap:
    result = copy_map(snapshot.recorded_outcomes)
    for slot in slots:
        if slot in snapshot.recorded_outcomes:
            continue
        kept = [a.evolve() for a in snapshot.assignments.get(slot, ()) if not a.is_regular]
        if kept:
            result[slot] = kept
    return result


def schedule_fcfs(snapshot: ScheduleSnapshot, slots: Optional[Sequence[Slot]] = None) -> FcfsResult:
    slots = snapshot.slot_list() if slots is None else list(slots)
    ordered_slots = sorted(slots)
    capacity = snapshot.settings.desk_capacity or 0
    assignments = _carry_over(snapshot, slots)

    placed: Set[str] = {
        lid for _, a in iter_assignments(assignments) if not a.is_regular for lid in a.learner_ids
    }
    # sorted() is stable, so equal timestamps keep roster order.
    queue = sorted((r for r in snapshot.requesters if r.submitted_at > 0), key=lambda r: r.submitted_at)
    unassigned: List[str] = []

    for requester in queue:
        if requester.id in placed:
            continue
        wanted = snapshot.available_slots(PersonKind.REQUESTER, requester.id)
        match = None
        for slot in ordered_slots:
            if slot not in wanted or slot in snapshot.recorded_outcomes:
                continue
            items = assignments.get(slot, [])
            if capacity > 0 and non_regular_count(items) >= capacity:
                continue
            busy = {a.instructor_id for a in items}
            for coordinator in snapshot.coordinators:
                if coordinator.id in busy:
                    continue
                if not has_availability(snapshot.availability, PersonKind.COORDINATOR, coordinator.id, slot):
                    continue
                if constraint_for(snapshot.pair_constraints, coordinator.id, requester.id) == Polarity.INCOMPATIBLE:
                    continue
                match = (slot, coordinator)
                break
            if match:
                break

        if match is None:
            logger.debug("No interview slot for %s", requester.id)
            unassigned.append(requester.id)
            continue
        slot, coordinator = match
        assignments.setdefault(slot, []).append(
            Assignment(
                instructor_id=coordinator.id,
                learner_ids=(requester.id,),
                subject=INTERVIEW_SUBJECT,
            )
        )
        placed.add(requester.id)
        logger.debug("%s -> %s with %s", requester.id, slot.key, coordinator.id)

    logger.info(
        "Interview assignment: %d submitted requesters, %d unassigned",
        len(queue),
        len(unassigned),
    )
    return FcfsResult(assignments=assignments, unassigned=unassigned)


__all__ = ["FcfsResult", "schedule_fcfs"]
