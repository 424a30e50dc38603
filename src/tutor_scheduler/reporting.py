from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Mapping, Sequence

import pandas as pd

from .changes import ChangeLogEntry
from .constraints import has_availability
from .models import Assignment, PersonKind, ScheduleSnapshot
from .occupancy import learner_subject_load
from .slots import Slot
from .subjects import can_teach_subject

FULFILMENT_COLUMNS = ["learner_id", "learner", "subject", "requested", "allocated", "remaining"]
CHANGE_LOG_COLUMNS = ["slot", "date", "period", "action", "detail"]


@dataclass(frozen=True)
class InstructorShortage:
    slot: Slot
    detail: str

    def to_dict(self) -> Dict[str, str]:
        return {"slot": self.slot.key, "detail": self.detail}


def collect_instructor_shortages(
    snapshot: ScheduleSnapshot, assignments: Mapping[Slot, Sequence[Assignment]]
) -> List[InstructorShortage]:
    """Non-regular assignments whose instructor cannot actually hold them."""
    shortages: List[InstructorShortage] = []
    for slot in sorted(assignments):
        for assignment in assignments[slot]:
            if assignment.is_regular:
                continue
            if not assignment.instructor_id:
                shortages.append(InstructorShortage(slot, "No instructor set"))
                continue
            instructor = snapshot.instructor(assignment.instructor_id)
            if instructor is None:
                shortages.append(
                    InstructorShortage(slot, f"Instructor id {assignment.instructor_id} is not registered")
                )
                continue
            if not has_availability(snapshot.availability, PersonKind.INSTRUCTOR, instructor.id, slot):
                shortages.append(InstructorShortage(slot, f"{instructor.name} is not available"))
                continue
            for learner_id in assignment.learner_ids:
                learner = snapshot.learner(learner_id)
                if learner is None:
                    continue
                subject = assignment.subject_for(learner_id)
                if subject and not can_teach_subject(instructor.subjects, learner.grade, subject):
                    shortages.append(
                        InstructorShortage(
                            slot, f"{instructor.name} cannot teach {subject} to {learner.name}"
                        )
                    )
    return shortages


def fulfilment_frame(
    snapshot: ScheduleSnapshot, assignments: Mapping[Slot, Sequence[Assignment]]
) -> pd.DataFrame:
    """Requested vs allocated (non-regular) slots per learner and subject."""
    rows = []
    for learner in snapshot.learners:
        for subject, requested in learner.quotas.items():
            allocated = learner_subject_load(assignments, learner.id, subject)
            rows.append({
                "learner_id": learner.id,
                "learner": learner.name,
                "subject": subject,
                "requested": requested,
                "allocated": allocated,
                "remaining": requested - allocated,
            })
    return pd.DataFrame(rows, columns=FULFILMENT_COLUMNS)


def change_log_frame(change_log: Sequence[ChangeLogEntry]) -> pd.DataFrame:
    rows = [
        {
            "slot": entry.slot.key,
            "date": entry.slot.date,
            "period": entry.slot.period,
            "action": entry.action.value,
            "detail": entry.detail,
        }
        for entry in change_log
    ]
    return pd.DataFrame(rows, columns=CHANGE_LOG_COLUMNS)


__all__ = [
    "InstructorShortage",
    "change_log_frame",
    "collect_instructor_shortages",
    "fulfilment_frame",
]
