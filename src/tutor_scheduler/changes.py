"""Change log and the per-slot signature views callers use for highlighting."""
from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

from .models import Assignment
from .slots import Slot

logger = logging.getLogger(__name__)


class ChangeAction(str, enum.Enum):
    REPLACEMENT = "replacement"
    REMOVED = "removed"
    LEARNER_REMOVED = "learner_removed"
    LEARNERS_CLEARED = "learners_cleared"
    OVER_QUOTA_REMOVED = "over_quota_removed"
    LEARNER_ADDED = "learner_added"
    ADDED = "added"


@dataclass(frozen=True)
class ChangeLogEntry:
    slot: Slot
    action: ChangeAction
    detail: str

    def to_dict(self) -> Dict[str, str]:
        return {"slot": self.slot.key, "action": self.action.value, "detail": self.detail}


def assignment_signature(assignment: Assignment) -> str:
    """Stable shape of an assignment: instructor, learners, subjects, regular flag."""
    learners = sorted(assignment.learner_ids)
    if assignment.learner_subjects:
        subject_part = "+".join(f"{lid}:{assignment.subject_for(lid)}" for lid in learners)
    else:
        subject_part = f"{assignment.subject}|{'+'.join(learners)}"
    flag = "R" if assignment.is_regular else "N"
    return f"{assignment.instructor_id}|{subject_part}|{flag}"


def is_meaningful(assignment: Assignment) -> bool:
    return not assignment.is_regular and bool(
        assignment.instructor_id or assignment.subject or assignment.learner_ids
    )


class ChangeTracker:
    """Collects everything a run reports besides the new map itself."""

    def __init__(self) -> None:
        self.entries: List[ChangeLogEntry] = []
        self._changed: Dict[Slot, List[str]] = {}
        self._added: Dict[Slot, List[str]] = {}
        self.details: Dict[Slot, Dict[str, str]] = {}

    def log(self, slot: Slot, action: ChangeAction, detail: str) -> None:
        logger.debug("%s %s: %s", slot.key, action.value, detail.replace("\n", " / "))
        self.entries.append(ChangeLogEntry(slot, action, detail))

    def mark_changed(self, slot: Slot, assignment: Assignment, detail: str) -> None:
        if not is_meaningful(assignment):
            return
        sig = assignment_signature(assignment)
        bucket = self._changed.setdefault(slot, [])
        if sig not in bucket:
            bucket.append(sig)
        slot_details = self.details.setdefault(slot, {})
        previous = slot_details.get(sig)
        slot_details[sig] = f"{previous}\n{detail}" if previous else detail

    def mark_added(self, slot: Slot, assignment: Assignment, detail: Optional[str] = None) -> None:
        if not is_meaningful(assignment):
            return
        sig = assignment_signature(assignment)
        bucket = self._added.setdefault(slot, [])
        if sig not in bucket:
            bucket.append(sig)
        if detail:
            self.details.setdefault(slot, {})[sig] = detail

    def changed_signatures(self) -> Dict[Slot, List[str]]:
        """Changed shapes per slot, excluding shapes that were newly added."""
        result: Dict[Slot, List[str]] = {}
        for slot, signatures in self._changed.items():
            added = set(self._added.get(slot, ()))
            kept = [sig for sig in signatures if sig not in added]
            if kept:
                result[slot] = kept
        return result

    def added_signatures(self) -> Dict[Slot, List[str]]:
        return {slot: list(sigs) for slot, sigs in self._added.items() if sigs}


__all__ = [
    "ChangeAction",
    "ChangeLogEntry",
    "ChangeTracker",
    "assignment_signature",
    "is_meaningful",
]
