"""Human-readable reasons drawn from the submission log."""
from __future__ import annotations

import datetime
from typing import Dict, List, Optional, Sequence

from .models import (
    Instructor,
    Learner,
    PersonKind,
    ScheduleSnapshot,
    SubmissionKind,
    SubmissionLogEntry,
)


def format_timestamp(millis: int) -> str:
    moment = datetime.datetime.fromtimestamp(millis / 1000, tz=datetime.timezone.utc)
    return moment.strftime("%m/%d %H:%M")


def submission_ranks(entries: Sequence[SubmissionLogEntry]) -> Dict[str, int]:
    """Rank learners by their first initial submission, earliest first."""
    ranks: Dict[str, int] = {}
    ordered = sorted(entries, key=lambda e: e.submitted_at)
    for entry in ordered:
        if entry.kind != SubmissionKind.INITIAL or entry.person_kind != PersonKind.LEARNER:
            continue
        if entry.person_id not in ranks:
            ranks[entry.person_id] = len(ranks)
    return ranks


class SubmissionExplainer:
    """Describes what a person changed since the previous automatic run."""

    def __init__(self, snapshot: ScheduleSnapshot) -> None:
        self._log = snapshot.submission_log
        self._last_run_at = snapshot.settings.last_run_at
        self._learners = {l.id: l for l in snapshot.learners}
        self._instructors = {i.id: i for i in snapshot.instructors}

    def _entries(self, person_id: str, kind: PersonKind, recent: bool) -> List[SubmissionLogEntry]:
        matched = [
            e
            for e in self._log
            if e.person_id == person_id
            and e.person_kind == kind
            and (e.submitted_at > self._last_run_at) == recent
        ]
        return sorted(matched, key=lambda e: e.submitted_at, reverse=True)

    def learner_change(self, learner_id: str) -> str:
        learner: Optional[Learner] = self._learners.get(learner_id)
        if learner is None:
            return ""
        recent = self._entries(learner_id, PersonKind.LEARNER, recent=True)
        if not recent:
            return ""
        latest = recent[0]
        when = format_timestamp(latest.submitted_at)
        if latest.kind == SubmissionKind.INITIAL:
            quotas = ""
            if latest.quotas:
                quotas = " [" + ", ".join(f"{s} {c} slots" for s, c in latest.quotas.items()) + "]"
            return f"{learner.name}: submitted preferences after the last run ({when}){quotas}"

        earlier = self._entries(learner_id, PersonKind.LEARNER, recent=False)
        previous = earlier[0] if earlier else None
        changes = []
        if latest.quotas is not None and previous is not None and previous.quotas is not None:
            for subject in dict.fromkeys([*previous.quotas, *latest.quotas]):
                old = previous.quotas.get(subject, 0)
                new = latest.quotas.get(subject, 0)
                if old != new:
                    changes.append(f"{subject}: {old}->{new} slots")
        if (
            latest.unavailable_slot_count is not None
            and previous is not None
            and previous.unavailable_slot_count is not None
            and latest.unavailable_slot_count != previous.unavailable_slot_count
        ):
            changes.append(
                f"unavailable slots: {previous.unavailable_slot_count}->{latest.unavailable_slot_count}"
            )
        diff = f" [{', '.join(changes)}]" if changes else ""
        return f"{learner.name}: changed preferences after the last run ({when}){diff}"

    def instructor_change(self, instructor_id: str) -> str:
        instructor: Optional[Instructor] = self._instructors.get(instructor_id)
        if instructor is None:
            return ""
        recent = self._entries(instructor_id, PersonKind.INSTRUCTOR, recent=True)
        if not recent:
            return ""
        latest = recent[0]
        when = format_timestamp(latest.submitted_at)
        if latest.kind == SubmissionKind.INITIAL:
            return f"{instructor.name}: submitted availability after the last run ({when})"
        return f"{instructor.name}: changed availability after the last run ({when})"


__all__ = ["SubmissionExplainer", "format_timestamp", "submission_ranks"]
