"""Read snapshots from JSON and write scheduler results back out."""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Mapping, Sequence, Union

from .fcfs import FcfsResult
from .incremental import IncrementalResult
from .models import Assignment, ScheduleSnapshot
from .schemas import SnapshotModel
from .slots import Slot

logger = logging.getLogger(__name__)

SnapshotSource = Union[str, Path, Mapping[str, Any]]


def load_snapshot(source: SnapshotSource) -> ScheduleSnapshot:
    """Validate a snapshot given as a JSON file path or an already parsed dict.

    Raises ``pydantic.ValidationError`` for structurally invalid input.
    """
    if isinstance(source, Mapping):
        raw = source
    else:
        path = Path(source)
        logger.info("Loading snapshot from %s", path)
        raw = json.loads(path.read_text(encoding="utf-8"))
    return SnapshotModel.model_validate(raw).to_domain()


def assignment_to_dict(assignment: Assignment) -> Dict[str, Any]:
    data: Dict[str, Any] = {
        "instructor_id": assignment.instructor_id,
        "learner_ids": list(assignment.learner_ids),
        "subject": assignment.subject,
    }
    if assignment.learner_subjects:
        data["learner_subjects"] = dict(assignment.learner_subjects)
    if assignment.is_regular:
        data["is_regular"] = True
    return data


def assignments_to_dict(assignments: Mapping[Slot, Sequence[Assignment]]) -> Dict[str, List[Dict[str, Any]]]:
    return {
        slot.key: [assignment_to_dict(a) for a in assignments[slot]]
        for slot in sorted(assignments)
        if assignments[slot]
    }


def _by_slot_key(values: Mapping[Slot, Any]) -> Dict[str, Any]:
    return {slot.key: values[slot] for slot in sorted(values)}


def result_to_dict(result: Union[IncrementalResult, FcfsResult]) -> Dict[str, Any]:
    if isinstance(result, FcfsResult):
        return {
            "assignments": assignments_to_dict(result.assignments),
            "unassigned": list(result.unassigned),
        }
    return {
        "assignments": assignments_to_dict(result.assignments),
        "change_log": [entry.to_dict() for entry in result.change_log],
        "changed_signatures": _by_slot_key(result.changed_signatures),
        "added_signatures": _by_slot_key(result.added_signatures),
        "change_details": _by_slot_key(result.change_details),
    }


def save_result(result: Union[IncrementalResult, FcfsResult], path: Union[str, Path]) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(result_to_dict(result), indent=2, ensure_ascii=False), encoding="utf-8")
    logger.info("Wrote result to %s", path)
    return path


__all__ = ["assignments_to_dict", "load_snapshot", "result_to_dict", "save_result"]
