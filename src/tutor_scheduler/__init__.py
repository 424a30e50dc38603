"""Tutor Scheduler - Core Package

Incremental tutoring session scheduling with change tracking, plus a
first-come-first-served matcher for interview sessions.
"""

__version__ = "0.1.0"

from .fcfs import FcfsResult, schedule_fcfs
from .incremental import (
    IncrementalResult,
    schedule_incremental,
    schedule_incremental_async,
)
from .io import load_snapshot, result_to_dict, save_result
from .models import Assignment, ScheduleSnapshot
from .slots import Slot

__all__ = [
    "Assignment",
    "FcfsResult",
    "IncrementalResult",
    "ScheduleSnapshot",
    "Slot",
    "load_snapshot",
    "result_to_dict",
    "save_result",
    "schedule_fcfs",
    "schedule_incremental",
    "schedule_incremental_async",
]
