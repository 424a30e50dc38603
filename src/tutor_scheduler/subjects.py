"""Leveled subjects and grade tiers.

Instructors register subjects together with the highest tier they can teach
(``math@middle`` covers elementary and middle learners). Learners ask for
plain base subjects; the learner's grade decides which tier is required.

Untagged legacy subjects (``math``) are treated as the highest tier. A
combo subject (``math+reading``) bundles two base subjects into one period
and needs capability in both.
"""
from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Iterable, List, Tuple

from .errors import UnknownTierError

LEVEL_SEPARATOR = "@"
COMBO_SEPARATOR = "+"


class Tier(enum.IntEnum):
    ELEMENTARY = 0
    MIDDLE = 1
    HIGH = 2

    @classmethod
    def parse(cls, name: str) -> "Tier":
        try:
            return cls[name.strip().upper()]
        except (KeyError, AttributeError):
            raise UnknownTierError(f"Unknown tier '{name}'") from None

    @property
    def label(self) -> str:
        return self.name.lower()


# Leading grade markers; the CJK forms come from legacy rosters.
_GRADE_PREFIXES: Tuple[Tuple[str, Tier], ...] = (
    ("H", Tier.HIGH),
    ("高", Tier.HIGH),
    ("M", Tier.MIDDLE),
    ("中", Tier.MIDDLE),
)


def grade_to_tier(grade: str) -> Tier:
    """``'H1'`` -> HIGH, ``'M2'`` -> MIDDLE, anything else -> ELEMENTARY."""
    normalized = (grade or "").strip().upper()
    for prefix, tier in _GRADE_PREFIXES:
        if normalized.startswith(prefix):
            return tier
    return Tier.ELEMENTARY


@dataclass(frozen=True)
class LeveledSubject:
    base: str
    tier: Tier = Tier.HIGH

    @classmethod
    def parse(cls, text: str) -> "LeveledSubject":
        base, sep, tier = text.strip().partition(LEVEL_SEPARATOR)
        if not base:
            raise ValueError(f"Empty subject in '{text}'")
        if not sep:
            return cls(base)
        return cls(base, Tier.parse(tier))

    def covers(self, base: str, required: Tier) -> bool:
        return self.base == base and self.tier >= required

    def __str__(self) -> str:
        return f"{self.base}{LEVEL_SEPARATOR}{self.tier.label}"


def split_combo(subject: str) -> List[str]:
    """Component base subjects; a plain subject is its own single component."""
    return [part for part in subject.split(COMBO_SEPARATOR) if part]


def can_teach_subject(
    instructor_subjects: Iterable[LeveledSubject],
    learner_grade: str,
    subject: str,
) -> bool:
    """True if the instructor can teach ``subject`` to a learner of ``learner_grade``.

    Example: ``can_teach_subject([math@high, english@middle], 'M2', 'math')`` is
    True, ``can_teach_subject([english@middle], 'H1', 'english')`` is False.
    """
    required = grade_to_tier(learner_grade)
    held = list(instructor_subjects)
    components = split_combo(subject)
    if not components:
        return False
    return all(any(ls.covers(base, required) for ls in held) for base in components)


__all__ = [
    "COMBO_SEPARATOR",
    "LEVEL_SEPARATOR",
    "LeveledSubject",
    "Tier",
    "can_teach_subject",
    "grade_to_tier",
    "split_combo",
]
