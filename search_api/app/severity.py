"""심각도 분류기(Severity classifier)."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from sqlalchemy import ColumnElement, and_, case, true


class Severity(str, Enum):
    """점수에서 파생되는 심각도 등급(Severity band derived from a score)."""

    CRITICAL = "CRITICAL"
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"
    NONE = "NONE"


SEVERITY_ORDER = [Severity.CRITICAL, Severity.HIGH, Severity.MEDIUM, Severity.LOW, Severity.NONE]


def classify(score: Optional[float]) -> Severity:
    """Map a score (or its absence) to a severity band.

    A score of exactly 0 falls through to NONE, like a missing score.
    """
    if score is None:
        return Severity.NONE
    if score >= 9.0:
        return Severity.CRITICAL
    if score >= 7.0:
        return Severity.HIGH
    if score >= 4.0:
        return Severity.MEDIUM
    if score > 0:
        return Severity.LOW
    return Severity.NONE


def empty_distribution() -> dict[str, int]:
    """All five bands with a zero count, in display order."""
    return {band.value: 0 for band in SEVERITY_ORDER}


@dataclass
class ScoreRange:
    """점수 조건 묶음(Set of score comparisons used to build predicates).

    Each comparison operator has its own slot and every set slot applies, so
    an inclusive bound written later never removes an exclusive one already
    present: HIGH narrowed with ``lte=9.5`` still keeps ``lt=9.0``.
    """

    gte: Optional[float] = None
    gt: Optional[float] = None
    lt: Optional[float] = None
    lte: Optional[float] = None

    def to_predicate(self, column: Any) -> ColumnElement[bool]:
        clauses = []
        if self.gte is not None:
            clauses.append(column >= self.gte)
        if self.gt is not None:
            clauses.append(column > self.gt)
        if self.lt is not None:
            clauses.append(column < self.lt)
        if self.lte is not None:
            clauses.append(column <= self.lte)
        if not clauses:
            return true()
        return and_(*clauses)

    def contains(self, score: Optional[float]) -> bool:
        if score is None:
            return False
        return (
            (self.gte is None or score >= self.gte)
            and (self.gt is None or score > self.gt)
            and (self.lt is None or score < self.lt)
            and (self.lte is None or score <= self.lte)
        )


def label_to_range(label: str) -> Optional[ScoreRange]:
    """Expand a band name, or a bare number used as a minimum, to a score range.

    Returns None for anything else so the caller applies no score constraint.
    """
    normalized = label.strip().upper()
    if normalized == Severity.CRITICAL.value:
        return ScoreRange(gte=9.0)
    if normalized == Severity.HIGH.value:
        return ScoreRange(gte=7.0, lt=9.0)
    if normalized == Severity.MEDIUM.value:
        return ScoreRange(gte=4.0, lt=7.0)
    if normalized == Severity.LOW.value:
        return ScoreRange(gt=0.0, lt=4.0)
    try:
        threshold = float(normalized)
    except ValueError:
        return None
    if threshold != threshold:  # NaN
        return None
    return ScoreRange(gte=threshold)


def severity_case(column: Any) -> ColumnElement[str]:
    """SQL rendition of :func:`classify` for grouping inside the database."""
    return case(
        (column >= 9.0, Severity.CRITICAL.value),
        (column >= 7.0, Severity.HIGH.value),
        (column >= 4.0, Severity.MEDIUM.value),
        (column > 0, Severity.LOW.value),
        else_=Severity.NONE.value,
    )
