"""Deterministic compliance and risk scoring."""
from __future__ import annotations

import math
from dataclasses import replace
from typing import Dict

from .categories import CATEGORY_WEIGHTS, Category, Severity, Status
from .models import RISK_SOURCE_DERIVED, RISK_SOURCE_ORACLE, AnalysisRecord, ScoreBreakdown

STATUS_FACTORS: Dict[Status, float] = {
    Status.MET: 1.0,
    Status.PARTIAL: 0.5,
    Status.MISSING: 0.0,
}

_TRANSFER_BONUS: Dict[Status, int] = {Status.MET: 5, Status.PRESENT: 3, Status.PARTIAL: 2}
_PRESENCE_BONUS = 2
_PRESENCE_STATUSES = frozenset({Status.MET, Status.PRESENT})

_MANY_ISSUES_THRESHOLD = 3
_MANY_ISSUES_CORRECTION = 5
_HIGH_SEVERITY_CORRECTION = 5
_NO_LIABILITY_CAP_CORRECTION = 5
_NO_TRANSFER_CLAUSE_CORRECTION = 3


def status_factor(status: Status | None) -> float:
    if status is None:
        return 0.0
    return STATUS_FACTORS.get(status, 0.0)


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def _bonus(record: AnalysisRecord) -> int:
    bonus = _TRANSFER_BONUS.get(record.status_of(Category.INTERNATIONAL_TRANSFERS), 0)
    if record.status_of(Category.LIABILITY_CAP) in _PRESENCE_STATUSES:
        bonus += _PRESENCE_BONUS
    if record.status_of(Category.JURISDICTION) in _PRESENCE_STATUSES:
        bonus += _PRESENCE_BONUS
    return bonus


def _corrections(record: AnalysisRecord) -> int:
    corrections = 0
    severities = [action.severity for action in record.actions]
    medium_or_high = sum(1 for severity in severities if severity in (Severity.MEDIUM, Severity.HIGH))
    if medium_or_high >= _MANY_ISSUES_THRESHOLD:
        corrections += _MANY_ISSUES_CORRECTION
    if Severity.HIGH in severities:
        corrections += _HIGH_SEVERITY_CORRECTION
    if record.status_of(Category.LIABILITY_CAP) in (Status.MISSING, Status.NOT_FOUND):
        corrections += _NO_LIABILITY_CAP_CORRECTION
    if record.status_of(Category.INTERNATIONAL_TRANSFERS) is Status.MISSING:
        corrections += _NO_TRANSFER_CLAUSE_CORRECTION
    return corrections


def score(record: AnalysisRecord) -> ScoreBreakdown:
    """Compute the compliance breakdown for *record*.

    The oracle's own risk figure (``record.risk_override``) only replaces the
    derived risk; ``overall`` is always recomputed from the findings.
    """

    points: Dict[Category, float] = {
        category: weight * status_factor(record.status_of(category))
        for category, weight in CATEGORY_WEIGHTS.items()
    }
    base = sum(points.values())
    bonus = _bonus(record)
    corrections = _corrections(record)
    overall = min(100, max(0, _round_half_up(base + bonus - corrections)))

    if record.risk_override is not None:
        risk, source = record.risk_override, RISK_SOURCE_ORACLE
    else:
        risk, source = float(100 - overall), RISK_SOURCE_DERIVED

    return ScoreBreakdown(
        per_category_points=points,
        base=base,
        bonus=bonus,
        corrections=corrections,
        overall=overall,
        risk=risk,
        risk_source=source,
    )


def score_record(record: AnalysisRecord) -> AnalysisRecord:
    """Return a copy of *record* with its score breakdown attached."""

    return replace(record, compliance=score(record))


__all__ = ["STATUS_FACTORS", "score", "score_record", "status_factor"]
