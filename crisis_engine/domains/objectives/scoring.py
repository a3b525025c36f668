"""
Objective scoring

Pure functions shared by the SQL store and in-memory stores: applying
adjustments to a progress row and rolling rows up into a session score.
"""
from __future__ import annotations

from datetime import datetime
from typing import Iterable, Optional

from .schemas import (
    AdjustmentKind,
    ObjectiveAdjustment,
    ObjectiveProgressView,
    ObjectiveScore,
    ObjectiveStatus,
    SessionScore,
)

SUCCESS_LEVELS: tuple[tuple[float, str], ...] = (
    (90.0, "Excellent"),
    (75.0, "Good"),
    (60.0, "Adequate"),
)


def derive_status(progress_percentage: int) -> ObjectiveStatus:
    if progress_percentage >= 100:
        return ObjectiveStatus.COMPLETED
    if progress_percentage < 0:
        return ObjectiveStatus.FAILED
    if progress_percentage == 0:
        return ObjectiveStatus.NOT_STARTED
    return ObjectiveStatus.IN_PROGRESS


def apply_adjustment(
    progress: ObjectiveProgressView,
    adjustment: ObjectiveAdjustment,
    now: datetime,
) -> ObjectiveProgressView:
    """
    Apply one adjustment, returning an updated copy

    - penalty: score = max(0, (score or 100) - points)
    - bonus:   score = min(100, (score or 0) + points)
    - progress: percentage replaced, status explicit or derived, metrics merged
    """
    entry = {
        "reason": adjustment.reason,
        "points": adjustment.points,
        "timestamp": now.isoformat(),
        "cause_ref": adjustment.cause_ref,
    }
    update: dict = {"updated_at": now}

    if adjustment.kind == AdjustmentKind.PENALTY:
        base = progress.score if progress.score is not None else 100
        update["score"] = max(0, base - adjustment.points)
        update["penalties"] = [*progress.penalties, entry]

    elif adjustment.kind == AdjustmentKind.BONUS:
        base = progress.score if progress.score is not None else 0
        update["score"] = min(100, base + adjustment.points)
        update["bonuses"] = [*progress.bonuses, entry]

    elif adjustment.kind == AdjustmentKind.PROGRESS:
        pct = adjustment.progress_percentage if adjustment.progress_percentage is not None else progress.progress_percentage
        update["progress_percentage"] = pct
        update["status"] = adjustment.status or derive_status(pct)
        update["metrics"] = {**progress.metrics, **adjustment.metrics}

    return progress.model_copy(update=update)


def apply_adjustments(
    rows: Iterable[ObjectiveProgressView],
    adjustments: Iterable[ObjectiveAdjustment],
    now: datetime,
) -> tuple[list[ObjectiveProgressView], list[ObjectiveAdjustment]]:
    """
    Returns:
        (changed rows, adjustments skipped because the objective is not defined)
    """
    by_key = {row.objective_key: row for row in rows}
    changed: dict[str, ObjectiveProgressView] = {}
    skipped: list[ObjectiveAdjustment] = []

    for adjustment in adjustments:
        row = changed.get(adjustment.objective_key) or by_key.get(adjustment.objective_key)
        if row is None:
            skipped.append(adjustment)
            continue
        changed[adjustment.objective_key] = apply_adjustment(row, adjustment, now)

    return list(changed.values()), skipped


def success_level(score: float) -> str:
    for threshold, level in SUCCESS_LEVELS:
        if score >= threshold:
            return level
    return "Needs Improvement"


def calculate_session_score(rows: Iterable[ObjectiveProgressView]) -> SessionScore:
    """Weighted mean over objectives that have a score."""
    scored = [row for row in rows if row.score is not None]
    total_weight = sum(row.weight for row in scored)
    if total_weight <= 0:
        return SessionScore()

    overall = sum(row.score * row.weight for row in scored) / total_weight
    return SessionScore(
        overall_score=round(overall, 2),
        success_level=success_level(overall),
        objective_scores=[
            ObjectiveScore(
                objective_key=row.objective_key,
                objective_name=row.objective_name,
                score=row.score,
                weight=row.weight,
                status=row.status,
            )
            for row in scored
        ],
    )


def all_objectives_resolved(rows: Iterable[ObjectiveProgressView]) -> bool:
    rows = list(rows)
    return bool(rows) and all(
        row.status in (ObjectiveStatus.COMPLETED, ObjectiveStatus.FAILED) for row in rows
    )
