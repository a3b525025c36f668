from .schemas import (
    ObjectiveStatus,
    AdjustmentKind,
    ObjectiveAdjustment,
    ObjectiveProgressView,
    SessionScore,
)
from .models import ObjectiveProgress
from .rules import IMPACT_RULES, score_decision_impact
from .scoring import apply_adjustments, calculate_session_score, all_objectives_resolved


__all__ = [
    "ObjectiveStatus",
    "AdjustmentKind",
    "ObjectiveAdjustment",
    "ObjectiveProgressView",
    "SessionScore",
    "ObjectiveProgress",
    "IMPACT_RULES",
    "score_decision_impact",
    "apply_adjustments",
    "calculate_session_score",
    "all_objectives_resolved",
]
