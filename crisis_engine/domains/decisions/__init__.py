from .schemas import (
    DecisionStatus,
    DecisionCategory,
    DECISION_CATEGORIES,
    DecisionClassification,
    DecisionRecord,
)
from .models import Decision


__all__ = [
    "DecisionStatus",
    "DecisionCategory",
    "DECISION_CATEGORIES",
    "DecisionClassification",
    "DecisionRecord",
    "Decision",
]
