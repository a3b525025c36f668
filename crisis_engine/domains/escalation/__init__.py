from .schemas import (
    FACTOR_BOUNDS,
    PATHWAY_BOUNDS,
    MAX_EMERGING_CHALLENGES,
    FactorSeverity,
    Factor,
    EscalationPathway,
    DeEscalationPathway,
    EscalationSnapshot,
)
from .models import EscalationSnapshotRecord


__all__ = [
    "FACTOR_BOUNDS",
    "PATHWAY_BOUNDS",
    "MAX_EMERGING_CHALLENGES",
    "FactorSeverity",
    "Factor",
    "EscalationPathway",
    "DeEscalationPathway",
    "EscalationSnapshot",
    "EscalationSnapshotRecord",
]
