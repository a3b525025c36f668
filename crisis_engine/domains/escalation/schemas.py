"""
Escalation snapshot models

A snapshot is immutable once written; the newest one per session is the one
content generation reads.
"""
from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

FACTOR_BOUNDS = (3, 8)
PATHWAY_BOUNDS = (2, 6)
MAX_EMERGING_CHALLENGES = 2


class FactorSeverity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


def _clean_strings(values) -> list[str]:
    if not values:
        return []
    if isinstance(values, str):
        values = [values]
    return [str(v).strip() for v in values if str(v).strip()]


class Factor(BaseModel):
    """Escalation or de-escalation factor"""
    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    description: str = ""
    severity: FactorSeverity = FactorSeverity.MEDIUM

    @field_validator("severity", mode="before")
    @classmethod
    def lower_severity(cls, v):
        return str(v).strip().lower() if v is not None else FactorSeverity.MEDIUM


class EscalationPathway(BaseModel):
    pathway_id: str = Field(..., min_length=1)
    trajectory: str = Field(..., min_length=1)
    trigger_behaviours: list[str] = Field(default_factory=list)

    @field_validator("trigger_behaviours", mode="before")
    @classmethod
    def clean_behaviours(cls, v) -> list[str]:
        return _clean_strings(v)


class DeEscalationPathway(BaseModel):
    pathway_id: str = Field(..., min_length=1)
    trajectory: str = Field(..., min_length=1)
    mitigating_behaviours: list[str] = Field(default_factory=list)
    emerging_challenges: list[str] = Field(default_factory=list, max_length=MAX_EMERGING_CHALLENGES)

    @field_validator("mitigating_behaviours", mode="before")
    @classmethod
    def clean_behaviours(cls, v) -> list[str]:
        return _clean_strings(v)

    @field_validator("emerging_challenges", mode="before")
    @classmethod
    def cap_challenges(cls, v) -> list[str]:
        return _clean_strings(v)[:MAX_EMERGING_CHALLENGES]


class EscalationSnapshot(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: Optional[UUID] = None
    session_id: UUID
    evaluated_at: datetime
    factors: list[Factor] = Field(default_factory=list)
    de_escalation_factors: list[Factor] = Field(default_factory=list)
    pathways: list[EscalationPathway] = Field(default_factory=list)
    de_escalation_pathways: list[DeEscalationPathway] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.factors or self.de_escalation_factors or self.pathways or self.de_escalation_pathways)
