from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class ObjectiveStatus(str, Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


class AdjustmentKind(str, Enum):
    PENALTY = "penalty"
    BONUS = "bonus"
    PROGRESS = "progress"


class ObjectiveAdjustment(BaseModel):
    """One effect of a decision on an objective"""
    objective_key: str
    kind: AdjustmentKind
    reason: str = ""
    points: int = 0
    progress_percentage: Optional[int] = None
    status: Optional[ObjectiveStatus] = None
    metrics: dict[str, Any] = Field(default_factory=dict)
    cause_ref: Optional[str] = Field(None, description="decision id or inject id")


class ObjectiveProgressView(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    session_id: UUID
    objective_id: UUID
    objective_key: str
    objective_name: str
    weight: int = 25
    progress_percentage: int = 0
    status: ObjectiveStatus = ObjectiveStatus.NOT_STARTED
    score: Optional[int] = None
    penalties: list[dict[str, Any]] = Field(default_factory=list)
    bonuses: list[dict[str, Any]] = Field(default_factory=list)
    metrics: dict[str, Any] = Field(default_factory=dict)
    updated_at: Optional[datetime] = None


class ObjectiveScore(BaseModel):
    objective_key: str
    objective_name: str
    score: int
    weight: int
    status: ObjectiveStatus


class SessionScore(BaseModel):
    overall_score: float = 0.0
    success_level: str = "Needs Improvement"
    objective_scores: list[ObjectiveScore] = Field(default_factory=list)
