from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator


class DecisionStatus(str, Enum):
    PROPOSED = "proposed"
    UNDER_REVIEW = "under_review"
    APPROVED = "approved"
    REJECTED = "rejected"
    EXECUTED = "executed"
    CANCELLED = "cancelled"


class DecisionCategory(str, Enum):
    EMERGENCY_DECLARATION = "emergency_declaration"
    RESOURCE_ALLOCATION = "resource_allocation"
    PUBLIC_STATEMENT = "public_statement"
    OPERATIONAL_ACTION = "operational_action"
    POLICY_CHANGE = "policy_change"
    COORDINATION_ORDER = "coordination_order"
    OTHER = "other"


DECISION_CATEGORIES: tuple[str, ...] = tuple(c.value for c in DecisionCategory)


def _normalise_tokens(values: Any) -> list[str]:
    if not values:
        return []
    seen: list[str] = []
    for value in values:
        token = str(value).strip().lower()
        if token and token not in seen:
            seen.append(token)
    return seen


class DecisionClassification(BaseModel):
    """AI classification, computed once per executed decision"""
    primary_category: str = Field(DecisionCategory.OTHER.value, description="Main category")
    categories: list[str] = Field(default_factory=list, description="All applicable categories")
    keywords: list[str] = Field(default_factory=list, description="Lower-cased key terms")
    semantic_tags: list[str] = Field(default_factory=list, description="Lower-cased concept tags")
    confidence: float = Field(0.5, ge=0.0, le=1.0)
    reasoning: Optional[str] = None

    @field_validator("categories", "keywords", "semantic_tags", mode="before")
    @classmethod
    def lower_tokens(cls, v: Any) -> list[str]:
        return _normalise_tokens(v)

    @field_validator("primary_category", mode="before")
    @classmethod
    def known_category(cls, v: Any) -> str:
        value = str(v or "").strip().lower()
        return value if value in DECISION_CATEGORIES else DecisionCategory.OTHER.value

    @field_validator("confidence", mode="before")
    @classmethod
    def clamp_confidence(cls, v: Any) -> float:
        try:
            return max(0.0, min(1.0, float(v)))
        except (TypeError, ValueError):
            return 0.5


class DecisionRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    session_id: UUID
    title: str
    description: str = ""
    decision_type: Optional[str] = None
    resources_needed: Optional[dict[str, Any]] = None
    status: DecisionStatus
    ai_classification: Optional[DecisionClassification] = None
    executed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
