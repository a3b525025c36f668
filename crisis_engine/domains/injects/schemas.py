from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class TriggerSource(str, Enum):
    TIME = "time"
    DECISION = "decision"


class SessionEventType(str, Enum):
    INJECT = "inject"
    AI_STEP_START = "ai_step_start"
    AI_STEP_END = "ai_step_end"


class GenerationState(str, Enum):
    RETRYING = "retrying"
    STALLED = "stalled"
    NEEDS_REVIEW = "needs_review"


class InjectQueueStatus(str, Enum):
    """What trainers see for each inject; provider errors never surface here"""
    AWAITING_TRIGGER = "awaiting_trigger"
    PENDING_GENERATION = "pending_generation"
    STALLED = "stalled"
    NEEDS_REVIEW = "needs_review"
    PUBLISHED = "published"


class InjectContent(BaseModel):
    """Content actually shown to participants"""
    title: str
    content: str
    severity: str
    theme: str
    scope: str
    generated: bool = False
    unresolved_issue: Optional[str] = None

    def event_payload(self, inject_id: UUID) -> dict[str, Any]:
        return {
            "inject_id": str(inject_id),
            "scope": self.scope,
            "title": self.title,
            "content": self.content,
            "severity": self.severity,
            "theme": self.theme,
        }


class PublishedInjectView(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    session_id: UUID
    inject_id: UUID
    trigger_source: TriggerSource
    content: dict[str, Any] = Field(default_factory=dict)
    published_at: Optional[datetime] = None


class SessionEventRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    session_id: UUID
    event_type: str
    actor_id: Optional[UUID] = None
    payload: dict[str, Any] = Field(default_factory=dict)
    created_at: Optional[datetime] = None


class ClaimResult(BaseModel):
    """Outcome of an atomic ledger claim; the event is set only when claimed"""
    claimed: bool
    event: Optional[SessionEventRecord] = None


class GenerationStatusView(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    session_id: UUID
    inject_id: UUID
    status: GenerationState
    failure_count: int = 0
    last_stage: Optional[str] = None
    last_error_code: Optional[str] = None
    review_reason: Optional[str] = None


class InjectQueueItem(BaseModel):
    inject_id: UUID
    title: Optional[str] = None
    scope: str
    severity: str
    trigger_time_minutes: Optional[int] = None
    conditional: bool = False
    status: InjectQueueStatus
    failure_count: int = 0
    published_at: Optional[datetime] = None
