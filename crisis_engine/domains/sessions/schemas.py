from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class SessionStatus(str, Enum):
    SCHEDULED = "scheduled"
    LOBBY = "lobby"
    IN_PROGRESS = "in_progress"
    PAUSED = "paused"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


# allowed lifecycle transitions
SESSION_TRANSITIONS: dict[SessionStatus, set[SessionStatus]] = {
    SessionStatus.SCHEDULED: {SessionStatus.LOBBY, SessionStatus.IN_PROGRESS, SessionStatus.CANCELLED},
    SessionStatus.LOBBY: {SessionStatus.IN_PROGRESS, SessionStatus.CANCELLED},
    SessionStatus.IN_PROGRESS: {SessionStatus.PAUSED, SessionStatus.COMPLETED, SessionStatus.CANCELLED},
    SessionStatus.PAUSED: {SessionStatus.IN_PROGRESS, SessionStatus.COMPLETED, SessionStatus.CANCELLED},
    SessionStatus.COMPLETED: set(),
    SessionStatus.CANCELLED: set(),
}


class SessionSnapshot(BaseModel):
    """Read model the engine works from"""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    scenario_id: UUID
    status: SessionStatus
    started_at: Optional[datetime] = None
    paused_at: Optional[datetime] = None
    total_paused_seconds: int = 0
    current_state: dict[str, Any] = Field(default_factory=dict)
    state_version: int = 0
    auto_complete_on_objectives: bool = False


class SessionResponse(SessionSnapshot):
    trainer_id: Optional[UUID] = None
    ended_at: Optional[datetime] = None
    elapsed_minutes: float = Field(0.0, description="Scenario time, pauses excluded")
