"""
Session ORM model

Table: sim_sessions

`current_state` is the scenario-variable snapshot, updated through an
optimistic `state_version` check.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Optional
from uuid import UUID
import uuid as uuid_lib

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, func
from sqlalchemy.dialects.postgresql import JSONB, UUID as PG_UUID

from crisis_engine.core.database import Base


class SimSession(Base):
    __tablename__ = "sim_sessions"

    # ==================== Identity ====================
    id: UUID = Column(PG_UUID(as_uuid=True), primary_key=True, default=uuid_lib.uuid4)
    scenario_id: UUID = Column(
        PG_UUID(as_uuid=True), ForeignKey("scenarios.id"), nullable=False, index=True,
    )
    trainer_id: Optional[UUID] = Column(PG_UUID(as_uuid=True), comment="Scheduling trainer")

    # ==================== Lifecycle ====================
    status: str = Column(
        String(20), nullable=False, default="scheduled", index=True,
        comment="scheduled/lobby/in_progress/paused/completed/cancelled",
    )
    scheduled_start_time: Optional[datetime] = Column(DateTime(timezone=True))
    started_at: Optional[datetime] = Column(DateTime(timezone=True), comment="Anchor for scenario time")
    paused_at: Optional[datetime] = Column(DateTime(timezone=True), comment="Set while paused")
    total_paused_seconds: int = Column(Integer, nullable=False, default=0)
    ended_at: Optional[datetime] = Column(DateTime(timezone=True))
    auto_complete_on_objectives: bool = Column(Boolean, nullable=False, default=False)

    # ==================== Scenario state ====================
    current_state: dict[str, Any] = Column(JSONB, nullable=False, default=dict)
    state_version: int = Column(Integer, nullable=False, default=0)

    created_at: datetime = Column(DateTime(timezone=True), server_default=func.now())
    updated_at: datetime = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
