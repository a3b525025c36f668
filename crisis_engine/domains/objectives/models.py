"""
Objective progress ORM model

Table: scenario_objective_progress (one row per session x scenario objective)
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Optional
from uuid import UUID
import uuid as uuid_lib

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, UniqueConstraint, func
from sqlalchemy.dialects.postgresql import JSONB, UUID as PG_UUID

from crisis_engine.core.database import Base


class ObjectiveProgress(Base):
    __tablename__ = "scenario_objective_progress"
    __table_args__ = (
        UniqueConstraint("session_id", "objective_id", name="uq_objective_progress_session_objective"),
    )

    id: UUID = Column(PG_UUID(as_uuid=True), primary_key=True, default=uuid_lib.uuid4)
    session_id: UUID = Column(
        PG_UUID(as_uuid=True), ForeignKey("sim_sessions.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    objective_id: UUID = Column(
        PG_UUID(as_uuid=True), ForeignKey("scenario_objectives.id", ondelete="CASCADE"), nullable=False,
    )
    objective_key: str = Column(String(50), nullable=False)
    objective_name: str = Column(String(200), nullable=False)
    weight: int = Column(Integer, nullable=False, default=25)

    progress_percentage: int = Column(Integer, nullable=False, default=0)
    status: str = Column(String(20), nullable=False, default="not_started")
    score: Optional[int] = Column(Integer, comment="0-100, null until first penalty/bonus")
    penalties: list[dict[str, Any]] = Column(JSONB, nullable=False, default=list)
    bonuses: list[dict[str, Any]] = Column(JSONB, nullable=False, default=list)
    metrics: dict[str, Any] = Column(JSONB, nullable=False, default=dict)

    updated_at: datetime = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
