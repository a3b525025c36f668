"""
Escalation snapshot ORM model

Table: session_escalation_snapshots (append-only, one row per recompute)
"""
from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID
import uuid as uuid_lib

from sqlalchemy import Column, DateTime, ForeignKey, Index
from sqlalchemy.dialects.postgresql import JSONB, UUID as PG_UUID

from crisis_engine.core.database import Base


class EscalationSnapshotRecord(Base):
    __tablename__ = "session_escalation_snapshots"
    __table_args__ = (
        Index("ix_escalation_snapshots_session_evaluated", "session_id", "evaluated_at"),
    )

    id: UUID = Column(PG_UUID(as_uuid=True), primary_key=True, default=uuid_lib.uuid4)
    session_id: UUID = Column(
        PG_UUID(as_uuid=True), ForeignKey("sim_sessions.id", ondelete="CASCADE"), nullable=False,
    )
    evaluated_at: datetime = Column(DateTime(timezone=True), nullable=False)
    factors: list[dict[str, Any]] = Column(JSONB, nullable=False, default=list)
    de_escalation_factors: list[dict[str, Any]] = Column(JSONB, nullable=False, default=list)
    pathways: list[dict[str, Any]] = Column(JSONB, nullable=False, default=list)
    de_escalation_pathways: list[dict[str, Any]] = Column(JSONB, nullable=False, default=list)
