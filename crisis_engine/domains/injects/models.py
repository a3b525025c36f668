"""
Inject publication ORM models

Tables:
- session_published_injects: idempotency ledger, unique (session_id, inject_id)
- session_events: append-only event log consumed by timelines and AAR replay
- inject_generation_status: passive retry / review flags per (session, inject)
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Optional
from uuid import UUID
import uuid as uuid_lib

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint, func
from sqlalchemy.dialects.postgresql import JSONB, UUID as PG_UUID

from crisis_engine.core.database import Base


class PublishedInject(Base):
    __tablename__ = "session_published_injects"
    __table_args__ = (
        UniqueConstraint("session_id", "inject_id", name="uq_published_inject_session_inject"),
    )

    id: UUID = Column(PG_UUID(as_uuid=True), primary_key=True, default=uuid_lib.uuid4)
    session_id: UUID = Column(
        PG_UUID(as_uuid=True), ForeignKey("sim_sessions.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    inject_id: UUID = Column(
        PG_UUID(as_uuid=True), ForeignKey("scenario_injects.id", ondelete="CASCADE"), nullable=False,
    )
    trigger_source: str = Column(String(20), nullable=False, comment="time / decision")
    content: dict[str, Any] = Column(JSONB, nullable=False, comment="Content actually shown")
    published_at: datetime = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class SessionEvent(Base):
    __tablename__ = "session_events"

    id: UUID = Column(PG_UUID(as_uuid=True), primary_key=True, default=uuid_lib.uuid4)
    session_id: UUID = Column(
        PG_UUID(as_uuid=True), ForeignKey("sim_sessions.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    event_type: str = Column(String(40), nullable=False, comment="inject / ai_step_start / ai_step_end ...")
    actor_id: Optional[UUID] = Column(PG_UUID(as_uuid=True), comment="null for engine events")
    payload: dict[str, Any] = Column(JSONB, nullable=False, default=dict)
    created_at: datetime = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), index=True)


class InjectGenerationStatus(Base):
    __tablename__ = "inject_generation_status"
    __table_args__ = (
        UniqueConstraint("session_id", "inject_id", name="uq_generation_status_session_inject"),
    )

    id: UUID = Column(PG_UUID(as_uuid=True), primary_key=True, default=uuid_lib.uuid4)
    session_id: UUID = Column(
        PG_UUID(as_uuid=True), ForeignKey("sim_sessions.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    inject_id: UUID = Column(
        PG_UUID(as_uuid=True), ForeignKey("scenario_injects.id", ondelete="CASCADE"), nullable=False,
    )
    status: str = Column(String(20), nullable=False, comment="retrying / stalled / needs_review")
    failure_count: int = Column(Integer, nullable=False, default=0)
    last_stage: Optional[str] = Column(String(40))
    last_error_code: Optional[str] = Column(String(20), comment="error code only, never raw provider text")
    review_reason: Optional[str] = Column(Text)
    updated_at: datetime = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
