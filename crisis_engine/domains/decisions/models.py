"""
Decision ORM model

Table: session_decisions

`ai_classification` is written once, on first evaluation after execution.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Optional
from uuid import UUID
import uuid as uuid_lib

from sqlalchemy import Column, DateTime, ForeignKey, String, Text, func
from sqlalchemy.dialects.postgresql import JSONB, UUID as PG_UUID

from crisis_engine.core.database import Base


class Decision(Base):
    __tablename__ = "session_decisions"

    id: UUID = Column(PG_UUID(as_uuid=True), primary_key=True, default=uuid_lib.uuid4)
    session_id: UUID = Column(
        PG_UUID(as_uuid=True), ForeignKey("sim_sessions.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    proposed_by: Optional[UUID] = Column(PG_UUID(as_uuid=True))

    title: str = Column(String(300), nullable=False)
    description: str = Column(Text, nullable=False, default="")
    decision_type: Optional[str] = Column(
        String(40), comment="operational_action / resource_allocation / public_statement / ..."
    )
    resources_needed: Optional[dict[str, Any]] = Column(JSONB)

    status: str = Column(String(20), nullable=False, default="proposed", index=True)
    ai_classification: Optional[dict[str, Any]] = Column(JSONB(none_as_null=True), comment="Cached classification")
    classified_at: Optional[datetime] = Column(DateTime(timezone=True))
    executed_at: Optional[datetime] = Column(DateTime(timezone=True), index=True)

    created_at: datetime = Column(DateTime(timezone=True), server_default=func.now())
