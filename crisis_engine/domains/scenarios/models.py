"""
Scenario ORM models

Tables:
- scenarios: scenario metadata
- scenario_injects: inject library (time or decision triggered)
- scenario_objectives: objectives scored per session
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Optional
from uuid import UUID
import uuid as uuid_lib

from sqlalchemy import (
    Boolean, CheckConstraint, Column, DateTime, ForeignKey, Integer, String, Text, func,
)
from sqlalchemy.dialects.postgresql import JSONB, UUID as PG_UUID
from sqlalchemy.orm import relationship

from crisis_engine.core.database import Base


class Scenario(Base):
    __tablename__ = "scenarios"

    id: UUID = Column(PG_UUID(as_uuid=True), primary_key=True, default=uuid_lib.uuid4)
    title: str = Column(String(200), nullable=False, comment="Scenario title")
    description: Optional[str] = Column(Text, comment="Briefing fed to AI prompts")
    category: Optional[str] = Column(String(50), comment="e.g. flood, cyber, public_health")
    duration_minutes: Optional[int] = Column(Integer, comment="Planned length")
    initial_state: dict[str, Any] = Column(JSONB, nullable=False, default=dict, comment="Seed for session current_state")
    created_at: datetime = Column(DateTime(timezone=True), server_default=func.now())

    objectives = relationship(
        "ScenarioObjective",
        lazy="selectin",
        order_by="ScenarioObjective.created_at",
    )


class ScenarioInject(Base):
    """
    Inject library entry

    At least one trigger must be present; title/content absent means the
    content is generated when the trigger fires.
    """
    __tablename__ = "scenario_injects"
    __table_args__ = (
        CheckConstraint(
            "trigger_time_minutes IS NOT NULL OR trigger_condition IS NOT NULL",
            name="ck_scenario_injects_has_trigger",
        ),
    )

    id: UUID = Column(PG_UUID(as_uuid=True), primary_key=True, default=uuid_lib.uuid4)
    scenario_id: UUID = Column(
        PG_UUID(as_uuid=True), ForeignKey("scenarios.id", ondelete="CASCADE"), nullable=False, index=True,
    )

    # ==================== Triggers ====================
    trigger_time_minutes: Optional[int] = Column(Integer, comment="Minutes after session start")
    trigger_condition: Optional[str] = Column(Text, comment="JSON or text decision condition")

    # ==================== Presentation ====================
    type: str = Column(String(40), nullable=False, default="field_update", comment="Inject type / theme")
    scope: str = Column(String(20), nullable=False, default="universal")
    severity: str = Column(String(20), nullable=False, default="medium")
    title: Optional[str] = Column(String(300))
    content: Optional[str] = Column(Text)
    target_teams: list[str] = Column(JSONB, nullable=False, default=list)
    affected_roles: list[str] = Column(JSONB, nullable=False, default=list)
    requires_response: bool = Column(Boolean, nullable=False, default=False)

    created_at: datetime = Column(DateTime(timezone=True), server_default=func.now(), index=True)


class ScenarioObjective(Base):
    __tablename__ = "scenario_objectives"

    id: UUID = Column(PG_UUID(as_uuid=True), primary_key=True, default=uuid_lib.uuid4)
    scenario_id: UUID = Column(
        PG_UUID(as_uuid=True), ForeignKey("scenarios.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    objective_key: str = Column(String(50), nullable=False, comment="evacuation / media / triage / coordination ...")
    name: str = Column(String(200), nullable=False)
    description: Optional[str] = Column(Text)
    weight: int = Column(Integer, nullable=False, default=25, comment="Share of the session score")
    created_at: datetime = Column(DateTime(timezone=True), server_default=func.now())
