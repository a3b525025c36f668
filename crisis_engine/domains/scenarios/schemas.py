"""
Scenario data models

Scenarios own the inject library and the objective list; sessions reference a
scenario and are evaluated against it.
"""
from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Optional, Union
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator


class InjectScope(str, Enum):
    """Who sees an inject"""
    UNIVERSAL = "universal"
    ROLE_SPECIFIC = "role_specific"
    TEAM_SPECIFIC = "team_specific"


class InjectSeverity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


SEVERITY_RANK: dict[str, int] = {
    InjectSeverity.LOW.value: 1,
    InjectSeverity.MEDIUM.value: 2,
    InjectSeverity.HIGH.value: 3,
    InjectSeverity.CRITICAL.value: 4,
}


class InjectType(str, Enum):
    """Inject types double as theme labels for repetition control"""
    MEDIA_REPORT = "media_report"
    FIELD_UPDATE = "field_update"
    CITIZEN_CALL = "citizen_call"
    INTEL_BRIEF = "intel_brief"
    RESOURCE_SHORTAGE = "resource_shortage"
    WEATHER_CHANGE = "weather_change"
    POLITICAL_PRESSURE = "political_pressure"


THEME_CATALOGUE: tuple[str, ...] = tuple(t.value for t in InjectType)


# ============================================================================
# Authoring
# ============================================================================

class ScenarioInjectCreate(BaseModel):
    """Create inject request; rejected when neither trigger is present"""
    trigger_time_minutes: Optional[int] = Field(None, ge=0, description="Minutes after session start")
    trigger_condition: Optional[Union[str, dict[str, Any]]] = Field(
        None, description="Decision condition, JSON object or 'category:x AND keyword:y'"
    )
    type: InjectType = Field(InjectType.FIELD_UPDATE, description="Inject type / theme")
    scope: InjectScope = Field(InjectScope.UNIVERSAL, description="Audience scope")
    severity: InjectSeverity = Field(InjectSeverity.MEDIUM, description="Severity")
    title: Optional[str] = Field(None, max_length=300, description="Static title, empty = generate")
    content: Optional[str] = Field(None, description="Static body, empty = generate")
    target_teams: list[str] = Field(default_factory=list, description="Teams for team_specific scope")
    affected_roles: list[str] = Field(default_factory=list, description="Roles for role_specific scope")
    requires_response: bool = Field(False, description="Participants must respond")

    @model_validator(mode="after")
    def check_trigger(self) -> "ScenarioInjectCreate":
        from crisis_engine.domains.injects.triggers import parse_trigger_condition

        # TriggerConditionInvalid is a ValueError, surfaced as a validation error
        condition = parse_trigger_condition(self.trigger_condition)
        if condition is None:
            self.trigger_condition = None
        if self.trigger_time_minutes is None and condition is None:
            raise ValueError("inject needs trigger_time_minutes or trigger_condition")
        if bool(self.title) != bool(self.content):
            raise ValueError("static title and content must be given together")
        return self


class InjectDefinition(BaseModel):
    """Engine view of a scenario inject"""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    scenario_id: UUID
    trigger_time_minutes: Optional[int] = None
    trigger_condition: Optional[str] = None
    type: str = InjectType.FIELD_UPDATE.value
    scope: str = InjectScope.UNIVERSAL.value
    severity: str = InjectSeverity.MEDIUM.value
    title: Optional[str] = None
    content: Optional[str] = None
    target_teams: list[str] = Field(default_factory=list)
    affected_roles: list[str] = Field(default_factory=list)
    requires_response: bool = False
    created_at: Optional[datetime] = None

    @property
    def has_static_content(self) -> bool:
        return bool(self.title and self.content)


class ObjectiveDefinition(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    objective_key: str
    name: str
    description: Optional[str] = None
    weight: int = 25


class ScenarioContext(BaseModel):
    """What AI prompts need to know about a scenario"""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    title: str
    description: str = ""
    category: Optional[str] = None
    objectives: list[ObjectiveDefinition] = Field(default_factory=list)


class ScenarioInjectResponse(InjectDefinition):
    pass
