"""
Scenario module: inject library, objectives, authoring API
"""

from .schemas import (
    InjectScope,
    InjectSeverity,
    InjectType,
    THEME_CATALOGUE,
    ScenarioInjectCreate,
    InjectDefinition,
    ObjectiveDefinition,
    ScenarioContext,
)
from .models import Scenario, ScenarioInject, ScenarioObjective
from .router import router as scenarios_router


__all__ = [
    "InjectScope",
    "InjectSeverity",
    "InjectType",
    "THEME_CATALOGUE",
    "ScenarioInjectCreate",
    "InjectDefinition",
    "ObjectiveDefinition",
    "ScenarioContext",
    "Scenario",
    "ScenarioInject",
    "ScenarioObjective",
    "scenarios_router",
]
