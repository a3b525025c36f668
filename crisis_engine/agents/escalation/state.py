"""State definition for the escalation assessment graph."""
from __future__ import annotations

from typing import Any, TypedDict


class EscalationContext(TypedDict, total=False):
    """Inputs shared by every stage."""

    session_id: str
    scenario_title: str
    scenario_description: str
    current_state: dict[str, Any]
    objectives: list[dict[str, Any]]
    recent_injects: list[dict[str, Any]]


class EscalationState(EscalationContext, total=False):
    """State for the escalation workflow; list fields hold validated dicts."""

    factors: list[dict[str, Any]]
    de_escalation_factors: list[dict[str, Any]]
    pathways: list[dict[str, Any]]
    de_escalation_pathways: list[dict[str, Any]]

    failed_stages: list[str]
    errors: list[str]


__all__ = ["EscalationContext", "EscalationState"]
