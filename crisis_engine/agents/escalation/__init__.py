"""
Escalation state computer

Four sequential LLM stages, each isolated so a failed stage yields [] instead of
aborting the others:

    escalation_factors -> de_escalation_factors -> escalation_pathways -> de_escalation_pathways
"""

from .agent import EscalationStateComputer
from .graph import build_escalation_graph
from .state import EscalationState


__all__ = [
    "EscalationStateComputer",
    "build_escalation_graph",
    "EscalationState",
]
