from .escalation_factors import escalation_factors_node
from .de_escalation_factors import de_escalation_factors_node
from .escalation_pathways import escalation_pathways_node
from .de_escalation_pathways import de_escalation_pathways_node


__all__ = [
    "escalation_factors_node",
    "de_escalation_factors_node",
    "escalation_pathways_node",
    "de_escalation_pathways_node",
]
