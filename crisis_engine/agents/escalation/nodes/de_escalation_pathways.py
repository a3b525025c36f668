"""Stage 4: how responders could bring the situation down, and what still goes wrong."""
from __future__ import annotations

import logging
from typing import Any

from crisis_engine.agents.escalation.nodes.context import FICTION_RULE, as_json, situation_block
from crisis_engine.agents.escalation.state import EscalationState
from crisis_engine.agents.escalation.validation import coerce_bounded, extract_items
from crisis_engine.domains.escalation.schemas import (
    MAX_EMERGING_CHALLENGES,
    PATHWAY_BOUNDS,
    DeEscalationPathway,
)
from crisis_engine.orchestration.ports import ChatClient

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = f"""You project how a training-exercise crisis could be brought under control.
{FICTION_RULE}

Using the de-escalation factors and the escalation pathways they must counter,
describe between {PATHWAY_BOUNDS[0]} and {PATHWAY_BOUNDS[1]} DE-ESCALATION PATHWAYS. Each has a trajectory,
the mitigating behaviours that drive it, and 0 to {MAX_EMERGING_CHALLENGES} emerging challenges: new problems
that would appear even if the pathway succeeds.

Reply with JSON only:
{{"pathways": [{{"pathway_id": "deesc-path-1", "trajectory": "...", "mitigating_behaviours": ["..."], "emerging_challenges": ["..."]}}]}}"""


async def de_escalation_pathways_node(state: EscalationState, llm: ChatClient) -> dict[str, Any]:
    user_prompt = "\n".join([
        situation_block(state),
        "DE-ESCALATION FACTORS:",
        as_json(state.get("de_escalation_factors") or []),
        "ESCALATION PATHWAYS:",
        as_json(state.get("pathways") or []),
    ])
    payload = await llm.complete_json(
        task="escalation.de_escalation_pathways",
        system_prompt=SYSTEM_PROMPT,
        user_prompt=user_prompt,
    )
    pathways = coerce_bounded(
        extract_items(payload, "pathways"),
        DeEscalationPathway,
        PATHWAY_BOUNDS,
        stage="de_escalation_pathways",
        id_field="pathway_id",
        id_prefix="deesc-path",
    )
    logger.info(f"[Escalation] session={state.get('session_id')} de-escalation pathways={len(pathways)}")
    return {"de_escalation_pathways": [p.model_dump(mode="json") for p in pathways]}
