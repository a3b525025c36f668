"""Stage 3: trajectories the escalation factors could drive."""
from __future__ import annotations

import logging
from typing import Any

from crisis_engine.agents.escalation.nodes.context import FICTION_RULE, as_json, situation_block
from crisis_engine.agents.escalation.state import EscalationState
from crisis_engine.agents.escalation.validation import coerce_bounded, extract_items
from crisis_engine.domains.escalation.schemas import PATHWAY_BOUNDS, EscalationPathway
from crisis_engine.orchestration.ports import ChatClient

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = f"""You project how a training-exercise crisis could get worse.
{FICTION_RULE}

From the escalation factors, describe between {PATHWAY_BOUNDS[0]} and {PATHWAY_BOUNDS[1]} ESCALATION PATHWAYS.
Each pathway has a trajectory (how the situation would deteriorate) and the
trigger behaviours (actions or omissions by responders) that would set it off.

Reply with JSON only:
{{"pathways": [{{"pathway_id": "path-1", "trajectory": "...", "trigger_behaviours": ["..."]}}]}}"""


async def escalation_pathways_node(state: EscalationState, llm: ChatClient) -> dict[str, Any]:
    user_prompt = "\n".join([
        situation_block(state),
        "ESCALATION FACTORS:",
        as_json(state.get("factors") or []),
    ])
    payload = await llm.complete_json(
        task="escalation.pathways",
        system_prompt=SYSTEM_PROMPT,
        user_prompt=user_prompt,
    )
    pathways = coerce_bounded(
        extract_items(payload, "pathways"),
        EscalationPathway,
        PATHWAY_BOUNDS,
        stage="escalation_pathways",
        id_field="pathway_id",
        id_prefix="path",
    )
    logger.info(f"[Escalation] session={state.get('session_id')} escalation pathways={len(pathways)}")
    return {"pathways": [p.model_dump(mode="json") for p in pathways]}
