"""Stage 1: what is making the situation worse."""
from __future__ import annotations

import logging
from typing import Any

from crisis_engine.agents.escalation.nodes.context import FICTION_RULE, situation_block
from crisis_engine.agents.escalation.state import EscalationState
from crisis_engine.agents.escalation.validation import coerce_bounded, extract_items
from crisis_engine.domains.escalation.schemas import FACTOR_BOUNDS, Factor
from crisis_engine.orchestration.ports import ChatClient

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = f"""You assess crisis escalation for a live training exercise.
{FICTION_RULE}

Identify between {FACTOR_BOUNDS[0]} and {FACTOR_BOUNDS[1]} ESCALATION FACTORS: conditions, actors or
dynamics currently pushing the situation toward a worse outcome.

Reply with JSON only:
{{"factors": [{{"id": "esc-1", "name": "...", "description": "...", "severity": "low|medium|high|critical"}}]}}"""


async def escalation_factors_node(state: EscalationState, llm: ChatClient) -> dict[str, Any]:
    payload = await llm.complete_json(
        task="escalation.factors",
        system_prompt=SYSTEM_PROMPT,
        user_prompt=situation_block(state),
    )
    factors = coerce_bounded(
        extract_items(payload, "factors"),
        Factor,
        FACTOR_BOUNDS,
        stage="escalation_factors",
        id_field="id",
        id_prefix="esc",
    )
    logger.info(f"[Escalation] session={state.get('session_id')} escalation factors={len(factors)}")
    return {"factors": [f.model_dump(mode="json") for f in factors]}
