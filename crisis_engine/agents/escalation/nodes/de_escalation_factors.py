"""Stage 2: what is pulling the situation back, given the escalation factors."""
from __future__ import annotations

import logging
from typing import Any

from crisis_engine.agents.escalation.nodes.context import FICTION_RULE, as_json, situation_block
from crisis_engine.agents.escalation.state import EscalationState
from crisis_engine.agents.escalation.validation import coerce_bounded, extract_items
from crisis_engine.domains.escalation.schemas import FACTOR_BOUNDS, Factor
from crisis_engine.orchestration.ports import ChatClient

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = f"""You assess crisis de-escalation for a live training exercise.
{FICTION_RULE}

Given the situation and the escalation factors already identified, list between
{FACTOR_BOUNDS[0]} and {FACTOR_BOUNDS[1]} DE-ESCALATION FACTORS: participant actions, resources or
conditions that are containing or could contain those escalation factors.
Severity expresses how strongly the factor counteracts escalation.

Reply with JSON only:
{{"factors": [{{"id": "deesc-1", "name": "...", "description": "...", "severity": "low|medium|high|critical"}}]}}"""


async def de_escalation_factors_node(state: EscalationState, llm: ChatClient) -> dict[str, Any]:
    user_prompt = "\n".join([
        situation_block(state),
        "ESCALATION FACTORS:",
        as_json(state.get("factors") or []),
    ])
    payload = await llm.complete_json(
        task="escalation.de_escalation_factors",
        system_prompt=SYSTEM_PROMPT,
        user_prompt=user_prompt,
    )
    factors = coerce_bounded(
        extract_items(payload, "factors"),
        Factor,
        FACTOR_BOUNDS,
        stage="de_escalation_factors",
        id_field="id",
        id_prefix="deesc",
    )
    logger.info(f"[Escalation] session={state.get('session_id')} de-escalation factors={len(factors)}")
    return {"de_escalation_factors": [f.model_dump(mode="json") for f in factors]}
