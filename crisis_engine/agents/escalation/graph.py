"""LangGraph StateGraph for the four-stage escalation assessment."""
from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Optional

from langgraph.graph import END, StateGraph

from crisis_engine.agents.escalation.nodes import (
    de_escalation_factors_node,
    de_escalation_pathways_node,
    escalation_factors_node,
    escalation_pathways_node,
)
from crisis_engine.agents.escalation.state import EscalationState
from crisis_engine.agents.exceptions import ProviderError
from crisis_engine.orchestration.ports import ChatClient


logger = logging.getLogger(__name__)

StageNode = Callable[[EscalationState, ChatClient], Awaitable[dict[str, Any]]]
# (session_id, stage, phase "start"/"end", details)
StageListener = Callable[[str, str, str, dict[str, Any]], Awaitable[None]]

STAGES: tuple[tuple[str, StageNode, str], ...] = (
    ("identify_escalation_factors", escalation_factors_node, "factors"),
    ("identify_de_escalation_factors", de_escalation_factors_node, "de_escalation_factors"),
    ("project_escalation_pathways", escalation_pathways_node, "pathways"),
    ("project_de_escalation_pathways", de_escalation_pathways_node, "de_escalation_pathways"),
)


def _handle_error(state: EscalationState, error: Exception, stage: str, output_key: str) -> dict[str, Any]:
    """A failed stage contributes an empty list; later stages still run."""
    errors = list(state.get("errors", []))
    errors.append(f"{stage}: {type(error).__name__}: {error}")
    return {
        output_key: [],
        "failed_stages": [*state.get("failed_stages", []), stage],
        "errors": errors,
    }


async def _notify(listener: Optional[StageListener], state: EscalationState, stage: str, phase: str, details: dict[str, Any]) -> None:
    if listener is None:
        return
    try:
        await listener(state.get("session_id", ""), stage, phase, details)
    except Exception:  # noqa: BLE001
        logger.warning(f"[Escalation] stage listener failed: stage={stage} phase={phase}", exc_info=True)


def _safe(stage: str, node: StageNode, output_key: str, llm: ChatClient, listener: Optional[StageListener]):
    async def run(state: EscalationState) -> dict[str, Any]:
        await _notify(listener, state, stage, "start", {})
        try:
            result = await node(state, llm)
        except ProviderError as exc:
            logger.warning(
                f"[Escalation] stage failed: session_id={state.get('session_id')} "
                f"stage=escalation.{stage} error_code={exc.error_code} error={exc}"
            )
            result = _handle_error(state, exc, stage, output_key)
        except Exception as exc:  # noqa: BLE001
            logger.exception(
                f"[Escalation] stage crashed: session_id={state.get('session_id')} stage=escalation.{stage}"
            )
            result = _handle_error(state, exc, stage, output_key)

        ok = stage not in result.get("failed_stages", [])
        await _notify(listener, state, stage, "end", {"ok": ok, "items": len(result.get(output_key, []))})
        return result

    run.__name__ = f"_safe_{stage}"
    return run


def build_escalation_graph(llm: ChatClient, listener: Optional[StageListener] = None):
    """Build and compile the escalation StateGraph.

    identify_escalation_factors -> identify_de_escalation_factors
        -> project_escalation_pathways -> project_de_escalation_pathways -> END

    Node names differ from the state keys they fill (LangGraph forbids overlap).
    """
    graph = StateGraph(EscalationState)

    for stage, node, output_key in STAGES:
        graph.add_node(stage, _safe(stage, node, output_key, llm, listener))

    for (current, _, _), (following, _, _) in zip(STAGES, STAGES[1:]):
        graph.add_edge(current, following)
    graph.add_edge(STAGES[-1][0], END)

    graph.set_entry_point(STAGES[0][0])

    compiled = graph.compile()
    logger.debug("[Escalation] escalation graph built")
    return compiled


__all__ = ["build_escalation_graph", "STAGES", "StageListener"]
