"""EscalationStateComputer - recompute and persist one escalation snapshot per call."""
from __future__ import annotations

import logging
from typing import Any, Optional
from uuid import UUID

from crisis_engine.agents.escalation.graph import build_escalation_graph
from crisis_engine.agents.escalation.state import EscalationState
from crisis_engine.domains.escalation.schemas import EscalationSnapshot
from crisis_engine.domains.injects.schemas import SessionEventType
from crisis_engine.domains.sessions.schemas import SessionSnapshot
from crisis_engine.orchestration.ports import ChatClient, Clock, EngineStore


logger = logging.getLogger(__name__)


class EscalationStateComputer:
    """Gathers context, runs the four-stage graph and appends a snapshot row.

    Stage progress is mirrored into the session event log as
    ai_step_start / ai_step_end so trainers can watch background AI activity.
    """

    def __init__(
        self,
        store: EngineStore,
        llm: ChatClient,
        clock: Clock,
        recent_inject_window: int = 10,
    ) -> None:
        self._store = store
        self._clock = clock
        self._recent_inject_window = recent_inject_window
        self.graph = build_escalation_graph(llm, listener=self._record_stage)

    async def compute(self, session: SessionSnapshot) -> Optional[EscalationSnapshot]:
        """Run one recompute cycle for a session.

        Returns:
            the persisted snapshot, or None when the scenario is missing
        """
        scenario = await self._store.get_scenario_context(session.scenario_id)
        if scenario is None:
            logger.warning(f"[Escalation] scenario missing: session_id={session.id} scenario_id={session.scenario_id}")
            return None

        objectives = await self._store.list_objective_progress(session.id)
        published = await self._store.list_published_injects(session.id)
        recent = published[-self._recent_inject_window:] if self._recent_inject_window > 0 else []

        initial_state: EscalationState = {
            "session_id": str(session.id),
            "scenario_title": scenario.title,
            "scenario_description": scenario.description,
            "current_state": session.current_state,
            "objectives": [
                {
                    "name": o.objective_name,
                    "status": o.status.value,
                    "progress_percentage": o.progress_percentage,
                }
                for o in objectives
            ],
            "recent_injects": [self._inject_summary(p.content) for p in recent],
            "failed_stages": [],
            "errors": [],
        }

        result = await self.graph.ainvoke(initial_state)

        snapshot = EscalationSnapshot(
            session_id=session.id,
            evaluated_at=self._clock.now(),
            factors=result.get("factors") or [],
            de_escalation_factors=result.get("de_escalation_factors") or [],
            pathways=result.get("pathways") or [],
            de_escalation_pathways=result.get("de_escalation_pathways") or [],
        )
        saved = await self._store.save_escalation_snapshot(snapshot)
        logger.info(
            f"[Escalation] snapshot saved: session_id={session.id} factors={len(saved.factors)} "
            f"de_escalation_factors={len(saved.de_escalation_factors)} pathways={len(saved.pathways)} "
            f"de_escalation_pathways={len(saved.de_escalation_pathways)} "
            f"failed_stages={result.get('failed_stages') or []}"
        )
        return saved

    @staticmethod
    def _inject_summary(content: dict[str, Any]) -> dict[str, Any]:
        return {
            "title": content.get("title", ""),
            "content": content.get("content", ""),
            "severity": content.get("severity", "medium"),
            "theme": content.get("theme"),
        }

    async def _record_stage(self, session_id: str, stage: str, phase: str, details: dict[str, Any]) -> None:
        event_type = SessionEventType.AI_STEP_START if phase == "start" else SessionEventType.AI_STEP_END
        await self._store.append_session_event(
            UUID(session_id),
            event_type.value,
            {"component": "escalation", "stage": stage, **details},
        )
