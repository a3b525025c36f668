"""In-memory collaborators for engine tests."""
from __future__ import annotations

import asyncio
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional
from uuid import UUID

from crisis_engine.domains.decisions.schemas import DecisionClassification, DecisionRecord, DecisionStatus
from crisis_engine.domains.escalation.schemas import EscalationSnapshot
from crisis_engine.domains.injects.schemas import (
    ClaimResult,
    GenerationState,
    GenerationStatusView,
    PublishedInjectView,
    SessionEventRecord,
)
from crisis_engine.domains.objectives.schemas import ObjectiveAdjustment, ObjectiveProgressView
from crisis_engine.domains.objectives.scoring import apply_adjustments
from crisis_engine.domains.scenarios.schemas import InjectDefinition, ObjectiveDefinition, ScenarioContext
from crisis_engine.domains.sessions.schemas import SessionSnapshot, SessionStatus

T0 = datetime(2026, 1, 5, 9, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, start: datetime = T0) -> None:
        self.current = start

    def now(self) -> datetime:
        return self.current

    def advance(self, minutes: float = 0, seconds: float = 0) -> None:
        self.current += timedelta(minutes=minutes, seconds=seconds)


class FakeFanout:
    def __init__(self, fail: bool = False) -> None:
        self.messages: list[dict[str, Any]] = []
        self.fail = fail

    async def publish(
        self,
        session_id: UUID,
        event_type: str,
        payload: dict[str, Any],
        event_id: Optional[UUID] = None,
    ) -> int:
        if self.fail:
            raise ConnectionError("redis down")
        self.messages.append(
            {"session_id": session_id, "type": event_type, "data": payload, "event_id": event_id}
        )
        return 1


class FakeChatClient:
    """Replies keyed by task; a reply may be a payload, an exception or a callable(user_prompt)."""

    def __init__(self, replies: Optional[dict[str, Any]] = None, delay: float = 0.0) -> None:
        self.replies = dict(replies or {})
        self.calls: list[dict[str, str]] = []
        self.delay = delay

    async def complete_json(self, *, task: str, system_prompt: str, user_prompt: str):
        self.calls.append({"task": task, "system_prompt": system_prompt, "user_prompt": user_prompt})
        if self.delay:
            await asyncio.sleep(self.delay)
        reply = self.replies.get(task)
        if reply is None:
            raise KeyError(f"no fake reply for task {task}")
        if isinstance(reply, Exception):
            raise reply
        if callable(reply):
            return reply(user_prompt)
        return reply

    def tasks(self) -> list[str]:
        return [c["task"] for c in self.calls]


class FakeStore:
    """Implements the engine store port over dicts; the claim is atomic under an asyncio lock."""

    def __init__(self) -> None:
        self.sessions: dict[UUID, SessionSnapshot] = {}
        self.scenarios: dict[UUID, ScenarioContext] = {}
        self.injects: dict[UUID, list[InjectDefinition]] = {}
        self.ledger: dict[tuple[UUID, UUID], PublishedInjectView] = {}
        self.events: list[SessionEventRecord] = []
        self.generation: dict[tuple[UUID, UUID], GenerationStatusView] = {}
        self.snapshots: list[EscalationSnapshot] = []
        self.decisions: dict[UUID, DecisionRecord] = {}
        self.objectives: dict[UUID, list[ObjectiveProgressView]] = {}
        self.classification_writes = 0
        self.fail_session_list = False
        self.fail_scenario_for: set[UUID] = set()
        self.fail_objectives = False
        self._claim_lock = asyncio.Lock()

    # ---- seeding ----------------------------------------------------------

    def add_scenario(self, title: str = "River flood", objectives: Optional[list[str]] = None) -> ScenarioContext:
        scenario_id = uuid.uuid4()
        scenario = ScenarioContext(
            id=scenario_id,
            title=title,
            description="Heavy rain upstream; the river is rising through the old town.",
            category="flood",
            objectives=[
                ObjectiveDefinition(id=uuid.uuid4(), objective_key=key, name=key.title(), weight=25)
                for key in (objectives or [])
            ],
        )
        self.scenarios[scenario_id] = scenario
        self.injects[scenario_id] = []
        return scenario

    def add_inject(self, scenario: ScenarioContext, **fields: Any) -> InjectDefinition:
        position = len(self.injects[scenario.id])
        data = {
            "id": uuid.uuid4(),
            "scenario_id": scenario.id,
            "type": "field_update",
            "created_at": T0 + timedelta(seconds=position),
        }
        data.update(fields)
        inject = InjectDefinition(**data)
        self.injects[scenario.id].append(inject)
        return inject

    def add_session(
        self,
        scenario: ScenarioContext,
        started_at: Optional[datetime] = T0,
        status: SessionStatus = SessionStatus.IN_PROGRESS,
        **fields: Any,
    ) -> SessionSnapshot:
        session = SessionSnapshot(
            id=uuid.uuid4(), scenario_id=scenario.id, status=status, started_at=started_at, **fields
        )
        self.sessions[session.id] = session
        self.objectives[session.id] = [
            ObjectiveProgressView(
                session_id=session.id,
                objective_id=o.id,
                objective_key=o.objective_key,
                objective_name=o.name,
                weight=o.weight,
            )
            for o in scenario.objectives
        ]
        return session

    def add_decision(self, session: SessionSnapshot, title: str, description: str = "", **fields: Any) -> DecisionRecord:
        data = {
            "id": uuid.uuid4(),
            "session_id": session.id,
            "title": title,
            "description": description,
            "status": DecisionStatus.EXECUTED,
            "executed_at": T0 + timedelta(minutes=len(self.decisions) + 1),
        }
        data.update(fields)
        decision = DecisionRecord(**data)
        self.decisions[decision.id] = decision
        return decision

    def published_ids(self, session_id: UUID) -> list[UUID]:
        return [inject_id for (sid, inject_id) in self.ledger if sid == session_id]

    def inject_events(self, session_id: UUID) -> list[SessionEventRecord]:
        return [e for e in self.events if e.session_id == session_id and e.event_type == "inject"]

    # ---- sessions / scenarios ---------------------------------------------

    async def list_active_sessions(self) -> list[SessionSnapshot]:
        if self.fail_session_list:
            raise ConnectionError("database unreachable")
        return [s for s in self.sessions.values() if s.status == SessionStatus.IN_PROGRESS]

    async def get_session(self, session_id: UUID) -> Optional[SessionSnapshot]:
        return self.sessions.get(session_id)

    async def get_scenario_context(self, scenario_id: UUID) -> Optional[ScenarioContext]:
        if scenario_id in self.fail_scenario_for:
            raise RuntimeError("scenario read failed")
        return self.scenarios.get(scenario_id)

    async def list_scenario_injects(self, scenario_id: UUID) -> list[InjectDefinition]:
        return list(self.injects.get(scenario_id, []))

    async def update_session_state(self, session_id: UUID, mutator: Callable) -> dict[str, Any]:
        session = self.sessions[session_id]
        new_state = mutator(dict(session.current_state))
        self.sessions[session_id] = session.model_copy(
            update={"current_state": new_state, "state_version": session.state_version + 1}
        )
        return new_state

    async def complete_session(self, session_id: UUID, ended_at: datetime) -> bool:
        session = self.sessions[session_id]
        if session.status not in (SessionStatus.IN_PROGRESS, SessionStatus.PAUSED):
            return False
        self.sessions[session_id] = session.model_copy(update={"status": SessionStatus.COMPLETED})
        return True

    # ---- ledger / events --------------------------------------------------

    async def list_published_injects(self, session_id: UUID) -> list[PublishedInjectView]:
        return [p for (sid, _), p in self.ledger.items() if sid == session_id]

    async def try_claim(
        self,
        session_id: UUID,
        inject_id: UUID,
        trigger_source: str,
        content: dict[str, Any],
        event_payload: dict[str, Any],
    ) -> ClaimResult:
        async with self._claim_lock:
            key = (session_id, inject_id)
            if key in self.ledger:
                return ClaimResult(claimed=False)
            self.ledger[key] = PublishedInjectView(
                session_id=session_id,
                inject_id=inject_id,
                trigger_source=trigger_source,
                content=content,
                published_at=T0,
            )
            event = await self.append_session_event(session_id, "inject", event_payload)
            return ClaimResult(claimed=True, event=event)

    async def append_session_event(
        self,
        session_id: UUID,
        event_type: str,
        payload: dict[str, Any],
        actor_id: Optional[UUID] = None,
    ) -> SessionEventRecord:
        event = SessionEventRecord(
            id=uuid.uuid4(), session_id=session_id, event_type=event_type, actor_id=actor_id, payload=payload
        )
        self.events.append(event)
        return event

    # ---- generation status ------------------------------------------------

    async def list_generation_status(self, session_id: UUID) -> list[GenerationStatusView]:
        return [g for (sid, _), g in self.generation.items() if sid == session_id]

    async def record_generation_failure(
        self,
        session_id: UUID,
        inject_id: UUID,
        stage: str,
        error_code: str,
        stall_threshold: int,
    ) -> GenerationStatusView:
        current = self.generation.get((session_id, inject_id))
        count = (current.failure_count if current else 0) + 1
        if current and current.status == GenerationState.NEEDS_REVIEW:
            status = GenerationState.NEEDS_REVIEW
        elif count >= stall_threshold:
            status = GenerationState.STALLED
        else:
            status = GenerationState.RETRYING
        view = GenerationStatusView(
            session_id=session_id,
            inject_id=inject_id,
            status=status,
            failure_count=count,
            last_stage=stage,
            last_error_code=error_code,
        )
        self.generation[(session_id, inject_id)] = view
        return view

    async def flag_for_review(self, session_id: UUID, inject_id: UUID, reason: str) -> GenerationStatusView:
        view = GenerationStatusView(
            session_id=session_id,
            inject_id=inject_id,
            status=GenerationState.NEEDS_REVIEW,
            review_reason=reason,
        )
        self.generation[(session_id, inject_id)] = view
        return view

    # ---- escalation -------------------------------------------------------

    async def latest_escalation_snapshot(self, session_id: UUID) -> Optional[EscalationSnapshot]:
        rows = [s for s in self.snapshots if s.session_id == session_id]
        return rows[-1] if rows else None

    async def list_escalation_snapshots(self, session_id: UUID, limit: int = 50) -> list[EscalationSnapshot]:
        rows = [s for s in self.snapshots if s.session_id == session_id]
        return list(reversed(rows))[:limit]

    async def save_escalation_snapshot(self, snapshot: EscalationSnapshot) -> EscalationSnapshot:
        stored = snapshot.model_copy(update={"id": snapshot.id or uuid.uuid4()})
        self.snapshots.append(stored)
        return stored

    # ---- decisions --------------------------------------------------------

    async def get_decision(self, decision_id: UUID) -> Optional[DecisionRecord]:
        return self.decisions.get(decision_id)

    async def list_executed_decisions(self, session_id: UUID, limit: int = 20) -> list[DecisionRecord]:
        rows = [
            d for d in self.decisions.values()
            if d.session_id == session_id and d.status == DecisionStatus.EXECUTED
        ]
        return sorted(rows, key=lambda d: d.executed_at or T0, reverse=True)[:limit]

    async def save_decision_classification(
        self, decision_id: UUID, classification: DecisionClassification
    ) -> DecisionClassification:
        decision = self.decisions[decision_id]
        if decision.ai_classification is not None:
            return decision.ai_classification
        self.classification_writes += 1
        self.decisions[decision_id] = decision.model_copy(update={"ai_classification": classification})
        return classification

    # ---- objectives -------------------------------------------------------

    async def list_objective_progress(self, session_id: UUID) -> list[ObjectiveProgressView]:
        return list(self.objectives.get(session_id, []))

    async def apply_objective_adjustments(
        self,
        session_id: UUID,
        adjustments: list[ObjectiveAdjustment],
        now: datetime,
    ) -> list[ObjectiveProgressView]:
        if self.fail_objectives:
            raise RuntimeError("objective table locked")
        rows = self.objectives.get(session_id, [])
        changed, _ = apply_adjustments(rows, adjustments, now)
        by_key = {row.objective_key: row for row in changed}
        self.objectives[session_id] = [by_key.get(row.objective_key, row) for row in rows]
        return list(self.objectives[session_id])


# ---- canned provider replies ----------------------------------------------

def factor_reply(prefix: str, count: int = 3, severity: str = "medium") -> dict[str, Any]:
    return {
        "factors": [
            {"id": f"{prefix}-{i}", "name": f"{prefix} factor {i}", "description": "...", "severity": severity}
            for i in range(1, count + 1)
        ]
    }


def pathway_reply(count: int = 2, de_escalation: bool = False) -> dict[str, Any]:
    pathways = []
    for i in range(1, count + 1):
        item = {"pathway_id": f"p-{i}", "trajectory": f"trajectory {i}"}
        if de_escalation:
            item["mitigating_behaviours"] = ["open shelters"]
            item["emerging_challenges"] = ["shelter overcrowding", "supply gaps", "rumours"]
        else:
            item["trigger_behaviours"] = ["silence from officials"]
        pathways.append(item)
    return {"pathways": pathways}


def escalation_replies(**overrides: Any) -> dict[str, Any]:
    replies = {
        "escalation.factors": factor_reply("esc"),
        "escalation.de_escalation_factors": factor_reply("de"),
        "escalation.pathways": pathway_reply(),
        "escalation.de_escalation_pathways": pathway_reply(de_escalation=True),
    }
    replies.update(overrides)
    return replies


def inject_reply(title: str = "Levee breach reported", theme: str = "citizen_call") -> dict[str, Any]:
    return {
        "title": title,
        "content": "A caller reports water pouring over the east levee near the school.",
        "severity": "high",
        "theme": theme,
        "unresolved_issue": "Nobody has confirmed whether the school was evacuated.",
    }


def classification_reply(
    categories: tuple[str, ...] = ("operational_action",),
    keywords: tuple[str, ...] = ("evacuate",),
    semantic_tags: tuple[str, ...] = (),
) -> dict[str, Any]:
    return {
        "primary_category": categories[0] if categories else "other",
        "categories": list(categories),
        "keywords": list(keywords),
        "semantic_tags": list(semantic_tags),
        "confidence": 0.9,
        "reasoning": "test",
    }
