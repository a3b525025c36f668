"""
Engine dependency interfaces

The scheduler, publisher and evaluators only talk to these protocols, so a
deployment wires the SQL store, Redis fan-out and ChatOpenAI client, while
tests wire in-memory fakes and a settable clock.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Callable, Optional, Protocol, Union
from uuid import UUID

from crisis_engine.domains.decisions.schemas import DecisionClassification, DecisionRecord
from crisis_engine.domains.escalation.schemas import EscalationSnapshot
from crisis_engine.domains.injects.schemas import (
    ClaimResult,
    GenerationStatusView,
    PublishedInjectView,
    SessionEventRecord,
)
from crisis_engine.domains.objectives.schemas import ObjectiveAdjustment, ObjectiveProgressView
from crisis_engine.domains.scenarios.schemas import InjectDefinition, ScenarioContext
from crisis_engine.domains.sessions.schemas import SessionSnapshot

StateMutator = Callable[[dict[str, Any]], dict[str, Any]]


class Clock(Protocol):
    def now(self) -> datetime: ...


class ChatClient(Protocol):
    async def complete_json(
        self,
        *,
        task: str,
        system_prompt: str,
        user_prompt: str,
    ) -> Union[dict[str, Any], list[Any]]: ...


class FanoutChannel(Protocol):
    async def publish(
        self,
        session_id: UUID,
        event_type: str,
        payload: dict[str, Any],
        event_id: Optional[UUID] = None,
    ) -> int: ...


class EngineStore(Protocol):
    """Durable state the engine reads and extends; the only source of authority"""

    # sessions / scenarios
    async def list_active_sessions(self) -> list[SessionSnapshot]: ...

    async def get_session(self, session_id: UUID) -> Optional[SessionSnapshot]: ...

    async def get_scenario_context(self, scenario_id: UUID) -> Optional[ScenarioContext]: ...

    async def list_scenario_injects(self, scenario_id: UUID) -> list[InjectDefinition]: ...

    async def update_session_state(self, session_id: UUID, mutator: StateMutator) -> dict[str, Any]: ...

    async def complete_session(self, session_id: UUID, ended_at: datetime) -> bool: ...

    # ledger / event log
    async def list_published_injects(self, session_id: UUID) -> list[PublishedInjectView]: ...

    async def try_claim(
        self,
        session_id: UUID,
        inject_id: UUID,
        trigger_source: str,
        content: dict[str, Any],
        event_payload: dict[str, Any],
    ) -> ClaimResult: ...

    async def append_session_event(
        self,
        session_id: UUID,
        event_type: str,
        payload: dict[str, Any],
        actor_id: Optional[UUID] = None,
    ) -> SessionEventRecord: ...

    # generation status
    async def list_generation_status(self, session_id: UUID) -> list[GenerationStatusView]: ...

    async def record_generation_failure(
        self,
        session_id: UUID,
        inject_id: UUID,
        stage: str,
        error_code: str,
        stall_threshold: int,
    ) -> GenerationStatusView: ...

    async def flag_for_review(self, session_id: UUID, inject_id: UUID, reason: str) -> GenerationStatusView: ...

    # escalation
    async def latest_escalation_snapshot(self, session_id: UUID) -> Optional[EscalationSnapshot]: ...

    async def list_escalation_snapshots(self, session_id: UUID, limit: int = 50) -> list[EscalationSnapshot]: ...

    async def save_escalation_snapshot(self, snapshot: EscalationSnapshot) -> EscalationSnapshot: ...

    # decisions
    async def get_decision(self, decision_id: UUID) -> Optional[DecisionRecord]: ...

    async def list_executed_decisions(self, session_id: UUID, limit: int = 20) -> list[DecisionRecord]: ...

    async def save_decision_classification(
        self, decision_id: UUID, classification: DecisionClassification
    ) -> DecisionClassification: ...

    # objectives
    async def list_objective_progress(self, session_id: UUID) -> list[ObjectiveProgressView]: ...

    async def apply_objective_adjustments(
        self,
        session_id: UUID,
        adjustments: list[ObjectiveAdjustment],
        now: datetime,
    ) -> list[ObjectiveProgressView]: ...
