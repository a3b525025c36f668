"""
Decision-trigger evaluator

Runs once per executed decision. Three independent effects follow from it:

    1. conditional injects whose trigger matches the classification are published
    2. objective progress is adjusted by the impact rules
    3. current_state reflects the decision

A failure in one is logged and never blocks the others.
"""
from __future__ import annotations

import logging
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from crisis_engine.agents.decision_classification import DecisionClassifier
from crisis_engine.agents.exceptions import ProviderError
from crisis_engine.agents.inject_generation import TriggerContext
from crisis_engine.core.exceptions import ConflictError, NotFoundError
from crisis_engine.domains.decisions.schemas import DecisionClassification, DecisionRecord, DecisionStatus
from crisis_engine.domains.injects.schemas import GenerationState, TriggerSource
from crisis_engine.domains.injects.triggers import (
    DecisionFloodGate,
    TriggerCondition,
    TriggerConditionInvalid,
    parse_trigger_condition,
    select_decision_triggered,
)
from crisis_engine.domains.objectives.rules import score_decision_impact
from crisis_engine.domains.objectives.scoring import all_objectives_resolved
from crisis_engine.domains.scenarios.schemas import InjectDefinition
from crisis_engine.domains.sessions.schemas import SessionSnapshot, SessionStatus
from crisis_engine.domains.sessions.clock import ScenarioClock
from crisis_engine.domains.sessions.state_rules import apply_decision_to_state
from .ports import Clock, EngineStore
from .publisher import InjectPublisher

logger = logging.getLogger(__name__)


class DecisionEvaluationResult(BaseModel):
    decision_id: UUID
    session_id: UUID
    classification: Optional[DecisionClassification] = None
    matched_inject_ids: list[UUID] = Field(default_factory=list)
    published_inject_ids: list[UUID] = Field(default_factory=list)
    flagged_inject_ids: list[UUID] = Field(default_factory=list)
    objective_adjustments: int = 0
    session_completed: bool = False
    failed_stages: list[str] = Field(default_factory=list)


class DecisionTriggerEvaluator:
    def __init__(
        self,
        store: EngineStore,
        classifier: Optional[DecisionClassifier],
        publisher: InjectPublisher,
        clock: Clock,
        max_injects_per_decision: int = 2,
    ) -> None:
        self._store = store
        self._classifier = classifier
        self._publisher = publisher
        self._clock = clock
        self._max_injects = max_injects_per_decision

    async def on_decision_executed(self, decision_id: UUID) -> DecisionEvaluationResult:
        """
        Evaluate one executed decision

        Raises:
            NotFoundError: decision or session missing
            ConflictError: decision is not in executed status
        """
        decision = await self._store.get_decision(decision_id)
        if decision is None:
            raise NotFoundError("Decision", str(decision_id))
        if decision.status != DecisionStatus.EXECUTED:
            raise ConflictError(
                "DECISION_NOT_EXECUTED",
                f"Decision {decision_id} is {decision.status.value}, only executed decisions trigger evaluation",
            )

        session = await self._store.get_session(decision.session_id)
        if session is None:
            raise NotFoundError("Session", str(decision.session_id))

        result = DecisionEvaluationResult(decision_id=decision.id, session_id=session.id)

        classification = await self._classification(decision, result)
        if classification is not None:
            result.classification = classification

            try:
                await self._publish_matches(session, decision, classification, result)
            except Exception:  # noqa: BLE001
                result.failed_stages.append("decision_trigger")
                logger.exception(
                    f"Decision trigger failed: session_id={session.id} decision_id={decision.id} stage=decision_trigger"
                )

            try:
                await self._score_objectives(session, decision, classification, result)
            except Exception:  # noqa: BLE001
                result.failed_stages.append("objective_scoring")
                logger.exception(
                    f"Objective scoring failed: session_id={session.id} decision_id={decision.id} stage=objective_scoring"
                )

        # the participant's own decision type drives state; classification only fills a gap
        decision_type = decision.decision_type or (classification.primary_category if classification else None)
        try:
            await self._store.update_session_state(
                session.id,
                lambda state: apply_decision_to_state(
                    state,
                    decision_id=str(decision.id),
                    decision_type=decision_type,
                    title=decision.title,
                    description=decision.description,
                    resources_needed=decision.resources_needed,
                    executed_at=decision.executed_at or self._clock.now(),
                ),
            )
        except Exception:  # noqa: BLE001
            result.failed_stages.append("state_update")
            logger.exception(
                f"State update failed: session_id={session.id} decision_id={decision.id} stage=state_update"
            )

        logger.info(
            f"Decision evaluated: session_id={session.id} decision_id={decision.id} "
            f"matched={len(result.matched_inject_ids)} published={len(result.published_inject_ids)} "
            f"adjustments={result.objective_adjustments} failed={result.failed_stages}"
        )
        return result

    # ========================================================================
    # Classification
    # ========================================================================

    async def _classification(
        self,
        decision: DecisionRecord,
        result: DecisionEvaluationResult,
    ) -> Optional[DecisionClassification]:
        if decision.ai_classification is not None:
            return decision.ai_classification

        if self._classifier is None:
            result.failed_stages.append("classification")
            logger.warning(
                f"AI disabled, decision not classified: session_id={decision.session_id} "
                f"decision_id={decision.id} stage=classification"
            )
            return None

        try:
            fresh = await self._classifier.classify(decision)
        except ProviderError as e:
            result.failed_stages.append("classification")
            logger.warning(
                f"Classification failed: session_id={decision.session_id} decision_id={decision.id} "
                f"stage=classification error_code={e.error_code}"
            )
            return None

        # first writer wins; a concurrent evaluation may have stored one already
        return await self._store.save_decision_classification(decision.id, fresh)

    # ========================================================================
    # Conditional injects
    # ========================================================================

    async def _compile_conditions(
        self,
        session: SessionSnapshot,
        injects: list[InjectDefinition],
        published_ids: set[UUID],
        result: DecisionEvaluationResult,
    ) -> list[tuple[InjectDefinition, TriggerCondition]]:
        statuses = await self._store.list_generation_status(session.id)
        needs_review = {s.inject_id for s in statuses if s.status == GenerationState.NEEDS_REVIEW}

        compiled: list[tuple[InjectDefinition, TriggerCondition]] = []
        for inject in injects:
            if not inject.trigger_condition or inject.id in published_ids or inject.id in needs_review:
                continue
            try:
                condition = parse_trigger_condition(inject.trigger_condition)
            except TriggerConditionInvalid as e:
                await self._store.flag_for_review(session.id, inject.id, e.reason)
                result.flagged_inject_ids.append(inject.id)
                logger.warning(
                    f"Invalid trigger condition flagged for review: session_id={session.id} "
                    f"inject_id={inject.id} reason={e.reason}"
                )
                continue
            if condition is not None:
                compiled.append((inject, condition))
        return compiled

    async def _publish_matches(
        self,
        session: SessionSnapshot,
        decision: DecisionRecord,
        classification: DecisionClassification,
        result: DecisionEvaluationResult,
    ) -> None:
        if session.status not in (SessionStatus.IN_PROGRESS, SessionStatus.PAUSED):
            logger.info(f"Session not running, conditional injects skipped: session_id={session.id}")
            return

        scenario = await self._store.get_scenario_context(session.scenario_id)
        if scenario is None:
            logger.warning(f"Scenario missing: session_id={session.id} scenario_id={session.scenario_id}")
            return

        injects = await self._store.list_scenario_injects(session.scenario_id)
        published = await self._store.list_published_injects(session.id)
        published_ids = {p.inject_id for p in published}

        compiled = await self._compile_conditions(session, injects, published_ids, result)
        matches = select_decision_triggered(compiled, classification.model_dump(), published_ids)
        result.matched_inject_ids = [m.inject.id for m in matches]

        trigger = TriggerContext(
            source=TriggerSource.DECISION,
            elapsed_minutes=ScenarioClock.for_session(session).elapsed_minutes(self._clock.now()),
            decision=decision,
            classification=classification,
        )
        gate = DecisionFloodGate(self._max_injects)
        for match in matches:
            if gate.exhausted:
                break
            if not gate.admits(match):
                continue
            outcome = await self._publisher.publish(session, scenario, match.inject, trigger)
            if outcome.published:
                gate.record_published(match)
                result.published_inject_ids.append(match.inject.id)

    # ========================================================================
    # Objectives
    # ========================================================================

    async def _score_objectives(
        self,
        session: SessionSnapshot,
        decision: DecisionRecord,
        classification: DecisionClassification,
        result: DecisionEvaluationResult,
    ) -> None:
        adjustments = score_decision_impact(decision, classification)
        if not adjustments:
            return

        now = self._clock.now()
        rows = await self._store.apply_objective_adjustments(session.id, adjustments, now)
        result.objective_adjustments = len(adjustments)

        if session.auto_complete_on_objectives and all_objectives_resolved(rows):
            result.session_completed = await self._store.complete_session(session.id, now)
            if result.session_completed:
                logger.info(f"All objectives resolved, session completed: session_id={session.id}")
