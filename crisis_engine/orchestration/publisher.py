"""
Inject publishing pipeline

Shared by the timer path and the decision path:

    content (static or generated) -> atomic ledger claim + event log -> state note -> fan-out

The claim is the last step before anything irreversible happens; generation
happens before it and never touches the ledger.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional
from uuid import UUID

from crisis_engine.agents.exceptions import ProviderError
from crisis_engine.agents.inject_generation import GenerationContext, InjectContentGenerator, TriggerContext
from crisis_engine.domains.escalation.schemas import EscalationSnapshot
from crisis_engine.domains.injects.schemas import ClaimResult, InjectContent, SessionEventType
from crisis_engine.domains.injects.themes import compute_theme_usage, summarize_decision_history
from crisis_engine.domains.scenarios.schemas import InjectDefinition, ScenarioContext
from crisis_engine.domains.sessions.schemas import SessionSnapshot
from crisis_engine.domains.sessions.state_rules import apply_inject_to_state
from .ports import Clock, EngineStore, FanoutChannel

logger = logging.getLogger(__name__)


class PublishOutcome(str, Enum):
    PUBLISHED = "published"
    ALREADY_PUBLISHED = "already_published"
    GENERATION_FAILED = "generation_failed"
    AI_DISABLED = "ai_disabled"


@dataclass
class PublishResult:
    inject_id: UUID
    outcome: PublishOutcome
    event_id: Optional[UUID] = None

    @property
    def published(self) -> bool:
        return self.outcome == PublishOutcome.PUBLISHED


class PublishGatekeeper:
    """At-most-once publication per (session, inject), backed by the store's conditional insert"""

    def __init__(self, store: EngineStore) -> None:
        self._store = store

    async def try_claim(
        self,
        session_id: UUID,
        inject_id: UUID,
        trigger_source: str,
        content: InjectContent,
    ) -> ClaimResult:
        result = await self._store.try_claim(
            session_id,
            inject_id,
            trigger_source,
            content.model_dump(mode="json"),
            content.event_payload(inject_id),
        )
        if not result.claimed:
            # another path won the race; normal skip
            logger.debug(f"Claim conflict: session_id={session_id} inject_id={inject_id} stage=claim")
        return result


class InjectPublisher:
    def __init__(
        self,
        store: EngineStore,
        gatekeeper: PublishGatekeeper,
        generator: Optional[InjectContentGenerator],
        fanout: FanoutChannel,
        clock: Clock,
        generation_failure_flag_threshold: int = 3,
        decision_history_limit: int = 20,
    ) -> None:
        self._store = store
        self._gatekeeper = gatekeeper
        self._generator = generator
        self._fanout = fanout
        self._clock = clock
        self._flag_threshold = generation_failure_flag_threshold
        self._decision_history_limit = decision_history_limit

    async def publish(
        self,
        session: SessionSnapshot,
        scenario: ScenarioContext,
        inject: InjectDefinition,
        trigger: TriggerContext,
        snapshot: Optional[EscalationSnapshot] = None,
    ) -> PublishResult:
        """
        Run one inject through the pipeline

        Args:
            snapshot: escalation snapshot computed this tick; the latest stored one otherwise

        Returns:
            PublishResult; generation failures are reported, not raised
        """
        stage = f"{trigger.source.value}_trigger"

        if inject.has_static_content:
            content = InjectContent(
                title=inject.title,
                content=inject.content,
                severity=inject.severity,
                theme=inject.type,
                scope=inject.scope,
            )
        elif self._generator is None:
            logger.warning(
                f"AI disabled, inject left pending: session_id={session.id} inject_id={inject.id} stage={stage}"
            )
            return PublishResult(inject.id, PublishOutcome.AI_DISABLED)
        else:
            try:
                content = await self._generate(session, scenario, inject, trigger, snapshot)
            except ProviderError as e:
                status = await self._store.record_generation_failure(
                    session.id, inject.id, "generation", e.error_code, self._flag_threshold
                )
                logger.warning(
                    f"Generation failed, will retry: session_id={session.id} inject_id={inject.id} "
                    f"stage={stage}.generation error_code={e.error_code} attempts={status.failure_count} "
                    f"status={status.status.value}"
                )
                return PublishResult(inject.id, PublishOutcome.GENERATION_FAILED)

        claim = await self._gatekeeper.try_claim(session.id, inject.id, trigger.source.value, content)
        if not claim.claimed:
            return PublishResult(inject.id, PublishOutcome.ALREADY_PUBLISHED)

        event = claim.event
        logger.info(
            f"Inject published: session_id={session.id} inject_id={inject.id} stage={stage} "
            f"event_id={event.id if event else None} generated={content.generated}"
        )

        await self._note_in_state(session.id, inject.id, content)
        await self._fan_out(session.id, inject.id, content, event.id if event else None)
        return PublishResult(inject.id, PublishOutcome.PUBLISHED, event.id if event else None)

    async def _generate(
        self,
        session: SessionSnapshot,
        scenario: ScenarioContext,
        inject: InjectDefinition,
        trigger: TriggerContext,
        snapshot: Optional[EscalationSnapshot],
    ) -> InjectContent:
        if snapshot is None:
            snapshot = await self._store.latest_escalation_snapshot(session.id)
        published = await self._store.list_published_injects(session.id)
        decisions = await self._store.list_executed_decisions(session.id, self._decision_history_limit)

        ctx = GenerationContext(
            scenario=scenario,
            inject=inject,
            trigger=trigger,
            snapshot=snapshot,
            theme_usage=compute_theme_usage(published),
            decision_summary=summarize_decision_history(decisions),
        )
        return await self._generator.generate(ctx)

    async def _note_in_state(self, session_id: UUID, inject_id: UUID, content: InjectContent) -> None:
        published_at = self._clock.now()
        try:
            await self._store.update_session_state(
                session_id,
                lambda state: apply_inject_to_state(
                    state,
                    inject_id=str(inject_id),
                    title=content.title,
                    severity=content.severity,
                    published_at=published_at,
                ),
            )
        except Exception:  # noqa: BLE001
            logger.warning(
                f"current_state not updated after publish: session_id={session_id} inject_id={inject_id} stage=state",
                exc_info=True,
            )

    async def _fan_out(
        self,
        session_id: UUID,
        inject_id: UUID,
        content: InjectContent,
        event_id: Optional[UUID],
    ) -> None:
        try:
            await self._fanout.publish(
                session_id,
                SessionEventType.INJECT.value,
                content.event_payload(inject_id),
                event_id=event_id,
            )
        except Exception:  # noqa: BLE001
            # the event log row is durable; clients catch up from it
            logger.error(
                f"Fan-out failed: session_id={session_id} inject_id={inject_id} event_id={event_id} stage=fanout",
                exc_info=True,
            )
