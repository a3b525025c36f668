"""
Engine runtime

Wires the SQL store, Redis fan-out and LLM client into the poller and the
decision evaluator. Without an API key every AI path is disabled: static
injects still publish, generated ones stay pending.
"""
from __future__ import annotations

import logging
from typing import Optional

from crisis_engine.agents.decision_classification import DecisionClassifier
from crisis_engine.agents.escalation import EscalationStateComputer
from crisis_engine.agents.inject_generation import InjectContentGenerator
from crisis_engine.core.config import Settings, settings as default_settings
from crisis_engine.core.fanout import fanout_channel
from crisis_engine.domains.sessions.clock import SystemClock
from crisis_engine.infra.llm_client import build_json_chat_client
from .evaluator import DecisionTriggerEvaluator
from .ports import ChatClient, Clock, EngineStore, FanoutChannel
from .publisher import InjectPublisher, PublishGatekeeper
from .scheduler import SessionPoller
from .store import SqlEngineStore

logger = logging.getLogger(__name__)


class EngineRuntime:
    def __init__(
        self,
        store: EngineStore,
        fanout: FanoutChannel,
        llm: Optional[ChatClient],
        clock: Clock,
        settings: Settings,
    ) -> None:
        self.store = store
        self.fanout = fanout
        self.clock = clock
        self.settings = settings

        generator = InjectContentGenerator(llm) if llm is not None else None
        classifier = DecisionClassifier(llm) if llm is not None else None
        escalation = (
            EscalationStateComputer(store, llm, clock, recent_inject_window=settings.recent_inject_window)
            if llm is not None
            else None
        )

        self.gatekeeper = PublishGatekeeper(store)
        self.publisher = InjectPublisher(
            store,
            self.gatekeeper,
            generator,
            fanout,
            clock,
            generation_failure_flag_threshold=settings.generation_failure_flag_threshold,
        )
        self.evaluator = DecisionTriggerEvaluator(
            store,
            classifier,
            self.publisher,
            clock,
            max_injects_per_decision=settings.max_decision_injects_per_trigger,
        )
        self.poller = SessionPoller(
            store,
            self.publisher,
            escalation,
            clock,
            interval_seconds=settings.poll_interval_seconds,
            escalation_every_n_ticks=settings.escalation_every_n_ticks,
            max_concurrency=settings.scheduler_max_concurrency,
            enabled=settings.enable_auto_injects,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "EngineRuntime":
        llm = build_json_chat_client(settings)
        if llm is None:
            logger.warning("No LLM API key configured, AI generation disabled")
        return cls(SqlEngineStore(), fanout_channel, llm, SystemClock(), settings)

    async def start(self) -> None:
        await self.poller.start()

    async def stop(self) -> None:
        await self.poller.stop()


# global singleton
_runtime: Optional[EngineRuntime] = None


async def get_engine_runtime() -> EngineRuntime:
    global _runtime
    if _runtime is None:
        _runtime = EngineRuntime.from_settings(default_settings)
        await _runtime.start()
    return _runtime


async def shutdown_engine_runtime() -> None:
    global _runtime
    if _runtime:
        await _runtime.stop()
        _runtime = None
