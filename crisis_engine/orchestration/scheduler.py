"""
Session poller

One periodic timer drives every in-progress session:

    tick -> fetch active sessions -> per session (bounded parallelism):
        elapsed scenario time -> [escalation recompute every Nth tick]
        -> due time-triggered injects -> publisher

A failure inside one session is caught at the session boundary; a failure to
fetch the session list skips the tick. Neither stops the loop.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from crisis_engine.agents.escalation import EscalationStateComputer
from crisis_engine.agents.inject_generation import TriggerContext
from crisis_engine.domains.injects.schemas import TriggerSource
from crisis_engine.domains.injects.triggers import select_time_triggered
from crisis_engine.domains.sessions.clock import ScenarioClock
from crisis_engine.domains.sessions.schemas import SessionSnapshot
from .ports import Clock, EngineStore
from .publisher import InjectPublisher, PublishOutcome

logger = logging.getLogger(__name__)


class SessionFetchFailure(Exception):
    """The active-session list could not be read; the tick is skipped"""


@dataclass
class SessionTickResult:
    session_id: UUID
    elapsed_minutes: float = 0.0
    due: int = 0
    published: list[UUID] = field(default_factory=list)
    escalation_computed: bool = False
    error: Optional[str] = None


@dataclass
class TickReport:
    tick: int
    started_at: datetime
    escalation_due: bool = False
    skipped: bool = False
    sessions: list[SessionTickResult] = field(default_factory=list)

    @property
    def published_count(self) -> int:
        return sum(len(s.published) for s in self.sessions)

    @property
    def failed_sessions(self) -> list[UUID]:
        return [s.session_id for s in self.sessions if s.error]

    def summary(self) -> dict[str, Any]:
        return {
            "tick": self.tick,
            "started_at": self.started_at.isoformat(),
            "escalation_due": self.escalation_due,
            "skipped": self.skipped,
            "sessions": len(self.sessions),
            "published": self.published_count,
            "failed_sessions": [str(s) for s in self.failed_sessions],
        }


class SessionPoller:
    def __init__(
        self,
        store: EngineStore,
        publisher: InjectPublisher,
        escalation: Optional[EscalationStateComputer],
        clock: Clock,
        interval_seconds: float = 30.0,
        escalation_every_n_ticks: int = 10,
        max_concurrency: int = 4,
        enabled: bool = True,
    ) -> None:
        self._store = store
        self._publisher = publisher
        self._escalation = escalation
        self._clock = clock
        self._interval = interval_seconds
        self._escalation_every = max(1, escalation_every_n_ticks)
        self._max_concurrency = max(1, max_concurrency)
        self._enabled = enabled

        self._running = False
        self._task: Optional[asyncio.Task] = None
        self._tick_count = 0
        self._last_report: Optional[TickReport] = None

    @property
    def running(self) -> bool:
        return self._running

    @property
    def status(self) -> dict[str, Any]:
        return {
            "enabled": self._enabled,
            "running": self._running,
            "interval_seconds": self._interval,
            "escalation_every_n_ticks": self._escalation_every,
            "max_concurrency": self._max_concurrency,
            "tick_count": self._tick_count,
            "last_tick": self._last_report.summary() if self._last_report else None,
        }

    async def start(self) -> None:
        if not self._enabled:
            logger.info("Auto injects disabled, session poller not started")
            return
        if self._running:
            return

        logger.info(f"Starting session poller: interval={self._interval}s escalation_every={self._escalation_every}")
        self._running = True
        self._task = asyncio.create_task(self._run_loop())

    async def stop(self) -> None:
        if not self._running:
            return

        logger.info("Stopping session poller")
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Session poller stopped")

    async def _run_loop(self) -> None:
        while self._running:
            try:
                await self.tick()
            except asyncio.CancelledError:
                raise
            except Exception:  # noqa: BLE001
                logger.exception("Session poller tick crashed")
            await asyncio.sleep(self._interval)

    # ========================================================================
    # Tick
    # ========================================================================

    async def tick(self) -> TickReport:
        """Run one polling pass over every in-progress session"""
        self._tick_count += 1
        report = TickReport(
            tick=self._tick_count,
            started_at=self._clock.now(),
            escalation_due=(self._tick_count - 1) % self._escalation_every == 0,
        )

        try:
            sessions = await self._fetch_sessions()
        except SessionFetchFailure as e:
            logger.error(f"Tick {report.tick} skipped: {e}")
            report.skipped = True
            self._last_report = report
            return report

        semaphore = asyncio.Semaphore(self._max_concurrency)

        async def guarded(session: SessionSnapshot) -> SessionTickResult:
            async with semaphore:
                return await self._process_guarded(session, report.escalation_due)

        report.sessions = list(await asyncio.gather(*(guarded(s) for s in sessions)))
        self._last_report = report

        if report.published_count or report.failed_sessions:
            logger.info(
                f"Tick {report.tick}: sessions={len(report.sessions)} published={report.published_count} "
                f"failed={len(report.failed_sessions)}"
            )
        return report

    async def _fetch_sessions(self) -> list[SessionSnapshot]:
        try:
            return await self._store.list_active_sessions()
        except Exception as e:  # noqa: BLE001
            raise SessionFetchFailure(f"active sessions unavailable: {e}") from e

    async def _process_guarded(self, session: SessionSnapshot, escalation_due: bool) -> SessionTickResult:
        result = SessionTickResult(session_id=session.id)
        try:
            await self.process_session(session, escalation_due, result)
        except Exception as e:  # noqa: BLE001
            result.error = type(e).__name__
            logger.exception(f"Session processing failed: session_id={session.id} stage=tick")
        return result

    async def process_session(
        self,
        session: SessionSnapshot,
        escalation_due: bool,
        result: Optional[SessionTickResult] = None,
    ) -> SessionTickResult:
        """
        Time-trigger pass for one session

        Args:
            escalation_due: recompute the escalation snapshot before publishing
        """
        result = result or SessionTickResult(session_id=session.id)
        now = self._clock.now()
        result.elapsed_minutes = ScenarioClock.for_session(session).elapsed_minutes(now)

        scenario = await self._store.get_scenario_context(session.scenario_id)
        if scenario is None:
            logger.warning(f"Scenario missing: session_id={session.id} scenario_id={session.scenario_id}")
            return result

        snapshot = None
        if escalation_due and self._escalation is not None:
            try:
                snapshot = await self._escalation.compute(session)
                result.escalation_computed = snapshot is not None
            except Exception:  # noqa: BLE001
                logger.exception(f"Escalation recompute failed: session_id={session.id} stage=escalation")

        injects = await self._store.list_scenario_injects(session.scenario_id)
        published = await self._store.list_published_injects(session.id)
        due = select_time_triggered(injects, result.elapsed_minutes, (p.inject_id for p in published))
        result.due = len(due)

        trigger = TriggerContext(source=TriggerSource.TIME, elapsed_minutes=result.elapsed_minutes)
        for inject in due:
            outcome = await self._publisher.publish(session, scenario, inject, trigger, snapshot=snapshot)
            if outcome.outcome == PublishOutcome.PUBLISHED:
                result.published.append(inject.id)
        return result
