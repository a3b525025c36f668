"""
Engine operator API

Prefix: /engine
- decision executed hook (synchronous evaluation)
- inject queue, escalation snapshots, theme usage per session
- poller status and manual tick
"""
from __future__ import annotations

from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from crisis_engine.core.exceptions import NotFoundError
from crisis_engine.domains.escalation.schemas import EscalationSnapshot
from crisis_engine.domains.injects.queue import build_inject_queue
from crisis_engine.domains.injects.schemas import InjectQueueItem
from crisis_engine.domains.injects.themes import ThemeUsage, compute_theme_usage
from crisis_engine.domains.sessions.clock import ScenarioClock
from crisis_engine.domains.sessions.schemas import SessionSnapshot
from .evaluator import DecisionEvaluationResult
from .runtime import EngineRuntime, get_engine_runtime


router = APIRouter(prefix="/engine", tags=["engine"])


async def _session_or_404(runtime: EngineRuntime, session_id: UUID) -> SessionSnapshot:
    session = await runtime.store.get_session(session_id)
    if session is None:
        raise NotFoundError("Session", str(session_id))
    return session


@router.post("/decisions/{decision_id}/executed", response_model=DecisionEvaluationResult)
async def decision_executed(
    decision_id: UUID,
    runtime: EngineRuntime = Depends(get_engine_runtime),
) -> DecisionEvaluationResult:
    """Evaluate an executed decision: conditional injects, objectives, state"""
    return await runtime.evaluator.on_decision_executed(decision_id)


@router.get("/sessions/{session_id}/inject-queue", response_model=list[InjectQueueItem])
async def get_inject_queue(
    session_id: UUID,
    runtime: EngineRuntime = Depends(get_engine_runtime),
) -> list[InjectQueueItem]:
    session = await _session_or_404(runtime, session_id)
    injects = await runtime.store.list_scenario_injects(session.scenario_id)
    published = await runtime.store.list_published_injects(session_id)
    statuses = await runtime.store.list_generation_status(session_id)
    elapsed = ScenarioClock.for_session(session).elapsed_minutes(runtime.clock.now())
    return build_inject_queue(injects, published, statuses, elapsed)


@router.get("/sessions/{session_id}/escalation/latest", response_model=EscalationSnapshot)
async def get_latest_escalation(
    session_id: UUID,
    runtime: EngineRuntime = Depends(get_engine_runtime),
) -> EscalationSnapshot:
    await _session_or_404(runtime, session_id)
    snapshot = await runtime.store.latest_escalation_snapshot(session_id)
    if snapshot is None:
        raise NotFoundError("EscalationSnapshot", str(session_id))
    return snapshot


@router.get("/sessions/{session_id}/escalation", response_model=list[EscalationSnapshot])
async def list_escalation_history(
    session_id: UUID,
    limit: int = Query(20, ge=1, le=200),
    runtime: EngineRuntime = Depends(get_engine_runtime),
) -> list[EscalationSnapshot]:
    await _session_or_404(runtime, session_id)
    return await runtime.store.list_escalation_snapshots(session_id, limit)


@router.get("/sessions/{session_id}/theme-usage", response_model=ThemeUsage)
async def get_theme_usage(
    session_id: UUID,
    runtime: EngineRuntime = Depends(get_engine_runtime),
) -> ThemeUsage:
    await _session_or_404(runtime, session_id)
    published = await runtime.store.list_published_injects(session_id)
    return compute_theme_usage(published)


@router.get("/scheduler/status")
async def get_scheduler_status(
    runtime: EngineRuntime = Depends(get_engine_runtime),
) -> dict[str, Any]:
    return runtime.poller.status


@router.post("/scheduler/tick")
async def run_scheduler_tick(
    runtime: EngineRuntime = Depends(get_engine_runtime),
) -> dict[str, Any]:
    """Run one poller pass now, independent of the timer"""
    report = await runtime.poller.tick()
    return report.summary()
