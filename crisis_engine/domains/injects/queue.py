"""Trainer-facing inject queue; provider errors surface only as passive status flags."""
from __future__ import annotations

from typing import Iterable, Optional

from crisis_engine.domains.scenarios.schemas import InjectDefinition
from crisis_engine.domains.injects.schemas import (
    GenerationState,
    GenerationStatusView,
    InjectQueueItem,
    InjectQueueStatus,
    PublishedInjectView,
)
from crisis_engine.domains.injects.triggers import order_by_creation


def _queue_status(
    inject: InjectDefinition,
    elapsed_minutes: float,
    published: Optional[PublishedInjectView],
    generation: Optional[GenerationStatusView],
) -> InjectQueueStatus:
    if published is not None:
        return InjectQueueStatus.PUBLISHED
    if generation is not None:
        if generation.status == GenerationState.NEEDS_REVIEW:
            return InjectQueueStatus.NEEDS_REVIEW
        if generation.status == GenerationState.STALLED:
            return InjectQueueStatus.STALLED
        return InjectQueueStatus.PENDING_GENERATION
    if inject.trigger_time_minutes is not None and elapsed_minutes >= inject.trigger_time_minutes:
        return InjectQueueStatus.PENDING_GENERATION
    return InjectQueueStatus.AWAITING_TRIGGER


def build_inject_queue(
    injects: Iterable[InjectDefinition],
    published: Iterable[PublishedInjectView],
    statuses: Iterable[GenerationStatusView],
    elapsed_minutes: float,
) -> list[InjectQueueItem]:
    published_by_id = {p.inject_id: p for p in published}
    status_by_id = {s.inject_id: s for s in statuses}

    items: list[InjectQueueItem] = []
    for inject in order_by_creation(list(injects)):
        ledger = published_by_id.get(inject.id)
        generation = status_by_id.get(inject.id)
        title = inject.title
        if ledger is not None:
            title = ledger.content.get("title") or title
        items.append(
            InjectQueueItem(
                inject_id=inject.id,
                title=title,
                scope=inject.scope,
                severity=inject.severity,
                trigger_time_minutes=inject.trigger_time_minutes,
                conditional=inject.trigger_condition is not None,
                status=_queue_status(inject, elapsed_minutes, ledger, generation),
                failure_count=generation.failure_count if generation else 0,
                published_at=ledger.published_at if ledger else None,
            )
        )
    return items
