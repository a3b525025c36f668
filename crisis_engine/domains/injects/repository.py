from __future__ import annotations

from typing import Any, Optional
from uuid import UUID

from sqlalchemy import case, func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from .models import InjectGenerationStatus, PublishedInject, SessionEvent


class InjectLedgerRepository:
    """Ledger, event log and generation-status access for one unit of work"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def claim(
        self,
        session_id: UUID,
        inject_id: UUID,
        trigger_source: str,
        content: dict[str, Any],
    ) -> bool:
        """
        INSERT ... ON CONFLICT DO NOTHING against the (session_id, inject_id) key

        Returns:
            True only for the single caller whose row was inserted
        """
        stmt = (
            pg_insert(PublishedInject)
            .values(
                session_id=session_id,
                inject_id=inject_id,
                trigger_source=trigger_source,
                content=content,
            )
            .on_conflict_do_nothing(index_elements=["session_id", "inject_id"])
            .returning(PublishedInject.id)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none() is not None

    async def list_published(self, session_id: UUID) -> list[PublishedInject]:
        result = await self.db.execute(
            select(PublishedInject)
            .where(PublishedInject.session_id == session_id)
            .order_by(PublishedInject.published_at)
        )
        return list(result.scalars().all())

    async def append_event(
        self,
        session_id: UUID,
        event_type: str,
        payload: dict[str, Any],
        actor_id: Optional[UUID] = None,
    ) -> SessionEvent:
        event = SessionEvent(
            session_id=session_id,
            event_type=event_type,
            actor_id=actor_id,
            payload=payload,
        )
        self.db.add(event)
        await self.db.flush()
        await self.db.refresh(event)
        return event

    # ==================== Generation status ====================

    async def list_generation_status(self, session_id: UUID) -> list[InjectGenerationStatus]:
        result = await self.db.execute(
            select(InjectGenerationStatus).where(InjectGenerationStatus.session_id == session_id)
        )
        return list(result.scalars().all())

    async def record_generation_failure(
        self,
        session_id: UUID,
        inject_id: UUID,
        stage: str,
        error_code: str,
        stall_threshold: int,
    ) -> InjectGenerationStatus:
        """Atomic failure counter; status turns `stalled` at the threshold."""
        table = InjectGenerationStatus
        stmt = pg_insert(table).values(
            session_id=session_id,
            inject_id=inject_id,
            status="stalled" if stall_threshold <= 1 else "retrying",
            failure_count=1,
            last_stage=stage,
            last_error_code=error_code,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["session_id", "inject_id"],
            set_={
                "failure_count": table.failure_count + 1,
                "last_stage": stmt.excluded.last_stage,
                "last_error_code": stmt.excluded.last_error_code,
                "status": case(
                    (table.status == "needs_review", "needs_review"),
                    (table.failure_count + 1 >= stall_threshold, "stalled"),
                    else_="retrying",
                ),
                "updated_at": func.now(),
            },
        ).returning(table)
        result = await self.db.execute(stmt)
        return result.scalar_one()

    async def flag_for_review(self, session_id: UUID, inject_id: UUID, reason: str) -> InjectGenerationStatus:
        table = InjectGenerationStatus
        stmt = pg_insert(table).values(
            session_id=session_id,
            inject_id=inject_id,
            status="needs_review",
            failure_count=0,
            review_reason=reason,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["session_id", "inject_id"],
            set_={"status": "needs_review", "review_reason": reason, "updated_at": func.now()},
        ).returning(table)
        result = await self.db.execute(stmt)
        return result.scalar_one()
