"""Tests for the SQL ledger claim: statement shape and transaction handling."""
from __future__ import annotations

import uuid
from datetime import datetime, timezone

import pytest
from sqlalchemy.dialects import postgresql

from crisis_engine.domains.injects.repository import InjectLedgerRepository
from crisis_engine.orchestration.store import SqlEngineStore


class _DummyResult:
    def __init__(self, value) -> None:
        self.value = value

    def scalar_one_or_none(self):
        return self.value


class _DummyDbSession:
    """Stands in for AsyncSession; the claim insert returns a row id unless `conflict` is set."""

    def __init__(self, conflict: bool = False, fail_event_write: bool = False) -> None:
        self.conflict = conflict
        self.fail_event_write = fail_event_write
        self.statements: list = []
        self.added: list = []
        self.commits = 0
        self.rollbacks = 0

    async def __aenter__(self) -> "_DummyDbSession":
        return self

    async def __aexit__(self, *exc) -> None:
        return None

    async def execute(self, stmt) -> _DummyResult:
        self.statements.append(stmt)
        return _DummyResult(None if self.conflict else uuid.uuid4())

    def add(self, record) -> None:
        self.added.append(record)

    async def flush(self) -> None:
        if self.fail_event_write:
            raise ConnectionError("connection reset during event insert")
        for record in self.added:
            if record.id is None:
                record.id = uuid.uuid4()

    async def refresh(self, record) -> None:
        record.created_at = datetime(2026, 1, 5, 9, 10, tzinfo=timezone.utc)

    async def commit(self) -> None:
        self.commits += 1

    async def rollback(self) -> None:
        self.rollbacks += 1


def _store(db: _DummyDbSession) -> SqlEngineStore:
    return SqlEngineStore(session_factory=lambda: db)


def _claim_args() -> dict:
    return {
        "session_id": uuid.uuid4(),
        "inject_id": uuid.uuid4(),
        "trigger_source": "time",
        "content": {"title": "Levee breach", "content": "Water over the east levee"},
        "event_payload": {"title": "Levee breach"},
    }


@pytest.mark.asyncio
async def test_claim_statement_is_conditional_insert_returning_id() -> None:
    db = _DummyDbSession()
    args = _claim_args()

    claimed = await InjectLedgerRepository(db).claim(
        args["session_id"], args["inject_id"], args["trigger_source"], args["content"]
    )

    assert claimed
    sql = " ".join(str(db.statements[0].compile(dialect=postgresql.dialect())).split())
    assert sql.startswith("INSERT INTO session_published_injects")
    assert "ON CONFLICT (session_id, inject_id) DO NOTHING" in sql
    assert sql.endswith("RETURNING session_published_injects.id")


@pytest.mark.asyncio
async def test_claim_and_event_commit_together() -> None:
    db = _DummyDbSession()
    args = _claim_args()

    result = await _store(db).try_claim(**args)

    assert result.claimed
    assert result.event.event_type == "inject"
    assert result.event.payload == args["event_payload"]
    assert result.event.session_id == args["session_id"]
    assert (db.commits, db.rollbacks) == (1, 0)


@pytest.mark.asyncio
async def test_lost_claim_writes_no_event() -> None:
    db = _DummyDbSession(conflict=True)

    result = await _store(db).try_claim(**_claim_args())

    assert not result.claimed
    assert result.event is None
    assert db.added == []
    assert (db.commits, db.rollbacks) == (0, 1)


@pytest.mark.asyncio
async def test_failed_event_write_rolls_back_the_claim() -> None:
    db = _DummyDbSession(fail_event_write=True)

    with pytest.raises(ConnectionError):
        await _store(db).try_claim(**_claim_args())

    assert db.commits == 0
    assert db.rollbacks == 1
