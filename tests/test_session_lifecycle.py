"""Unit tests for session lifecycle transitions and pause accounting."""
from __future__ import annotations

import uuid
from types import SimpleNamespace
from typing import Any

import pytest

from crisis_engine.core.exceptions import ConflictError
from crisis_engine.domains.sessions.schemas import SessionStatus
from crisis_engine.domains.sessions.service import SessionLifecycleService

from tests.fakes import FakeClock, T0


class _DummySessionRepo:
    def __init__(self, session: SimpleNamespace) -> None:
        self.session = session

    async def get_by_id(self, session_id, for_update: bool = False):
        return self.session if session_id == self.session.id else None

    async def set_status(self, session, status: str, *, started_at=None, ended_at=None):
        session.status = status
        if started_at is not None:
            session.started_at = started_at
        if ended_at is not None:
            session.ended_at = ended_at
        return session


class _DummyScenarioRepo:
    def __init__(self, initial_state: dict[str, Any]) -> None:
        self.scenario = SimpleNamespace(id=uuid.uuid4(), initial_state=initial_state)

    async def get_by_id(self, scenario_id):
        return self.scenario

    async def list_objectives(self, scenario_id):
        return ["evacuation", "media"]


class _DummyObjectiveRepo:
    def __init__(self) -> None:
        self.initialised: list[Any] = []

    async def initialize_for_session(self, session_id, objectives) -> int:
        self.initialised.extend(objectives)
        return len(objectives)


def _service(status: str = "scheduled") -> tuple[SessionLifecycleService, SimpleNamespace, FakeClock, _DummyObjectiveRepo]:
    session = SimpleNamespace(
        id=uuid.uuid4(),
        scenario_id=uuid.uuid4(),
        trainer_id=None,
        status=status,
        started_at=None,
        paused_at=None,
        ended_at=None,
        total_paused_seconds=0,
        current_state={},
        state_version=0,
        auto_complete_on_objectives=False,
    )
    clock = FakeClock(T0)
    service = SessionLifecycleService(db=None, clock=clock)
    objectives = _DummyObjectiveRepo()
    service._repo = _DummySessionRepo(session)
    service._scenarios = _DummyScenarioRepo({"public_sentiment": 50})
    service._objectives = objectives
    return service, session, clock, objectives


@pytest.mark.asyncio
async def test_start_anchors_time_and_seeds_state() -> None:
    service, session, _, objectives = _service()

    response = await service.start(session.id)

    assert response.status == SessionStatus.IN_PROGRESS
    assert session.started_at == T0
    assert session.current_state == {"public_sentiment": 50}
    assert objectives.initialised == ["evacuation", "media"]


@pytest.mark.asyncio
async def test_pause_resume_accumulates_paused_seconds() -> None:
    """Paused minutes do not count toward scenario time."""

    service, session, clock, _ = _service()
    await service.start(session.id)

    clock.advance(minutes=4)
    paused = await service.pause(session.id)
    assert paused.elapsed_minutes == pytest.approx(4.0)

    clock.advance(minutes=10)
    still_paused = await service.get(session.id)
    assert still_paused.elapsed_minutes == pytest.approx(4.0)

    resumed = await service.resume(session.id)
    assert session.total_paused_seconds == 600
    assert resumed.elapsed_minutes == pytest.approx(4.0)

    clock.advance(minutes=1)
    assert (await service.get(session.id)).elapsed_minutes == pytest.approx(5.0)


@pytest.mark.asyncio
async def test_invalid_transition_is_conflict() -> None:
    service, session, _, _ = _service(status="completed")

    with pytest.raises(ConflictError):
        await service.start(session.id)


@pytest.mark.asyncio
async def test_complete_sets_end_time() -> None:
    service, session, clock, _ = _service()
    await service.start(session.id)
    clock.advance(minutes=30)

    response = await service.complete(session.id)

    assert response.status == SessionStatus.COMPLETED
    assert session.ended_at == clock.now()
