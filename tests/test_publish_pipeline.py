"""Tests for the gatekeeper claim and the shared publish pipeline."""
from __future__ import annotations

import asyncio

import pytest

from crisis_engine.agents.exceptions import ProviderTimeout
from crisis_engine.agents.inject_generation import InjectContentGenerator, TriggerContext
from crisis_engine.domains.injects.schemas import GenerationState, InjectContent, TriggerSource
from crisis_engine.orchestration.publisher import InjectPublisher, PublishGatekeeper, PublishOutcome

from tests.fakes import FakeChatClient, FakeClock, FakeFanout, FakeStore, inject_reply

TIME_TRIGGER = TriggerContext(source=TriggerSource.TIME, elapsed_minutes=10.0)
DECISION_TRIGGER = TriggerContext(source=TriggerSource.DECISION, elapsed_minutes=10.0)


def _publisher(store: FakeStore, llm: FakeChatClient | None = None, fanout: FakeFanout | None = None, threshold: int = 3):
    generator = InjectContentGenerator(llm) if llm is not None else None
    return InjectPublisher(
        store,
        PublishGatekeeper(store),
        generator,
        fanout or FakeFanout(),
        FakeClock(),
        generation_failure_flag_threshold=threshold,
    )


@pytest.mark.asyncio
async def test_concurrent_claims_succeed_exactly_once() -> None:
    """Many racing claims for one (session, inject) yield a single winner."""

    store = FakeStore()
    scenario = store.add_scenario()
    session = store.add_session(scenario)
    inject = store.add_inject(scenario, trigger_time_minutes=0, title="Static", content="Body")
    gatekeeper = PublishGatekeeper(store)
    content = InjectContent(title="Static", content="Body", severity="medium", theme="field_update", scope="universal")

    results = await asyncio.gather(*(
        gatekeeper.try_claim(session.id, inject.id, "time", content) for _ in range(20)
    ))

    assert sum(r.claimed for r in results) == 1
    assert len(store.inject_events(session.id)) == 1


@pytest.mark.asyncio
async def test_time_and_decision_paths_racing_publish_once() -> None:
    """An inject with both triggers fires on whichever path claims first, never both."""

    store = FakeStore()
    scenario = store.add_scenario()
    session = store.add_session(scenario)
    inject = store.add_inject(scenario, trigger_time_minutes=5, trigger_condition="keyword:evacuate")
    llm = FakeChatClient({"inject.generate": inject_reply()}, delay=0.01)
    fanout = FakeFanout()
    publisher = _publisher(store, llm, fanout)

    outcomes = await asyncio.gather(
        publisher.publish(session, scenario, inject, TIME_TRIGGER),
        publisher.publish(session, scenario, inject, DECISION_TRIGGER),
    )

    assert sorted(o.outcome for o in outcomes) == sorted(
        [PublishOutcome.PUBLISHED, PublishOutcome.ALREADY_PUBLISHED]
    )
    assert store.published_ids(session.id) == [inject.id]
    assert len(store.inject_events(session.id)) == 1
    assert len(fanout.messages) == 1


@pytest.mark.asyncio
async def test_static_content_skips_generation() -> None:
    store = FakeStore()
    scenario = store.add_scenario()
    session = store.add_session(scenario)
    inject = store.add_inject(scenario, trigger_time_minutes=0, title="Bridge closed", content="Police closed the bridge.")
    llm = FakeChatClient()
    fanout = FakeFanout()

    result = await _publisher(store, llm, fanout).publish(session, scenario, inject, TIME_TRIGGER)

    assert result.published
    assert llm.calls == []
    message = fanout.messages[0]
    assert message["type"] == "inject"
    assert message["event_id"] == result.event_id
    assert message["data"]["title"] == "Bridge closed"
    assert set(message["data"]) == {"inject_id", "scope", "title", "content", "severity", "theme"}


@pytest.mark.asyncio
async def test_event_log_row_matches_fanout_payload() -> None:
    store = FakeStore()
    scenario = store.add_scenario()
    session = store.add_session(scenario)
    inject = store.add_inject(scenario, trigger_time_minutes=0)
    fanout = FakeFanout()

    await _publisher(store, FakeChatClient({"inject.generate": inject_reply()}), fanout).publish(
        session, scenario, inject, TIME_TRIGGER
    )

    event = store.inject_events(session.id)[0]
    assert event.actor_id is None
    assert event.payload == fanout.messages[0]["data"]
    assert event.payload["inject_id"] == str(inject.id)
    assert store.sessions[session.id].current_state["injects_published"] == 1


@pytest.mark.asyncio
async def test_generation_failure_leaves_inject_unpublished_and_counts() -> None:
    """Failures never claim; after the threshold the status turns stalled."""

    store = FakeStore()
    scenario = store.add_scenario()
    session = store.add_session(scenario)
    inject = store.add_inject(scenario, trigger_time_minutes=0)
    llm = FakeChatClient({"inject.generate": ProviderTimeout("inject.generate", 20.0)})
    publisher = _publisher(store, llm, threshold=2)

    first = await publisher.publish(session, scenario, inject, TIME_TRIGGER)
    status = store.generation[(session.id, inject.id)]
    assert first.outcome == PublishOutcome.GENERATION_FAILED
    assert status.status == GenerationState.RETRYING
    assert status.last_error_code == "AI5002"

    await publisher.publish(session, scenario, inject, TIME_TRIGGER)
    assert store.generation[(session.id, inject.id)].status == GenerationState.STALLED
    assert store.published_ids(session.id) == []
    assert store.inject_events(session.id) == []


@pytest.mark.asyncio
async def test_fanout_failure_keeps_durable_publish() -> None:
    """The ledger and event log stand even when Redis is down."""

    store = FakeStore()
    scenario = store.add_scenario()
    session = store.add_session(scenario)
    inject = store.add_inject(scenario, trigger_time_minutes=0, title="T", content="C")

    result = await _publisher(store, fanout=FakeFanout(fail=True)).publish(session, scenario, inject, TIME_TRIGGER)

    assert result.published
    assert store.published_ids(session.id) == [inject.id]
    assert len(store.inject_events(session.id)) == 1


@pytest.mark.asyncio
async def test_ai_disabled_leaves_dynamic_inject_pending() -> None:
    store = FakeStore()
    scenario = store.add_scenario()
    session = store.add_session(scenario)
    inject = store.add_inject(scenario, trigger_time_minutes=0)

    result = await _publisher(store).publish(session, scenario, inject, TIME_TRIGGER)

    assert result.outcome == PublishOutcome.AI_DISABLED
    assert store.published_ids(session.id) == []
    assert store.generation == {}
