"""Tests for decision-triggered injects, classification caching and side-effect independence."""
from __future__ import annotations

import json

import pytest

from crisis_engine.agents.decision_classification import DecisionClassifier
from crisis_engine.agents.exceptions import ProviderUnavailable
from crisis_engine.agents.inject_generation import InjectContentGenerator
from crisis_engine.core.exceptions import ConflictError, NotFoundError
from crisis_engine.domains.decisions.schemas import DecisionStatus
from crisis_engine.domains.injects.schemas import GenerationState
from crisis_engine.domains.objectives.schemas import ObjectiveStatus
from crisis_engine.domains.sessions.schemas import SessionStatus
from crisis_engine.orchestration.evaluator import DecisionTriggerEvaluator
from crisis_engine.orchestration.publisher import InjectPublisher, PublishGatekeeper

from tests.fakes import (
    FakeChatClient,
    FakeClock,
    FakeFanout,
    FakeStore,
    classification_reply,
    inject_reply,
)


def _evaluator(store: FakeStore, llm: FakeChatClient, max_injects: int = 2) -> DecisionTriggerEvaluator:
    clock = FakeClock()
    publisher = InjectPublisher(store, PublishGatekeeper(store), InjectContentGenerator(llm), FakeFanout(), clock)
    return DecisionTriggerEvaluator(
        store, DecisionClassifier(llm), publisher, clock, max_injects_per_decision=max_injects
    )


def _llm(**classification) -> FakeChatClient:
    return FakeChatClient({
        "decision.classify": classification_reply(**classification),
        "inject.generate": inject_reply(),
    })


@pytest.mark.asyncio
async def test_matching_condition_publishes_inject() -> None:
    store = FakeStore()
    scenario = store.add_scenario()
    session = store.add_session(scenario)
    inject = store.add_inject(scenario, trigger_condition="category:operational_action AND keyword:evacuate")
    store.add_inject(scenario, trigger_condition="keyword:curfew")
    decision = store.add_decision(session, "Evacuate the riverside", "Evacuate everyone within 800 m of the river")

    result = await _evaluator(store, _llm()).on_decision_executed(decision.id)

    assert result.published_inject_ids == [inject.id]
    assert store.published_ids(session.id) == [inject.id]
    assert store.inject_events(session.id)[0].payload["inject_id"] == str(inject.id)


@pytest.mark.asyncio
async def test_classification_is_computed_once_and_cached() -> None:
    """A second evaluation of the same decision reuses the stored classification."""

    store = FakeStore()
    scenario = store.add_scenario()
    session = store.add_session(scenario)
    decision = store.add_decision(session, "Evacuate", "Evacuate the town")
    llm = _llm()
    evaluator = _evaluator(store, llm)

    first = await evaluator.on_decision_executed(decision.id)
    second = await evaluator.on_decision_executed(decision.id)

    assert llm.tasks().count("decision.classify") == 1
    assert store.classification_writes == 1
    assert first.classification == second.classification


@pytest.mark.asyncio
async def test_more_specific_condition_wins_within_scope() -> None:
    """Two universal injects match; the one citing more keywords fires, the other stays eligible."""

    store = FakeStore()
    scenario = store.add_scenario()
    session = store.add_session(scenario)
    broad = store.add_inject(scenario, severity="critical", trigger_condition="keyword:evacuate")
    specific = store.add_inject(scenario, trigger_condition=json.dumps({
        "type": "decision_based",
        "match_criteria": {"keywords": ["evacuate", "hospital"]},
        "match_mode": "any",
    }))
    decision = store.add_decision(session, "Evacuate hospital", "Move patients")

    result = await _evaluator(store, _llm(keywords=("evacuate", "hospital"))).on_decision_executed(decision.id)

    assert result.matched_inject_ids == [specific.id, broad.id]
    assert result.published_inject_ids == [specific.id]

    later = store.add_decision(session, "Evacuate school", "Move pupils")
    result = await _evaluator(store, _llm()).on_decision_executed(later.id)
    assert result.published_inject_ids == [broad.id]


@pytest.mark.asyncio
async def test_invalid_condition_is_flagged_and_skipped() -> None:
    store = FakeStore()
    scenario = store.add_scenario()
    session = store.add_session(scenario)
    bad = store.add_inject(scenario, trigger_condition="keyword:evacuate AND keyword:x OR tag:y")
    good = store.add_inject(scenario, trigger_condition="keyword:evacuate")
    decision = store.add_decision(session, "Evacuate", "Evacuate the town")
    evaluator = _evaluator(store, _llm())

    result = await evaluator.on_decision_executed(decision.id)

    assert result.flagged_inject_ids == [bad.id]
    assert result.published_inject_ids == [good.id]
    assert store.generation[(session.id, bad.id)].status == GenerationState.NEEDS_REVIEW

    again = store.add_decision(session, "Evacuate more", "Evacuate the suburbs")
    result = await evaluator.on_decision_executed(again.id)
    assert result.flagged_inject_ids == []


@pytest.mark.asyncio
async def test_objective_failure_does_not_block_inject_or_state() -> None:
    """Objective scoring, inject publication and state update are independent."""

    store = FakeStore()
    scenario = store.add_scenario(objectives=["evacuation"])
    session = store.add_session(scenario)
    inject = store.add_inject(scenario, trigger_condition="keyword:evacuate")
    decision = store.add_decision(session, "Evacuate everyone together", "Evacuate 800 m zone")
    store.fail_objectives = True

    result = await _evaluator(store, _llm(categories=("operational_action", "emergency_declaration"))).on_decision_executed(decision.id)

    assert result.failed_stages == ["objective_scoring"]
    assert result.published_inject_ids == [inject.id]
    zones = store.sessions[session.id].current_state["evacuation_zones"]
    assert zones[0]["radius_meters"] == 800


@pytest.mark.asyncio
async def test_decision_type_drives_state_over_classified_category() -> None:
    """An evacuation order classified as an emergency declaration still adds its zone."""

    store = FakeStore()
    scenario = store.add_scenario()
    session = store.add_session(scenario)
    decision = store.add_decision(
        session,
        "Evacuate all homes",
        "Evacuate all homes within 750 meters",
        decision_type="operational_action",
    )
    llm = _llm(categories=("emergency_declaration",), keywords=("evacuate", "homes"))

    result = await _evaluator(store, llm).on_decision_executed(decision.id)

    assert result.classification.primary_category == "emergency_declaration"
    assert result.failed_stages == []
    zones = store.sessions[session.id].current_state["evacuation_zones"]
    assert [z["radius_meters"] for z in zones] == [750]


@pytest.mark.asyncio
async def test_objective_progress_follows_impact_rules() -> None:
    store = FakeStore()
    scenario = store.add_scenario(objectives=["coordination"])
    session = store.add_session(scenario, auto_complete_on_objectives=True)
    store.objectives[session.id] = [
        row.model_copy(update={"progress_percentage": 90}) for row in store.objectives[session.id]
    ]
    decision = store.add_decision(session, "Joint command", "All agencies report to one commander")

    result = await _evaluator(store, _llm(categories=("coordination_order",), keywords=("command",))).on_decision_executed(decision.id)

    assert result.objective_adjustments == 1
    row = store.objectives[session.id][0]
    assert row.progress_percentage == 40
    assert row.status == ObjectiveStatus.IN_PROGRESS
    assert not result.session_completed
    assert store.sessions[session.id].status == SessionStatus.IN_PROGRESS


@pytest.mark.asyncio
async def test_classification_failure_still_updates_state() -> None:
    store = FakeStore()
    scenario = store.add_scenario()
    session = store.add_session(scenario)
    store.add_inject(scenario, trigger_condition="keyword:evacuate")
    decision = store.add_decision(session, "Reassure the public", "Press conference", decision_type="public_statement")
    llm = FakeChatClient({"decision.classify": ProviderUnavailable("down")})

    result = await _evaluator(store, llm).on_decision_executed(decision.id)

    assert result.classification is None
    assert result.failed_stages == ["classification"]
    assert store.published_ids(session.id) == []
    assert store.sessions[session.id].current_state["public_sentiment"] == 55


@pytest.mark.asyncio
async def test_flood_cap_limits_injects_per_decision() -> None:
    store = FakeStore()
    scenario = store.add_scenario()
    session = store.add_session(scenario)
    for scope in ("universal", "team_specific", "role_specific"):
        store.add_inject(scenario, scope=scope, trigger_condition="keyword:evacuate")
    decision = store.add_decision(session, "Evacuate", "Evacuate the town")

    result = await _evaluator(store, _llm(), max_injects=2).on_decision_executed(decision.id)

    assert len(result.matched_inject_ids) == 3
    assert len(result.published_inject_ids) == 2


@pytest.mark.asyncio
async def test_failed_generation_does_not_use_a_flood_slot() -> None:
    """When the best match fails generation, the next match in the same scope publishes."""

    store = FakeStore()
    scenario = store.add_scenario()
    session = store.add_session(scenario)
    specific = store.add_inject(scenario, trigger_condition="keyword:evacuate AND keyword:hospital")
    broad = store.add_inject(scenario, trigger_condition="keyword:evacuate")
    decision = store.add_decision(session, "Evacuate hospital", "Move patients")

    attempts = []

    def generate(user_prompt: str) -> dict:
        attempts.append(user_prompt)
        if len(attempts) == 1:
            raise ProviderUnavailable("down")
        return inject_reply()

    llm = FakeChatClient({
        "decision.classify": classification_reply(keywords=("evacuate", "hospital")),
        "inject.generate": generate,
    })

    result = await _evaluator(store, llm, max_injects=1).on_decision_executed(decision.id)

    assert result.matched_inject_ids == [specific.id, broad.id]
    assert result.published_inject_ids == [broad.id]
    assert store.generation[(session.id, specific.id)].failure_count == 1


@pytest.mark.asyncio
async def test_non_executed_decision_is_rejected() -> None:
    store = FakeStore()
    scenario = store.add_scenario()
    session = store.add_session(scenario)
    decision = store.add_decision(session, "Evacuate", status=DecisionStatus.APPROVED)

    with pytest.raises(ConflictError):
        await _evaluator(store, _llm()).on_decision_executed(decision.id)


@pytest.mark.asyncio
async def test_unknown_decision_is_not_found() -> None:
    import uuid

    with pytest.raises(NotFoundError):
        await _evaluator(FakeStore(), _llm()).on_decision_executed(uuid.uuid4())


@pytest.mark.asyncio
async def test_session_auto_completes_when_objectives_resolved() -> None:
    """Penalties keep resolved statuses; with every objective resolved the session completes."""

    store = FakeStore()
    scenario = store.add_scenario(objectives=["media", "evacuation"])
    session = store.add_session(scenario, auto_complete_on_objectives=True)
    store.objectives[session.id] = [
        row.model_copy(update={"progress_percentage": 100, "status": ObjectiveStatus.COMPLETED})
        for row in store.objectives[session.id]
    ]
    decision = store.add_decision(session, "Statement on flooding", "We are monitoring the situation")

    result = await _evaluator(store, _llm(categories=("public_statement",), keywords=("flooding",))).on_decision_executed(decision.id)

    media = next(r for r in store.objectives[session.id] if r.objective_key == "media")
    assert media.score == 75
    assert result.session_completed
    assert store.sessions[session.id].status == SessionStatus.COMPLETED
