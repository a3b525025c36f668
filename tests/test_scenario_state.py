"""Unit tests for the scenario clock and scenario state rules."""
from __future__ import annotations

from datetime import timedelta

from crisis_engine.domains.sessions.clock import ScenarioClock
from crisis_engine.domains.sessions.state_rules import apply_decision_to_state, apply_inject_to_state

from tests.fakes import T0


def test_clock_not_started_is_zero() -> None:
    assert ScenarioClock(None).elapsed_minutes(T0) == 0.0


def test_clock_excludes_pauses_and_freezes_while_paused() -> None:
    clock = ScenarioClock(T0, total_paused_seconds=120, paused_at=T0 + timedelta(minutes=10))

    assert clock.elapsed_minutes(T0 + timedelta(minutes=30)) == 8.0


def test_clock_never_negative() -> None:
    clock = ScenarioClock(T0, total_paused_seconds=600)

    assert clock.elapsed_minutes(T0 + timedelta(minutes=1)) == 0.0


def test_evacuation_adds_zone_with_parsed_radius() -> None:
    state = apply_decision_to_state(
        {},
        decision_id="d1",
        decision_type="operational_action",
        title="Evacuate riverside",
        description="Evacuate all homes within 750 meters",
        resources_needed=None,
        executed_at=T0,
    )

    assert state["evacuation_zones"][0]["radius_meters"] == 750


def test_input_state_is_not_mutated() -> None:
    original = {"resource_allocations": {"boats": 2}}

    state = apply_decision_to_state(
        original,
        decision_id="d2",
        decision_type="resource_allocation",
        title="More boats",
        description="",
        resources_needed={"boats": 5, "medics": 3},
        executed_at=T0,
    )

    assert state["resource_allocations"] == {"boats": 5, "medics": 3}
    assert original == {"resource_allocations": {"boats": 2}}


def test_public_statement_sentiment_is_clamped() -> None:
    state = {"public_sentiment": 98}
    for _ in range(3):
        state = apply_decision_to_state(
            state,
            decision_id="d3",
            decision_type="public_statement",
            title="Reassuring briefing",
            description="",
            resources_needed=None,
            executed_at=T0,
        )

    assert state["public_sentiment"] == 100


def test_inject_publication_is_counted() -> None:
    state = apply_inject_to_state({}, inject_id="i1", title="Levee", severity="high", published_at=T0)
    state = apply_inject_to_state(state, inject_id="i2", title="Bridge", severity="low", published_at=T0)

    assert state["injects_published"] == 2
    assert state["last_inject"]["inject_id"] == "i2"
