"""
Decision impact rules

Each rule looks at the decision classification plus the decision text and
produces objective adjustments. Rules referencing an objective the scenario
does not define are ignored when applied.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Optional

from crisis_engine.domains.decisions.schemas import DecisionClassification, DecisionRecord
from .schemas import AdjustmentKind, ObjectiveAdjustment, ObjectiveStatus


def _has_any(text: str, *terms: str) -> bool:
    return any(term in text for term in terms)


@dataclass(frozen=True)
class ImpactRule:
    name: str
    category: str
    applies: Callable[[str], bool]
    adjustments: tuple[ObjectiveAdjustment, ...] = field(default_factory=tuple)
    # first matching rule of an exclusive group wins
    group: Optional[str] = None


def _penalty(key: str, reason: str, points: int) -> ObjectiveAdjustment:
    return ObjectiveAdjustment(objective_key=key, kind=AdjustmentKind.PENALTY, reason=reason, points=points)


def _bonus(key: str, reason: str, points: int) -> ObjectiveAdjustment:
    return ObjectiveAdjustment(objective_key=key, kind=AdjustmentKind.BONUS, reason=reason, points=points)


def _progress(key: str, pct: int, reason: str, **metrics: bool) -> ObjectiveAdjustment:
    return ObjectiveAdjustment(
        objective_key=key,
        kind=AdjustmentKind.PROGRESS,
        reason=reason,
        progress_percentage=pct,
        status=ObjectiveStatus.IN_PROGRESS,
        metrics=metrics,
    )


IMPACT_RULES: tuple[ImpactRule, ...] = (
    ImpactRule(
        name="evacuation_segregation",
        category="emergency_declaration",
        group="evacuation",
        applies=lambda t: _has_any(t, "evacuat") and _has_any(t, "separate", "segregate"),
        adjustments=(
            _penalty("evacuation", "Discriminatory segregation decision", 30),
            _penalty("media", "Discriminatory actions observed", 40),
        ),
    ),
    ImpactRule(
        name="evacuation_together",
        category="emergency_declaration",
        group="evacuation",
        applies=lambda t: _has_any(t, "evacuat") and _has_any(t, "together", "everyone"),
        adjustments=(
            _progress("evacuation", 30, "Inclusive evacuation ordered", evacuation_plan_executed=True),
        ),
    ),
    ImpactRule(
        name="statement_counters_misinformation",
        category="public_statement",
        group="statement",
        applies=lambda t: _has_any(t, "misinformation", "false", "deny"),
        adjustments=(
            _bonus("media", "Statement addresses misinformation", 20),
            _progress("media", 50, "Misinformation addressed"),
        ),
    ),
    ImpactRule(
        name="statement_refusal",
        category="public_statement",
        group="statement",
        applies=lambda t: _has_any(t, "refuse", "no comment"),
        adjustments=(
            _penalty("media", "Refusal to comment creates information vacuum", 30),
        ),
    ),
    ImpactRule(
        name="statement_generic",
        category="public_statement",
        group="statement",
        applies=lambda t: True,
        adjustments=(
            _penalty("media", "Statement fails to counter misinformation", 25),
        ),
    ),
    ImpactRule(
        name="triage_established",
        category="resource_allocation",
        applies=lambda t: "triage" in t,
        adjustments=(
            _progress("triage", 50, "Triage system established", triage_system_established=True),
        ),
    ),
    ImpactRule(
        name="coordination_effort",
        category="coordination_order",
        applies=lambda t: True,
        adjustments=(
            _progress("coordination", 40, "Coordination order issued", coordination_efforts=True),
        ),
    ),
)


def score_decision_impact(
    decision: DecisionRecord,
    classification: DecisionClassification,
    rules: tuple[ImpactRule, ...] = IMPACT_RULES,
) -> list[ObjectiveAdjustment]:
    """
    Translate one executed decision into objective adjustments

    Returns:
        adjustments carrying the decision id as cause_ref, in rule order
    """
    text = f"{decision.title} {decision.description}".lower()
    categories = set(classification.categories) | {classification.primary_category}

    adjustments: list[ObjectiveAdjustment] = []
    groups_done: set[str] = set()
    for rule in rules:
        if rule.category not in categories:
            continue
        if rule.group and rule.group in groups_done:
            continue
        if not rule.applies(text):
            continue
        if rule.group:
            groups_done.add(rule.group)
        adjustments.extend(
            adj.model_copy(update={"cause_ref": str(decision.id)}) for adj in rule.adjustments
        )
    return adjustments
