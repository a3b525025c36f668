"""
Trigger condition matcher

Stored conditions come in two equivalent forms and are compiled once into a
`TriggerCondition`:

- structured JSON:
  {"type": "decision_based",
   "match_criteria": {"categories": [...], "keywords": [...], "semantic_tags": [...]},
   "match_mode": "any" | "all"}
- compact text: "category:emergency_declaration AND keyword:evacuate"
  (AND -> all, OR -> any, mixing both is rejected; "tag:" addresses semantic tags)

A criterion array matches when it shares at least one lower-cased token with the
corresponding classification array.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, Mapping, Optional, Sequence, Union
from uuid import UUID

from crisis_engine.domains.scenarios.schemas import InjectDefinition, SEVERITY_RANK

logger = logging.getLogger(__name__)


class TriggerConditionInvalid(ValueError):
    """Stored condition cannot be parsed; needs trainer review, never retried"""

    def __init__(self, raw: Any, reason: str) -> None:
        super().__init__(f"Invalid trigger condition ({reason}): {raw!r}")
        self.raw = raw
        self.reason = reason


class MatchMode(str, Enum):
    ANY = "any"
    ALL = "all"


_TEXT_PREFIXES = {
    "category:": "categories",
    "keyword:": "keywords",
    "tag:": "semantic_tags",
    "semantic_tag:": "semantic_tags",
}


def _tokens(values: Optional[Iterable[Any]]) -> frozenset[str]:
    if not values:
        return frozenset()
    return frozenset(str(v).strip().lower() for v in values if str(v).strip())


@dataclass(frozen=True)
class TriggerCondition:
    categories: frozenset[str] = frozenset()
    keywords: frozenset[str] = frozenset()
    semantic_tags: frozenset[str] = frozenset()
    match_mode: MatchMode = MatchMode.ANY

    @property
    def specificity(self) -> int:
        """Number of distinct keywords cited; more specific conditions win ties."""
        return len(self.keywords)

    def criteria(self) -> list[tuple[str, frozenset[str]]]:
        return [
            (name, values)
            for name, values in (
                ("categories", self.categories),
                ("keywords", self.keywords),
                ("semantic_tags", self.semantic_tags),
            )
            if values
        ]

    def matches(self, classification: Mapping[str, Any]) -> bool:
        """
        Evaluate against a decision classification

        Args:
            classification: mapping with categories / keywords / semantic_tags lists

        Returns:
            any: at least one criterion array intersects
            all: every supplied criterion array intersects
        """
        results = [
            bool(values & _tokens(classification.get(name)))
            for name, values in self.criteria()
        ]
        if not results:
            return False
        if self.match_mode == MatchMode.ALL:
            return all(results)
        return any(results)


def _parse_structured(data: Mapping[str, Any], raw: Any) -> TriggerCondition:
    condition_type = data.get("type", "decision_based")
    if condition_type != "decision_based":
        raise TriggerConditionInvalid(raw, f"unsupported type '{condition_type}'")

    criteria = data.get("match_criteria")
    if not isinstance(criteria, Mapping):
        raise TriggerConditionInvalid(raw, "match_criteria must be an object")

    for name in ("categories", "keywords", "semantic_tags"):
        value = criteria.get(name)
        if value is not None and not isinstance(value, list):
            raise TriggerConditionInvalid(raw, f"{name} must be a list")

    try:
        mode = MatchMode(str(data.get("match_mode", "any")).lower())
    except ValueError:
        raise TriggerConditionInvalid(raw, f"unknown match_mode '{data.get('match_mode')}'")

    condition = TriggerCondition(
        categories=_tokens(criteria.get("categories")),
        keywords=_tokens(criteria.get("keywords")),
        semantic_tags=_tokens(criteria.get("semantic_tags")),
        match_mode=mode,
    )
    if not condition.criteria():
        raise TriggerConditionInvalid(raw, "no match criteria")
    return condition


def _parse_text(text: str) -> TriggerCondition:
    upper = f" {text.upper()} "
    has_and = " AND " in upper
    has_or = " OR " in upper
    if has_and and has_or:
        raise TriggerConditionInvalid(text, "mixing AND and OR is not supported")

    separator = " OR " if has_or else " AND "
    mode = MatchMode.ANY if has_or else MatchMode.ALL

    collected: dict[str, list[str]] = {"categories": [], "keywords": [], "semantic_tags": []}
    # split case-insensitively on the separator
    parts = []
    rest = text
    while True:
        idx = rest.upper().find(separator)
        if idx == -1:
            parts.append(rest)
            break
        parts.append(rest[:idx])
        rest = rest[idx + len(separator):]

    for part in parts:
        term = part.strip()
        for prefix, field in _TEXT_PREFIXES.items():
            if term.lower().startswith(prefix):
                value = term[len(prefix):].strip()
                if not value:
                    raise TriggerConditionInvalid(text, f"empty value for '{prefix}'")
                collected[field].append(value)
                break
        else:
            raise TriggerConditionInvalid(text, f"unrecognised term '{term}'")

    return TriggerCondition(
        categories=_tokens(collected["categories"]),
        keywords=_tokens(collected["keywords"]),
        semantic_tags=_tokens(collected["semantic_tags"]),
        match_mode=mode,
    )


def parse_trigger_condition(raw: Union[str, Mapping[str, Any], None]) -> Optional[TriggerCondition]:
    """
    Compile a stored condition into its structured form

    Returns:
        None when no condition is stored

    Raises:
        TriggerConditionInvalid: the condition cannot be understood
    """
    if raw is None:
        return None
    if isinstance(raw, Mapping):
        return _parse_structured(raw, raw)

    text = str(raw).strip()
    if not text:
        return None
    if text.startswith("{"):
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise TriggerConditionInvalid(raw, f"bad JSON: {e.msg}")
        if not isinstance(data, Mapping):
            raise TriggerConditionInvalid(raw, "JSON condition must be an object")
        return _parse_structured(data, raw)
    return _parse_text(text)


# ============================================================================
# Selection
# ============================================================================

@dataclass(frozen=True)
class DecisionMatch:
    inject: InjectDefinition
    condition: TriggerCondition
    position: int

    @property
    def sort_key(self) -> tuple:
        # more keywords, then higher severity, then creation order
        return (
            -self.condition.specificity,
            -SEVERITY_RANK.get(self.inject.severity, 0),
            self.position,
        )


def order_by_creation(injects: Sequence[InjectDefinition]) -> list[InjectDefinition]:
    """Stable creation order; ids break equal timestamps deterministically."""
    return sorted(injects, key=lambda i: (i.created_at is None, i.created_at, str(i.id)))


def select_time_triggered(
    injects: Sequence[InjectDefinition],
    elapsed_minutes: float,
    published_ids: Iterable[UUID] = (),
) -> list[InjectDefinition]:
    """Unpublished injects whose trigger_time_minutes has elapsed, in creation order."""
    published = set(published_ids)
    return [
        inject
        for inject in order_by_creation(injects)
        if inject.trigger_time_minutes is not None
        and inject.id not in published
        and elapsed_minutes >= inject.trigger_time_minutes
    ]


def select_decision_triggered(
    compiled: Sequence[tuple[InjectDefinition, TriggerCondition]],
    classification: Mapping[str, Any],
    published_ids: Iterable[UUID] = (),
) -> list[DecisionMatch]:
    """
    Match compiled conditions against one decision classification

    Returns:
        matches ordered by the tie-break rule (keywords cited, severity, creation order)
    """
    published = set(published_ids)
    positions = {inject.id: idx for idx, inject in enumerate(order_by_creation([i for i, _ in compiled]))}

    matches = [
        DecisionMatch(inject=inject, condition=condition, position=positions[inject.id])
        for inject, condition in compiled
        if inject.id not in published and condition.matches(classification)
    ]
    return sorted(matches, key=lambda m: m.sort_key)


class DecisionFloodGate:
    """
    Flood control for a single decision pass

    At most one inject per scope is published (matches are offered best-ranked
    first) and at most `max_total` overall. Only successful publishes take a
    slot; a match that fails generation or loses the claim leaves room for the
    next one.
    """

    def __init__(self, max_total: int) -> None:
        self.max_total = max_total
        self._scopes: set[str] = set()

    @property
    def exhausted(self) -> bool:
        return len(self._scopes) >= self.max_total

    def admits(self, match: DecisionMatch) -> bool:
        return not self.exhausted and match.inject.scope not in self._scopes

    def record_published(self, match: DecisionMatch) -> None:
        self._scopes.add(match.inject.scope)
