"""
Theme/usage aggregation

Derived on demand from the published ledger; nothing here is stored.
"""
from __future__ import annotations

from collections import Counter, defaultdict
from typing import Iterable, Optional, Sequence

from pydantic import BaseModel, Field

from crisis_engine.domains.decisions.schemas import DecisionRecord
from crisis_engine.domains.scenarios.schemas import THEME_CATALOGUE
from .schemas import PublishedInjectView

DEFAULT_THEME = "general"
HEAVY_USE_THRESHOLD = 2


class ThemeUsage(BaseModel):
    total: int = 0
    by_theme: dict[str, int] = Field(default_factory=dict)
    by_scope: dict[str, dict[str, int]] = Field(default_factory=dict)

    def count(self, theme: str, scope: Optional[str] = None) -> int:
        if scope is None:
            return self.by_theme.get(theme, 0)
        return self.by_scope.get(scope, {}).get(theme, 0)

    def underused(
        self,
        catalogue: Sequence[str] = THEME_CATALOGUE,
        scope: Optional[str] = None,
    ) -> list[str]:
        """Catalogue themes ordered least-used first (global counts break scope ties)."""
        return sorted(
            catalogue,
            key=lambda t: (self.count(t, scope), self.count(t), catalogue.index(t)),
        )

    def heavily_used(self, threshold: int = HEAVY_USE_THRESHOLD) -> list[str]:
        return sorted(
            (t for t, n in self.by_theme.items() if n >= threshold),
            key=lambda t: -self.by_theme[t],
        )


def theme_of(content: dict) -> str:
    theme = content.get("theme") or content.get("type")
    return str(theme).strip().lower() if theme else DEFAULT_THEME


def compute_theme_usage(records: Iterable[PublishedInjectView]) -> ThemeUsage:
    """
    Count published content per theme, globally and per scope

    Args:
        records: ledger rows of one session
    """
    by_theme: Counter[str] = Counter()
    by_scope: dict[str, Counter[str]] = defaultdict(Counter)

    for record in records:
        theme = theme_of(record.content)
        scope = record.content.get("scope") or "universal"
        by_theme[theme] += 1
        by_scope[scope][theme] += 1

    return ThemeUsage(
        total=sum(by_theme.values()),
        by_theme=dict(by_theme),
        by_scope={scope: dict(counts) for scope, counts in by_scope.items()},
    )


def summarize_decision_history(decisions: Sequence[DecisionRecord], max_titles: int = 3) -> str:
    """One line describing what participants have decided so far."""
    if not decisions:
        return "No decisions executed yet."

    categories: Counter[str] = Counter()
    for decision in decisions:
        if decision.ai_classification is not None:
            categories[decision.ai_classification.primary_category] += 1
        elif decision.decision_type:
            categories[decision.decision_type] += 1

    ordered = sorted(
        (d for d in decisions if d.executed_at is not None),
        key=lambda d: d.executed_at,
        reverse=True,
    ) + [d for d in decisions if d.executed_at is None]
    titles = "; ".join(f"'{d.title}'" for d in ordered[:max_titles])
    breakdown = ", ".join(f"{name} ({n})" for name, n in categories.most_common())
    noun = "decision" if len(decisions) == 1 else "decisions"
    line = f"{len(decisions)} {noun} executed"
    if breakdown:
        line += f": {breakdown}"
    return f"{line}. Most recent: {titles}."
