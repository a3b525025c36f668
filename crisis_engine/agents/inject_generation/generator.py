"""
Inject content generator

Turns a trigger context into inject content through the LLM. It never touches
the ledger: a generated body can be thrown away and regenerated on the next
cycle if publishing fails afterwards.
"""
from __future__ import annotations

import logging
from typing import Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

from crisis_engine.agents.exceptions import (
    GenerationFailed,
    MalformedProviderOutput,
    ProviderRejected,
    ProviderTimeout,
    ProviderUnavailable,
)
from crisis_engine.domains.decisions.schemas import DecisionClassification, DecisionRecord
from crisis_engine.domains.escalation.schemas import EscalationSnapshot, FactorSeverity
from crisis_engine.domains.injects.schemas import InjectContent, TriggerSource
from crisis_engine.domains.injects.themes import ThemeUsage
from crisis_engine.domains.scenarios.schemas import (
    THEME_CATALOGUE,
    InjectDefinition,
    InjectSeverity,
    ScenarioContext,
)
from crisis_engine.orchestration.ports import ChatClient
from .prompts import SYSTEM_PROMPT, audience_line, direction_block

logger = logging.getLogger(__name__)

HIGH_ROBUSTNESS = 7.0

_SEVERITY_WEIGHT = {
    FactorSeverity.LOW: 1,
    FactorSeverity.MEDIUM: 2,
    FactorSeverity.HIGH: 3,
    FactorSeverity.CRITICAL: 4,
}


class TriggerContext(BaseModel):
    source: TriggerSource
    elapsed_minutes: float = 0.0
    decision: Optional[DecisionRecord] = None
    classification: Optional[DecisionClassification] = None


class GenerationContext(BaseModel):
    scenario: ScenarioContext
    inject: InjectDefinition
    trigger: TriggerContext
    snapshot: Optional[EscalationSnapshot] = None
    theme_usage: ThemeUsage = Field(default_factory=ThemeUsage)
    decision_summary: str = ""


class _GeneratedInject(BaseModel):
    title: str = Field(..., min_length=1, max_length=300)
    content: str = Field(..., min_length=1)
    severity: Optional[InjectSeverity] = None
    theme: Optional[str] = None
    unresolved_issue: str = Field(..., min_length=1)

    @field_validator("title", "content", "unresolved_issue", mode="before")
    @classmethod
    def strip(cls, v):
        return str(v).strip() if v is not None else v

    @field_validator("severity", mode="before")
    @classmethod
    def known_severity(cls, v):
        value = str(v or "").strip().lower()
        return value if value in {s.value for s in InjectSeverity} else None


def infer_robustness(snapshot: Optional[EscalationSnapshot]) -> float:
    """
    0-10 estimate of how well participants are containing the crisis

    Weighted de-escalation factors against escalation factors; 5 is neutral
    (also the value when no snapshot exists yet).
    """
    if snapshot is None:
        return 5.0
    escalation = sum(_SEVERITY_WEIGHT[f.severity] for f in snapshot.factors)
    de_escalation = sum(_SEVERITY_WEIGHT[f.severity] for f in snapshot.de_escalation_factors)
    total = escalation + de_escalation
    if total == 0:
        return 5.0
    return round(5.0 + 5.0 * (de_escalation - escalation) / total, 2)


class InjectContentGenerator:
    def __init__(self, llm: ChatClient) -> None:
        self._llm = llm

    def build_prompt(self, ctx: GenerationContext) -> str:
        scope = ctx.inject.scope
        underused = ctx.theme_usage.underused(THEME_CATALOGUE, scope=scope)[:3]
        heavy = ctx.theme_usage.heavily_used()
        robustness = infer_robustness(ctx.snapshot)
        snapshot_json = ctx.snapshot.model_dump(mode="json") if ctx.snapshot else {}

        lines = [
            f"SCENARIO: {ctx.scenario.title}",
            ctx.scenario.description or "(no description)",
            audience_line(scope, ctx.inject.target_teams, ctx.inject.affected_roles),
            f"SUGGESTED SEVERITY: {ctx.inject.severity}",
            f"INJECT TYPE HINT: {ctx.inject.type}",
        ]

        if ctx.trigger.source == TriggerSource.DECISION and ctx.trigger.decision is not None:
            decision = ctx.trigger.decision
            lines.append(f"TRIGGER: participants just executed the decision '{decision.title}': {decision.description}")
            if ctx.trigger.classification is not None:
                lines.append(
                    f"DECISION CLASSIFICATION: {ctx.trigger.classification.model_dump_json(exclude={'reasoning'})}"
                )
        else:
            lines.append(f"TRIGGER: scheduled event at T+{ctx.trigger.elapsed_minutes:.0f} minutes")

        lines.extend([
            f"DECISION HISTORY: {ctx.decision_summary or 'No decisions executed yet.'}",
            f"UNDER-REPRESENTED THEMES: {', '.join(underused)}",
            f"HEAVILY USED THEMES: {', '.join(heavy) if heavy else 'none'}",
            f"ROBUSTNESS: {robustness}/10",
            direction_block(robustness >= HIGH_ROBUSTNESS, snapshot_json),
        ])
        return "\n".join(lines)

    async def generate(self, ctx: GenerationContext) -> InjectContent:
        """
        Produce content for one inject

        Raises:
            ProviderTimeout: provider did not answer in time
            ProviderRejected: provider refused the request
            GenerationFailed: any other failure (unreachable provider, malformed output)
        """
        try:
            payload = await self._llm.complete_json(
                task="inject.generate",
                system_prompt=SYSTEM_PROMPT,
                user_prompt=self.build_prompt(ctx),
            )
            if not isinstance(payload, dict):
                raise MalformedProviderOutput("Inject reply is not an object", raw=str(payload))
            try:
                generated = _GeneratedInject.model_validate(payload)
            except ValidationError as e:
                raise MalformedProviderOutput(f"Inject reply failed validation: {e.error_count()} error(s)", raw=str(payload))
        except (ProviderTimeout, ProviderRejected):
            raise
        except (ProviderUnavailable, MalformedProviderOutput) as e:
            raise GenerationFailed(f"Content generation failed for inject {ctx.inject.id}: {e}", cause=e) from e

        theme = (generated.theme or "").strip().lower()
        if theme not in THEME_CATALOGUE:
            theme = ctx.inject.type

        return InjectContent(
            title=generated.title,
            content=generated.content,
            severity=(generated.severity or InjectSeverity(ctx.inject.severity)).value,
            theme=theme,
            scope=ctx.inject.scope,
            generated=True,
            unresolved_issue=generated.unresolved_issue,
        )
