"""Prompt context shared by the escalation stages."""
from __future__ import annotations

import json
from typing import Any

from crisis_engine.agents.escalation.state import EscalationState

FICTION_RULE = (
    "This is a fictional training exercise. Refer only to the fictional scenario, "
    "never to real people, organisations or events."
)


def situation_block(state: EscalationState) -> str:
    """Scenario, state, objectives and recent injects as a prompt section."""
    sections: list[str] = [
        f"SCENARIO: {state.get('scenario_title', '')}",
        state.get("scenario_description", "") or "(no description)",
        "CURRENT STATE:",
        json.dumps(state.get("current_state") or {}, ensure_ascii=False, default=str),
    ]

    objectives = state.get("objectives") or []
    if objectives:
        sections.append("OBJECTIVES:")
        sections.extend(
            f"- {o.get('name')} [{o.get('status', 'not_started')}, {o.get('progress_percentage', 0)}%]"
            for o in objectives
        )

    injects = state.get("recent_injects") or []
    if injects:
        sections.append("RECENT INJECTS (newest last):")
        sections.extend(
            f"- [{i.get('severity', 'medium')}] {i.get('title', '')}: {str(i.get('content', ''))[:240]}"
            for i in injects
        )
    return "\n".join(sections)


def as_json(items: list[dict[str, Any]]) -> str:
    return json.dumps(items, ensure_ascii=False, indent=2)
