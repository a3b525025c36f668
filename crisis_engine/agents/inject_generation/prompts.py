"""Prompt construction for dynamic inject content."""
from __future__ import annotations

import json

from crisis_engine.domains.scenarios.schemas import THEME_CATALOGUE, InjectScope

SYSTEM_PROMPT = f"""You write injects (scripted events) for a live crisis-management training exercise.

Rules:
1. Everything is fictional. Do not name real people, organisations, brands or real-world incidents.
2. Prefer the themes listed as UNDER-REPRESENTED. If you must reuse a HEAVILY USED theme,
   take a clearly different narrative angle (new source, new location, new stakeholder).
3. Follow the direction given under DIRECTION (escalate or de-escalate).
4. Never resolve the crisis. The inject must introduce or sharpen at least one unresolved or
   emerging problem the participants still have to deal with; state it in "unresolved_issue".
5. Write 2-5 sentences in the voice of the inject type (news report, field radio, citizen call...).

Themes: {", ".join(THEME_CATALOGUE)}

Reply with JSON only:
{{"title": "...", "content": "...", "severity": "low|medium|high|critical", "theme": "<one theme>", "unresolved_issue": "..."}}"""


def audience_line(scope: str, target_teams: list[str], affected_roles: list[str]) -> str:
    if scope == InjectScope.TEAM_SPECIFIC.value and target_teams:
        return f"AUDIENCE: only the teams {', '.join(target_teams)}; address them directly."
    if scope == InjectScope.ROLE_SPECIFIC.value and affected_roles:
        return f"AUDIENCE: only participants in roles {', '.join(affected_roles)}."
    return "AUDIENCE: every participant in the session."


def direction_block(high_robustness: bool, snapshot_json: dict) -> str:
    if high_robustness:
        pathways = snapshot_json.get("de_escalation_pathways") or []
        lines = [
            "DIRECTION: participants are coping well. Develop the situation along one of the",
            "de-escalation pathways below, but surface one of its emerging challenges.",
        ]
    else:
        pathways = snapshot_json.get("pathways") or []
        lines = [
            "DIRECTION: pressure participants along one of the escalation pathways below.",
        ]
    if pathways:
        lines.append(json.dumps(pathways[:3], ensure_ascii=False))
    else:
        lines.append("(no pathway assessment available yet; use the scenario description)")
    return "\n".join(lines)
