"""
Scenario state rules

Pure functions that derive the next `current_state` from an executed decision
or a published inject. Callers persist the result through the optimistic
state update.
"""
from __future__ import annotations

import copy
import re
from datetime import datetime
from typing import Any, Optional

_RADIUS_PATTERN = re.compile(r"(\d+)\s*m(?:eter|etre)?s?\b", re.IGNORECASE)

DEFAULT_EVACUATION_RADIUS_M = 500
NEUTRAL_SENTIMENT = 50


def apply_decision_to_state(
    state: dict[str, Any],
    *,
    decision_id: str,
    decision_type: Optional[str],
    title: str,
    description: str,
    resources_needed: Optional[dict[str, Any]],
    executed_at: datetime,
) -> dict[str, Any]:
    """
    Derive scenario state after a decision executes

    - evacuation orders add an evacuation zone (radius parsed from text, default 500m)
    - resource allocations merge into resource_allocations
    - public statements move public_sentiment (0-100)
    """
    new_state = copy.deepcopy(state or {})
    text = f"{title} {description}".lower()

    if decision_type == "operational_action" and "evacuat" in text:
        match = _RADIUS_PATTERN.search(description or "")
        radius = int(match.group(1)) if match else DEFAULT_EVACUATION_RADIUS_M
        new_state.setdefault("evacuation_zones", []).append({
            "id": f"evac-{decision_id}",
            "radius_meters": radius,
            "title": title,
            "created_at": executed_at.isoformat(),
        })

    elif decision_type == "resource_allocation" and resources_needed:
        new_state.setdefault("resource_allocations", {}).update(resources_needed)

    elif decision_type == "public_statement":
        sentiment = new_state.get("public_sentiment", NEUTRAL_SENTIMENT)
        change = 5 if "reassur" in text else -2
        new_state["public_sentiment"] = max(0, min(100, sentiment + change))

    return new_state


def apply_inject_to_state(
    state: dict[str, Any],
    *,
    inject_id: str,
    title: str,
    severity: str,
    published_at: datetime,
) -> dict[str, Any]:
    new_state = copy.deepcopy(state or {})
    new_state["injects_published"] = int(new_state.get("injects_published", 0)) + 1
    new_state["last_inject"] = {
        "inject_id": inject_id,
        "title": title,
        "severity": severity,
        "published_at": published_at.isoformat(),
    }
    return new_state
