"""Decision classifier: categories, keywords and semantic tags for an executed decision."""
from __future__ import annotations

import logging

from pydantic import ValidationError

from crisis_engine.agents.exceptions import MalformedProviderOutput
from crisis_engine.domains.decisions.schemas import DECISION_CATEGORIES, DecisionClassification, DecisionRecord
from crisis_engine.orchestration.ports import ChatClient

logger = logging.getLogger(__name__)

_CATEGORY_HELP = {
    "emergency_declaration": "emergency declarations, evacuation orders, protective measures",
    "resource_allocation": "assigning personnel, equipment, supplies or facilities",
    "public_statement": "press releases, briefings, public messaging",
    "operational_action": "tactical field operations and direct interventions",
    "policy_change": "changes to procedures, rules or protocols",
    "coordination_order": "inter-agency tasking, joint operations, liaison",
    "other": "anything that fits none of the above",
}

SYSTEM_PROMPT = "\n".join([
    "You classify decisions taken by participants in a crisis-management training exercise.",
    "",
    "Categories:",
    *(f"- {name}: {_CATEGORY_HELP[name]}" for name in DECISION_CATEGORIES),
    "",
    "Return the single best primary_category, every applicable category, 3-10 lower-case",
    "keywords taken from the decision wording (single words, e.g. 'evacuate', 'together'),",
    "2-6 snake_case semantic tags describing intent, and a confidence between 0 and 1.",
    "",
    "Reply with JSON only:",
    '{"primary_category": "...", "categories": ["..."], "keywords": ["..."], '
    '"semantic_tags": ["..."], "confidence": 0.9, "reasoning": "one sentence"}',
])


class DecisionClassifier:
    def __init__(self, llm: ChatClient) -> None:
        self._llm = llm

    async def classify(self, decision: DecisionRecord) -> DecisionClassification:
        """
        Classify one decision

        Raises:
            ProviderError subclasses; MalformedProviderOutput when the reply
            does not fit the classification schema
        """
        user_prompt = "\n".join([
            f"Title: {decision.title}",
            f"Type declared by participant: {decision.decision_type or 'unspecified'}",
            f"Description: {decision.description}",
        ])
        payload = await self._llm.complete_json(
            task="decision.classify",
            system_prompt=SYSTEM_PROMPT,
            user_prompt=user_prompt,
        )
        if not isinstance(payload, dict):
            raise MalformedProviderOutput("Classification reply is not an object", raw=str(payload))

        try:
            classification = DecisionClassification.model_validate(payload)
        except ValidationError as e:
            raise MalformedProviderOutput(f"Classification failed validation: {e.error_count()} error(s)", raw=str(payload))

        if classification.primary_category not in classification.categories:
            classification.categories.insert(0, classification.primary_category)

        logger.info(
            f"Decision classified: decision_id={decision.id} primary={classification.primary_category} "
            f"keywords={classification.keywords}"
        )
        return classification
