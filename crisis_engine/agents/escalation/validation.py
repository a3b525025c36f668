"""Bounds enforcement for stage outputs."""
from __future__ import annotations

import logging
from typing import Any, Sequence, Type, TypeVar, Union

from pydantic import BaseModel, ValidationError

from crisis_engine.agents.exceptions import MalformedProviderOutput

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


def extract_items(payload: Union[dict[str, Any], list[Any]], key: str) -> list[Any]:
    """Accept either a bare array or an object wrapping it under `key`."""
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict):
        items = payload.get(key)
        if isinstance(items, list):
            return items
    raise MalformedProviderOutput(f"Expected a '{key}' array in provider reply", raw=str(payload))


def coerce_bounded(
    raw_items: Sequence[Any],
    model: Type[ModelT],
    bounds: tuple[int, int],
    *,
    stage: str,
    id_field: str,
    id_prefix: str,
) -> list[ModelT]:
    """
    Validate items, drop malformed ones, truncate above the maximum

    Raises:
        MalformedProviderOutput: fewer valid items than the minimum
    """
    minimum, maximum = bounds
    valid: list[ModelT] = []
    dropped = 0

    for idx, item in enumerate(raw_items):
        if not isinstance(item, dict):
            dropped += 1
            continue
        data = dict(item)
        if not data.get(id_field):
            data[id_field] = f"{id_prefix}-{idx + 1}"
        try:
            valid.append(model.model_validate(data))
        except ValidationError:
            dropped += 1

    if dropped:
        logger.debug(f"[Escalation] {stage}: dropped {dropped} malformed item(s)")

    if len(valid) > maximum:
        logger.info(f"[Escalation] {stage}: truncating {len(valid)} items to {maximum}")
        valid = valid[:maximum]

    if len(valid) < minimum:
        raise MalformedProviderOutput(
            f"{stage} returned {len(valid)} valid item(s), at least {minimum} required",
            raw=str(list(raw_items))[:500],
        )
    return valid
