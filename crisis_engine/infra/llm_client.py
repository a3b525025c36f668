"""LLM client: ChatOpenAI construction plus a JSON-returning chat adapter with timeouts."""
from __future__ import annotations

import asyncio
import json
import logging
import time
from typing import Any, Optional, Union

import openai
from langchain_core.language_models import BaseChatModel
from langchain_core.messages import HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI

from crisis_engine.agents.exceptions import (
    MalformedProviderOutput,
    ProviderRejected,
    ProviderTimeout,
    ProviderUnavailable,
)
from crisis_engine.core.config import Settings

logger = logging.getLogger(__name__)

JsonValue = Union[dict[str, Any], list[Any]]


def build_chat_model(settings: Settings) -> ChatOpenAI:
    """Build the ChatOpenAI model; retries are left to the scheduler cadence."""
    logger.info(
        "Initialising LLM",
        extra={
            "base_url": settings.openai_base_url,
            "model": settings.llm_model,
            "timeout": settings.ai_provider_timeout_s,
            "concurrency": settings.llm_max_concurrency,
        },
    )
    return ChatOpenAI(
        model=settings.llm_model,
        base_url=settings.openai_base_url,
        api_key=settings.openai_api_key,
        timeout=settings.ai_provider_timeout_s,
        max_retries=0,
    )


def parse_json_content(text: str) -> JsonValue:
    """Extract a JSON object/array from a model reply, tolerating code fences."""
    result_text = (text or "").strip()

    if "```" in result_text:
        result_text = result_text.split("```")[1]
        if result_text.startswith("json"):
            result_text = result_text[4:]
        result_text = result_text.strip()

    try:
        return json.loads(result_text)
    except json.JSONDecodeError:
        pass

    # prose around the payload
    for open_char, close_char in (("{", "}"), ("[", "]")):
        start = result_text.find(open_char)
        end = result_text.rfind(close_char)
        if start != -1 and end > start:
            try:
                return json.loads(result_text[start:end + 1])
            except json.JSONDecodeError:
                continue

    raise MalformedProviderOutput("Provider reply is not valid JSON", raw=text)


class JsonChatClient:
    """
    Chat adapter used by every AI component of the engine

    - caps concurrent provider calls with a semaphore
    - applies a per-call timeout without cancelling the underlying request
      (the late reply is discarded when it arrives)
    - maps provider exceptions onto the engine's error taxonomy
    """

    def __init__(
        self,
        model: BaseChatModel,
        timeout: float = 20.0,
        max_concurrency: int = 4,
    ) -> None:
        self._model = model
        self._timeout = timeout
        self._semaphore = asyncio.Semaphore(max_concurrency)
        self._inflight: set[asyncio.Task] = set()

    @property
    def inflight_count(self) -> int:
        return len(self._inflight)

    async def complete_json(
        self,
        *,
        task: str,
        system_prompt: str,
        user_prompt: str,
    ) -> JsonValue:
        """
        Run one prompt and parse the reply as JSON

        Args:
            task: short label used in logs and timeout errors
            system_prompt: instructions
            user_prompt: context payload

        Returns:
            parsed JSON object or array

        Raises:
            ProviderTimeout, ProviderUnavailable, ProviderRejected, MalformedProviderOutput
        """
        messages = [SystemMessage(content=system_prompt), HumanMessage(content=user_prompt)]
        start_ts = time.time()

        # the slot is released when the provider call ends, not when the caller gives up
        await self._semaphore.acquire()
        try:
            call = asyncio.ensure_future(self._model.ainvoke(messages))
        except BaseException:
            self._semaphore.release()
            raise
        self._inflight.add(call)
        call.add_done_callback(self._on_call_done)

        try:
            response = await asyncio.wait_for(asyncio.shield(call), timeout=self._timeout)
        except asyncio.TimeoutError:
            raise ProviderTimeout(task, self._timeout)
        except openai.APITimeoutError:
            raise ProviderTimeout(task, self._timeout)
        except (
            openai.APIConnectionError,
            openai.AuthenticationError,
            openai.RateLimitError,
            openai.InternalServerError,
        ) as e:
            raise ProviderUnavailable(f"Provider call [{task}] failed: {e}") from e
        except (
            openai.BadRequestError,
            openai.PermissionDeniedError,
            openai.UnprocessableEntityError,
        ) as e:
            raise ProviderRejected(f"Provider rejected [{task}]: {e}") from e

        metadata = getattr(response, "response_metadata", None) or {}
        if metadata.get("finish_reason") == "content_filter":
            raise ProviderRejected(f"Provider filtered output for [{task}]")

        latency = time.time() - start_ts
        logger.debug(f"LLM [{task}] answered in {latency * 1000:.0f}ms")
        return parse_json_content(str(response.content))

    def _on_call_done(self, call: asyncio.Task) -> None:
        self._inflight.discard(call)
        self._semaphore.release()
        if not call.cancelled() and call.exception() is not None:
            # a timed-out caller never awaits this task again
            logger.debug(f"Late provider failure discarded: {call.exception()}")


def build_json_chat_client(settings: Settings) -> Optional[JsonChatClient]:
    """Returns None when no API key is configured (AI features disabled)."""
    if not settings.ai_enabled:
        logger.warning("OPENAI_API_KEY not set, AI features disabled")
        return None
    return JsonChatClient(
        build_chat_model(settings),
        timeout=settings.ai_provider_timeout_s,
        max_concurrency=settings.llm_max_concurrency,
    )
