"""OpenAI/Azure OpenAI client wrapper."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any

from openai import AsyncOpenAI, OpenAIError

from bridge.errors import LLMFailedError
from config.settings import get_settings
from llm.base import BaseLLMClient, json_schema_response_format

LOGGER = logging.getLogger(__name__)


def _first_content(response: Any) -> str:
    choices = getattr(response, "choices", None) or []
    if not choices:
        LOGGER.error("OpenAI completion returned no choices")
        raise LLMFailedError("LLM response contains no choices.")
    LOGGER.debug("Completion finish_reason=%s", choices[0].finish_reason)
    return choices[0].message.content or ""


class OpenAIClient(BaseLLMClient):
    """Wrapper for OpenAI or Azure OpenAI Chat Completion API."""

    def __init__(self) -> None:
        settings = get_settings()
        api_key = settings.effective_llm_api_key
        if not api_key:
            raise ValueError("LLM API key must be configured for OpenAI client.")

        self._client = AsyncOpenAI(
            api_key=api_key,
            base_url=settings.llm_endpoint or None,
        )
        self._model = settings.llm_model

    async def chat(
        self,
        messages: Iterable[dict[str, str]],
        *,
        temperature: float = 0.1,
    ) -> str:
        try:
            response = await self._client.chat.completions.create(
                model=self._model,
                messages=list(messages),
                temperature=temperature,
                max_tokens=768,
            )
        except OpenAIError as exc:
            LOGGER.error("OpenAI chat completion failed: %s", exc)
            raise LLMFailedError(str(exc)) from exc
        return _first_content(response)

    async def chat_structured(
        self,
        messages: Iterable[dict[str, str]],
        *,
        schema_name: str,
        schema: dict[str, Any],
        temperature: float = 0.0,
    ) -> str:
        try:
            response = await self._client.chat.completions.create(
                model=self._model,
                messages=list(messages),
                temperature=temperature,
                response_format=json_schema_response_format(schema_name, schema),
            )
        except OpenAIError as exc:
            LOGGER.error("OpenAI structured completion failed: %s", exc)
            raise LLMFailedError(str(exc)) from exc
        return _first_content(response)
