"""Client for self-hosted vLLM or TGI compatible inference endpoints."""

from __future__ import annotations

import logging
from typing import Any, Iterable, List

import httpx

from bridge.errors import LLMFailedError
from config.settings import get_settings
from llm.base import BaseLLMClient, json_schema_response_format

LOGGER = logging.getLogger(__name__)


class VLLMClient(BaseLLMClient):
    """Minimal client for a self-hosted OpenAI-compatible inference server."""

    def __init__(self) -> None:
        settings = get_settings()
        if not settings.llm_endpoint:
            raise ValueError("Self-hosted LLM endpoint must be configured.")

        self._endpoint = settings.llm_endpoint.rstrip("/")
        self._model = settings.llm_model
        self._api_key = settings.llm_api_key

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    async def _post_chat(self, payload: dict[str, Any]) -> str:
        try:
            async with httpx.AsyncClient(timeout=90) as client:
                response = await client.post(
                    f"{self._endpoint}/v1/chat/completions",
                    json=payload,
                    headers=self._headers(),
                )
            response.raise_for_status()
        except httpx.HTTPError as exc:
            LOGGER.error("Self-hosted LLM request failed: %s", exc)
            raise LLMFailedError(str(exc)) from exc

        try:
            data = response.json()
            choices: List[dict] = data.get("choices") or []
            if not choices:
                raise LLMFailedError("LLM response contains no choices.")
            return choices[0]["message"]["content"] or ""
        except (ValueError, KeyError, TypeError, IndexError, AttributeError) as exc:
            LOGGER.error("Self-hosted LLM returned an unreadable response: %s", exc)
            raise LLMFailedError(f"Malformed LLM response: {exc}") from exc

    async def chat(
        self,
        messages: Iterable[dict[str, str]],
        *,
        temperature: float = 0.1,
    ) -> str:
        payload = {
            "model": self._model,
            "messages": list(messages),
            "temperature": temperature,
            "max_tokens": 768,
        }
        return await self._post_chat(payload)

    async def chat_structured(
        self,
        messages: Iterable[dict[str, str]],
        *,
        schema_name: str,
        schema: dict[str, Any],
        temperature: float = 0.0,
    ) -> str:
        payload = {
            "model": self._model,
            "messages": list(messages),
            "temperature": temperature,
            "response_format": json_schema_response_format(schema_name, schema),
        }
        return await self._post_chat(payload)
