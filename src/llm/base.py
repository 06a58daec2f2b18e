"""Shared abstractions for language model clients."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Iterable


class BaseLLMClient(ABC):
    """Abstract base class for text-completion providers."""

    @abstractmethod
    async def chat(
        self,
        messages: Iterable[dict[str, str]],
        *,
        temperature: float = 0.1,
    ) -> str:
        """Return a chat-style completion."""

    @abstractmethod
    async def chat_structured(
        self,
        messages: Iterable[dict[str, str]],
        *,
        schema_name: str,
        schema: dict[str, Any],
        temperature: float = 0.0,
    ) -> str:
        """Return the raw JSON text of a completion constrained to `schema`."""


def json_schema_response_format(schema_name: str, schema: dict[str, Any]) -> dict[str, Any]:
    return {
        "type": "json_schema",
        "json_schema": {"name": schema_name, "schema": schema},
    }
