"""Post-call structured extraction, persistence and notification."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from collections.abc import Callable
from typing import Protocol

from pydantic import ValidationError

from bridge.errors import DatabaseOperationError, ExtractionFailedError, LLMFailedError
from db.models import Conversation, Message
from llm.base import BaseLLMClient
from notify.notifier import Notifier
from postcall.schemas import CallSummary, TranscriptExtractionResult
from prompts.loader import load_prompt

LOGGER = logging.getLogger(__name__)

EXTRACTION_SYSTEM_PROMPT = load_prompt("extraction_system.txt")
EXTRACTION_SCHEMA_NAME = "customer_details_extraction"

LLMProvider = Callable[[], BaseLLMClient]


class ConversationStore(Protocol):
    async def get_or_create_conversation(self, phone_number: str, name: str = "") -> Conversation: ...

    async def store_message(self, conversation_id: int, direction: str, content: str) -> Message: ...


def call_address(call_id: str) -> str:
    """Synthetic contact address under which a voice call is stored."""

    return f"call_{call_id}"


def serialize_conversation(conversation: Conversation) -> dict:
    return {
        "id": conversation.id,
        "phone_number": conversation.phone_number,
        "lead_name": conversation.lead_name,
        "thread_id": conversation.thread_id,
        "created_at": conversation.created_at,
        "updated_at": conversation.updated_at,
    }


def serialize_message(message: Message) -> dict:
    return {
        "id": message.id,
        "conversation_id": message.conversation_id,
        "direction": message.direction,
        "content": message.content,
        "timestamp": message.timestamp or datetime.now(timezone.utc),
    }


class PostCallExtractor:
    """Turns a finished call transcript into a stored conversation summary.

    Every failure is confined to the call at hand: it is logged and the
    summary is skipped, never retried. The LLM client may be passed as a
    zero-argument factory; it is then built on first use.
    """

    def __init__(
        self,
        llm_client: BaseLLMClient | LLMProvider,
        repository: ConversationStore,
        notifier: Notifier,
    ) -> None:
        self._llm = llm_client
        self._repo = repository
        self._notifier = notifier

    def _resolve_llm(self) -> BaseLLMClient:
        if not isinstance(self._llm, BaseLLMClient):
            try:
                self._llm = self._llm()
            except ValueError as exc:
                raise LLMFailedError(f"LLM client is not configured: {exc}") from exc
        return self._llm

    async def process(self, call_id: str, transcript: str) -> TranscriptExtractionResult | None:
        LOGGER.info("[%s] Starting transcript processing", call_id)
        try:
            result = await self.extract(transcript)
        except (ExtractionFailedError, LLMFailedError) as exc:
            LOGGER.error("[%s] Extraction aborted: %s", call_id, exc.detail)
            return None

        try:
            await self._store_and_notify(call_id, transcript, result)
        except DatabaseOperationError as exc:
            LOGGER.error("[%s] Could not store call summary: %s", call_id, exc.detail)
            return None

        LOGGER.info("[%s] Extracted and stored customer details: %s", call_id, result.as_details())
        return result

    async def extract(self, transcript: str) -> TranscriptExtractionResult:
        messages = [
            {"role": "system", "content": EXTRACTION_SYSTEM_PROMPT},
            {"role": "user", "content": transcript},
        ]
        raw_response = await self._resolve_llm().chat_structured(
            messages,
            schema_name=EXTRACTION_SCHEMA_NAME,
            schema=TranscriptExtractionResult.json_schema_for_llm(),
        )

        try:
            payload = json.loads(raw_response)
        except json.JSONDecodeError as exc:
            LOGGER.error("Extractor returned invalid JSON: %s", raw_response)
            raise ExtractionFailedError("Invalid extraction JSON") from exc

        if not isinstance(payload, dict):
            raise ExtractionFailedError("Extraction JSON is not an object")

        try:
            return TranscriptExtractionResult.model_validate(payload)
        except ValidationError as exc:
            LOGGER.error("Extraction payload failed validation: %s", exc)
            raise ExtractionFailedError("Extraction payload is missing required fields") from exc

    async def _store_and_notify(
        self,
        call_id: str,
        transcript: str,
        result: TranscriptExtractionResult,
    ) -> None:
        conversation = await self._repo.get_or_create_conversation(
            call_address(call_id), result.customer_name
        )
        transcript_message = await self._repo.store_message(conversation.id, "inbound", transcript)

        summary = CallSummary(details=result).model_dump_json(by_alias=True)
        summary_message = await self._repo.store_message(conversation.id, "system", summary)

        await self._notifier.broadcast(
            {
                "type": "new_conversation",
                "conversation_id": conversation.id,
                "conversation": {
                    **serialize_conversation(conversation),
                    "messages": [
                        serialize_message(transcript_message),
                        serialize_message(summary_message),
                    ],
                },
            }
        )
