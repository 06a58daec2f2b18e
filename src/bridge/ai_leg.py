"""OpenAI Realtime side of a call.

Lifecycle:
1. connect() opens the WebSocket, waits a short settle delay and sends one
   session.update describing codec, turn detection, voice and instructions.
2. The leg becomes READY only once the endpoint answers with session.updated;
   until then the relay drops caller audio.
3. listen() classifies every inbound event: transcripts go to the session
   store, audio deltas go back to the caller through the relay.
4. On close or socket error the leg is CLOSED. It never finalizes the call;
   that belongs to the telephony side hanging up.
"""

from __future__ import annotations

import asyncio
import base64
import binascii
import json
import logging
from collections.abc import Awaitable, Callable
from typing import Any

import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException

from bridge.errors import MalformedFrameError
from bridge.events import (
    AiEvent,
    AiEventKind,
    build_session_update,
    first_response_transcript,
    parse_ai_message,
)
from bridge.relay import AudioRelay
from bridge.session_store import AiConnectionState, SessionStore
from bridge.transcript import AGENT_MESSAGE_NOT_FOUND
from config.settings import Settings, get_settings
from prompts.loader import load_prompt

LOGGER = logging.getLogger(__name__)

Connector = Callable[[], Awaitable[Any]]


class AiLeg:
    def __init__(
        self,
        call_id: str,
        store: SessionStore,
        relay: AudioRelay,
        *,
        settings: Settings | None = None,
        connector: Connector | None = None,
        instructions: str | None = None,
    ) -> None:
        self._call_id = call_id
        self._store = store
        self._relay = relay
        self._settings = settings or get_settings()
        self._connector = connector or self._connect_realtime
        self._instructions = instructions or load_prompt("receptionist_system.txt").strip()
        self._verbose_events = frozenset(self._settings.realtime_verbose_event_types)
        self._connection: Any = None
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def _connect_realtime(self) -> Awaitable[Any]:
        api_key = self._settings.openai_api_key
        if not api_key:
            raise ValueError("OPENAI_API_KEY must be configured for the realtime leg.")
        url = f"{self._settings.realtime_url}?model={self._settings.realtime_model}"
        return websockets.connect(
            url,
            additional_headers={
                "Authorization": f"Bearer {api_key}",
                "OpenAI-Beta": "realtime=v1",
            },
            ping_interval=20,
            ping_timeout=20,
            close_timeout=5,
        )

    async def run(self) -> None:
        if await self.connect():
            await self.listen()

    async def connect(self) -> bool:
        try:
            self._connection = await self._connector()
        except (OSError, ValueError, asyncio.TimeoutError, WebSocketException) as exc:
            LOGGER.error("[%s] Could not connect to the realtime endpoint: %s", self._call_id, exc)
            await self._mark_closed()
            return False

        LOGGER.info("[%s] Connected to the OpenAI Realtime API", self._call_id)
        await asyncio.sleep(self._settings.realtime_settle_delay_seconds)
        await self.send_session_update()
        return not self._closed

    async def send_session_update(self) -> None:
        update = build_session_update(
            instructions=self._instructions,
            voice=self._settings.realtime_voice,
            audio_format=self._settings.realtime_audio_format,
            turn_detection=self._settings.realtime_turn_detection,
            temperature=self._settings.realtime_temperature,
            transcription_model=self._settings.realtime_transcription_model,
        )
        LOGGER.debug("[%s] Sending session update: %s", self._call_id, update)
        await self.send_json(update)

    async def send_json(self, message: dict[str, Any]) -> None:
        if self._connection is None or self._closed:
            return
        try:
            await self._connection.send(json.dumps(message))
        except ConnectionClosed as exc:
            LOGGER.warning("[%s] Realtime send failed, leg closed: %s", self._call_id, exc)
            await self._mark_closed()

    async def listen(self) -> None:
        try:
            async for message in self._connection:
                try:
                    await self.handle_event(message)
                except Exception:
                    LOGGER.exception("[%s] Error processing realtime event", self._call_id)
        except ConnectionClosed as exc:
            LOGGER.warning("[%s] Realtime connection dropped: %s", self._call_id, exc)
        finally:
            LOGGER.info("[%s] Disconnected from the OpenAI Realtime API", self._call_id)
            await self._mark_closed()

    async def handle_event(self, message: str | bytes) -> None:
        try:
            event = parse_ai_message(message)
        except MalformedFrameError as exc:
            LOGGER.warning("[%s] Ignoring realtime event: %s", self._call_id, exc.detail)
            return

        if event.kind is AiEventKind.SESSION_UPDATED:
            await self._on_session_updated()
        elif event.kind is AiEventKind.INPUT_TRANSCRIPTION_COMPLETED:
            await self._on_user_transcript(event)
        elif event.kind is AiEventKind.RESPONSE_DONE:
            await self._on_response_done(event)
        elif event.kind is AiEventKind.AUDIO_DELTA:
            await self._on_audio_delta(event)
        elif event.kind is AiEventKind.ERROR:
            LOGGER.error("[%s] Realtime endpoint reported an error: %s", self._call_id, event.data.get("error"))
        elif event.raw_kind in self._verbose_events:
            LOGGER.info("[%s] Received event: %s %s", self._call_id, event.raw_kind, event.data)

    async def _on_session_updated(self) -> None:
        if self._closed:
            return
        await self._store.set_ai_state(self._call_id, AiConnectionState.READY)
        LOGGER.info("[%s] Session updated successfully, AI leg ready", self._call_id)

    async def _on_user_transcript(self, event: AiEvent) -> None:
        text = str(event.data.get("transcript") or "").strip()
        if not text:
            LOGGER.debug("[%s] Empty user transcription skipped", self._call_id)
            return
        LOGGER.info("[%s] User: %s", self._call_id, text)
        await self._store.append_transcript_line(self._call_id, "user", text)

    async def _on_response_done(self, event: AiEvent) -> None:
        text = first_response_transcript(event.data) or AGENT_MESSAGE_NOT_FOUND
        LOGGER.info("[%s] Agent: %s", self._call_id, text)
        await self._store.append_transcript_line(self._call_id, "agent", text)

    async def _on_audio_delta(self, event: AiEvent) -> None:
        delta = event.data.get("delta")
        if not isinstance(delta, str) or not delta:
            return
        try:
            audio = base64.b64decode(delta, validate=True)
        except binascii.Error:
            LOGGER.warning("[%s] Dropping audio delta with invalid base64 payload", self._call_id)
            return
        await self._relay.forward_to_telephony(base64.b64encode(audio).decode("ascii"))

    async def close(self) -> None:
        connection = self._connection
        await self._mark_closed()
        if connection is not None:
            try:
                await connection.close()
            except (OSError, WebSocketException) as exc:
                LOGGER.debug("[%s] Realtime close raised: %s", self._call_id, exc)

    async def _mark_closed(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self._store.set_ai_state(self._call_id, AiConnectionState.CLOSED)
