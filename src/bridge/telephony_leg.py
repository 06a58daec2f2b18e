from __future__ import annotations

import json
import logging
from enum import Enum
from typing import Any

from fastapi import WebSocket, WebSocketDisconnect

from bridge.errors import MalformedFrameError
from bridge.events import TelephonyEvent, TelephonyEventKind, parse_telephony_message
from bridge.relay import AudioRelay
from bridge.session_store import SessionStore

LOGGER = logging.getLogger(__name__)


class TelephonyLegState(str, Enum):
    AWAITING_START = "awaiting_start"
    STREAMING = "streaming"
    CLOSED = "closed"


class TelephonyLeg:
    """Twilio Media Streams side of a call.

    Reads control and media frames from the Twilio WebSocket until the stream
    stops or the socket closes. Malformed frames are logged and skipped.
    """

    def __init__(
        self,
        call_id: str,
        store: SessionStore,
        websocket: WebSocket,
        relay: AudioRelay,
    ) -> None:
        self._call_id = call_id
        self._store = store
        self._websocket = websocket
        self._relay = relay
        self._state = TelephonyLegState.AWAITING_START

    @property
    def state(self) -> TelephonyLegState:
        return self._state

    @property
    def closed(self) -> bool:
        return self._state is TelephonyLegState.CLOSED

    async def run(self) -> None:
        try:
            while not self.closed:
                message = await self._receive_frame()
                try:
                    await self.handle_message(message)
                except Exception:
                    LOGGER.exception("[%s] Failed to process telephony frame", self._call_id)
        except WebSocketDisconnect:
            LOGGER.info("[%s] Telephony transport closed", self._call_id)
        finally:
            self._state = TelephonyLegState.CLOSED

    async def _receive_frame(self) -> str | bytes:
        message = await self._websocket.receive()
        if message["type"] == "websocket.disconnect":
            raise WebSocketDisconnect(code=message.get("code", 1000), reason=message.get("reason"))
        if message.get("text") is not None:
            return message["text"]
        return message.get("bytes") or b""

    async def handle_message(self, message: str | bytes) -> None:
        try:
            event = parse_telephony_message(message)
        except MalformedFrameError as exc:
            LOGGER.warning("[%s] Ignoring telephony frame: %s", self._call_id, exc.detail)
            return

        if event.kind is TelephonyEventKind.START:
            await self._on_start(event)
        elif event.kind is TelephonyEventKind.MEDIA:
            await self._on_media(event)
        elif event.kind is TelephonyEventKind.STOP:
            LOGGER.info("[%s] Telephony stream stopped", self._call_id)
            self._state = TelephonyLegState.CLOSED
        else:
            LOGGER.debug("[%s] Received non-media event: %s", self._call_id, event.raw_kind)

    async def _on_start(self, event: TelephonyEvent) -> None:
        if self._state is not TelephonyLegState.AWAITING_START:
            LOGGER.warning("[%s] Unexpected start event while %s", self._call_id, self._state.value)
        if self.closed:
            return
        await self._store.set_stream_address(self._call_id, event.stream_address)
        self._state = TelephonyLegState.STREAMING
        LOGGER.info(
            "[%s] Incoming stream has started streamSid=%s callSid=%s params=%s",
            self._call_id,
            event.stream_address,
            event.call_sid,
            event.custom_parameters,
        )

    async def _on_media(self, event: TelephonyEvent) -> None:
        if self._state is not TelephonyLegState.STREAMING:
            LOGGER.debug("[%s] Dropping media received while %s", self._call_id, self._state.value)
            return
        if event.track and event.track != "inbound":
            return
        await self._relay.forward_to_ai(event.payload)

    async def send_json(self, message: dict[str, Any]) -> None:
        if self.closed:
            LOGGER.debug("[%s] Telephony leg closed, not sending %s", self._call_id, message.get("event"))
            return
        try:
            await self._websocket.send_text(json.dumps(message))
        except (WebSocketDisconnect, RuntimeError) as exc:
            LOGGER.warning("[%s] Telephony send failed, treating leg as closed: %s", self._call_id, exc)
            self._state = TelephonyLegState.CLOSED
