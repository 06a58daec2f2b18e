from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Any

from bridge.events import build_audio_append, build_media_frame
from bridge.session_store import AiConnectionState, SessionStore

LOGGER = logging.getLogger(__name__)

SendJson = Callable[[dict[str, Any]], Awaitable[None]]


class AudioRelay:
    """Forwards opaque audio payloads between the two legs of one call.

    Nothing is buffered: a frame either goes out immediately or is dropped.
    """

    def __init__(
        self,
        call_id: str,
        store: SessionStore,
        *,
        send_to_ai: SendJson,
        send_to_telephony: SendJson,
    ) -> None:
        self._call_id = call_id
        self._store = store
        self._send_to_ai = send_to_ai
        self._send_to_telephony = send_to_telephony
        self.frames_to_ai = 0
        self.frames_to_telephony = 0
        self.dropped_to_ai = 0
        self.dropped_to_telephony = 0

    async def forward_to_ai(self, payload_b64: str) -> bool:
        session = self._store.get(self._call_id)
        if session is None or session.ai_state is not AiConnectionState.READY:
            state = session.ai_state.value if session else "gone"
            self.dropped_to_ai += 1
            LOGGER.debug("[%s] Dropping caller audio, AI leg is %s", self._call_id, state)
            return False

        await self._send_to_ai(build_audio_append(payload_b64))
        self.frames_to_ai += 1
        return True

    async def forward_to_telephony(self, payload_b64: str) -> bool:
        session = self._store.get(self._call_id)
        if session is None or session.stream_address is None:
            self.dropped_to_telephony += 1
            LOGGER.warning("[%s] Dropping AI audio, no stream address yet", self._call_id)
            return False

        await self._send_to_telephony(build_media_frame(session.stream_address, payload_b64))
        self.frames_to_telephony += 1
        return True
