from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Literal

LOGGER = logging.getLogger(__name__)

Speaker = Literal["user", "agent"]


class AiConnectionState(str, Enum):
    CONNECTING = "connecting"
    READY = "ready"
    CLOSED = "closed"


@dataclass(frozen=True, slots=True)
class TranscriptLine:
    speaker: Speaker
    text: str


@dataclass
class Session:
    call_id: str
    stream_address: str | None = None
    transcript: list[TranscriptLine] = field(default_factory=list)
    ai_state: AiConnectionState = AiConnectionState.CONNECTING
    finalized: bool = False


class SessionStore:
    """In-memory registry of live calls.

    Note: This is a single-process store. Every mutation is keyed by one call
    id, so calls never contend with each other.
    """

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._sessions: dict[str, Session] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, call_id: object) -> bool:
        return call_id in self._sessions

    def get(self, call_id: str) -> Session | None:
        return self._sessions.get(call_id)

    async def get_or_create(self, call_id: str) -> Session:
        async with self._lock:
            session = self._sessions.get(call_id)
            if session is None:
                session = Session(call_id=call_id)
                self._sessions[call_id] = session
                LOGGER.info("[%s] Session created", call_id)
            return session

    async def append_transcript_line(self, call_id: str, speaker: Speaker, text: str) -> None:
        async with self._lock:
            session = self._sessions.get(call_id)
            if session is None:
                LOGGER.warning("[%s] Dropping late %s transcript line, call is gone", call_id, speaker)
                return
            session.transcript.append(TranscriptLine(speaker=speaker, text=text))

    async def set_stream_address(self, call_id: str, address: str) -> None:
        async with self._lock:
            session = self._sessions.get(call_id)
            if session is None:
                LOGGER.warning("[%s] Cannot record stream address, call is gone", call_id)
                return
            if session.stream_address is None:
                session.stream_address = address
                return
            if session.stream_address != address:
                LOGGER.warning(
                    "[%s] Ignoring second stream address %s, keeping %s",
                    call_id,
                    address,
                    session.stream_address,
                )

    async def set_ai_state(self, call_id: str, state: AiConnectionState) -> None:
        async with self._lock:
            session = self._sessions.get(call_id)
            if session is None:
                LOGGER.debug("[%s] AI leg is %s after teardown", call_id, state.value)
                return
            session.ai_state = state

    async def remove(self, call_id: str) -> None:
        async with self._lock:
            if self._sessions.pop(call_id, None) is not None:
                LOGGER.info("[%s] Session removed", call_id)
