from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Any, Protocol

from fastapi import WebSocket

from bridge.ai_leg import AiLeg, Connector
from bridge.relay import AudioRelay
from bridge.session_store import Session, SessionStore
from bridge.telephony_leg import TelephonyLeg
from bridge.transcript import render_transcript
from config.settings import Settings

LOGGER = logging.getLogger(__name__)


class TranscriptProcessor(Protocol):
    async def process(self, call_id: str, transcript: str) -> Any: ...


class CallBridge:
    """Supervises one bridged call.

    The telephony receive loop runs in the caller's task, the AI receive loop
    in a task owned by the bridge. Whichever close signal arrives first
    finalizes the call; later ones are no-ops.
    """

    def __init__(
        self,
        call_id: str,
        *,
        store: SessionStore,
        websocket: WebSocket,
        extractor: TranscriptProcessor,
        settings: Settings | None = None,
        ai_connector: Connector | None = None,
        instructions: str | None = None,
    ) -> None:
        self.call_id = call_id
        self._store = store
        self._extractor = extractor
        self.relay = AudioRelay(
            call_id,
            store,
            send_to_ai=self._send_to_ai,
            send_to_telephony=self._send_to_telephony,
        )
        self.telephony = TelephonyLeg(call_id, store, websocket, self.relay)
        self.ai = AiLeg(
            call_id,
            store,
            self.relay,
            settings=settings,
            connector=ai_connector,
            instructions=instructions,
        )
        self._session: Session | None = None
        self._ai_task: asyncio.Task | None = None

    async def _send_to_ai(self, message: dict[str, Any]) -> None:
        await self.ai.send_json(message)

    async def _send_to_telephony(self, message: dict[str, Any]) -> None:
        await self.telephony.send_json(message)

    async def open_session(self) -> Session:
        self._session = await self._store.get_or_create(self.call_id)
        return self._session

    async def start(self) -> Session:
        session = await self.open_session()
        self._ai_task = asyncio.create_task(self.ai.run(), name=f"ai-leg-{self.call_id}")
        return session

    async def run(self) -> None:
        await self.start()
        try:
            await self.telephony.run()
        finally:
            await self.finalize()

    async def finalize(self) -> bool:
        """Close the AI leg, run post-call extraction and drop the session.

        Returns False when the call was already finalized.
        """

        session = self._session
        if session is None or session.finalized:
            return False
        session.finalized = True

        try:
            await self.ai.close()
            if self._ai_task is not None and not self._ai_task.done():
                self._ai_task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await self._ai_task

            transcript = render_transcript(list(session.transcript))
            LOGGER.info("[%s] Call ended, full transcript:\n%s", self.call_id, transcript)
            await self._extractor.process(self.call_id, transcript)
        finally:
            await self._store.remove(self.call_id)
        return True
