"""Best-effort fan-out of dashboard events.

Observers are dashboard WebSocket clients. Delivery is never retried and a
failing observer never affects the caller of `broadcast`.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any

from fastapi import WebSocket
from fastapi.encoders import jsonable_encoder
from starlette.websockets import WebSocketState

LOGGER = logging.getLogger(__name__)


class Notifier(ABC):
    @abstractmethod
    async def broadcast(self, event: dict[str, Any]) -> None:
        """Deliver `event` to every connected observer."""


class WebSocketNotifier(Notifier):
    """Registry of connected dashboard clients keyed by client id."""

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._clients: dict[str, WebSocket] = {}

    @property
    def client_ids(self) -> list[str]:
        return list(self._clients)

    async def register(self, client_id: str, websocket: WebSocket) -> None:
        async with self._lock:
            previous = self._clients.get(client_id)
            self._clients[client_id] = websocket
        if previous is not None and previous is not websocket:
            LOGGER.info("Client %s reconnected, replacing previous channel", client_id)
        LOGGER.info("Client %s connected", client_id)

    async def unregister(self, client_id: str, websocket: WebSocket | None = None) -> None:
        async with self._lock:
            current = self._clients.get(client_id)
            if current is None or (websocket is not None and current is not websocket):
                return
            del self._clients[client_id]
        LOGGER.info("Client %s disconnected", client_id)

    async def broadcast(self, event: dict[str, Any]) -> None:
        async with self._lock:
            clients = list(self._clients.items())

        payload = jsonable_encoder(event)
        for client_id, websocket in clients:
            if (
                websocket.client_state is not WebSocketState.CONNECTED
                or websocket.application_state is not WebSocketState.CONNECTED
            ):
                LOGGER.debug("Skipping client %s, channel not open", client_id)
                continue
            try:
                await websocket.send_json(payload)
            except Exception as exc:  # observer failures must not reach the call
                LOGGER.warning("Broadcast to client %s failed: %s", client_id, exc)
