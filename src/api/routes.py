"""FastAPI routes for the dashboard: conversations, messages and live updates."""

from __future__ import annotations

import json
import logging

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect, status

from api.dependencies import get_notifier, get_repository
from api.schemas import (
    ConversationDetailResponse,
    ConversationResponse,
    HealthResponse,
    MessageResponse,
    SendMessageRequest,
    SendMessageResponse,
)
from api.twilio_routes import router as twilio_router
from db.repository import ConversationRepository
from notify.notifier import WebSocketNotifier

LOGGER = logging.getLogger(__name__)

router = APIRouter()
router.include_router(twilio_router)


@router.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    return HealthResponse()


@router.get("/conversations", response_model=list[ConversationResponse])
async def list_conversations(
    repo: ConversationRepository = Depends(get_repository),
) -> list[ConversationResponse]:
    conversations = await repo.list_conversations()
    return [ConversationResponse.model_validate(conversation) for conversation in conversations]


@router.get("/conversations/{conversation_id}", response_model=ConversationDetailResponse)
async def get_conversation(
    conversation_id: int,
    repo: ConversationRepository = Depends(get_repository),
) -> ConversationDetailResponse:
    conversation = await repo.get_conversation(conversation_id)
    messages = await repo.list_messages(conversation_id)
    base = ConversationResponse.model_validate(conversation)
    return ConversationDetailResponse(
        **base.model_dump(),
        messages=[MessageResponse.model_validate(message) for message in messages],
    )


@router.post("/conversations/{conversation_id}/messages", response_model=SendMessageResponse)
async def send_message(
    conversation_id: int,
    payload: SendMessageRequest,
    repo: ConversationRepository = Depends(get_repository),
    notifier: WebSocketNotifier = Depends(get_notifier),
) -> SendMessageResponse:
    await repo.get_conversation(conversation_id)
    message = await repo.store_message(conversation_id, "outbound", payload.content)
    response = MessageResponse.model_validate(message)

    await notifier.broadcast(
        {
            "type": "new_message",
            "conversation_id": conversation_id,
            "message": {
                "direction": response.direction,
                "content": response.content,
                "timestamp": response.timestamp,
            },
        }
    )
    return SendMessageResponse(message=response)


@router.websocket("/ws")
async def dashboard_updates(
    websocket: WebSocket,
    notifier: WebSocketNotifier = Depends(get_notifier),
) -> None:
    client_id = websocket.query_params.get("clientId")
    await websocket.accept()
    if not client_id:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await notifier.register(client_id, websocket)
    try:
        while True:
            text = await websocket.receive_text()
            try:
                LOGGER.info("Received message from client %s: %s", client_id, json.loads(text))
            except json.JSONDecodeError:
                LOGGER.warning("Client %s sent a non-JSON message", client_id)
    except WebSocketDisconnect:
        pass
    finally:
        await notifier.unregister(client_id, websocket)
