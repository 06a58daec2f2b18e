"""Twilio Voice and SMS integration.

This module provides:
- Incoming-call webhook (TwiML) that greets the caller and opens a Media Stream.
- The Media Stream WebSocket, bridged to the OpenAI Realtime endpoint per call.
- Inbound SMS webhook answered with a chat completion.
"""

from __future__ import annotations

import asyncio
import logging
import time
from urllib.parse import urlencode
from xml.sax.saxutils import escape, quoteattr

from fastapi import APIRouter, Depends, Request, Response, WebSocket
from twilio.base.exceptions import TwilioException

from api.dependencies import (
    get_ai_connector,
    get_extractor,
    get_llm_client,
    get_notifier,
    get_repository,
    get_session_store,
)
from bridge.call_bridge import CallBridge
from bridge.errors import MessagingFailedError
from bridge.session_store import SessionStore
from config.settings import get_settings
from db.repository import ConversationRepository
from integrations.twilio_client import build_twilio_client, get_twilio_config
from llm.base import BaseLLMClient
from notify.notifier import WebSocketNotifier
from prompts.loader import load_prompt

LOGGER = logging.getLogger(__name__)

router = APIRouter(prefix="/twilio", tags=["twilio"])


def _twiml_response(xml: str) -> Response:
    # Twilio expects application/xml
    return Response(content=xml, media_type="application/xml")


def _to_ws_url(http_url: str) -> str:
    if http_url.startswith("https://"):
        return "wss://" + http_url.removeprefix("https://")
    if http_url.startswith("http://"):
        return "ws://" + http_url.removeprefix("http://")
    return http_url


def _twiml_connect_stream(*, greeting: str, stream_url: str, call_sid: str | None) -> str:
    say = escape(greeting)
    stream = quoteattr(stream_url)
    parameter = (
        f"<Parameter name=\"callSid\" value={quoteattr(call_sid)} />" if call_sid else ""
    )
    return (
        "<?xml version=\"1.0\" encoding=\"UTF-8\"?>"
        "<Response>"
        f"<Say>{say}</Say>"
        "<Connect>"
        f"<Stream url={stream}>{parameter}</Stream>"
        "</Connect>"
        "</Response>"
    )


def _twiml_empty() -> str:
    return "<?xml version=\"1.0\" encoding=\"UTF-8\"?><Response></Response>"


def _media_stream_url(request: Request, call_sid: str | None = None) -> str:
    settings = get_settings()
    if settings.public_base_url:
        url = _to_ws_url(f"{settings.public_base_url.rstrip('/')}/api/twilio/media-stream")
    else:
        # Fallback to the request host. This may not work behind proxies; prefer PUBLIC_BASE_URL.
        url = f"wss://{request.headers.get('host', request.url.netloc)}/api/twilio/media-stream"
    if call_sid:
        url = f"{url}?{urlencode({'callSid': call_sid})}"
    return url


def resolve_call_id(websocket: WebSocket) -> str:
    call_id = websocket.query_params.get("callSid") or websocket.headers.get("x-twilio-call-sid")
    if call_id:
        return call_id
    return f"session_{int(time.time() * 1000)}"


@router.api_route("/incoming-call", methods=["GET", "POST"])
async def incoming_call(request: Request) -> Response:
    settings = get_settings()
    if request.method == "POST":
        form = await request.form()
        call_sid = str(form.get("CallSid") or "").strip() or None
    else:
        call_sid = request.query_params.get("CallSid")

    LOGGER.info("Incoming call %s", call_sid or "(no CallSid)")
    return _twiml_response(
        _twiml_connect_stream(
            greeting=settings.call_greeting,
            stream_url=_media_stream_url(request, call_sid),
            call_sid=call_sid,
        )
    )


@router.websocket("/media-stream")
async def media_stream(
    websocket: WebSocket,
    store: SessionStore = Depends(get_session_store),
    extractor=Depends(get_extractor),
    ai_connector=Depends(get_ai_connector),
) -> None:
    await websocket.accept()
    call_id = resolve_call_id(websocket)
    LOGGER.info("[%s] Media stream connected", call_id)

    bridge = CallBridge(
        call_id,
        store=store,
        websocket=websocket,
        extractor=extractor,
        ai_connector=ai_connector,
    )
    await bridge.run()


def get_twilio_client():
    return build_twilio_client()


def get_twilio_cfg():
    return get_twilio_config()


@router.post("/sms")
async def incoming_sms(
    request: Request,
    repo: ConversationRepository = Depends(get_repository),
    notifier: WebSocketNotifier = Depends(get_notifier),
    llm: BaseLLMClient = Depends(get_llm_client),
    twilio_client=Depends(get_twilio_client),
    cfg=Depends(get_twilio_cfg),
) -> Response:
    form = await request.form()
    user_message = str(form.get("Body") or "").strip()
    user_phone = str(form.get("From") or "").strip()

    conversation = await repo.get_or_create_conversation(user_phone)
    inbound = await repo.store_message(conversation.id, "inbound", user_message)
    await notifier.broadcast(
        {
            "type": "new_message",
            "conversation_id": conversation.id,
            "message": {"direction": "inbound", "content": user_message, "timestamp": inbound.timestamp},
        }
    )

    reply = await llm.chat(
        [
            {"role": "system", "content": load_prompt("sms_system.txt")},
            {"role": "user", "content": user_message},
        ],
        temperature=0.7,
    )
    outbound = await repo.store_message(conversation.id, "outbound", reply)

    try:
        await asyncio.to_thread(
            twilio_client.messages.create,
            to=user_phone,
            from_=cfg.from_number,
            body=reply,
        )
    except TwilioException as exc:
        LOGGER.exception("Failed to send SMS to %s: %s", user_phone, exc)
        raise MessagingFailedError(str(exc)) from exc

    await notifier.broadcast(
        {
            "type": "new_message",
            "conversation_id": conversation.id,
            "message": {"direction": "outbound", "content": reply, "timestamp": outbound.timestamp},
        }
    )
    return _twiml_response(_twiml_empty())
