"""Wire formats for both call legs.

Inbound messages are classified into small tagged records so the legs can
dispatch on an enumeration instead of comparing raw strings. Outbound messages
are built here as well, keeping every JSON shape the bridge speaks in one place.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from bridge.errors import MalformedFrameError


class TelephonyEventKind(str, Enum):
    START = "start"
    MEDIA = "media"
    STOP = "stop"
    OTHER = "other"

    @classmethod
    def from_wire(cls, value: str) -> TelephonyEventKind:
        try:
            return cls(value)
        except ValueError:
            return cls.OTHER


class AiEventKind(str, Enum):
    SESSION_UPDATED = "session.updated"
    INPUT_TRANSCRIPTION_COMPLETED = "conversation.item.input_audio_transcription.completed"
    RESPONSE_DONE = "response.done"
    AUDIO_DELTA = "response.audio.delta"
    ERROR = "error"
    OTHER = "other"

    @classmethod
    def from_wire(cls, value: str) -> AiEventKind:
        try:
            return cls(value)
        except ValueError:
            return cls.OTHER


@dataclass(frozen=True, slots=True)
class TelephonyEvent:
    kind: TelephonyEventKind
    raw_kind: str
    stream_address: str | None = None
    payload: str | None = None
    track: str | None = None
    call_sid: str | None = None
    custom_parameters: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class AiEvent:
    kind: AiEventKind
    raw_kind: str
    data: dict[str, Any]


def _load_object(text: str | bytes) -> dict[str, Any]:
    try:
        message = json.loads(text)
    except (TypeError, ValueError) as exc:
        raise MalformedFrameError(f"Frame is not valid JSON: {exc}") from exc
    if not isinstance(message, dict):
        raise MalformedFrameError("Frame is not a JSON object.")
    return message


def parse_telephony_message(text: str | bytes) -> TelephonyEvent:
    """Classify one Twilio media-stream message.

    Raises MalformedFrameError for frames the leg cannot act on; unknown event
    kinds are not an error and come back as OTHER.
    """

    message = _load_object(text)
    raw_kind = str(message.get("event") or "")
    kind = TelephonyEventKind.from_wire(raw_kind)

    if kind is TelephonyEventKind.START:
        start = message.get("start") or {}
        if not isinstance(start, dict):
            raise MalformedFrameError("start frame has a non-object 'start' field.")
        stream_address = message.get("streamSid") or start.get("streamSid")
        if not isinstance(stream_address, str) or not stream_address:
            raise MalformedFrameError("start frame carries no streamSid.")
        custom = start.get("customParameters") or {}
        return TelephonyEvent(
            kind=kind,
            raw_kind=raw_kind,
            stream_address=stream_address,
            call_sid=start.get("callSid"),
            custom_parameters=custom if isinstance(custom, dict) else {},
        )

    if kind is TelephonyEventKind.MEDIA:
        media = message.get("media")
        if not isinstance(media, dict):
            raise MalformedFrameError("media frame carries no 'media' object.")
        payload = media.get("payload")
        if not isinstance(payload, str) or not payload:
            raise MalformedFrameError("media frame carries no payload.")
        return TelephonyEvent(kind=kind, raw_kind=raw_kind, payload=payload, track=media.get("track"))

    return TelephonyEvent(kind=kind, raw_kind=raw_kind)


def parse_ai_message(text: str | bytes) -> AiEvent:
    message = _load_object(text)
    raw_kind = str(message.get("type") or "")
    return AiEvent(kind=AiEventKind.from_wire(raw_kind), raw_kind=raw_kind, data=message)


def first_response_transcript(data: dict[str, Any]) -> str | None:
    """Return the first spoken transcript fragment of a response.done event."""

    response = data.get("response")
    if not isinstance(response, dict):
        return None
    for item in response.get("output") or []:
        if not isinstance(item, dict):
            continue
        for content in item.get("content") or []:
            if isinstance(content, dict) and content.get("transcript"):
                return str(content["transcript"])
    return None


def build_session_update(
    *,
    instructions: str,
    voice: str,
    audio_format: str,
    turn_detection: str,
    temperature: float,
    transcription_model: str,
) -> dict[str, Any]:
    return {
        "type": "session.update",
        "session": {
            "turn_detection": {"type": turn_detection},
            "input_audio_format": audio_format,
            "output_audio_format": audio_format,
            "voice": voice,
            "instructions": instructions,
            "modalities": ["text", "audio"],
            "temperature": temperature,
            "input_audio_transcription": {"model": transcription_model},
        },
    }


def build_audio_append(payload_b64: str) -> dict[str, Any]:
    return {"type": "input_audio_buffer.append", "audio": payload_b64}


def build_media_frame(stream_address: str, payload_b64: str) -> dict[str, Any]:
    return {
        "event": "media",
        "streamSid": stream_address,
        "media": {"payload": payload_b64},
    }
