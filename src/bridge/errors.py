"""Domain-specific exceptions for bridge and API operations.

These exceptions are safe to import from API layers without opening any sockets.
"""

from __future__ import annotations


class VoiceBridgeError(Exception):
    status_code: int = 500
    default_detail: str = "Voice bridge error"

    def __init__(self, detail: str | None = None) -> None:
        super().__init__(detail or self.default_detail)
        self.detail = detail or self.default_detail


class MalformedFrameError(VoiceBridgeError):
    status_code = 400
    default_detail = "Malformed transport frame."


class ExtractionFailedError(VoiceBridgeError):
    status_code = 502
    default_detail = "Structured extraction failed."


class LLMFailedError(VoiceBridgeError):
    status_code = 503
    default_detail = "LLM request failed."


class MessagingFailedError(VoiceBridgeError):
    status_code = 502
    default_detail = "Sending the SMS reply failed."


class DatabaseOperationError(VoiceBridgeError):
    status_code = 503
    default_detail = "Database operation failed."


class ConversationNotFoundError(VoiceBridgeError):
    status_code = 404
    default_detail = "Conversation not found."
