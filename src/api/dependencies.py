"""Shared FastAPI dependencies.

Separated to avoid circular imports between route modules. Process-wide
singletons are cached here so the session store and the observer registry are
injected into handlers instead of living as module globals.
"""

from __future__ import annotations

from functools import lru_cache
from typing import TYPE_CHECKING

from bridge.session_store import SessionStore
from db.repository import ConversationRepository
from notify.notifier import WebSocketNotifier

if TYPE_CHECKING:  # pragma: no cover
    from bridge.ai_leg import Connector
    from llm.base import BaseLLMClient
    from postcall.extractor import PostCallExtractor


@lru_cache(maxsize=1)
def get_session_store() -> SessionStore:
    return SessionStore()


@lru_cache(maxsize=1)
def get_notifier() -> WebSocketNotifier:
    return WebSocketNotifier()


def get_repository() -> ConversationRepository:
    return ConversationRepository()


@lru_cache(maxsize=1)
def _llm_factory() -> BaseLLMClient:
    # Lazy import so the API can start without LLM credentials for read-only routes.
    from llm.factory import build_llm_client

    return build_llm_client()


def get_llm_client() -> BaseLLMClient:
    return _llm_factory()


def get_extractor() -> PostCallExtractor:
    from postcall.extractor import PostCallExtractor

    # LLM client is built on the first finished call, not per connection.
    return PostCallExtractor(get_llm_client, get_repository(), get_notifier())


def get_ai_connector() -> Connector | None:
    """Realtime connection factory; None selects the configured OpenAI endpoint."""

    return None
