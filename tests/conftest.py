from __future__ import annotations

import asyncio
import json
import os
import sys
import tempfile
from datetime import datetime, timezone
from pathlib import Path

import pytest

REPO_ROOT = Path(__file__).resolve().parents[1]
SRC_PATH = REPO_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

# Must be set before importing modules that create the SQLAlchemy engine.
_RUNTIME_DIR = Path(tempfile.mkdtemp(prefix="bridge-tests-"))
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{(_RUNTIME_DIR / 'bridge_test.db').as_posix()}"
os.environ["DATA_DIR"] = str(_RUNTIME_DIR)
os.environ["AUTO_CREATE_DB_SCHEMA"] = "true"
os.environ["OPENAI_API_KEY"] = "sk-test"
os.environ["REALTIME_SETTLE_DELAY_SECONDS"] = "0"


class FakeTelephonySocket:
    """Stands in for the Twilio Media Streams WebSocket."""

    def __init__(self, messages=()) -> None:
        self.incoming = [m if isinstance(m, (str, bytes)) else json.dumps(m) for m in messages]
        self.sent: list[dict] = []

    async def receive(self) -> dict:
        # Yield a few times so concurrently running legs make progress.
        for _ in range(3):
            await asyncio.sleep(0)
        if not self.incoming:
            return {"type": "websocket.disconnect", "code": 1000}
        frame = self.incoming.pop(0)
        if isinstance(frame, bytes):
            return {"type": "websocket.receive", "bytes": frame}
        return {"type": "websocket.receive", "text": frame}

    async def send_text(self, text: str) -> None:
        self.sent.append(json.loads(text))


class FakeRealtimeConnection:
    """Stands in for the OpenAI Realtime WebSocket client connection."""

    def __init__(self, *, acknowledge_session_update: bool = False) -> None:
        self.sent: list[dict] = []
        self.closed = False
        self._acknowledge = acknowledge_session_update
        self._queue: asyncio.Queue[str | None] = asyncio.Queue()

    def push(self, event: dict) -> None:
        self._queue.put_nowait(json.dumps(event))

    async def send(self, text: str) -> None:
        message = json.loads(text)
        self.sent.append(message)
        if self._acknowledge and message.get("type") == "session.update":
            self.push({"type": "session.updated", "session": message["session"]})

    async def close(self) -> None:
        if not self.closed:
            self.closed = True
            self._queue.put_nowait(None)

    def __aiter__(self):
        return self

    async def __anext__(self) -> str:
        item = await self._queue.get()
        if item is None:
            raise StopAsyncIteration
        return item

    def sent_of_type(self, event_type: str) -> list[dict]:
        return [message for message in self.sent if message.get("type") == event_type]


class FakeExtractor:
    def __init__(self) -> None:
        self.calls: list[tuple[str, str]] = []

    async def process(self, call_id: str, transcript: str):
        self.calls.append((call_id, transcript))
        return None


class FakeNotifier:
    def __init__(self) -> None:
        self.events: list[dict] = []

    async def broadcast(self, event: dict) -> None:
        self.events.append(event)


class FakeRepository:
    """In-memory ConversationRepository used by extractor tests."""

    def __init__(self) -> None:
        self.conversations: list = []
        self.messages: list = []

    async def get_or_create_conversation(self, phone_number: str, name: str = ""):
        from db.models import Conversation

        for conversation in self.conversations:
            if conversation.phone_number == phone_number:
                return conversation
        now = datetime.now(timezone.utc)
        conversation = Conversation(
            id=len(self.conversations) + 1,
            phone_number=phone_number,
            lead_name=name or None,
            created_at=now,
            updated_at=now,
        )
        self.conversations.append(conversation)
        return conversation

    async def store_message(self, conversation_id: int, direction: str, content: str):
        from db.models import Message

        message = Message(
            id=len(self.messages) + 1,
            conversation_id=conversation_id,
            direction=direction,
            content=content,
            timestamp=datetime.now(timezone.utc),
        )
        self.messages.append(message)
        return message


@pytest.fixture()
def fake_notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture()
def fake_repository() -> FakeRepository:
    return FakeRepository()


@pytest.fixture(scope="session")
def app():
    import importlib

    main = importlib.import_module("main")
    return main.app


@pytest.fixture()
def client(app):
    from fastapi.testclient import TestClient

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
