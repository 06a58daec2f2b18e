from __future__ import annotations

import asyncio
import uuid

from conftest import FakeNotifier


def _seed_conversation(*messages: tuple[str, str]) -> int:
    async def _seed():
        from db.base import init_db
        from db.repository import ConversationRepository

        await init_db()
        repo = ConversationRepository()
        conversation = await repo.get_or_create_conversation(f"+4179{uuid.uuid4().int % 10**7:07d}", "Jane")
        for direction, content in messages:
            await repo.store_message(conversation.id, direction, content)
        return conversation.id

    return asyncio.run(_seed())


def test_health(client):
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_list_conversations_includes_seeded_conversation(client):
    conversation_id = _seed_conversation(("inbound", "Hello"))

    response = client.get("/api/conversations")
    assert response.status_code == 200
    payload = response.json()
    assert conversation_id in [item["id"] for item in payload]
    # Most recently updated first.
    assert payload[0]["id"] == conversation_id


def test_get_conversation_returns_messages_in_order(client):
    conversation_id = _seed_conversation(("inbound", "first"), ("outbound", "second"))

    response = client.get(f"/api/conversations/{conversation_id}")
    assert response.status_code == 200
    payload = response.json()
    assert payload["lead_name"] == "Jane"
    assert [(m["direction"], m["content"]) for m in payload["messages"]] == [
        ("inbound", "first"),
        ("outbound", "second"),
    ]


def test_get_unknown_conversation_returns_404(client):
    response = client.get("/api/conversations/999999")
    assert response.status_code == 404
    assert response.json()["detail"] == "Conversation not found."


def test_send_message_stores_outbound_and_broadcasts(app, client):
    from api.dependencies import get_notifier

    notifier = FakeNotifier()
    app.dependency_overrides[get_notifier] = lambda: notifier
    conversation_id = _seed_conversation()

    response = client.post(f"/api/conversations/{conversation_id}/messages", json={"content": "See you at 9"})
    assert response.status_code == 200
    payload = response.json()
    assert payload["success"] is True
    assert payload["message"]["direction"] == "outbound"
    assert payload["message"]["content"] == "See you at 9"

    assert len(notifier.events) == 1
    event = notifier.events[0]
    assert event["type"] == "new_message"
    assert event["conversation_id"] == conversation_id
    assert event["message"]["content"] == "See you at 9"

    detail = client.get(f"/api/conversations/{conversation_id}").json()
    assert [m["content"] for m in detail["messages"]] == ["See you at 9"]


def test_send_message_rejects_empty_content(client):
    conversation_id = _seed_conversation()
    response = client.post(f"/api/conversations/{conversation_id}/messages", json={"content": ""})
    assert response.status_code == 422


def test_dashboard_socket_receives_broadcasts(client):
    conversation_id = _seed_conversation()
    with client.websocket_connect("/api/ws?clientId=dash-1") as websocket:
        websocket.send_json({"type": "ping"})
        client.post(f"/api/conversations/{conversation_id}/messages", json={"content": "Ready"})
        event = websocket.receive_json()

    assert event["type"] == "new_message"
    assert event["message"]["content"] == "Ready"
