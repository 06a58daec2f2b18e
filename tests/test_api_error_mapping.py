from __future__ import annotations

from fastapi.testclient import TestClient
from twilio.base.exceptions import TwilioException

from conftest import FakeNotifier
from integrations.twilio_client import TwilioConfig


class ReplyingLLM:
    async def chat(self, messages, *, temperature: float = 0.1) -> str:
        return "We are open until 6pm."


class BrokenTwilioMessages:
    def create(self, *, to: str, from_: str, body: str):
        raise TwilioException("Authenticate")


class BrokenTwilioClient:
    def __init__(self) -> None:
        self.messages = BrokenTwilioMessages()


class DownRepository:
    async def get_conversation(self, conversation_id: int):
        from bridge.errors import DatabaseOperationError

        raise DatabaseOperationError()

    async def list_messages(self, conversation_id: int):
        return []


def test_failed_sms_send_maps_to_bad_gateway(app):
    from api import dependencies, twilio_routes

    app.dependency_overrides[dependencies.get_llm_client] = lambda: ReplyingLLM()
    app.dependency_overrides[dependencies.get_notifier] = lambda: FakeNotifier()
    app.dependency_overrides[twilio_routes.get_twilio_client] = lambda: BrokenTwilioClient()
    app.dependency_overrides[twilio_routes.get_twilio_cfg] = lambda: TwilioConfig(
        account_sid="AC123", auth_token="token", from_number="+15550001111"
    )

    try:
        with TestClient(app) as client:
            response = client.post(
                "/api/twilio/sms",
                data={"Body": "When are you open?", "From": "+15550002222"},
            )
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == 502
    assert "Authenticate" in response.json()["detail"]


def test_database_failure_maps_to_service_unavailable(app):
    from api import dependencies

    app.dependency_overrides[dependencies.get_repository] = lambda: DownRepository()

    try:
        with TestClient(app) as client:
            response = client.get("/api/conversations/1")
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == 503
    assert response.json()["detail"] == "Database operation failed."
