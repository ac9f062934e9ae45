"""
Tests for leadline/api/webhooks.py - the inbound SMS endpoint.
The conductor is mocked; pipeline behaviour is covered in test_conductor.py.
"""
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
from fastapi.testclient import TestClient

from leadline.agents.conductor import (
    ConversationConductor,
    STATUS_PROCESSED,
    STATUS_STORED_FOR_REVIEW,
)
from leadline.main import create_app
from leadline.schemas.pipeline import InboundOutcome
from leadline.utils.errors import StoreError

TWILIO_FORM = {
    "From": "+15125559876",
    "To": "+15125550177",
    "Body": "Is this still available?",
    "MessageSid": "SM_inbound_1",
    "AccountSid": "AC_test",
}


@pytest.fixture
def conductor():
    mock = MagicMock()
    mock.handle_inbound = AsyncMock(return_value=InboundOutcome(status=STATUS_PROCESSED))
    return mock


@pytest.fixture
def client(conductor):
    app = create_app()
    app.state.conductor = conductor
    return TestClient(app)


class TestInboundSmsWebhook:
    def test_form_payload_processed(self, client, conductor):
        response = client.post("/webhook/sms", data=TWILIO_FORM)

        assert response.status_code == 200
        assert response.text == "Message processed"
        conductor.handle_inbound.assert_awaited_once_with(
            "+15125559876", "+15125550177", "Is this still available?",
        )

    def test_json_payload_processed(self, client, conductor):
        response = client.post("/webhook/sms", json={
            "From": "+1555", "To": "+1777", "Body": "hello",
        })

        assert response.status_code == 200
        conductor.handle_inbound.assert_awaited_once_with("+1555", "+1777", "hello")

    def test_takeover_acknowledged(self, client, conductor):
        conductor.handle_inbound.return_value = InboundOutcome(status=STATUS_STORED_FOR_REVIEW)

        response = client.post("/webhook/sms", data=TWILIO_FORM)

        assert response.status_code == 200
        assert response.text == "Message stored for human review"

    def test_store_failure_returns_500(self, client, conductor):
        conductor.handle_inbound.side_effect = StoreError("database unavailable")

        response = client.post("/webhook/sms", data=TWILIO_FORM)

        assert response.status_code == 500
        assert response.text == "Error processing message"

    @pytest.mark.parametrize("missing", ["From", "To"])
    def test_missing_field_returns_400(self, client, conductor, missing):
        form = {k: v for k, v in TWILIO_FORM.items() if k != missing}

        response = client.post("/webhook/sms", data=form)

        assert response.status_code == 400
        conductor.handle_inbound.assert_not_awaited()

    def test_response_carries_correlation_id(self, client):
        response = client.post(
            "/webhook/sms", data=TWILIO_FORM, headers={"X-Correlation-ID": "abc123"},
        )
        assert response.headers["X-Correlation-ID"] == "abc123"

    def test_empty_body_is_accepted(self, client, conductor):
        form = dict(TWILIO_FORM, Body="", NumMedia="1")

        response = client.post("/webhook/sms", data=form)

        assert response.status_code == 200
        conductor.handle_inbound.assert_awaited_once_with("+15125559876", "+15125550177", "")


class TestInboundSmsWebhookStorage:
    """Webhook over a real store, driven on the test's own event loop."""

    async def test_media_only_message_is_stored(self, store, mock_generator, mock_dispatcher):
        app = create_app()
        app.state.conductor = ConversationConductor(
            store=store,
            generator=mock_generator,
            dispatcher=mock_dispatcher,
            default_from_number="+15125550100",
        )
        transport = httpx.ASGITransport(app=app)

        async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
            response = await client.post("/webhook/sms", data=dict(TWILIO_FORM, Body=""))

        assert response.status_code == 200
        messages = await store.query_recent_messages("+15125559876", 10)
        inbound = [m for m in messages if m.direction == "inbound"]
        assert [m.body for m in inbound] == [""]
