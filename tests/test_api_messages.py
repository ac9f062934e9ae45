"""
Tests for leadline/api/messages.py - manual send and takeover switch.
"""
import uuid
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from leadline.main import create_app
from leadline.models.customer import Customer
from leadline.schemas.pipeline import ManualSendResult
from leadline.utils.errors import DispatchError, StoreError

PHONE = "+15125559876"


@pytest.fixture
def conductor():
    mock = MagicMock()
    mock.send_manual = AsyncMock(return_value=ManualSendResult(
        message_sid="SM_manual_1", message_id=str(uuid.uuid4()),
    ))
    mock.set_takeover = AsyncMock()
    return mock


@pytest.fixture
def client(conductor):
    app = create_app()
    app.state.conductor = conductor
    return TestClient(app)


class TestSendMessage:
    def test_success_returns_message_sid(self, client, conductor):
        response = client.post("/api/send-message", json={"to": PHONE, "message": "Hi there"})

        assert response.status_code == 200
        assert response.json() == {"success": True, "messageSid": "SM_manual_1"}
        conductor.send_manual.assert_awaited_once_with(PHONE, "Hi there")

    def test_dispatch_failure_returns_500(self, client, conductor):
        conductor.send_manual.side_effect = DispatchError("Invalid number", "21211")

        response = client.post("/api/send-message", json={"to": PHONE, "message": "Hi"})

        assert response.status_code == 500
        assert response.json() == {"error": "Failed to send message"}


class TestTakeover:
    def _customer(self, active):
        return Customer(
            id=uuid.uuid4(),
            phone_number=PHONE,
            status="human_takeover" if active else "lead",
            is_human_takeover=active,
            qualification_score=25,
        )

    def test_enable_takeover(self, client, conductor):
        conductor.set_takeover.return_value = self._customer(True)

        response = client.post(f"/api/customers/{PHONE}/takeover", json={"active": True})

        assert response.status_code == 200
        assert response.json() == {
            "phone_number": PHONE,
            "is_human_takeover": True,
            "status": "human_takeover",
            "qualification_score": 25,
        }
        conductor.set_takeover.assert_awaited_once_with(PHONE, True)

    def test_release_takeover(self, client, conductor):
        conductor.set_takeover.return_value = self._customer(False)

        response = client.post(f"/api/customers/{PHONE}/takeover", json={"active": False})

        assert response.json()["is_human_takeover"] is False

    def test_unknown_customer_returns_404(self, client, conductor):
        conductor.set_takeover.return_value = None

        response = client.post(f"/api/customers/{PHONE}/takeover", json={"active": True})

        assert response.status_code == 404

    def test_store_failure_returns_500(self, client, conductor):
        conductor.set_takeover.side_effect = StoreError("down")

        response = client.post(f"/api/customers/{PHONE}/takeover", json={"active": True})

        assert response.status_code == 500
