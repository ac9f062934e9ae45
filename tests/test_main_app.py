"""
Tests for leadline/main.py - app factory, middleware, lifespan, pipeline wiring.
"""
from unittest.mock import AsyncMock, MagicMock, patch

from fastapi import FastAPI

from leadline.agents.conductor import ConversationConductor
from leadline.main import build_conductor, create_app, lifespan
from leadline.services.scoring import ScoringCategory


def _make_mock_settings(**overrides):
    """Build a mock Settings object."""
    defaults = {
        "app_env": "test",
        "log_level": "WARNING",
        "sentry_dsn": "",
        "store_lookup_retries": 3,
        "store_retry_delay_seconds": 0.5,
        "twilio_account_sid": "AC_test",
        "twilio_auth_token": "test_token",
        "twilio_phone_number": "+15125550100",
        "sms_max_retries": 1,
        "openai_api_key": "",
        "anthropic_api_key": "",
        "openai_model": "gpt-4o-mini",
        "anthropic_model": "claude-haiku-4-5-20251001",
        "openai_max_tokens": 150,
        "reply_temperature": 0.7,
        "conversation_window_size": 6,
        "reply_timeout_seconds": 4.0,
        "scoring_categories": [
            ScoringCategory(name="referral", keywords=["referred"], bonus=7),
        ],
    }
    defaults.update(overrides)
    settings = MagicMock()
    for k, v in defaults.items():
        setattr(settings, k, v)
    return settings


class TestCreateApp:
    def test_returns_fastapi_instance(self):
        with (
            patch("leadline.main.get_settings", return_value=_make_mock_settings()),
            patch("leadline.main.configure_structured_logging") as mock_logging,
        ):
            app = create_app()

        assert isinstance(app, FastAPI)
        assert app.title == "LeadLine"
        mock_logging.assert_called_once_with("WARNING")

    def test_routes_registered(self):
        with (
            patch("leadline.main.get_settings", return_value=_make_mock_settings()),
            patch("leadline.main.configure_structured_logging"),
        ):
            app = create_app()

        paths = {route.path for route in app.routes}
        assert {"/", "/health/ready", "/webhook/sms", "/api/send-message"} <= paths
        assert "/api/customers/{phone_number}/takeover" in paths


class TestBuildConductor:
    def test_wires_settings_into_pipeline(self):
        settings = _make_mock_settings()
        with (
            patch("leadline.database.get_session_factory", return_value=MagicMock()),
            patch("leadline.services.sms.build_twilio_client", return_value=MagicMock()) as mock_twilio,
        ):
            conductor = build_conductor(settings)

        assert isinstance(conductor, ConversationConductor)
        assert conductor.default_from_number == "+15125550100"
        assert conductor.window_size == 6
        assert conductor.reply_timeout_seconds == 4.0
        assert [c.name for c in conductor.policy.categories] == ["referral"]
        mock_twilio.assert_called_once_with("AC_test", "test_token")


class TestLifespan:
    async def test_keeps_preinstalled_conductor(self):
        app = FastAPI()
        preset = MagicMock()
        app.state.conductor = preset

        with (
            patch("leadline.main.get_settings", return_value=_make_mock_settings()),
            patch("leadline.main.build_conductor") as mock_build,
            patch("leadline.database.dispose_engine", new_callable=AsyncMock) as mock_dispose,
        ):
            async with lifespan(app):
                assert app.state.conductor is preset

        mock_build.assert_not_called()
        mock_dispose.assert_awaited_once()

    async def test_builds_conductor_on_startup(self):
        app = FastAPI()
        built = MagicMock()

        with (
            patch("leadline.main.get_settings", return_value=_make_mock_settings()),
            patch("leadline.main.build_conductor", return_value=built),
            patch("leadline.database.dispose_engine", new_callable=AsyncMock),
        ):
            async with lifespan(app):
                assert app.state.conductor is built
