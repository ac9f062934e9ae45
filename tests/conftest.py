"""
Test configuration and fixtures.
Uses a throwaway SQLite file per test (so concurrent sessions see each
other's commits). Mocks the AI and SMS providers.
"""
import os

# Settings are read when leadline.main is imported; give them test values first.
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("TWILIO_ACCOUNT_SID", "AC_test")
os.environ.setdefault("TWILIO_AUTH_TOKEN", "test_token")
os.environ.setdefault("TWILIO_PHONE_NUMBER", "+15125550100")
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.setdefault("APP_ENV", "test")

import pytest
from unittest.mock import AsyncMock, MagicMock
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker

from leadline.database import Base
import leadline.models  # noqa: F401
from leadline.agents.conductor import ConversationConductor
from leadline.schemas.pipeline import GenerationResult, DispatchResult
from leadline.services.store import ConversationStore

DEFAULT_LINE = "+15125550100"


@pytest.fixture
async def session_factory(tmp_path):
    """SQLite database on disk, schema created from the models."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'leadline.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture
def store(session_factory):
    return ConversationStore(session_factory, lookup_retries=2, retry_delay_seconds=0)


@pytest.fixture
def mock_generator():
    """Reply generator that answers instantly; prevents real AI API calls in tests."""
    generator = MagicMock()
    generator.generate = AsyncMock(return_value=GenerationResult(
        content="Happy to help! What timeline are you working with?",
        provider="openai",
        model="gpt-4o-mini",
        latency_ms=120,
        cost_usd=0.0001,
        input_tokens=80,
        output_tokens=12,
    ))
    return generator


@pytest.fixture
def mock_dispatcher():
    """SMS dispatcher that always succeeds; prevents real Twilio calls in tests."""
    dispatcher = MagicMock()
    dispatcher.send = AsyncMock(return_value=DispatchResult(
        sid="SM_test_123",
        status="sent",
        segments=1,
        cost_usd=0.0079,
    ))
    return dispatcher


@pytest.fixture
def conductor(store, mock_generator, mock_dispatcher):
    """Conductor over a real SQLite store with mocked providers."""
    return ConversationConductor(
        store=store,
        generator=mock_generator,
        dispatcher=mock_dispatcher,
        default_from_number=DEFAULT_LINE,
        reply_timeout_seconds=1.0,
    )
