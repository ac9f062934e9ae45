"""
LeadLine - automated SMS conversations for inbound leads.

Run with `leadline` (console script) or `uvicorn leadline.main:app --port 3000`.
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from leadline.agents.conductor import ConversationConductor
from leadline.api.router import api_router
from leadline.config import Settings, get_settings
from leadline.utils.logging import (
    configure_structured_logging,
    generate_correlation_id,
    set_correlation_id,
)

logger = logging.getLogger("leadline")

CORRELATION_HEADER = "X-Correlation-ID"


def build_conductor(settings: Settings) -> ConversationConductor:
    """Create the store, generator and dispatcher once and wire them together."""
    from leadline.database import get_session_factory
    from leadline.services.ai import ReplyGenerator
    from leadline.services.scoring import ScoringPolicy
    from leadline.services.sms import SmsDispatcher, build_twilio_client
    from leadline.services.store import ConversationStore

    store = ConversationStore(
        get_session_factory(),
        lookup_retries=settings.store_lookup_retries,
        retry_delay_seconds=settings.store_retry_delay_seconds,
    )
    dispatcher = SmsDispatcher(
        build_twilio_client(settings.twilio_account_sid, settings.twilio_auth_token),
        max_retries=settings.sms_max_retries,
    )
    return ConversationConductor(
        store=store,
        generator=ReplyGenerator.from_settings(settings),
        dispatcher=dispatcher,
        default_from_number=settings.twilio_phone_number,
        policy=ScoringPolicy(categories=settings.scoring_categories),
        window_size=settings.conversation_window_size,
        reply_timeout_seconds=settings.reply_timeout_seconds,
    )


def _init_sentry(settings: Settings) -> None:
    if not settings.sentry_dsn:
        return
    try:
        import sentry_sdk
        sentry_sdk.init(
            dsn=settings.sentry_dsn,
            environment=settings.app_env,
            traces_sample_rate=0.1,
        )
        logger.info("Sentry enabled")
    except Exception as e:
        logger.warning("Could not start Sentry: %s", str(e))


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    logger.info("LeadLine starting (env=%s)", settings.app_env)
    _init_sentry(settings)

    # Tests install their own conductor before startup
    if getattr(app.state, "conductor", None) is None:
        app.state.conductor = build_conductor(settings)
        logger.info("Conversation pipeline ready")

    yield

    from leadline.database import dispose_engine
    await dispose_engine()
    logger.info("LeadLine stopped")


def create_app() -> FastAPI:
    settings = get_settings()
    configure_structured_logging(settings.log_level)

    application = FastAPI(
        title="LeadLine",
        description="Automated SMS conversations for inbound leads",
        version="1.0.0",
        lifespan=lifespan,
    )

    @application.middleware("http")
    async def correlation_id_middleware(request: Request, call_next):
        cid = request.headers.get(CORRELATION_HEADER) or generate_correlation_id()
        set_correlation_id(cid)
        response = await call_next(request)
        response.headers[CORRELATION_HEADER] = cid
        return response

    # Added last so it wraps the correlation middleware
    application.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", CORRELATION_HEADER, "Accept", "Origin"],
        expose_headers=[CORRELATION_HEADER],
    )
    application.include_router(api_router)
    return application


app = create_app()


def run() -> None:
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "leadline.main:app",
        host=settings.app_host,
        port=settings.app_port,
        log_config=None,
    )
