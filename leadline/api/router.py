"""
API router - aggregates all route modules.
"""
from fastapi import APIRouter
from leadline.api.webhooks import router as webhooks_router
from leadline.api.messages import router as messages_router
from leadline.api.health import router as health_router

api_router = APIRouter()
api_router.include_router(webhooks_router)
api_router.include_router(messages_router)
api_router.include_router(health_router)
