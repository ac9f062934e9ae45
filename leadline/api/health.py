"""
Liveness and readiness.

GET /              always 200 while the process serves requests
GET /health/ready  adds a database round trip
"""
import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from leadline.database import get_db

logger = logging.getLogger(__name__)
router = APIRouter(tags=["health"])

SERVICE_STATUS = "SMS Automation Webhook Service Running"


@router.get("/")
async def health_check():
    return {"status": SERVICE_STATUS}


@router.get("/health/ready")
async def readiness_check(db: AsyncSession = Depends(get_db)):
    """Reports "degraded" rather than failing so load balancers can read the body."""
    database_ok = True
    try:
        await db.execute(text("SELECT 1"))
    except Exception as e:
        database_ok = False
        logger.error("Readiness: database unreachable: %s", str(e))

    return {
        "status": "ready" if database_ok else "degraded",
        "checks": {"database": database_ok},
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
