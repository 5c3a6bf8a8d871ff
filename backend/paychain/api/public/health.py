"""
Health check endpoints
"""

import logging
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from paychain.infrastructure.database import get_db
from paychain.infrastructure.redis_client import ping_redis

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


@router.get("/health")
async def health():
    """Liveness: the process is serving requests"""
    return {"status": "ok"}


@router.get("/ready")
async def ready(db: Session = Depends(get_db)):
    """
    Readiness check - the ledger database and the RQ broker must both answer

    Returns:
    - 200 if all services are ready
    - 503 if any service is not ready
    """
    checks = {
        "status": "ok",
        "database": "unknown",
        "redis": "unknown",
    }

    try:
        db.execute(text("SELECT 1"))
        checks["database"] = "connected"
    except SQLAlchemyError:
        logger.warning("Readiness: database unreachable", exc_info=True)
        checks["database"] = "error"
        checks["status"] = "not_ready"

    if ping_redis():
        checks["redis"] = "connected"
    else:
        checks["redis"] = "disconnected"
        checks["status"] = "not_ready"

    status_code = 200 if checks["status"] == "ok" else 503
    return JSONResponse(status_code=status_code, content=checks)
