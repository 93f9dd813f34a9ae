import logging

from fastapi import APIRouter
from sqlalchemy import text

from duetask.db import OpenSession

router = APIRouter(prefix="/api", tags=["health"])
logger = logging.getLogger("core.health")


@router.get("/health")
async def api_health() -> dict:
    logger.debug("health check ok")
    return {"status": "ok"}


@router.get("/health/db")
def api_health_db() -> dict:
    try:
        db = OpenSession()
    except RuntimeError:
        logger.exception("db check failed: missing database configuration")
        return {"status": "error", "detail": "database unavailable"}
    try:
        db.execute(text("SELECT 1")).scalar()
        logger.debug("db check ok")
        return {"status": "ok"}
    except Exception:  # noqa: BLE001
        logger.exception("db check failed")
        return {"status": "error", "detail": "database unavailable"}
    finally:
        db.close()
