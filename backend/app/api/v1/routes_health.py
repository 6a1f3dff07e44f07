import logging

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from app.core.config import settings
from app.db.session import SessionLocal

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


def get_session_factory() -> sessionmaker:
    return SessionLocal


@router.get("/health")
async def health_check() -> dict:
    """
    Liveness only; does not touch the database or Loki.
    """
    return {
        "status": "healthy",
        "service": settings.APP_NAME,
        "environment": settings.ENVIRONMENT,
    }


@router.get("/health/ready")
def readiness_check(session_factory: sessionmaker = Depends(get_session_factory)) -> dict:
    """Readiness: the correlation store must answer a trivial query."""
    db = session_factory()
    try:
        db.execute(text("SELECT 1"))
        database = "ok"
    except SQLAlchemyError as exc:
        logger.warning("Readiness check: database unavailable: %s", exc)
        database = "unavailable"
    finally:
        db.close()

    return {
        "status": "ok" if database == "ok" else "degraded",
        "database": database,
        "loki_base_url": settings.LOKI_BASE_URL,
    }
