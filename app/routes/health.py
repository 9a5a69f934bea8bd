"""Health check endpoints for monitoring and deployment verification.

/health reports database connectivity without failing, /health/ready fails
with 503 when the database is unreachable, and /health/live only proves
the process is serving requests.
"""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import text
from sqlalchemy.orm import Session

from app.models.database import get_db
from app.logging_config import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/health")


def _database_connected(db: Session) -> bool:
    try:
        db.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error(f"Health check failed: {e}")
        return False


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


@router.get("")
def health_check(db: Session = Depends(get_db)) -> dict:
    """Health check endpoint.

    Example response:
        {
            "status": "ok",
            "database": "connected",
            "timestamp": "2026-10-18T10:00:00+00:00"
        }
    """
    connected = _database_connected(db)
    return {
        "status": "ok" if connected else "error",
        "database": "connected" if connected else "disconnected",
        "timestamp": _timestamp(),
    }


@router.get("/ready")
def readiness_check(db: Session = Depends(get_db)) -> dict:
    """Readiness probe.

    Raises:
        HTTPException: If database connection fails (503 Service Unavailable)
    """
    if not _database_connected(db):
        raise HTTPException(
            status_code=503,
            detail="Service unavailable - database connection failed"
        )

    logger.debug("Readiness check passed")
    return {"status": "ready", "database": "connected", "timestamp": _timestamp()}


@router.get("/live")
async def liveness_check() -> dict:
    """Liveness probe."""
    return {"status": "ok", "timestamp": _timestamp()}
