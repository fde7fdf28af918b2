from fastapi import APIRouter, Depends, Response
import redis
from sqlalchemy import text
from sqlalchemy.orm import Session

from lockpost.core.config import settings
from lockpost.db.session import get_db


router = APIRouter()


@router.get("/health")
def health() -> dict:
    """Liveness probe."""
    return {"status": "ok", "service": "lockpost"}


@router.get("/ready")
def readiness(response: Response, db: Session = Depends(get_db)) -> dict:
    """Readiness: database and Redis (broker, dedup, oauth sessions) must answer."""
    try:
        db.execute(text("SELECT 1"))
        redis.Redis.from_url(settings.redis_url, decode_responses=True).ping()
    except Exception as e:
        response.status_code = 503
        return {"status": "not_ready", "error": str(e)}
    return {"status": "ready"}
