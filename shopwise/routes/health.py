from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.orm import Session

from shopwise.database import get_db
from shopwise.models import utcnow

router = APIRouter(tags=["health"])


@router.get("/health")
def health_check(db: Session = Depends(get_db)):
    """Liveness plus a round trip to the database."""
    db.execute(text("SELECT 1"))
    return {
        "success": True,
        "status": "healthy",
        "database": "connected",
        "timestamp": utcnow().isoformat() + "Z",
    }


@router.get("/ping")
def ping():
    return {"ping": "pong"}
