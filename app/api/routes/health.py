"""
Health check endpoint for deployment monitoring.
"""
from fastapi import APIRouter
from datetime import datetime, timezone
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from app.core import config
from app.db.session import SessionLocal

router = APIRouter(prefix="/health", tags=["Health"])


@router.get("")
def health_check():
    """
    Health check endpoint for deployment monitoring.

    Always 200; "degraded" when the quota store is unreachable or the
    provider key is missing.
    """
    status = "healthy"

    try:
        db = SessionLocal()
        try:
            db.execute(text("SELECT 1"))
        finally:
            db.close()
        db_status = "connected"
    except SQLAlchemyError as e:
        db_status = f"error: {str(e)}"
        status = "degraded"

    provider_configured = bool(config.get_gemini_api_key())
    if not provider_configured:
        status = "degraded"

    return {
        "status": status,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "database": db_status,
        "provider_configured": provider_configured,
        "version": "1.0.0",
    }
