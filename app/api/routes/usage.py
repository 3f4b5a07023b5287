"""
Usage tracking endpoints.

Lets the app show how many gateway requests the signed-in user has left today.
"""
import logging
from fastapi import APIRouter, Depends, status, HTTPException
from sqlalchemy.orm import Session

from app.core import config
from app.core.auth_dependency import get_current_user_id
from app.core.errors import StorageError
from app.db.session import get_db
from app.schemas.usage import DailyUsageResponse
from app.services.quota_service import get_usage_for_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/me", tags=["Usage"])


@router.get("/usage", status_code=status.HTTP_200_OK, response_model=DailyUsageResponse)
def get_usage(
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    """
    Get today's gateway usage for the authenticated user.

    Returns:
    - date: Quota day (UTC, YYYY-MM-DD)
    - used: Requests counted today
    - limit: Daily request limit
    - remaining: Requests left today

    Requires authentication via Bearer token.
    """
    try:
        usage_data = get_usage_for_response(db, user_id, config.DAILY_REQUEST_LIMIT)
    except StorageError as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=e.message)

    logger.debug(f"Usage summary requested: user_id={user_id}, used={usage_data['used']}")
    return usage_data
