"""
Quota store accessor for per-user daily request counters.

Reads and writes one ``user_usage`` row keyed by (user_id, date). Every
SQLAlchemy failure is rolled back and reported as StorageError; deciding
whether a request may proceed is left to the rate limiter.
"""
import logging
from dataclasses import dataclass
from datetime import date
from typing import Optional
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.errors import StorageError
from app.db.models.usage import UserUsage

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UsageRecord:
    """Detached snapshot of a user_usage row."""
    user_id: str
    date: date
    request_count: int


def _storage_error(db: Session, action: str, error: Exception) -> StorageError:
    db.rollback()
    logger.warning(f"Quota store {action} failed: {type(error).__name__}: {error}")
    return StorageError(f"Quota store {action} failed", details=str(error))


def get_usage(db: Session, user_id: str, day: date) -> Optional[UsageRecord]:
    """
    Read the usage row for (user_id, day).

    Returns:
        UsageRecord, or None when the user has made no request that day

    Raises:
        StorageError: the read failed
    """
    try:
        row = db.query(UserUsage).filter(
            UserUsage.user_id == user_id,
            UserUsage.date == day
        ).first()
    except SQLAlchemyError as e:
        raise _storage_error(db, "read", e)

    if row is None:
        return None
    return UsageRecord(user_id=row.user_id, date=row.date, request_count=row.request_count)


def upsert_usage(db: Session, user_id: str, day: date, count: int) -> None:
    """
    Write request_count for (user_id, day), creating the row if needed.

    This is a plain read-modify-write: two concurrent callers that read the
    same count both write count + 1 and one increment is lost.

    Raises:
        StorageError: the write failed
    """
    if count < 0:
        raise ValueError("request_count must be non-negative")

    try:
        row = db.query(UserUsage).filter(
            UserUsage.user_id == user_id,
            UserUsage.date == day
        ).first()
        if row:
            row.request_count = count
        else:
            db.add(UserUsage(user_id=user_id, date=day, request_count=count))
        db.commit()
    except SQLAlchemyError as e:
        raise _storage_error(db, "upsert", e)

    logger.debug(f"Usage upserted: user_id={user_id}, date={day}, count={count}")


def _increment_below(db: Session, user_id: str, day: date, limit: int) -> int:
    result = db.execute(
        update(UserUsage)
        .where(
            UserUsage.user_id == user_id,
            UserUsage.date == day,
            UserUsage.request_count < limit,
        )
        .values(request_count=UserUsage.request_count + 1)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount


def increment_usage(db: Session, user_id: str, day: date, limit: int) -> Optional[int]:
    """
    Atomically add one request for (user_id, day) unless the count is already at limit.

    The ceiling is checked by the database in the same UPDATE statement, so
    concurrent callers can never push the count past the limit.

    Returns:
        The new request_count, or None when the row is already at the limit

    Raises:
        StorageError: the store could not be read or written
    """
    if limit <= 0:
        return None

    try:
        if _increment_below(db, user_id, day, limit) == 0:
            exists = db.query(UserUsage.id).filter(
                UserUsage.user_id == user_id,
                UserUsage.date == day
            ).first()
            if exists:
                db.rollback()
                return None

            db.add(UserUsage(user_id=user_id, date=day, request_count=1))
            try:
                db.commit()
                return 1
            except IntegrityError:
                # Another request created the row first
                db.rollback()
                if _increment_below(db, user_id, day, limit) == 0:
                    db.rollback()
                    return None
        db.commit()

        new_count = db.query(UserUsage.request_count).filter(
            UserUsage.user_id == user_id,
            UserUsage.date == day
        ).scalar()
    except SQLAlchemyError as e:
        raise _storage_error(db, "increment", e)

    logger.debug(f"Usage incremented: user_id={user_id}, date={day}, count={new_count}")
    return new_count


def get_usage_for_response(db: Session, user_id: str, limit: int, day: Optional[date] = None) -> dict:
    """
    Usage data formatted for GET /me/usage.

    Raises:
        StorageError: the read failed
    """
    day = day or UserUsage.today()
    record = get_usage(db, user_id, day)
    used = record.request_count if record else 0
    return {
        "date": day.isoformat(),
        "used": used,
        "limit": limit,
        "remaining": max(0, limit - used),
    }
