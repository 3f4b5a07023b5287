"""
Daily per-user rate limiter for the AI gateway.

Availability wins over accuracy: the only outcome that blocks a request is a
count read from the store that is already at the limit. Identity or storage
failures admit the request in a degraded state and are logged.

Known non-strict guarantee: with QUOTA_ATOMIC_INCREMENT disabled the counter
is read, then written back as count + 1. Two concurrent requests from one
user can read the same count and both be admitted past the limit (one
increment is lost). The atomic mode lets the database enforce the ceiling
inside a single UPDATE and does not have this race.
"""
import logging
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Callable, Optional, TypeVar
from sqlalchemy.orm import Session

from app.core import config
from app.core.auth_dependency import IdentityResolver
from app.core.errors import StorageError
from app.db.models.usage import UserUsage
from app.services.quota_service import get_usage, upsert_usage, increment_usage

logger = logging.getLogger(__name__)

T = TypeVar("T")

DAILY_LIMIT_REASON = "Daily limit reached"


class Admission(str, Enum):
    ADMITTED = "admitted"
    DEGRADED = "degraded"  # admitted, but metering could not be applied
    REJECTED = "rejected"


@dataclass
class LimitDecision:
    admission: Admission
    reason: Optional[str] = None
    user_id: Optional[str] = None
    request_count: Optional[int] = None

    @property
    def allowed(self) -> bool:
        return self.admission != Admission.REJECTED


def decide(count: Optional[int], limit: int) -> Admission:
    """
    Admission for a quota lookup result.

    count is None when the lookup failed; only a known count at or above the
    limit rejects.
    """
    if count is not None and count >= limit:
        return Admission.REJECTED
    return Admission.ADMITTED


class RateLimiter:
    """Checks and records one request against a user's daily allowance."""

    def __init__(
        self,
        db: Session,
        identity: IdentityResolver,
        atomic: bool = config.QUOTA_ATOMIC_INCREMENT,
        today: Callable[[], date] = UserUsage.today,
    ):
        self.db = db
        self.identity = identity
        self.atomic = atomic
        self.today = today

    def _attempt(self, action: str, fn: Callable[[], T]) -> tuple[bool, Optional[T]]:
        """Run a store call; a StorageError becomes (False, None) after logging."""
        try:
            return True, fn()
        except StorageError as e:
            logger.warning(f"Rate limiter {action} failed, failing open: {e.message} ({e.details})")
            return False, None

    def check_and_increment(self, token: Optional[str], limit_per_day: int = config.DAILY_REQUEST_LIMIT) -> LimitDecision:
        """
        Admit or reject one request for the token's owner and count it.

        Returns:
            LimitDecision; only REJECTED blocks the request
        """
        if not token:
            return LimitDecision(Admission.ADMITTED, reason="anonymous")

        ok, user_id = self._attempt("identity lookup", lambda: self.identity.resolve(token))
        if not ok or user_id is None:
            if ok:
                logger.warning("Bearer token did not resolve to a session, request not metered")
            return LimitDecision(Admission.DEGRADED, reason="identity unresolved")

        day = self.today()
        read_ok, record = self._attempt("usage read", lambda: get_usage(self.db, user_id, day))
        count = (record.request_count if record else 0) if read_ok else None

        if decide(count, limit_per_day) == Admission.REJECTED:
            logger.warning(f"Daily limit reached: user_id={user_id}, count={count}, limit={limit_per_day}")
            return LimitDecision(Admission.REJECTED, reason=DAILY_LIMIT_REASON,
                                 user_id=user_id, request_count=count)

        if self.atomic:
            write_ok, new_count = self._attempt(
                "usage increment", lambda: increment_usage(self.db, user_id, day, limit_per_day)
            )
            if write_ok and new_count is None:
                # Ceiling reached between the read and the increment
                logger.warning(f"Daily limit reached: user_id={user_id}, limit={limit_per_day}")
                return LimitDecision(Admission.REJECTED, reason=DAILY_LIMIT_REASON,
                                     user_id=user_id, request_count=limit_per_day)
        elif count is None:
            # Writing count + 1 without knowing count would reset the counter
            write_ok, new_count = False, None
        else:
            new_count = count + 1
            write_ok, _ = self._attempt(
                "usage upsert", lambda: upsert_usage(self.db, user_id, day, new_count)
            )

        if not (read_ok and write_ok):
            return LimitDecision(Admission.DEGRADED, reason="usage store unavailable",
                                 user_id=user_id, request_count=new_count if write_ok else count)

        logger.debug(f"Request admitted: user_id={user_id}, count={new_count}/{limit_per_day}")
        return LimitDecision(Admission.ADMITTED, user_id=user_id, request_count=new_count)
