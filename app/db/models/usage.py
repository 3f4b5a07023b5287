from sqlalchemy import Column, Integer, String, Date, DateTime, UniqueConstraint
from sqlalchemy.sql import func
from datetime import date, datetime, timezone
from app.db.base import Base


class UserUsage(Base):
    """
    Daily gateway usage per user.

    One row per (user_id, date). request_count only grows within a day; rows
    are never deleted and simply stop being read once the day has passed.
    """
    __tablename__ = "user_usage"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String, nullable=False, index=True)  # Supabase auth user id (uuid string)
    date = Column(Date, nullable=False, index=True)
    request_count = Column(Integer, default=0, nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint('user_id', 'date', name='uq_user_usage_user_date'),
    )

    @staticmethod
    def today(now: datetime = None) -> date:
        """Quota day in UTC so every gateway instance agrees on the boundary."""
        if now is None:
            now = datetime.now(timezone.utc)
        return now.date()
