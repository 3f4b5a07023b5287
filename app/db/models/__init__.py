"""
Database models module.

All models must be imported here to be included in migrations and table creation.
"""
from app.db.models.usage import UserUsage

__all__ = [
    "UserUsage",
]
