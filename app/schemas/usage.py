"""
Pydantic schemas for usage endpoints.
"""
from pydantic import BaseModel, ConfigDict, Field


class DailyUsageResponse(BaseModel):
    """Response schema for GET /me/usage."""
    date: str = Field(..., description="Quota day in YYYY-MM-DD format (UTC)")
    used: int = Field(..., ge=0, description="Gateway requests counted today")
    limit: int = Field(..., description="Daily request limit")
    remaining: int = Field(..., ge=0, description="Requests left today")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "date": "2026-10-19",
                "used": 12,
                "limit": 100,
                "remaining": 88
            }
        }
    )
