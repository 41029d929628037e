import uuid
from datetime import datetime

from pydantic import BaseModel, Field


class RatingCreateRequest(BaseModel):
    order_id: uuid.UUID
    rating: int = Field(..., ge=1, le=5)
    comment: str | None = None


class RatingItem(BaseModel):
    id: uuid.UUID
    order_id: uuid.UUID
    rated_user_id: uuid.UUID
    rater_user_id: uuid.UUID
    rater_name: str
    rating: int
    comment: str | None = None
    created_at: datetime

    model_config = {"from_attributes": True}


class RatingSummary(BaseModel):
    average_rating: float = 0.0
    total_count: int = 0
    breakdown: dict[str, int] = {}


class RatingListResponse(BaseModel):
    summary: RatingSummary
    data: list[RatingItem]
