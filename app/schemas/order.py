import uuid
from datetime import datetime

from pydantic import BaseModel, Field

from app.core.config import settings


class OrderCreateRequest(BaseModel):
    provider_id: uuid.UUID
    service_description: str = Field(..., min_length=1)
    amount: float = Field(..., gt=0)
    currency: str = Field("SAR", min_length=3, max_length=3)
    service_start_date: datetime | None = None


class OrderItem(BaseModel):
    id: uuid.UUID
    seeker_id: uuid.UUID
    provider_id: uuid.UUID
    seeker_name: str
    provider_name: str
    service_description: str
    amount: float
    currency: str
    commission: float
    payout_amount: float
    status: str
    chat_id: uuid.UUID | None = None
    proof_of_payment_url: str | None = None
    verification_notes: str | None = None
    service_start_date: datetime | None = None
    grace_period_days: int | None = None
    dispute_reason: str | None = None
    dispute_resolution: str | None = None
    resolution_notes: str | None = None
    approved_by_provider_at: datetime | None = None
    payment_approved_at: datetime | None = None
    service_started_at: datetime | None = None
    work_finished_at: datetime | None = None
    completed_at: datetime | None = None
    declined_at: datetime | None = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class OrderListResponse(BaseModel):
    data: list[OrderItem]


class GracePeriodRequest(BaseModel):
    days: int = Field(..., ge=settings.GRACE_PERIOD_MIN_DAYS, le=settings.GRACE_PERIOD_MAX_DAYS)


class DisputeRequest(BaseModel):
    reason: str = Field(..., min_length=1)
