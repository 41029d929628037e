import uuid
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

from app.schemas.chat import MessageItem
from app.schemas.order import OrderItem


class StatsResponse(BaseModel):
    pending_payments: int
    pending_verifications: int
    ads_pending_review: int
    ads_payment_review: int
    open_disputes: int
    open_support_requests: int
    total_users: int


class AdminUserItem(BaseModel):
    id: uuid.UUID
    name: str
    email: str
    role: str
    phone_number: str | None = None
    is_verified: bool
    verification_status: str
    verification_documents: list[str] | None = None
    verification_rejection_reason: str | None = None
    created_at: datetime

    model_config = {"from_attributes": True}


class AdminUserListResponse(BaseModel):
    data: list[AdminUserItem]


class RejectRequest(BaseModel):
    reason: str = Field(..., min_length=1)


class VerificationRejectRequest(BaseModel):
    reason: str = "The uploaded documents were not sufficient."


class AdApproveRequest(BaseModel):
    price: float = Field(..., gt=0)
    currency: str = Field("SAR", min_length=3, max_length=3)


class DisputeResolveRequest(BaseModel):
    resolution: Literal["seeker", "provider"]
    notes: str | None = None


class DisputeDetail(BaseModel):
    order: OrderItem
    messages: list[MessageItem]


class AdminMessageRequest(BaseModel):
    content: str = Field(..., min_length=1)


class SupportStatusRequest(BaseModel):
    status: Literal["in_progress", "closed"]
    admin_reply: str | None = None
