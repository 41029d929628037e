import uuid
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field


class SupportCreateRequest(BaseModel):
    subject: str = Field(..., min_length=1, max_length=255)
    message: str = Field(..., min_length=1)
    type: Literal["inquiry", "complaint", "payment_issue", "other"] = "inquiry"


class SupportItem(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    name: str
    email: str
    subject: str
    message: str
    type: str
    status: str
    admin_reply: str | None = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class SupportListResponse(BaseModel):
    data: list[SupportItem]
