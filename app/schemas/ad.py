import uuid
from datetime import datetime

from pydantic import BaseModel, Field


class AdItem(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    name: str
    email: str
    title: str
    message: str
    image_url: str | None = None
    status: str
    price: float | None = None
    currency: str | None = None
    payment_proof_url: str | None = None
    rejection_reason: str | None = None
    verification_notes: str | None = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class AdListResponse(BaseModel):
    data: list[AdItem]


class AdUpdateRequest(BaseModel):
    title: str | None = Field(None, min_length=1, max_length=255)
    message: str | None = Field(None, min_length=1)


class GenerateAdRequest(BaseModel):
    service_type: str = Field(..., min_length=1)
    service_areas: str = Field(..., min_length=1)
    contact_info: str | None = None
    keywords: str | None = None
    provider_name: str | None = None


class GenerateAdResponse(BaseModel):
    title: str
    body: str
    image_suggestion: str


class CategorizeAdRequest(BaseModel):
    description: str
