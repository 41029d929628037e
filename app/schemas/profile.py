import uuid
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

ServiceCategory = Literal[
    "Plumbing",
    "Electrical",
    "Carpentry",
    "Painting",
    "HomeCleaning",
    "Construction",
    "Plastering",
    "Other",
]


class ProfileResponse(BaseModel):
    id: uuid.UUID
    name: str
    email: str
    role: str
    phone_number: str | None = None
    is_verified: bool
    avatar_url: str | None = None
    qualifications: str | None = None
    service_categories: list[str] | None = None
    service_areas: list[str] | None = None
    latitude: float | None = None
    longitude: float | None = None
    images: list[str] | None = None
    videos: list[str] | None = None
    video_calls_enabled: bool = True
    verification_status: str
    verification_documents: list[str] | None = None
    verification_rejection_reason: str | None = None
    created_at: datetime

    model_config = {"from_attributes": True}


class ProfileUpdateRequest(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=255)
    phone_number: str | None = Field(None, max_length=30)
    qualifications: str | None = None
    service_categories: list[ServiceCategory] | None = None
    service_areas: list[str] | None = None
    latitude: float | None = Field(None, ge=-90, le=90)
    longitude: float | None = Field(None, ge=-180, le=180)
    video_calls_enabled: bool | None = None


class CategoryResponse(BaseModel):
    category: str


class PortfolioResponse(BaseModel):
    url: str
    images: list[str]
    videos: list[str]


class VerificationDocumentsResponse(BaseModel):
    verification_status: str
    verification_documents: list[str]
