import uuid

from pydantic import BaseModel


class ProviderListItem(BaseModel):
    id: uuid.UUID
    name: str
    avatar_url: str | None = None
    qualifications: str | None = None
    service_categories: list[str] | None = None
    service_areas: list[str] | None = None
    latitude: float | None = None
    longitude: float | None = None
    verification_status: str
    average_rating: float = 0.0
    rating_count: int = 0


class ProviderListMeta(BaseModel):
    page: int
    per_page: int
    total: int


class ProviderListResponse(BaseModel):
    data: list[ProviderListItem]
    meta: ProviderListMeta


class ProviderDetail(ProviderListItem):
    phone_number: str | None = None
    images: list[str] = []
    videos: list[str] = []
    video_calls_enabled: bool = True
    rating_breakdown: dict[str, int] = {}
