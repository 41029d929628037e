import uuid
from datetime import datetime

from pydantic import BaseModel


class NotificationItem(BaseModel):
    id: uuid.UUID
    type: str
    title: str
    body: str
    link: str
    params: dict | None = None
    is_read: bool = False
    created_at: datetime

    model_config = {"from_attributes": True}


class NotificationMeta(BaseModel):
    page: int
    total: int
    unread_count: int = 0


class NotificationListResponse(BaseModel):
    data: list[NotificationItem]
    meta: NotificationMeta


class MarkReadResponse(BaseModel):
    id: str
    is_read: bool = True


class MarkAllReadResponse(BaseModel):
    updated_count: int
