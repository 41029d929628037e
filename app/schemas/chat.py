import uuid
from datetime import datetime
from typing import Literal

from pydantic import BaseModel


class ParticipantBrief(BaseModel):
    id: str
    name: str | None = None
    avatar_url: str | None = None
    role: str | None = None
    is_online: bool = False


class ChatListItem(BaseModel):
    id: str
    participant: ParticipantBrief
    last_message: str | None = None
    last_message_sender_id: str | None = None
    unread_count: int = 0
    updated_at: datetime


class ChatListResponse(BaseModel):
    data: list[ChatListItem]


class CreateChatRequest(BaseModel):
    participant_id: uuid.UUID


class CreateChatResponse(BaseModel):
    id: str
    participant: ParticipantBrief
    created: bool = False


class MessageItem(BaseModel):
    id: str
    chat_id: str
    sender_id: str
    type: str = "text"
    content: str
    call_metadata: dict | None = None
    created_at: datetime
    read_at: datetime | None = None


class MessageListResponse(BaseModel):
    data: list[MessageItem]
    has_more: bool = False


class SendMessageRequest(BaseModel):
    type: Literal["text", "audio", "image", "video"] = "text"
    content: str


class ReadChatResponse(BaseModel):
    chat_id: str
    read_at: datetime
