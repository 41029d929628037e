import uuid
from datetime import datetime

from sqlalchemy import JSON, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base, UTCDateTime, utcnow


class Chat(Base):
    __tablename__ = "chats"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    # participant_1 < participant_2, so a pair maps to exactly one chat
    participant_1: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)
    participant_2: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)
    last_message: Mapped[str | None] = mapped_column(String, nullable=True)
    last_message_sender_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    last_message_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    # {str(user_id): int}
    unread_count: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow)

    @property
    def participant_ids(self) -> list[str]:
        return [str(self.participant_1), str(self.participant_2)]


class Message(Base):
    __tablename__ = "messages"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    chat_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)
    # "system" for call events, otherwise a user id
    sender_id: Mapped[str] = mapped_column(String(36), nullable=False)
    type: Mapped[str] = mapped_column(String(30), default="text")
    content: Mapped[str] = mapped_column(String, nullable=False)
    call_metadata: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow)
    read_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
