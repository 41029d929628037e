import uuid
from datetime import datetime

from sqlalchemy import JSON, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base, UTCDateTime, utcnow


class Call(Base):
    __tablename__ = "calls"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    chat_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)
    caller_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    caller_name: Mapped[str] = mapped_column(String(255), default="Unknown Caller")
    callee_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    callee_name: Mapped[str] = mapped_column(String(255), default="User")
    type: Mapped[str] = mapped_column(String(10), default="audio")
    status: Mapped[str] = mapped_column(String(20), default="ringing", index=True)
    # WebRTC session descriptions: {"sdp": ..., "type": "offer" | "answer"}
    offer: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    answer: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow)
    started_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    ended_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
