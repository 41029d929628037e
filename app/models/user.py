import uuid
from datetime import datetime

from sqlalchemy import JSON, Boolean, Float, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base, UTCDateTime, utcnow


class User(Base):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(String(20), default="seeker")
    phone_number: Mapped[str | None] = mapped_column(String(30), nullable=True)

    is_verified: Mapped[bool] = mapped_column(Boolean, default=False)
    verification_token: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    reset_token: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    reset_token_expires_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    # Provider profile
    qualifications: Mapped[str | None] = mapped_column(String, nullable=True)
    service_categories: Mapped[list[str] | None] = mapped_column(JSON, nullable=True)
    service_areas: Mapped[list[str] | None] = mapped_column(JSON, nullable=True)
    latitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    longitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    images: Mapped[list[str] | None] = mapped_column(JSON, nullable=True)
    videos: Mapped[list[str] | None] = mapped_column(JSON, nullable=True)
    video_calls_enabled: Mapped[bool] = mapped_column(Boolean, default=True)

    # Provider verification
    verification_status: Mapped[str] = mapped_column(String(20), default="not_submitted")
    verification_documents: Mapped[list[str] | None] = mapped_column(JSON, nullable=True)
    verification_rejection_reason: Mapped[str | None] = mapped_column(String, nullable=True)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, onupdate=utcnow)

    @property
    def avatar_url(self) -> str | None:
        return self.images[0] if self.images else None
