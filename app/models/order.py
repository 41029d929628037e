import uuid
from datetime import datetime

from sqlalchemy import Float, Integer, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base, UTCDateTime, utcnow


class Order(Base):
    __tablename__ = "orders"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    seeker_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)
    provider_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)
    seeker_name: Mapped[str] = mapped_column(String(255), nullable=False)
    provider_name: Mapped[str] = mapped_column(String(255), nullable=False)
    service_description: Mapped[str] = mapped_column(String, nullable=False)
    amount: Mapped[float] = mapped_column(Float, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), default="SAR")
    commission: Mapped[float] = mapped_column(Float, default=0.0)
    payout_amount: Mapped[float] = mapped_column(Float, default=0.0)
    status: Mapped[str] = mapped_column(String(30), default="pending_approval", index=True)
    chat_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)

    proof_of_payment_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    verification_notes: Mapped[str | None] = mapped_column(String, nullable=True)

    service_start_date: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    grace_period_days: Mapped[int | None] = mapped_column(Integer, nullable=True)

    dispute_reason: Mapped[str | None] = mapped_column(String, nullable=True)
    dispute_resolution: Mapped[str | None] = mapped_column(String(20), nullable=True)
    resolution_notes: Mapped[str | None] = mapped_column(String, nullable=True)

    approved_by_provider_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    payment_approved_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    service_started_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    work_finished_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    declined_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, onupdate=utcnow)
