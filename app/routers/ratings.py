import uuid

import structlog
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.deps import get_current_user
from app.models.order import Order
from app.models.rating import Rating
from app.models.user import User
from app.schemas.rating import RatingCreateRequest, RatingItem, RatingListResponse, RatingSummary

logger = structlog.get_logger()

router = APIRouter(prefix="/ratings", tags=["Ratings"])

RATEABLE_STATUSES = {"completed", "resolved"}


@router.post(
    "",
    response_model=RatingItem,
    status_code=status.HTTP_201_CREATED,
    summary="Rate the other party",
    description="After a `completed` or `resolved` order, each party can rate the other once (1-5 stars).",
)
async def create_rating(
    body: RatingCreateRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(select(Order).where(Order.id == body.order_id))
    order = result.scalar_one_or_none()
    if not order or user.id not in (order.seeker_id, order.provider_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Order not found")

    if order.status not in RATEABLE_STATUSES:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Only finished orders can be rated")

    existing = await db.execute(
        select(Rating).where(Rating.order_id == order.id, Rating.rater_user_id == user.id)
    )
    if existing.scalar_one_or_none():
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="You have already rated this order")

    rating = Rating(
        order_id=order.id,
        rated_user_id=order.provider_id if user.id == order.seeker_id else order.seeker_id,
        rater_user_id=user.id,
        rater_name=user.name,
        rating=body.rating,
        comment=body.comment.strip() if body.comment else None,
    )
    db.add(rating)
    await db.commit()
    await db.refresh(rating)
    logger.info("rating_created", order_id=str(order.id), rating=rating.rating)
    return RatingItem.model_validate(rating)


@router.get("/{user_id}", response_model=RatingListResponse, summary="User ratings", description="Ratings received by a user with average, count and 1-5 breakdown.")
async def list_ratings(
    user_id: uuid.UUID,
    _user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(
        select(Rating).where(Rating.rated_user_id == user_id).order_by(Rating.created_at.desc())
    )
    ratings = result.scalars().all()

    breakdown = {str(i): 0 for i in range(1, 6)}
    for r in ratings:
        breakdown[str(r.rating)] += 1
    average = round(sum(r.rating for r in ratings) / len(ratings), 2) if ratings else 0.0

    return RatingListResponse(
        summary=RatingSummary(average_rating=average, total_count=len(ratings), breakdown=breakdown),
        data=[RatingItem.model_validate(r) for r in ratings],
    )
