import uuid

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import String, cast, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db, json_serializer
from app.core.deps import get_current_user
from app.models.rating import Rating
from app.models.user import User
from app.schemas.provider import ProviderDetail, ProviderListItem, ProviderListMeta, ProviderListResponse

router = APIRouter(prefix="/providers", tags=["Providers"])


def _rating_stats():
    return (
        select(
            Rating.rated_user_id.label("user_id"),
            func.avg(Rating.rating).label("avg_rating"),
            func.count(Rating.id).label("rating_count"),
        )
        .group_by(Rating.rated_user_id)
        .subquery()
    )


def _json_contains(column, value: str):
    # JSON string arrays; portable across PostgreSQL and SQLite
    needle = json_serializer(value).replace("/", "//").replace("%", "/%").replace("_", "/_")
    return cast(column, String).like(f"%{needle}%", escape="/")


def _list_item(user: User, average, count) -> ProviderListItem:
    return ProviderListItem(
        id=user.id,
        name=user.name,
        avatar_url=user.avatar_url,
        qualifications=user.qualifications,
        service_categories=user.service_categories or [],
        service_areas=user.service_areas or [],
        latitude=user.latitude,
        longitude=user.longitude,
        verification_status=user.verification_status,
        average_rating=round(float(average or 0), 2),
        rating_count=count or 0,
    )


@router.get(
    "",
    response_model=ProviderListResponse,
    summary="Search providers",
    description="Filter by text (`q` over name and qualifications), `category`, `area`, `min_rating` and `verified`.",
)
async def search_providers(
    q: str | None = None,
    category: str | None = None,
    area: str | None = None,
    min_rating: float | None = Query(None, ge=0, le=5),
    verified: bool | None = None,
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    _user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    stats = _rating_stats()
    query = (
        select(User, stats.c.avg_rating, stats.c.rating_count)
        .outerjoin(stats, stats.c.user_id == User.id)
        .where(User.role == "provider")
    )

    if q:
        pattern = f"%{q.strip()}%"
        query = query.where(or_(User.name.ilike(pattern), User.qualifications.ilike(pattern)))
    if category:
        query = query.where(_json_contains(User.service_categories, category))
    if area:
        query = query.where(_json_contains(User.service_areas, area))
    if min_rating is not None:
        query = query.where(func.coalesce(stats.c.avg_rating, 0) >= min_rating)
    if verified is not None:
        if verified:
            query = query.where(User.verification_status == "verified")
        else:
            query = query.where(User.verification_status != "verified")

    total = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar() or 0

    result = await db.execute(
        query.order_by(func.coalesce(stats.c.avg_rating, 0).desc(), User.created_at.desc())
        .offset((page - 1) * per_page)
        .limit(per_page)
    )

    return ProviderListResponse(
        data=[_list_item(user, average, count) for user, average, count in result.all()],
        meta=ProviderListMeta(page=page, per_page=per_page, total=total),
    )


@router.get(
    "/{provider_id}",
    response_model=ProviderDetail,
    summary="Provider detail",
    description="Public provider profile with portfolio, verification status and rating breakdown.",
)
async def get_provider(
    provider_id: uuid.UUID,
    _user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(select(User).where(User.id == provider_id, User.role == "provider"))
    provider = result.scalar_one_or_none()
    if not provider:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Provider not found")

    breakdown_result = await db.execute(
        select(Rating.rating, func.count(Rating.id))
        .where(Rating.rated_user_id == provider.id)
        .group_by(Rating.rating)
    )
    breakdown = {str(i): 0 for i in range(1, 6)}
    for stars, count in breakdown_result.all():
        breakdown[str(stars)] = count

    total = sum(breakdown.values())
    average = sum(int(k) * v for k, v in breakdown.items()) / total if total else 0.0
    item = _list_item(provider, average, total)

    return ProviderDetail(
        **item.model_dump(),
        phone_number=provider.phone_number,
        images=provider.images or [],
        videos=provider.videos or [],
        video_calls_enabled=provider.video_calls_enabled,
        rating_breakdown=breakdown,
    )
