import uuid

import structlog
from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.database import get_db
from app.core.deps import get_current_user
from app.models.ad import AdRequest
from app.models.user import User
from app.schemas.ad import (
    AdItem,
    AdListResponse,
    AdUpdateRequest,
    CategorizeAdRequest,
    GenerateAdRequest,
    GenerateAdResponse,
)
from app.schemas.profile import CategoryResponse
from app.services.ai import categorize_ad, generate_ad, moderate_image, verify_payment
from app.services.notify import notify
from app.services.storage import delete_file, read_upload, save_file
from app.services.transitions import AD_TRANSITIONS, next_status

logger = structlog.get_logger()

router = APIRouter(prefix="/ads", tags=["Ads"])

ADS_LINK = "/dashboard/provider/ads"


async def _get_own_ad(db: AsyncSession, ad_id: uuid.UUID, user: User) -> AdRequest:
    result = await db.execute(select(AdRequest).where(AdRequest.id == ad_id, AdRequest.user_id == user.id))
    ad = result.scalar_one_or_none()
    if not ad:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Ad request not found")
    return ad


@router.post(
    "",
    response_model=AdItem,
    status_code=status.HTTP_201_CREATED,
    summary="Submit ad request",
    description="Multipart: `title`, `message`, optional `image` (AI-moderated with `LLM_MODEL`; rejected when `ANTHROPIC_API_KEY` is unset). Goes to admin review as `pending_review`.",
)
async def create_ad(
    title: str = Form(..., min_length=1, max_length=255),
    message: str = Form(..., min_length=1),
    image: UploadFile | None = File(None),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    image_url = None
    if image is not None:
        content = await read_upload(image)
        if not await moderate_image(content, image.content_type or ""):
            logger.warning("ad_image_rejected", user_id=str(user.id))
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="The image was flagged as inappropriate and cannot be uploaded",
            )
        image_url = await save_file("ad", image.filename, content)

    ad = AdRequest(
        user_id=user.id,
        name=user.name,
        email=user.email,
        title=title.strip(),
        message=message.strip(),
        image_url=image_url,
        status="pending_review",
    )
    db.add(ad)
    await db.commit()
    await db.refresh(ad)
    logger.info("ad_submitted", ad_id=str(ad.id), user_id=str(user.id))
    return AdItem.model_validate(ad)


@router.get("", response_model=AdListResponse, summary="Active ads", description="Ads currently running, most recently updated first.")
async def list_active_ads(
    _user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(
        select(AdRequest).where(AdRequest.status == "active").order_by(AdRequest.updated_at.desc())
    )
    return AdListResponse(data=[AdItem.model_validate(a) for a in result.scalars().all()])


@router.get("/my", response_model=AdListResponse, summary="My ad requests", description="Own ad requests in every status, newest first.")
async def list_my_ads(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(
        select(AdRequest).where(AdRequest.user_id == user.id).order_by(AdRequest.created_at.desc())
    )
    return AdListResponse(data=[AdItem.model_validate(a) for a in result.scalars().all()])


@router.post(
    "/generate",
    response_model=GenerateAdResponse,
    summary="Generate ad copy",
    description="AI writes a title, body and image suggestion from the service details. Uses `LLM_MODEL`. Returns 502 when the AI fails or `ANTHROPIC_API_KEY` is unset.",
)
async def generate_ad_copy(
    body: GenerateAdRequest,
    user: User = Depends(get_current_user),
):
    try:
        ad = await generate_ad(
            service_type=body.service_type,
            service_areas=body.service_areas,
            provider_name=body.provider_name or user.name,
            contact_info=body.contact_info,
            keywords=body.keywords,
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))
    return GenerateAdResponse(**ad.model_dump())


@router.post(
    "/categorize",
    response_model=CategoryResponse,
    summary="Categorize ad",
    description="AI category for an ad description. Falls back to `Other`.",
)
async def categorize_ad_text(
    body: CategorizeAdRequest,
    _user: User = Depends(get_current_user),
):
    return CategoryResponse(category=await categorize_ad(body.description))


@router.get("/{ad_id}", response_model=AdItem, summary="Ad detail", description="Active ads are public. Other statuses are visible to the owner and admins.")
async def get_ad(
    ad_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(select(AdRequest).where(AdRequest.id == ad_id))
    ad = result.scalar_one_or_none()
    if not ad or (ad.status != "active" and ad.user_id != user.id and user.role != "admin"):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Ad request not found")
    return AdItem.model_validate(ad)


@router.put(
    "/{ad_id}",
    response_model=AdItem,
    summary="Edit ad request",
    description="Owner edits title and message while `pending_review` or `rejected`. A rejected request goes back to review.",
)
async def update_ad(
    ad_id: uuid.UUID,
    body: AdUpdateRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    ad = await _get_own_ad(db, ad_id, user)
    if ad.status not in ("pending_review", "rejected"):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Ad request cannot be edited when status is '{ad.status}'",
        )

    if body.title is not None:
        ad.title = body.title.strip()
    if body.message is not None:
        ad.message = body.message.strip()
    if ad.status == "rejected":
        ad.status = "pending_review"
        ad.rejection_reason = None
    await db.commit()
    return AdItem.model_validate(ad)


@router.post(
    "/{ad_id}/payment-proof",
    response_model=AdItem,
    summary="Upload ad payment proof",
    description=(
        "Owner uploads the receipt for an approved ad (`pending_payment`). "
        "AI verified → `active`, otherwise `payment_review` for an admin."
    ),
)
async def upload_ad_payment_proof(
    ad_id: uuid.UUID,
    file: UploadFile = File(...),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    ad = await _get_own_ad(db, ad_id, user)
    if ad.status != "pending_payment" or ad.price is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Payment proof can only be uploaded for an approved ad awaiting payment",
        )

    content = await read_upload(file, settings.MAX_PAYMENT_PROOF_SIZE)
    url = await save_file("payment", file.filename, content)
    delete_file(ad.payment_proof_url)
    ad.payment_proof_url = url

    verification = await verify_payment(
        content,
        file.content_type or "",
        amount=ad.price,
        currency=ad.currency or "SAR",
        payer_name=ad.name,
        payee_name=settings.PLATFORM_PAYEE_NAME,
    )
    ad.verification_notes = verification.reason
    action = "verify_payment" if verification.is_verified else "submit_payment"
    ad.status = next_status(AD_TRANSITIONS, action, ad.status)
    await db.commit()
    logger.info("ad_payment_proof_uploaded", ad_id=str(ad.id), status=ad.status)

    item = AdItem.model_validate(ad)
    notification_type = "ad_payment_confirmed" if verification.is_verified else "ad_payment_review"
    await notify(db, user.id, notification_type, ADS_LINK)
    return item
