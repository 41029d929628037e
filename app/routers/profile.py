import structlog
from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.deps import get_current_user, require_role
from app.models.user import User
from app.schemas.profile import (
    CategoryResponse,
    PortfolioResponse,
    ProfileResponse,
    ProfileUpdateRequest,
    VerificationDocumentsResponse,
)
from app.services.ai import categorize_provider, moderate_image
from app.services.storage import delete_file, read_upload, save_file

logger = structlog.get_logger()

router = APIRouter(prefix="/profile", tags=["Profile"])


@router.get("", response_model=ProfileResponse, summary="Get profile", description="Returns the current user's profile.")
async def get_profile(user: User = Depends(get_current_user)):
    return ProfileResponse.model_validate(user)


@router.put(
    "",
    response_model=ProfileResponse,
    summary="Update profile",
    description="Partial update: name, phone, qualifications, service categories and areas, location, video calls toggle.",
)
async def update_profile(
    body: ProfileUpdateRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    for field, value in body.model_dump(exclude_unset=True).items():
        if field == "name" and value is None:
            continue
        if field == "video_calls_enabled" and value is None:
            continue
        setattr(user, field, value)

    await db.commit()
    await db.refresh(user)
    logger.info("profile_updated", user_id=str(user.id))
    return ProfileResponse.model_validate(user)


@router.post(
    "/categorize",
    response_model=CategoryResponse,
    summary="Suggest category",
    description="AI suggestion of the provider's main category from their qualifications: `Plumbing`, `Electrical` or `Other`.",
)
async def categorize_profile(user: User = Depends(require_role("provider"))):
    category = await categorize_provider(user.qualifications or "")
    return CategoryResponse(category=category)


@router.post(
    "/portfolio",
    response_model=PortfolioResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add portfolio item",
    description="Upload an image or a video to the portfolio. Images are checked by AI moderation first (`LLM_MODEL`); without `ANTHROPIC_API_KEY` image uploads are rejected.",
)
async def add_portfolio_item(
    file: UploadFile = File(...),
    user: User = Depends(require_role("provider")),
    db: AsyncSession = Depends(get_db),
):
    content_type = file.content_type or ""
    if not content_type.startswith(("image/", "video/")):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Only images and videos are allowed")

    content = await read_upload(file)
    is_image = content_type.startswith("image/")
    if is_image and not await moderate_image(content, content_type):
        logger.warning("portfolio_image_rejected", user_id=str(user.id))
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="The image was flagged as inappropriate and cannot be uploaded",
        )

    url = await save_file("portfolio", file.filename, content)
    if is_image:
        user.images = [*(user.images or []), url]
    else:
        user.videos = [*(user.videos or []), url]
    await db.commit()

    return PortfolioResponse(url=url, images=user.images or [], videos=user.videos or [])


@router.delete(
    "/portfolio",
    response_model=PortfolioResponse,
    summary="Remove portfolio item",
    description="Removes an image or video from the portfolio by its URL.",
)
async def remove_portfolio_item(
    url: str = Query(...),
    user: User = Depends(require_role("provider")),
    db: AsyncSession = Depends(get_db),
):
    images, videos = user.images or [], user.videos or []
    if url not in images and url not in videos:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Portfolio item not found")

    user.images = [u for u in images if u != url]
    user.videos = [u for u in videos if u != url]
    await db.commit()
    delete_file(url)

    return PortfolioResponse(url=url, images=user.images, videos=user.videos)


@router.post(
    "/verification-documents",
    response_model=VerificationDocumentsResponse,
    summary="Submit verification documents",
    description="Upload one or more identity or licence documents. The profile goes to `pending` until an admin reviews it.",
)
async def submit_verification_documents(
    files: list[UploadFile] = File(...),
    user: User = Depends(require_role("provider")),
    db: AsyncSession = Depends(get_db),
):
    if user.verification_status == "verified":
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Profile is already verified")

    urls = []
    for file in files:
        content = await read_upload(file)
        urls.append(await save_file("document", file.filename, content))

    user.verification_documents = [*(user.verification_documents or []), *urls]
    user.verification_status = "pending"
    user.verification_rejection_reason = None
    await db.commit()
    logger.info("verification_submitted", user_id=str(user.id), documents=len(urls))

    return VerificationDocumentsResponse(
        verification_status=user.verification_status,
        verification_documents=user.verification_documents,
    )
