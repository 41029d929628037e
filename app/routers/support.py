import structlog
from fastapi import APIRouter, Depends, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.deps import get_current_user
from app.models.support import SupportRequest
from app.models.user import User
from app.schemas.support import SupportCreateRequest, SupportItem, SupportListResponse

logger = structlog.get_logger()

router = APIRouter(prefix="/support", tags=["Support"])


@router.post(
    "",
    response_model=SupportItem,
    status_code=status.HTTP_201_CREATED,
    summary="Open ticket",
    description="Creates an `open` support ticket. Name and email are taken from the account.",
)
async def create_ticket(
    body: SupportCreateRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    ticket = SupportRequest(
        user_id=user.id,
        name=user.name,
        email=user.email,
        subject=body.subject.strip(),
        message=body.message.strip(),
        type=body.type,
        status="open",
    )
    db.add(ticket)
    await db.commit()
    await db.refresh(ticket)
    logger.info("support_ticket_created", ticket_id=str(ticket.id), type=ticket.type)
    return SupportItem.model_validate(ticket)


@router.get("/my", response_model=SupportListResponse, summary="My tickets", description="Own support tickets, newest first.")
async def list_my_tickets(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(
        select(SupportRequest).where(SupportRequest.user_id == user.id).order_by(SupportRequest.created_at.desc())
    )
    return SupportListResponse(data=[SupportItem.model_validate(t) for t in result.scalars().all()])
