import uuid
from datetime import datetime, timezone

import structlog
from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile, status
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.database import get_db
from app.core.deps import get_current_user, require_role
from app.models.order import Order
from app.models.user import User
from app.schemas.order import (
    DisputeRequest,
    GracePeriodRequest,
    OrderCreateRequest,
    OrderItem,
    OrderListResponse,
)
from app.services.ai import verify_payment
from app.services.messaging import get_or_create_chat
from app.services.notify import notify
from app.services.storage import delete_file, read_upload, save_file
from app.services.transitions import ORDER_TRANSITIONS, next_status

logger = structlog.get_logger()

router = APIRouter(prefix="/orders", tags=["Orders"])


def _order_link(order: Order) -> str:
    return f"/dashboard/orders/{order.id}"


async def _get_order(db: AsyncSession, order_id: uuid.UUID, user: User) -> Order:
    """Order visible to the user: participants, plus admins."""
    result = await db.execute(select(Order).where(Order.id == order_id))
    order = result.scalar_one_or_none()
    if not order or (user.role != "admin" and user.id not in (order.seeker_id, order.provider_id)):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Order not found")
    return order


def _require_party(order: Order, user: User, party: str):
    party_id = order.seeker_id if party == "seeker" else order.provider_id
    if user.id != party_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Only the {party} of this order can do this",
        )


def split_amount(amount: float) -> tuple[float, float]:
    """Return (commission, payout) for an order amount."""
    commission = round(amount * settings.PLATFORM_COMMISSION_PERCENT / 100, 2)
    return commission, round(amount - commission, 2)


@router.post(
    "",
    response_model=OrderItem,
    status_code=status.HTTP_201_CREATED,
    summary="Request a service",
    description="Seeker sends a service request to a provider. Starts (or reuses) their chat. Status: `pending_approval`.",
)
async def create_order(
    body: OrderCreateRequest,
    user: User = Depends(require_role("seeker")),
    db: AsyncSession = Depends(get_db),
):
    if body.provider_id == user.id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="You cannot order your own service")

    result = await db.execute(select(User).where(User.id == body.provider_id, User.role == "provider"))
    provider = result.scalar_one_or_none()
    if not provider:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Provider not found")

    chat, _ = await get_or_create_chat(db, user.id, provider.id)
    commission, payout = split_amount(body.amount)

    order = Order(
        seeker_id=user.id,
        provider_id=provider.id,
        seeker_name=user.name,
        provider_name=provider.name,
        service_description=body.service_description.strip(),
        amount=body.amount,
        currency=body.currency.upper(),
        commission=commission,
        payout_amount=payout,
        status="pending_approval",
        chat_id=chat.id,
        service_start_date=body.service_start_date,
    )
    db.add(order)
    await db.commit()
    await db.refresh(order)
    logger.info("order_created", order_id=str(order.id), seeker_id=str(user.id), provider_id=str(provider.id))

    item = OrderItem.model_validate(order)
    await notify(db, provider.id, "new_order_request", _order_link(order), {"seeker_name": user.name})
    return item


@router.get(
    "",
    response_model=OrderListResponse,
    summary="My orders",
    description="Orders where the user is the seeker or the provider, newest first. Optional `status` filter.",
)
async def list_orders(
    order_status: str | None = Query(None, alias="status"),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    query = select(Order).where(or_(Order.seeker_id == user.id, Order.provider_id == user.id))
    if order_status:
        query = query.where(Order.status == order_status)
    result = await db.execute(query.order_by(Order.created_at.desc()))
    return OrderListResponse(data=[OrderItem.model_validate(o) for o in result.scalars().all()])


@router.get("/{order_id}", response_model=OrderItem, summary="Order detail", description="Participants only.")
async def get_order(
    order_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return OrderItem.model_validate(await _get_order(db, order_id, user))


# ──────────────────────────────────────────────
# PROVIDER DECISION
# ──────────────────────────────────────────────

@router.post(
    "/{order_id}/accept",
    response_model=OrderItem,
    summary="Accept request",
    description="Provider accepts a `pending_approval` request. Status → `pending_payment`.",
)
async def accept_order(
    order_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    order = await _get_order(db, order_id, user)
    _require_party(order, user, "provider")
    order.status = next_status(ORDER_TRANSITIONS, "accept", order.status)
    order.approved_by_provider_at = datetime.now(timezone.utc)
    await db.commit()
    logger.info("order_accepted", order_id=str(order.id))

    item = OrderItem.model_validate(order)
    await notify(db, order.seeker_id, "order_accepted", _order_link(order), {"provider_name": order.provider_name})
    return item


@router.post(
    "/{order_id}/decline",
    response_model=OrderItem,
    summary="Decline request",
    description="Provider declines a `pending_approval` request. Status → `declined`.",
)
async def decline_order(
    order_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    order = await _get_order(db, order_id, user)
    _require_party(order, user, "provider")
    order.status = next_status(ORDER_TRANSITIONS, "decline", order.status)
    order.declined_at = datetime.now(timezone.utc)
    await db.commit()
    logger.info("order_declined", order_id=str(order.id))

    item = OrderItem.model_validate(order)
    await notify(db, order.seeker_id, "order_declined", _order_link(order), {"provider_name": order.provider_name})
    return item


# ──────────────────────────────────────────────
# PAYMENT
# ──────────────────────────────────────────────

@router.post(
    "/{order_id}/payment-proof",
    response_model=OrderItem,
    summary="Upload payment proof",
    description=(
        "Seeker uploads a receipt (max 10MB) while the order is `pending_payment`. "
        "AI checks amount, currency, payer and payee: verified → `paid`, otherwise it waits for admin review."
    ),
)
async def upload_payment_proof(
    order_id: uuid.UUID,
    file: UploadFile = File(...),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    order = await _get_order(db, order_id, user)
    _require_party(order, user, "seeker")
    if order.status != "pending_payment":
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Payment proof can only be uploaded when status is 'pending_payment', not '{order.status}'",
        )

    content = await read_upload(file, settings.MAX_PAYMENT_PROOF_SIZE)
    url = await save_file("payment", file.filename, content)
    delete_file(order.proof_of_payment_url)
    order.proof_of_payment_url = url

    verification = await verify_payment(
        content,
        file.content_type or "",
        amount=order.amount,
        currency=order.currency,
        payer_name=order.seeker_name,
        payee_name=order.provider_name,
    )
    order.verification_notes = verification.reason

    if verification.is_verified:
        order.status = next_status(ORDER_TRANSITIONS, "approve_payment", order.status)
        order.payment_approved_at = datetime.now(timezone.utc)
    await db.commit()
    logger.info("payment_proof_uploaded", order_id=str(order.id), verified=verification.is_verified)

    item = OrderItem.model_validate(order)
    if verification.is_verified:
        await notify(db, order.provider_id, "payment_received", _order_link(order), {"seeker_name": order.seeker_name})
    else:
        await notify(db, order.seeker_id, "payment_under_review", _order_link(order), {"order_id": str(order.id)})
    return item


@router.delete(
    "/{order_id}/payment-proof",
    response_model=OrderItem,
    summary="Remove payment proof",
    description="Seeker removes the uploaded proof while the order is still `pending_payment`.",
)
async def delete_payment_proof(
    order_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    order = await _get_order(db, order_id, user)
    _require_party(order, user, "seeker")
    if order.status != "pending_payment":
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Payment proof can no longer be removed")
    if not order.proof_of_payment_url:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No payment proof uploaded")

    delete_file(order.proof_of_payment_url)
    order.proof_of_payment_url = None
    order.verification_notes = None
    await db.commit()
    return OrderItem.model_validate(order)


# ──────────────────────────────────────────────
# SERVICE
# ──────────────────────────────────────────────

@router.post(
    "/{order_id}/start",
    response_model=OrderItem,
    summary="Start service",
    description="Provider marks the work as started. Only for `paid` orders that have not started yet.",
)
async def start_service(
    order_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    order = await _get_order(db, order_id, user)
    _require_party(order, user, "provider")
    if order.status != "paid" or order.service_started_at is not None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Service can only be started once the order is paid")

    order.service_started_at = datetime.now(timezone.utc)
    await db.commit()
    logger.info("service_started", order_id=str(order.id))

    item = OrderItem.model_validate(order)
    await notify(db, order.seeker_id, "service_started", _order_link(order), {"provider_name": order.provider_name})
    return item


@router.post(
    "/{order_id}/grace-period",
    response_model=OrderItem,
    summary="Grant grace period",
    description="Seeker gives the provider 1-3 extra days to start a paid order.",
)
async def grant_grace_period(
    order_id: uuid.UUID,
    body: GracePeriodRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    order = await _get_order(db, order_id, user)
    _require_party(order, user, "seeker")
    if order.status != "paid" or order.service_started_at is not None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="A grace period can only be granted on a paid order before the service starts",
        )

    order.grace_period_days = body.days
    await db.commit()
    logger.info("grace_period_granted", order_id=str(order.id), days=body.days)

    item = OrderItem.model_validate(order)
    await notify(
        db, order.provider_id, "grace_period_granted", _order_link(order),
        {"seeker_name": order.seeker_name, "days": body.days},
    )
    return item


@router.post(
    "/{order_id}/finish",
    response_model=OrderItem,
    summary="Finish work",
    description="Provider reports the work as done. `paid` → `pending_completion`.",
)
async def finish_work(
    order_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    order = await _get_order(db, order_id, user)
    _require_party(order, user, "provider")
    order.status = next_status(ORDER_TRANSITIONS, "finish", order.status)
    order.work_finished_at = datetime.now(timezone.utc)
    await db.commit()
    logger.info("work_finished", order_id=str(order.id))

    item = OrderItem.model_validate(order)
    await notify(db, order.seeker_id, "work_finished", _order_link(order), {"provider_name": order.provider_name})
    return item


@router.post(
    "/{order_id}/complete",
    response_model=OrderItem,
    summary="Complete order",
    description="Seeker confirms the service. `paid` or `pending_completion` → `completed`.",
)
async def complete_order(
    order_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    order = await _get_order(db, order_id, user)
    _require_party(order, user, "seeker")
    order.status = next_status(ORDER_TRANSITIONS, "complete", order.status)
    order.completed_at = datetime.now(timezone.utc)
    await db.commit()
    logger.info("order_completed", order_id=str(order.id), payout=order.payout_amount)

    item = OrderItem.model_validate(order)
    await notify(db, order.provider_id, "order_completed", _order_link(order), {"seeker_name": order.seeker_name})
    return item


@router.post(
    "/{order_id}/dispute",
    response_model=OrderItem,
    summary="Open dispute",
    description="Either party disputes a `paid` or `pending_completion` order. An admin resolves it.",
)
async def dispute_order(
    order_id: uuid.UUID,
    body: DisputeRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    order = await _get_order(db, order_id, user)
    if user.id not in (order.seeker_id, order.provider_id):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only order participants can open a dispute")
    order.status = next_status(ORDER_TRANSITIONS, "dispute", order.status)
    order.dispute_reason = body.reason.strip()
    await db.commit()
    logger.info("order_disputed", order_id=str(order.id), by=str(user.id))

    item = OrderItem.model_validate(order)
    other_id = order.provider_id if user.id == order.seeker_id else order.seeker_id
    await notify(db, other_id, "order_disputed", _order_link(order), {"user_name": user.name})
    return item
