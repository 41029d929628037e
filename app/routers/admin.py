import uuid
from datetime import datetime, timezone

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.deps import require_admin
from app.models.ad import AdRequest
from app.models.chat import Chat, Message
from app.models.order import Order
from app.models.support import SupportRequest
from app.models.user import User
from app.schemas.ad import AdItem, AdListResponse
from app.schemas.admin import (
    AdApproveRequest,
    AdminMessageRequest,
    AdminUserItem,
    AdminUserListResponse,
    DisputeDetail,
    DisputeResolveRequest,
    RejectRequest,
    StatsResponse,
    SupportStatusRequest,
    VerificationRejectRequest,
)
from app.schemas.chat import MessageItem
from app.schemas.order import OrderItem, OrderListResponse
from app.schemas.support import SupportItem, SupportListResponse
from app.services.messaging import message_payload, post_message
from app.services.notify import notify
from app.services.storage import delete_file
from app.services.transitions import AD_TRANSITIONS, ORDER_TRANSITIONS, next_status

logger = structlog.get_logger()

router = APIRouter(prefix="/admin", tags=["Admin"])

PROFILE_LINK = "/dashboard/provider/profile"
ADS_LINK = "/dashboard/provider/ads"


async def _count(db: AsyncSession, model, *criteria) -> int:
    return (await db.execute(select(func.count()).select_from(model).where(*criteria))).scalar() or 0


async def _get_order(db: AsyncSession, order_id: uuid.UUID) -> Order:
    result = await db.execute(select(Order).where(Order.id == order_id))
    order = result.scalar_one_or_none()
    if not order:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Order not found")
    return order


async def _get_ad(db: AsyncSession, ad_id: uuid.UUID) -> AdRequest:
    result = await db.execute(select(AdRequest).where(AdRequest.id == ad_id))
    ad = result.scalar_one_or_none()
    if not ad:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Ad request not found")
    return ad


async def _get_provider(db: AsyncSession, user_id: uuid.UUID) -> User:
    result = await db.execute(select(User).where(User.id == user_id, User.role == "provider"))
    user = result.scalar_one_or_none()
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Provider not found")
    return user


def _order_link(order: Order) -> str:
    return f"/dashboard/orders/{order.id}"


# ──────────────────────────────────────────────
# OVERVIEW
# ──────────────────────────────────────────────

@router.get("/stats", response_model=StatsResponse, summary="Dashboard counters", description="Work queues for the back-office.")
async def get_stats(
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return StatsResponse(
        pending_payments=await _count(
            db, Order, Order.status == "pending_payment", Order.proof_of_payment_url.is_not(None)
        ),
        pending_verifications=await _count(db, User, User.verification_status == "pending"),
        ads_pending_review=await _count(db, AdRequest, AdRequest.status == "pending_review"),
        ads_payment_review=await _count(db, AdRequest, AdRequest.status == "payment_review"),
        open_disputes=await _count(db, Order, Order.status == "disputed"),
        open_support_requests=await _count(db, SupportRequest, SupportRequest.status != "closed"),
        total_users=await _count(db, User),
    )


@router.get("/users", response_model=AdminUserListResponse, summary="Users", description="All users, newest first. Optional `role` filter.")
async def list_users(
    role: str | None = None,
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    query = select(User)
    if role:
        query = query.where(User.role == role)
    result = await db.execute(query.order_by(User.created_at.desc()))
    return AdminUserListResponse(data=[AdminUserItem.model_validate(u) for u in result.scalars().all()])


# ──────────────────────────────────────────────
# PAYMENTS
# ──────────────────────────────────────────────

@router.get(
    "/payments",
    response_model=OrderListResponse,
    summary="Payments awaiting review",
    description="`pending_payment` orders, oldest first. Orders with an uploaded proof are the actionable ones.",
)
async def list_pending_payments(
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(
        select(Order).where(Order.status == "pending_payment").order_by(Order.created_at.asc())
    )
    return OrderListResponse(data=[OrderItem.model_validate(o) for o in result.scalars().all()])


@router.post("/payments/{order_id}/approve", response_model=OrderItem, summary="Approve payment", description="Manual approval: order → `paid`, provider notified.")
async def approve_payment(
    order_id: uuid.UUID,
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    order = await _get_order(db, order_id)
    order.status = next_status(ORDER_TRANSITIONS, "approve_payment", order.status)
    order.payment_approved_at = datetime.now(timezone.utc)
    order.verification_notes = "Manual Approval: Accepted."
    await db.commit()
    logger.info("payment_approved", order_id=str(order.id))

    item = OrderItem.model_validate(order)
    await notify(db, order.provider_id, "payment_received", _order_link(order), {"seeker_name": order.seeker_name})
    return item


@router.post(
    "/payments/{order_id}/reject",
    response_model=OrderItem,
    summary="Reject payment",
    description="Deletes the uploaded proof and asks the seeker for a new one. The order stays `pending_payment`.",
)
async def reject_payment(
    order_id: uuid.UUID,
    body: RejectRequest,
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    order = await _get_order(db, order_id)
    if order.status != "pending_payment":
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Cannot reject payment when status is '{order.status}'",
        )

    delete_file(order.proof_of_payment_url)
    order.proof_of_payment_url = None
    order.verification_notes = f"Manual Rejection: {body.reason}"
    await db.commit()
    logger.info("payment_rejected", order_id=str(order.id))

    item = OrderItem.model_validate(order)
    await notify(db, order.seeker_id, "payment_rejected", _order_link(order), {"order_id": str(order.id)})
    return item


# ──────────────────────────────────────────────
# VERIFICATIONS
# ──────────────────────────────────────────────

@router.get("/verifications", response_model=AdminUserListResponse, summary="Pending verifications", description="Providers waiting for document review, oldest first.")
async def list_pending_verifications(
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(
        select(User)
        .where(User.role == "provider", User.verification_status == "pending")
        .order_by(User.updated_at.asc())
    )
    return AdminUserListResponse(data=[AdminUserItem.model_validate(u) for u in result.scalars().all()])


@router.post("/verifications/{user_id}/approve", response_model=AdminUserItem, summary="Approve verification", description="Marks the provider as verified.")
async def approve_verification(
    user_id: uuid.UUID,
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    provider = await _get_provider(db, user_id)
    if provider.verification_status != "pending":
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No pending verification for this provider")

    provider.verification_status = "verified"
    provider.verification_rejection_reason = None
    await db.commit()
    logger.info("verification_approved", user_id=str(provider.id))

    item = AdminUserItem.model_validate(provider)
    await notify(db, provider.id, "verification_approved", PROFILE_LINK)
    return item


@router.post("/verifications/{user_id}/reject", response_model=AdminUserItem, summary="Reject verification", description="Rejects the documents with a reason shown to the provider. The body is optional; a default reason is used without it.")
async def reject_verification(
    user_id: uuid.UUID,
    body: VerificationRejectRequest | None = None,
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    provider = await _get_provider(db, user_id)
    if provider.verification_status != "pending":
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No pending verification for this provider")

    reason = (body.reason.strip() if body else "") or VerificationRejectRequest.model_fields["reason"].default
    provider.verification_status = "rejected"
    provider.verification_rejection_reason = reason
    await db.commit()
    logger.info("verification_rejected", user_id=str(provider.id))

    item = AdminUserItem.model_validate(provider)
    await notify(db, provider.id, "verification_rejected", PROFILE_LINK, {"reason": reason})
    return item


# ──────────────────────────────────────────────
# ADS
# ──────────────────────────────────────────────

@router.get("/ads", response_model=AdListResponse, summary="Ad requests", description="All ad requests, newest first. Optional `status` filter.")
async def list_ads(
    ad_status: str | None = Query(None, alias="status"),
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    query = select(AdRequest)
    if ad_status:
        query = query.where(AdRequest.status == ad_status)
    result = await db.execute(query.order_by(AdRequest.created_at.desc()))
    return AdListResponse(data=[AdItem.model_validate(a) for a in result.scalars().all()])


@router.post("/ads/{ad_id}/approve", response_model=AdItem, summary="Approve ad", description="Sets the price. `pending_review` → `pending_payment`.")
async def approve_ad(
    ad_id: uuid.UUID,
    body: AdApproveRequest,
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    ad = await _get_ad(db, ad_id)
    ad.status = next_status(AD_TRANSITIONS, "approve", ad.status)
    ad.price = body.price
    ad.currency = body.currency.upper()
    ad.rejection_reason = None
    await db.commit()
    logger.info("ad_approved", ad_id=str(ad.id), price=ad.price)

    item = AdItem.model_validate(ad)
    await notify(db, ad.user_id, "ad_request_approved", ADS_LINK, {"price": f"{ad.price:.2f} {ad.currency}"})
    return item


@router.post("/ads/{ad_id}/reject", response_model=AdItem, summary="Reject ad", description="`pending_review` → `rejected` with a reason.")
async def reject_ad(
    ad_id: uuid.UUID,
    body: RejectRequest,
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    ad = await _get_ad(db, ad_id)
    ad.status = next_status(AD_TRANSITIONS, "reject", ad.status)
    ad.rejection_reason = body.reason
    await db.commit()
    logger.info("ad_rejected", ad_id=str(ad.id))

    item = AdItem.model_validate(ad)
    await notify(db, ad.user_id, "ad_request_rejected", ADS_LINK, {"reason": body.reason})
    return item


@router.post("/ads/{ad_id}/confirm-payment", response_model=AdItem, summary="Confirm ad payment", description="`payment_review` → `active`.")
async def confirm_ad_payment(
    ad_id: uuid.UUID,
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    ad = await _get_ad(db, ad_id)
    ad.status = next_status(AD_TRANSITIONS, "confirm_payment", ad.status)
    ad.verification_notes = "Manual Approval: Accepted."
    await db.commit()
    logger.info("ad_payment_confirmed", ad_id=str(ad.id))

    item = AdItem.model_validate(ad)
    await notify(db, ad.user_id, "ad_payment_confirmed", ADS_LINK)
    return item


@router.post(
    "/ads/{ad_id}/reject-payment",
    response_model=AdItem,
    summary="Reject ad payment",
    description="Deletes the proof. `payment_review` → `pending_payment` so the owner can upload again.",
)
async def reject_ad_payment(
    ad_id: uuid.UUID,
    body: RejectRequest,
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    ad = await _get_ad(db, ad_id)
    ad.status = next_status(AD_TRANSITIONS, "reject_payment", ad.status)
    delete_file(ad.payment_proof_url)
    ad.payment_proof_url = None
    ad.verification_notes = f"Manual Rejection: {body.reason}"
    await db.commit()
    logger.info("ad_payment_rejected", ad_id=str(ad.id))

    item = AdItem.model_validate(ad)
    await notify(db, ad.user_id, "ad_payment_rejected", ADS_LINK, {"reason": body.reason})
    return item


# ──────────────────────────────────────────────
# DISPUTES
# ──────────────────────────────────────────────

@router.get(
    "/disputes",
    response_model=OrderListResponse,
    summary="Disputes",
    description="Disputed orders, newest first. Pass `status=resolved` for the history.",
)
async def list_disputes(
    order_status: str = Query("disputed", alias="status", pattern="^(disputed|resolved)$"),
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(
        select(Order).where(Order.status == order_status).order_by(Order.updated_at.desc())
    )
    return OrderListResponse(data=[OrderItem.model_validate(o) for o in result.scalars().all()])


@router.get("/disputes/{order_id}", response_model=DisputeDetail, summary="Dispute detail", description="The order together with its chat history.")
async def get_dispute(
    order_id: uuid.UUID,
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    order = await _get_order(db, order_id)
    if order.status not in ("disputed", "resolved"):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Dispute not found")

    messages = []
    if order.chat_id:
        result = await db.execute(
            select(Message).where(Message.chat_id == order.chat_id).order_by(Message.created_at.asc())
        )
        messages = [MessageItem(**message_payload(m)) for m in result.scalars().all()]

    return DisputeDetail(order=OrderItem.model_validate(order), messages=messages)


@router.post(
    "/disputes/{order_id}/resolve",
    response_model=OrderItem,
    summary="Resolve dispute",
    description="Decide in favor of the `seeker` or the `provider`. Both parties are notified.",
)
async def resolve_dispute(
    order_id: uuid.UUID,
    body: DisputeResolveRequest,
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    order = await _get_order(db, order_id)
    order.status = next_status(ORDER_TRANSITIONS, "resolve", order.status)
    order.dispute_resolution = f"{body.resolution}_favor"
    order.resolution_notes = body.notes
    await db.commit()
    logger.info("dispute_resolved", order_id=str(order.id), resolution=order.dispute_resolution)

    item = OrderItem.model_validate(order)
    notification_type = f"dispute_resolved_{body.resolution}"
    link, params = _order_link(order), {"order_id": str(order.id)}
    for user_id in (order.seeker_id, order.provider_id):
        await notify(db, user_id, notification_type, link, params)
    return item


@router.post(
    "/disputes/{order_id}/messages",
    response_model=MessageItem,
    status_code=status.HTTP_201_CREATED,
    summary="Message the parties",
    description="Admin posts into the order chat. Both participants see it as unread.",
)
async def post_dispute_message(
    order_id: uuid.UUID,
    body: AdminMessageRequest,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    order = await _get_order(db, order_id)
    result = await db.execute(select(Chat).where(Chat.id == order.chat_id))
    chat = result.scalar_one_or_none()
    if not chat:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Order has no chat")

    content = body.content.strip()
    if not content:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Message cannot be empty")

    msg = await post_message(db, chat, str(admin.id), "text", content, notify_all=True)
    return MessageItem(**message_payload(msg))


# ──────────────────────────────────────────────
# SUPPORT
# ──────────────────────────────────────────────

@router.get("/support", response_model=SupportListResponse, summary="Support tickets", description="All tickets, newest first. Optional `status` filter.")
async def list_support_tickets(
    ticket_status: str | None = Query(None, alias="status"),
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    query = select(SupportRequest)
    if ticket_status:
        query = query.where(SupportRequest.status == ticket_status)
    result = await db.execute(query.order_by(SupportRequest.created_at.desc()))
    return SupportListResponse(data=[SupportItem.model_validate(t) for t in result.scalars().all()])


@router.post(
    "/support/{ticket_id}/status",
    response_model=SupportItem,
    summary="Update ticket status",
    description="`in_progress` or `closed`. `admin_reply` is stored when closing. The owner is notified.",
)
async def update_support_status(
    ticket_id: uuid.UUID,
    body: SupportStatusRequest,
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(select(SupportRequest).where(SupportRequest.id == ticket_id))
    ticket = result.scalar_one_or_none()
    if not ticket:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Support request not found")
    if ticket.status == "closed":
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Support request is already closed")

    reply = (body.admin_reply or "").strip() or None
    ticket.status = body.status
    if body.status == "closed" and reply:
        ticket.admin_reply = reply
    await db.commit()
    logger.info("support_status_changed", ticket_id=str(ticket.id), status=ticket.status)

    item = SupportItem.model_validate(ticket)
    params = {"ticket_id": str(ticket.id)[:8]}
    if body.status == "in_progress":
        notification_type = "support_in_progress"
    elif reply:
        notification_type = "support_closed_with_reply"
        params["reply"] = reply
    else:
        notification_type = "support_closed"
    await notify(db, ticket.user_id, notification_type, "/contact", params)
    return item
