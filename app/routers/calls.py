import uuid
from datetime import datetime, timezone

import structlog
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.deps import get_current_user
from app.models.call import Call
from app.models.user import User
from app.routers.chats import get_user_chat
from app.schemas.call import CallItem, CallStatusRequest, CreateCallRequest, SignalRequest
from app.services.messaging import log_call_status, push_call

logger = structlog.get_logger()

router = APIRouter(prefix="/calls", tags=["Calls"])

TERMINAL_STATUSES = {"declined", "ended", "unanswered"}


async def _get_call(db: AsyncSession, call_id: uuid.UUID, user: User) -> Call:
    result = await db.execute(select(Call).where(Call.id == call_id))
    call = result.scalar_one_or_none()
    if not call or user.id not in (call.caller_id, call.callee_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Call not found")
    return call


@router.post(
    "",
    response_model=CallItem,
    status_code=status.HTTP_201_CREATED,
    summary="Start call",
    description="Caller rings the other chat participant. The callee gets a `call` event with `action: incoming`.",
)
async def create_call(
    body: CreateCallRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    if body.callee_id == user.id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="You cannot call yourself")

    chat = await get_user_chat(db, body.chat_id, user)
    if str(body.callee_id) not in chat.participant_ids:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Callee is not a participant of this chat")

    result = await db.execute(select(User).where(User.id == body.callee_id))
    callee = result.scalar_one_or_none()
    if not callee:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    if body.type == "video" and not callee.video_calls_enabled:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="This user does not accept video calls")

    call = Call(
        chat_id=chat.id,
        caller_id=user.id,
        caller_name=user.name or "Unknown Caller",
        callee_id=callee.id,
        callee_name=callee.name or "User",
        type=body.type,
        status="ringing",
    )
    db.add(call)
    await db.commit()
    await db.refresh(call)
    logger.info("call_started", call_id=str(call.id), type=call.type)

    await push_call(call, "incoming")
    return CallItem.model_validate(call)


@router.get("/{call_id}", response_model=CallItem, summary="Call detail", description="Caller and callee only.")
async def get_call(
    call_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return CallItem.model_validate(await _get_call(db, call_id, user))


@router.put(
    "/{call_id}/signal",
    response_model=CallItem,
    summary="WebRTC signaling",
    description="Caller stores the SDP `offer`, callee stores the SDP `answer`. The other side is notified over WebSocket.",
)
async def signal_call(
    call_id: uuid.UUID,
    body: SignalRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    call = await _get_call(db, call_id, user)
    if call.status in TERMINAL_STATUSES:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Call is already {call.status}")

    if body.offer is not None:
        if user.id != call.caller_id:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only the caller can send an offer")
        call.offer = body.offer.model_dump()
    else:
        if user.id != call.callee_id:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only the callee can send an answer")
        call.answer = body.answer.model_dump()
    await db.commit()

    await push_call(call, "signal")
    return CallItem.model_validate(call)


@router.post(
    "/{call_id}/status",
    response_model=CallItem,
    summary="Update call status",
    description=(
        "`active` when the callee picks up, `declined` or `ended` to finish. "
        "Finished calls are logged into the chat. Finished calls cannot change."
    ),
)
async def update_call_status(
    call_id: uuid.UUID,
    body: CallStatusRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    call = await _get_call(db, call_id, user)
    if call.status in TERMINAL_STATUSES:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Call is already {call.status}")

    now = datetime.now(timezone.utc)
    if body.status == "active":
        if call.status != "ringing":
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Call is not ringing")
        call.started_at = call.started_at or now
    elif body.status == "declined" and call.status != "ringing":
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Only a ringing call can be declined")
    else:
        call.ended_at = now
    call.status = body.status
    await db.commit()
    logger.info("call_status_changed", call_id=str(call.id), status=call.status)

    if call.status in TERMINAL_STATUSES:
        await log_call_status(db, call)
    await push_call(call, "status")
    return CallItem.model_validate(call)
