import uuid
from datetime import datetime, timezone

import structlog
from sqlalchemy import and_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.call import Call
from app.models.chat import Chat, Message
from app.services.realtime import manager

logger = structlog.get_logger()

MEDIA_PREVIEWS = {
    "image": "📷 Image",
    "video": "📹 Video",
    "audio": "🎤 Audio",
}


def other_participant_id(chat: Chat, user_id) -> str:
    return str(chat.participant_2) if str(chat.participant_1) == str(user_id) else str(chat.participant_1)


def message_payload(msg: Message) -> dict:
    return {
        "id": str(msg.id),
        "chat_id": str(msg.chat_id),
        "sender_id": msg.sender_id,
        "type": msg.type,
        "content": msg.content,
        "call_metadata": msg.call_metadata,
        "created_at": msg.created_at.isoformat(),
        "read_at": msg.read_at.isoformat() if msg.read_at else None,
    }


async def get_or_create_chat(db: AsyncSession, user_a: uuid.UUID, user_b: uuid.UUID) -> tuple[Chat, bool]:
    """Return the single chat between two users, creating it when missing."""
    p1, p2 = sorted([user_a, user_b], key=str)
    result = await db.execute(
        select(Chat).where(
            or_(
                and_(Chat.participant_1 == p1, Chat.participant_2 == p2),
                and_(Chat.participant_1 == p2, Chat.participant_2 == p1),
            )
        )
    )
    chat = result.scalars().first()
    if chat:
        return chat, False

    # The starter has nothing to read yet; the other side sees one pending conversation.
    chat = Chat(
        participant_1=p1,
        participant_2=p2,
        unread_count={str(user_a): 0, str(user_b): 1},
        last_message_at=datetime.now(timezone.utc),
    )
    db.add(chat)
    await db.commit()
    await db.refresh(chat)
    logger.info("chat_created", chat_id=str(chat.id))
    return chat, True


async def post_message(
    db: AsyncSession,
    chat: Chat,
    sender_id: str,
    type: str,
    content: str,
    preview: str | None = None,
    notify_all: bool = False,
    call_metadata: dict | None = None,
) -> Message:
    """Store a message, bump the chat preview and unread counters, push `new_message`.

    Every participant except the sender gets +1 unread. With `notify_all`
    (admin and system senders) every participant does.
    """
    now = datetime.now(timezone.utc)
    msg = Message(
        chat_id=chat.id,
        sender_id=sender_id,
        type=type,
        content=content,
        call_metadata=call_metadata,
        created_at=now,
    )
    db.add(msg)

    unread = dict(chat.unread_count or {})
    for participant in chat.participant_ids:
        if notify_all or participant != sender_id:
            unread[participant] = unread.get(participant, 0) + 1
    chat.unread_count = unread
    chat.last_message = preview or MEDIA_PREVIEWS.get(type, content)
    chat.last_message_sender_id = sender_id
    chat.last_message_at = now

    await db.commit()
    await db.refresh(msg)

    await manager.send_to_users(chat.participant_ids, {"event": "new_message", "data": message_payload(msg)})
    return msg


async def mark_chat_read(db: AsyncSession, chat: Chat, user_id: str) -> datetime:
    """Mark incoming messages read, zero the user's counter and push `messages_read`."""
    result = await db.execute(
        select(Message).where(
            Message.chat_id == chat.id,
            Message.sender_id != user_id,
            Message.read_at.is_(None),
        )
    )
    now = datetime.now(timezone.utc)
    for msg in result.scalars().all():
        msg.read_at = now

    unread = dict(chat.unread_count or {})
    unread[user_id] = 0
    chat.unread_count = unread
    await db.commit()

    await manager.send_to_user(other_participant_id(chat, user_id), {
        "event": "messages_read",
        "data": {"chat_id": str(chat.id), "read_by": user_id, "read_at": now.isoformat()},
    })
    return now


def call_payload(call: Call) -> dict:
    return {
        "id": str(call.id),
        "chat_id": str(call.chat_id),
        "caller_id": str(call.caller_id),
        "caller_name": call.caller_name,
        "callee_id": str(call.callee_id),
        "callee_name": call.callee_name,
        "type": call.type,
        "status": call.status,
        "offer": call.offer,
        "answer": call.answer,
    }


async def push_call(call: Call, action: str):
    """Push a `call` event (incoming, signal, status) to both participants."""
    await manager.send_to_users(
        [str(call.caller_id), str(call.callee_id)],
        {"event": "call", "data": {"action": action, "call": call_payload(call)}},
    )


def call_status_text(call: Call) -> str:
    if call.status == "ended" and call.started_at:
        return f"Call ended - {call.type}"
    if call.status == "declined":
        return f"Declined {call.type} call"
    return f"Missed {call.type} call"


async def log_call_status(db: AsyncSession, call: Call) -> Message | None:
    """Write a `system_call_status` message for a call that reached a terminal status."""
    result = await db.execute(select(Chat).where(Chat.id == call.chat_id))
    chat = result.scalar_one_or_none()
    if not chat:
        logger.warning("call_chat_missing", call_id=str(call.id), chat_id=str(call.chat_id))
        return None

    duration = None
    if call.status == "ended" and call.started_at and call.ended_at:
        duration = max(0, int((call.ended_at - call.started_at).total_seconds()))

    text = call_status_text(call)
    return await post_message(
        db,
        chat,
        sender_id="system",
        type="system_call_status",
        content=text,
        preview=text,
        notify_all=True,
        call_metadata={
            "call_id": str(call.id),
            "status": call.status,
            "type": call.type,
            "caller_id": str(call.caller_id),
            "duration": duration,
        },
    )
