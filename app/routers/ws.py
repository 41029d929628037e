import uuid

import structlog
from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from sqlalchemy import or_, select

from app.core.database import async_session
from app.core.deps import parse_subject
from app.core.security import decode_token
from app.models.chat import Chat
from app.models.user import User
from app.services.messaging import mark_chat_read, other_participant_id, post_message
from app.services.realtime import manager

logger = structlog.get_logger()

router = APIRouter(tags=["WebSocket"])

WS_MESSAGE_TYPES = {"text", "audio", "image", "video"}


@router.websocket("/ws")
async def websocket_endpoint(ws: WebSocket):
    # Auth via query param: ws://host/v1/ws?token=<jwt>
    token = ws.query_params.get("token")
    if not token:
        await ws.close(code=4001, reason="Token missing")
        return

    user_uuid = parse_subject(decode_token(token), "access")
    if user_uuid is None:
        await ws.close(code=4001, reason="Invalid token")
        return

    async with async_session() as db:
        result = await db.execute(select(User).where(User.id == user_uuid))
        if not result.scalar_one_or_none():
            await ws.close(code=4001, reason="User not found")
            return

    user_id = str(user_uuid)
    await manager.connect(user_id, ws)

    try:
        while True:
            data = await ws.receive_json()
            if not isinstance(data, dict):
                logger.warning("ws_bad_payload", user_id=user_id, error="payload is not an object")
                continue
            action = data.get("action")

            if action == "send_message":
                await _handle_send_message(user_id, data)
            elif action == "typing":
                await _handle_typing(user_id, data)
            elif action == "read":
                await _handle_read(user_id, data)
    except WebSocketDisconnect:
        pass
    except ValueError as e:
        logger.warning("ws_bad_payload", user_id=user_id, error=str(e))
    finally:
        manager.disconnect(user_id, ws)


async def _participant_chat(db, chat_id, user_id: str) -> Chat | None:
    try:
        chat_uuid = uuid.UUID(str(chat_id))
    except ValueError:
        return None
    user_uuid = uuid.UUID(user_id)
    result = await db.execute(
        select(Chat).where(
            Chat.id == chat_uuid,
            or_(Chat.participant_1 == user_uuid, Chat.participant_2 == user_uuid),
        )
    )
    return result.scalar_one_or_none()


async def _handle_send_message(sender_id: str, data: dict):
    content = (data.get("content") or "").strip()
    msg_type = data.get("type", "text")
    if not content or msg_type not in WS_MESSAGE_TYPES:
        return

    async with async_session() as db:
        chat = await _participant_chat(db, data.get("chat_id"), sender_id)
        if not chat:
            return
        await post_message(db, chat, sender_id, msg_type, content)


async def _handle_typing(sender_id: str, data: dict):
    async with async_session() as db:
        chat = await _participant_chat(db, data.get("chat_id"), sender_id)
        if not chat:
            return

    await manager.send_to_user(other_participant_id(chat, sender_id), {
        "event": "typing",
        "data": {"chat_id": str(chat.id), "user_id": sender_id},
    })


async def _handle_read(user_id: str, data: dict):
    async with async_session() as db:
        chat = await _participant_chat(db, data.get("chat_id"), user_id)
        if not chat:
            return
        await mark_chat_read(db, chat, user_id)
