import uuid
from datetime import datetime

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile, status
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.deps import get_current_user
from app.models.chat import Chat, Message
from app.models.user import User
from app.schemas.chat import (
    ChatListItem,
    ChatListResponse,
    CreateChatRequest,
    CreateChatResponse,
    MessageItem,
    MessageListResponse,
    ParticipantBrief,
    ReadChatResponse,
    SendMessageRequest,
)
from app.services.messaging import get_or_create_chat, mark_chat_read, other_participant_id, post_message
from app.services.realtime import manager
from app.services.storage import read_upload, save_file

router = APIRouter(prefix="/chats", tags=["Chats"])

ATTACHMENT_TYPES = {"image", "video", "audio"}


async def _participant_brief(db: AsyncSession, user_id: str) -> ParticipantBrief:
    result = await db.execute(select(User).where(User.id == uuid.UUID(user_id)))
    other = result.scalar_one_or_none()
    return ParticipantBrief(
        id=user_id,
        name=other.name if other else None,
        avatar_url=other.avatar_url if other else None,
        role=other.role if other else None,
        is_online=manager.is_online(user_id),
    )


def _message_item(msg: Message) -> MessageItem:
    return MessageItem(
        id=str(msg.id),
        chat_id=str(msg.chat_id),
        sender_id=msg.sender_id,
        type=msg.type,
        content=msg.content,
        call_metadata=msg.call_metadata,
        created_at=msg.created_at,
        read_at=msg.read_at,
    )


async def get_user_chat(db: AsyncSession, chat_id: uuid.UUID, user: User, allow_admin: bool = False) -> Chat:
    query = select(Chat).where(Chat.id == chat_id)
    if not (allow_admin and user.role == "admin"):
        query = query.where(or_(Chat.participant_1 == user.id, Chat.participant_2 == user.id))
    result = await db.execute(query)
    chat = result.scalar_one_or_none()
    if not chat:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Chat not found")
    return chat


@router.get("", response_model=ChatListResponse, summary="List chats", description="User's chats with last message preview and unread counter, most recent first.")
async def list_chats(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(
        select(Chat)
        .where(or_(Chat.participant_1 == user.id, Chat.participant_2 == user.id))
        .order_by(Chat.last_message_at.desc().nullslast(), Chat.created_at.desc())
    )
    chats = result.scalars().all()

    data = []
    for chat in chats:
        data.append(
            ChatListItem(
                id=str(chat.id),
                participant=await _participant_brief(db, other_participant_id(chat, user.id)),
                last_message=chat.last_message,
                last_message_sender_id=chat.last_message_sender_id,
                unread_count=(chat.unread_count or {}).get(str(user.id), 0),
                updated_at=chat.last_message_at or chat.created_at,
            )
        )

    return ChatListResponse(data=data)


@router.post(
    "",
    response_model=CreateChatResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Start chat",
    description="Returns the single chat between the current user and `participant_id`, creating it if needed.",
)
async def create_chat(
    body: CreateChatRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    if body.participant_id == user.id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="You cannot start a chat with yourself")

    result = await db.execute(select(User).where(User.id == body.participant_id))
    if not result.scalar_one_or_none():
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    chat, created = await get_or_create_chat(db, user.id, body.participant_id)
    return CreateChatResponse(
        id=str(chat.id),
        participant=await _participant_brief(db, str(body.participant_id)),
        created=created,
    )


@router.get(
    "/{chat_id}/messages",
    response_model=MessageListResponse,
    summary="Chat messages",
    description="Chronological message history with cursor pagination (`before` = ISO timestamp).",
)
async def get_messages(
    chat_id: uuid.UUID,
    before: str | None = None,
    limit: int = Query(50, ge=1, le=200),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    chat = await get_user_chat(db, chat_id, user, allow_admin=True)

    query = select(Message).where(Message.chat_id == chat.id)
    if before:
        try:
            cursor = datetime.fromisoformat(before.replace("Z", "+00:00"))
        except ValueError:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid 'before' cursor")
        query = query.where(Message.created_at < cursor)

    result = await db.execute(query.order_by(Message.created_at.desc()).limit(limit + 1))
    messages = result.scalars().all()

    has_more = len(messages) > limit
    messages = messages[:limit]

    return MessageListResponse(data=[_message_item(m) for m in reversed(messages)], has_more=has_more)


@router.post(
    "/{chat_id}/messages",
    response_model=MessageItem,
    status_code=status.HTTP_201_CREATED,
    summary="Send message",
    description="Send a text (or media URL) message. Pushed to participants over WebSocket as `new_message`.",
)
async def send_message(
    chat_id: uuid.UUID,
    body: SendMessageRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    chat = await get_user_chat(db, chat_id, user, allow_admin=True)

    content = body.content.strip()
    if not content:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Message cannot be empty")

    msg = await post_message(db, chat, str(user.id), body.type, content, notify_all=user.role == "admin")
    return _message_item(msg)


@router.post(
    "/{chat_id}/attachments",
    response_model=MessageItem,
    status_code=status.HTTP_201_CREATED,
    summary="Send attachment",
    description="Upload an image, video or voice note and send it as a message. The message content is the file URL.",
)
async def send_attachment(
    chat_id: uuid.UUID,
    file: UploadFile = File(...),
    type: str = Form(...),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    if type not in ATTACHMENT_TYPES:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Attachment type must be image, video or audio")

    chat = await get_user_chat(db, chat_id, user)
    content = await read_upload(file)
    url = await save_file("chat", file.filename, content)

    msg = await post_message(db, chat, str(user.id), type, url)
    return _message_item(msg)


@router.post("/{chat_id}/read", response_model=ReadChatResponse, summary="Mark chat read", description="Marks incoming messages as read and resets the unread counter.")
async def read_chat(
    chat_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    chat = await get_user_chat(db, chat_id, user)
    read_at = await mark_chat_read(db, chat, str(user.id))
    return ReadChatResponse(chat_id=str(chat.id), read_at=read_at)
