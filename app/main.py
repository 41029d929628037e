import asyncio
import logging
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from app import models  # noqa: F401
from app.core.config import settings
from app.core.database import Base, engine
from app.routers import api_router
from app.services.call_sweeper import sweep_ringing_calls

structlog.configure(
    processors=[
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.add_log_level,
        structlog.dev.ConsoleRenderer() if settings.ENVIRONMENT == "development"
        else structlog.processors.JSONRenderer(),
    ],
    wrapper_class=structlog.make_filtering_bound_logger(
        getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)
    ),
)

logger = structlog.get_logger()

TAGS_METADATA = [
    {"name": "Auth", "description": "Email + password registration, email verification, login, token refresh, password reset."},
    {"name": "Profile", "description": "Own profile, provider portfolio and verification documents."},
    {"name": "Providers", "description": "Search and view service providers with ratings."},
    {"name": "Orders", "description": "Service requests: approval, payment proof, start, finish, completion and disputes. Platform commission 5%."},
    {"name": "Chats", "description": "REST API for chats: list, start, messages, attachments, read receipts. Use the WebSocket for real-time."},
    {"name": "Calls", "description": "Audio/video calls inside a chat with WebRTC signaling. Unanswered calls time out after 30 seconds."},
    {"name": "Ads", "description": "Advertisement requests: submission, admin approval, payment and AI copywriting."},
    {"name": "Support", "description": "Support tickets."},
    {"name": "Ratings", "description": "Ratings between seekers and providers after an order is finished."},
    {"name": "Notifications", "description": "User notifications."},
    {"name": "Admin", "description": "Back-office: payments, verifications, ads, disputes and support. Admin role only."},
    {"name": "Upload", "description": "File uploads (avatar, portfolio, documents, chat media, payment proofs, ad images)."},
    {"name": "WebSocket", "description": "Real-time chat, notifications and call events."},
]

DESCRIPTION = """
# Khidmap API

Backend of Khidmap, a marketplace connecting service seekers with local service providers.

## Authorization

Every request except `/auth/*` needs the header:
```
Authorization: Bearer <token>
```
The access token lives **24 hours**. After it expires call `POST /v1/auth/refresh` with the `refresh_token`.

## Order flow

```
POST /orders                      → pending_approval
POST /orders/{id}/accept          → pending_payment   (or /decline → declined)
POST /orders/{id}/payment-proof   → paid              (AI verified, else admin review)
POST /orders/{id}/start           → service started
POST /orders/{id}/finish          → pending_completion
POST /orders/{id}/complete        → completed         (or /dispute → disputed → resolved by admin)
```

## WebSocket

**Connect:**
```
ws://localhost:8000/v1/ws?token=<jwt_access_token>
```

**Client actions:**
```json
{"action": "send_message", "chat_id": "uuid", "content": "Hello!", "type": "text"}
{"action": "typing", "chat_id": "uuid"}
{"action": "read", "chat_id": "uuid"}
```

**Server events:** `new_message`, `typing`, `messages_read`, `notification`, `notifications_read`, `call`.

```json
{"event": "new_message", "data": {"id": "uuid", "chat_id": "uuid", "sender_id": "uuid", "type": "text", "content": "Hello!", "created_at": "2025-01-13T14:32:00Z"}}
{"event": "call", "data": {"action": "incoming", "call": {"id": "uuid", "type": "video", "status": "ringing"}}}
```
"""


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("app_starting", environment=settings.ENVIRONMENT)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    task = asyncio.create_task(sweep_ringing_calls())
    yield
    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        pass
    logger.info("app_shutting_down")


app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    description=DESCRIPTION,
    openapi_tags=TAGS_METADATA,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router, prefix=settings.API_V1_PREFIX)

app.mount("/uploads", StaticFiles(directory=settings.UPLOAD_DIR, check_dir=False), name="uploads")


@app.get("/health", tags=["Health"])
async def health():
    """Liveness probe."""
    return {"status": "ok"}
