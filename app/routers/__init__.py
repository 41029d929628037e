from fastapi import APIRouter

from app.routers import (
    admin,
    ads,
    auth,
    calls,
    chats,
    notifications,
    orders,
    profile,
    providers,
    ratings,
    support,
    upload,
    ws,
)

api_router = APIRouter()

api_router.include_router(auth.router)
api_router.include_router(profile.router)
api_router.include_router(providers.router)
api_router.include_router(orders.router)
api_router.include_router(chats.router)
api_router.include_router(calls.router)
api_router.include_router(ads.router)
api_router.include_router(support.router)
api_router.include_router(ratings.router)
api_router.include_router(notifications.router)
api_router.include_router(admin.router)
api_router.include_router(upload.router)
api_router.include_router(ws.router)
