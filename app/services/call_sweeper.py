import asyncio
from datetime import datetime, timedelta, timezone

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.models.call import Call
from app.services.messaging import log_call_status, push_call

logger = structlog.get_logger()


async def expire_ringing_calls(db: AsyncSession) -> int:
    """Mark calls ringing longer than the timeout as `unanswered`. Returns how many."""
    cutoff = datetime.now(timezone.utc) - timedelta(seconds=settings.CALL_RING_TIMEOUT_SECONDS)
    result = await db.execute(select(Call).where(Call.status == "ringing", Call.created_at <= cutoff))
    calls = result.scalars().all()

    now = datetime.now(timezone.utc)
    for call in calls:
        call.status = "unanswered"
        call.ended_at = now
    if calls:
        await db.commit()

    for call in calls:
        await log_call_status(db, call)
        await push_call(call, "status")
        logger.info("call_unanswered", call_id=str(call.id))
    return len(calls)


async def sweep_ringing_calls():
    """Background task: time out unanswered calls."""
    from app.core.database import async_session

    while True:
        try:
            async with async_session() as db:
                await expire_ringing_calls(db)
        except Exception as e:
            logger.error("call_sweep_failed", error=str(e))

        await asyncio.sleep(settings.CALL_SWEEP_INTERVAL_SECONDS)
