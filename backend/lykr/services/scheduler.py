"""Background maintenance loop: clears OTP codes that expired unused.

Uses FastAPI's lifespan context to start/stop an asyncio background loop.
Verification already rejects expired codes; the sweep only keeps stale
codes from lingering in the users table.

Usage:
    from lykr.services.scheduler import lifespan
    app = FastAPI(lifespan=lifespan, ...)

Configuration:
    OTP_SWEEP_INTERVAL_SECONDS=300   (via .env)
"""

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from lykr.auth.otp import purge_expired_otps
from lykr.config import settings
from lykr.database import async_session
from lykr.utils.cache import close_redis

logger = logging.getLogger("lykr.scheduler")


async def run_otp_sweep() -> int:
    """Clear expired OTP slots in one transaction. Returns rows touched."""
    async with async_session() as db:
        try:
            cleared = await purge_expired_otps(db)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
    if cleared:
        logger.info("Cleared %d expired OTP code(s)", cleared)
    return cleared


async def _scheduler_loop() -> None:
    interval = settings.otp_sweep_interval_seconds
    while True:
        await asyncio.sleep(interval)
        try:
            await run_otp_sweep()
        except Exception:
            logger.exception("Unhandled error in OTP sweep")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """FastAPI lifespan: start the sweep on startup, cancel on shutdown."""
    task = asyncio.create_task(_scheduler_loop())
    logger.info("OTP sweep started (every %ds)", settings.otp_sweep_interval_seconds)
    try:
        yield
    finally:
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        await close_redis()
        logger.info("OTP sweep stopped")
