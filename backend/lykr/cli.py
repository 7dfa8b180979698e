"""Management CLI.

Usage:
    python -m lykr.cli init-db       # Create tables directly (dev; use Alembic in prod)
    python -m lykr.cli purge-otps    # Clear expired OTP codes now
"""

import asyncio
import sys

from lykr.database import Base, engine
from lykr import models  # noqa: F401  (registers every table on Base.metadata)
from lykr.services.scheduler import run_otp_sweep


async def _init_db():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    await engine.dispose()


def init_db():
    asyncio.run(_init_db())
    print(f"Created {len(Base.metadata.tables)} table(s).")


async def _purge_otps() -> int:
    try:
        return await run_otp_sweep()
    finally:
        await engine.dispose()


def purge_otps():
    cleared = asyncio.run(_purge_otps())
    print(f"Cleared {cleared} expired OTP code(s).")


if __name__ == "__main__":
    cmd = sys.argv[1] if len(sys.argv) > 1 else ""
    if cmd == "init-db":
        init_db()
    elif cmd == "purge-otps":
        purge_otps()
    else:
        print("Usage: python -m lykr.cli [init-db|purge-otps]")
