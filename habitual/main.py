from __future__ import annotations
import asyncio
import sys
from loguru import logger

from .config import settings
from .db import init_db
from .scheduler.scheduler_instance import start_scheduler, shutdown_scheduler


def configure_logging() -> None:
    logger.remove()
    logger.add(sys.stderr, level=settings.LOG_LEVEL)


async def run() -> None:
    """Create tables, start maintenance jobs and wait until cancelled."""
    configure_logging()
    await init_db()
    start_scheduler()
    logger.info("habitual worker started ({})", settings.ENV)

    try:
        await asyncio.Event().wait()
    finally:
        shutdown_scheduler()
        logger.info("habitual worker shut down")


def main() -> None:
    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        logger.info("Interrupted")


if __name__ == "__main__":
    main()
