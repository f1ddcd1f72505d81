import asyncio
import structlog

from x402_facilitator.payments.cache import IdempotencyCache

logger = structlog.get_logger()


async def run_cache_sweeper(cache: IdempotencyCache, interval_seconds: float = 60):
    """Background task that drops expired idempotency entries on a fixed period"""
    while True:
        try:
            await asyncio.sleep(interval_seconds)

            removed = cache.sweep()
            if removed > 0:
                logger.info("idempotency_entries_expired", count=removed, remaining=len(cache))

        except asyncio.CancelledError:
            logger.info("cache_sweeper_stopped")
            raise
        except Exception as e:
            logger.error("cache_sweeper_error", error=str(e))
