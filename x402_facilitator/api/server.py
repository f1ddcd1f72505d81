"""
x402 Facilitator Server
FastAPI application exposing /verify and /settle for Aptos payments
"""

import asyncio
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
import structlog

from x402_facilitator import __version__
from x402_facilitator.api.dependencies import close_clients, get_payment_processor, limiter
from x402_facilitator.api.routers import facilitator, general
from x402_facilitator.api.tasks import run_cache_sweeper
from x402_facilitator.config import get_facilitator_config
from x402_facilitator.log import configure_logging

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifecycle manager for the FastAPI app"""
    config = get_facilitator_config()
    configure_logging(config.log_level, config.log_format)
    logger.info(
        "facilitator_starting",
        host=config.facilitator_host,
        port=config.facilitator_port,
        network=config.network,
        sponsorship=bool(config.gas_station_api_key),
    )

    processor = get_payment_processor()
    sweeper = asyncio.create_task(
        run_cache_sweeper(processor.cache, interval_seconds=config.cache_sweep_interval_seconds)
    )

    yield

    logger.info("facilitator_shutting_down")
    sweeper.cancel()
    try:
        await sweeper
    except asyncio.CancelledError:
        pass
    await processor.drain()
    await close_clients()


def create_app() -> FastAPI:
    config = get_facilitator_config()

    app = FastAPI(
        title="x402 Aptos Facilitator",
        description="Verifies and settles x402 payments on Aptos",
        version=__version__,
        lifespan=lifespan,
    )

    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Verification-Time", "X-Settlement-Time", "X-Cached"],
    )

    app.include_router(general.router)
    app.include_router(facilitator.router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    config = get_facilitator_config()

    uvicorn.run(
        "x402_facilitator.api.server:app",
        host=config.facilitator_host,
        port=config.facilitator_port,
        reload=config.reload,
        log_level=config.log_level.lower(),
    )
