"""
Helper Bot

Runs the updates consumer inside a FastAPI process so the bot can be
probed over HTTP. The bot itself has no public API.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request

from helper_bot.config import settings
from helper_bot.api.routes import health
from helper_bot.core.runtime import create_bot_context

# Client libraries that log every request or frame at INFO
NOISY_LOGGERS = ("uvicorn.access", "httpx", "httpcore", "aio_pika", "aiormq", "anthropic")


def setup_logging() -> None:
    """Configure root logging; DEBUG when settings.debug is on."""
    logging.basicConfig(
        level=logging.DEBUG if settings.debug else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Build the bot, make sure its platform user exists, start consuming.

    Startup fails if the bot user can't be found or created.
    """
    setup_logging()
    logger.info(f"Starting {settings.app_name} ({settings.app_env}) as {settings.bot_user_id}")
    health.set_start_time()

    if not settings.platform_configured:
        logger.warning("Platform API key or tenant id not set")

    bot = create_bot_context(settings)
    app.state.bot = bot

    user = await bot.ensure_bot_user()
    if not user.ok:
        await bot.aclose()
        raise RuntimeError(f"Cannot ensure bot user {settings.bot_user_id}: {user.reason}")
    logger.info(f"Bot user {settings.bot_user_id} {user.status.value}")

    await bot.consumer.start()
    logger.info(f"Listening on queue {bot.consumer.queue_name}")

    try:
        yield
    finally:
        logger.info("Stopping consumer and closing clients")
        await bot.aclose()
        logger.info("Shutdown complete")


app = FastAPI(
    title="Helper Bot",
    description="Intent classification and slot-filling bot for platform dialogs.",
    version="1.0.0",
    docs_url="/docs" if settings.is_development else None,
    redoc_url=None,
    openapi_url="/openapi.json" if settings.is_development else None,
    lifespan=lifespan,
)

app.include_router(health.router)


@app.get("/", tags=["Root"])
async def root(request: Request) -> dict:
    """Bot identity and consumer state."""
    bot = getattr(request.app.state, "bot", None)
    return {
        "name": settings.app_name,
        "environment": settings.app_env,
        "bot_user_id": settings.bot_user_id,
        "queue": bot.consumer.queue_name if bot else None,
        "consuming": bool(bot and bot.consumer.is_ready),
        "auto_handle": settings.bot_auto_handle,
    }


def run() -> None:
    """Console entry point (``helper-bot``)."""
    import uvicorn

    uvicorn.run(
        "helper_bot.main:app",
        host=settings.host,
        port=settings.port,
        log_level="debug" if settings.debug else "info",
    )


if __name__ == "__main__":
    run()
