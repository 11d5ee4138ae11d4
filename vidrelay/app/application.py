"""FastAPI application factory."""
import logging
import os
import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

import httpx
import uvicorn
from fastapi import FastAPI
from fastapi.templating import Jinja2Templates

from vidrelay.config import Settings
from vidrelay.routes import download_router, health_router, media_router, pages_router
from vidrelay.scheduler import RetentionScheduler
from vidrelay.services import MediaDownloader, MediaResolver, TelegramPublisher
from vidrelay.storage import FileStore

from .middleware import RequestIdFilter, request_logging_middleware

_logger = logging.getLogger("vidrelay")

TEMPLATES_DIR = Path(__file__).resolve().parent.parent / "templates"


def setup_logging(level: Optional[str] = None) -> None:
    """Configure root logging once; later calls are no-ops."""
    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(RequestIdFilter())
    logging.basicConfig(
        level=(level or os.getenv("LOG_LEVEL", "INFO")).upper(),
        format="%(asctime)s %(levelname)s %(name)s request_id=%(request_id)s %(message)s",
        handlers=[handler],
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    app.state.scheduler.start()
    try:
        yield
    finally:
        app.state.scheduler.stop()
        await app.state.http_client.aclose()
        _logger.info("Application shutdown complete")


def create_app(settings: Optional[Settings] = None, http_client: Optional[httpx.AsyncClient] = None) -> FastAPI:
    """Build the app and its collaborators; the scheduler starts with the lifespan."""
    setup_logging()
    settings = settings or Settings.from_env()
    http_client = http_client or httpx.AsyncClient(timeout=settings.http_timeout)

    store = FileStore(settings.downloads_dir, chunk_size=settings.stream_chunk_size)
    resolver = MediaResolver(settings.resolver_api_url, http_client)

    app = FastAPI(
        title="vidrelay",
        description="Fetch hosted videos, relay them to Telegram and stream them back with range support",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.http_client = http_client
    app.state.store = store
    app.state.downloader = MediaDownloader(store, resolver, http_client)
    app.state.publisher = TelegramPublisher(
        http_client,
        bot_token=settings.telegram_bot_token,
        channel_id=settings.telegram_channel_id,
        api_base=settings.telegram_api_base,
    )
    app.state.scheduler = RetentionScheduler(
        store,
        ttl_seconds=settings.retention_ttl_seconds,
        sweep_cron=settings.sweep_cron,
        sweep_enabled=settings.sweep_enabled,
    )
    app.state.templates = Jinja2Templates(directory=str(TEMPLATES_DIR))

    app.middleware("http")(request_logging_middleware)

    app.include_router(pages_router)
    app.include_router(download_router)
    app.include_router(media_router)
    app.include_router(health_router)
    return app


def start_api(app: FastAPI) -> None:
    settings: Settings = app.state.settings
    _logger.info("Starting uvicorn host=%s port=%s", settings.host, settings.port)
    uvicorn.run(app, host=settings.host, port=settings.port)
