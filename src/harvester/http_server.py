"""Serve the import/harvest API with uvicorn inside the running event loop."""

from __future__ import annotations

import uvicorn

from .config.settings import HarvesterSettings, get_settings
from .http_app import app
from .observability.logger import get_logger

logger = get_logger(__name__)


def build_server_config(settings: HarvesterSettings) -> uvicorn.Config:
    return uvicorn.Config(
        app=app,
        host=settings.http_host,
        port=settings.http_port,
        # request events are logged through structlog
        log_level="warning",
        access_log=False,
        loop="asyncio",
    )


async def run_http_server() -> None:
    settings = get_settings()
    server = uvicorn.Server(build_server_config(settings))
    logger.info(
        "http_server_starting",
        address=f"http://{settings.http_host}:{settings.http_port}",
        llm_provider=settings.llm_provider,
    )
    await server.serve()
