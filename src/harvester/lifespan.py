"""Application lifespan management (startup/shutdown hooks)."""

from __future__ import annotations

from contextlib import asynccontextmanager

from .config.settings import HarvesterSettings, get_settings
from .http_app import app_state
from .llm.ollama_adapter import OllamaAdapter
from .llm.openai_adapter import OpenAIAdapter
from .llm.runtime import LLMRuntime
from .observability.logger import configure_logging, get_logger
from .services.harvesting_service import HarvestingService
from .storage.database import close_db, init_db, session_factory
from .storage.repositories import (
    DataSourceRepository,
    HarvestingConfigRepository,
    HarvestLogRepository,
    HarvestResultRepository,
)

logger = get_logger(__name__)


def build_llm_runtime(settings: HarvesterSettings) -> LLMRuntime:
    if settings.llm_provider == "ollama":
        return OllamaAdapter(host=settings.ollama_host, port=settings.ollama_port)
    return OpenAIAdapter(api_key=settings.openai_api_key, base_url=settings.openai_base_url)


@asynccontextmanager
async def lifespan_manager():
    """Manage application lifespan (startup and shutdown)."""
    settings = get_settings()

    configure_logging()
    logger.info("starting_application", service_name=settings.service_name)

    # Initialize database (create tables)
    await init_db()
    logger.info("database_initialized")

    # Repositories share the session factory; sessions are per operation
    app_state["sources"] = DataSourceRepository(session_factory=session_factory)
    app_state["configs"] = HarvestingConfigRepository(session_factory=session_factory)
    app_state["results"] = HarvestResultRepository(session_factory=session_factory)
    app_state["logs"] = HarvestLogRepository(session_factory=session_factory)

    try:
        llm = build_llm_runtime(settings)
    except ValueError as e:
        # Imports and validation still work without an LLM
        logger.warning("llm_runtime_unavailable", provider=settings.llm_provider, error=str(e))
    else:
        app_state["harvesting_service"] = HarvestingService(
            llm=llm,
            results=app_state["results"],
            logs=app_state["logs"],
            settings=settings,
        )
        logger.info("harvesting_service_ready", provider=settings.llm_provider)

    logger.info("application_started")
    try:
        yield
    finally:
        app_state.clear()
        await close_db()
        logger.info("application_shutdown_complete")
