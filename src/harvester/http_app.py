"""FastAPI app: import validation, streamed imports and LLM harvesting.

Services and repositories live in ``app_state`` and are filled in by
``lifespan.lifespan_manager`` at startup.
"""

from __future__ import annotations

import asyncio
import json
from dataclasses import asdict
from typing import Any, AsyncIterator, Awaitable, Callable, Optional

from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.responses import JSONResponse, PlainTextResponse, StreamingResponse

from .config.settings import get_settings
from .domain.errors import DuplicateImportError, HarvesterDomainError, InvalidInputError, NotFoundError
from .domain.models import DuplicatePolicy, ImportProgress, ImportResult
from .models.database import DataSource, HarvestingConfig
from .models.requests import ImportRequest, ValidateRequest
from .observability.logger import get_logger
from .processing.batch_validator import generate_validation_report, validate_import_json
from .services.importer import HarvestDataImporter

logger = get_logger(__name__)

app_state: dict[str, Any] = {}

app = FastAPI(title="Harvest Ingestion Service", version="0.1.0")

_STATUS_BY_ERROR: list[tuple[type[HarvesterDomainError], int]] = [
    (InvalidInputError, 400),
    (NotFoundError, 404),
    (DuplicateImportError, 409),
]

_SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "X-Accel-Buffering": "no",
}


def status_for(exc: HarvesterDomainError) -> int:
    for error_type, status in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status
    return 500


@app.exception_handler(HarvesterDomainError)
async def domain_error_handler(request: Request, exc: HarvesterDomainError) -> JSONResponse:
    status = status_for(exc)
    info = getattr(exc, "info", None)
    if status >= 500:
        logger.error("request_failed", path=request.url.path, error_type=type(exc).__name__, error=str(exc))
    return JSONResponse(
        status_code=status,
        content={
            "code": info.code if info else "INTERNAL_ERROR",
            "message": info.message if info else str(exc),
            "detail": info.detail if info else None,
        },
    )


def _require(key: str) -> Any:
    value = app_state.get(key)
    if value is None:
        raise HTTPException(status_code=503, detail=f"{key}_unavailable")
    return value


def _new_importer() -> HarvestDataImporter:
    # One importer per request: the progress observer is per instance
    return HarvestDataImporter(
        results=_require("results"),
        sources=_require("sources"),
        logs=_require("logs"),
        settings=get_settings(),
        configs=app_state.get("configs"),
    )


async def _get_site(site_id: str) -> DataSource:
    site = await _require("sources").get(site_id)
    if site is None:
        raise NotFoundError("site not found", detail=site_id)
    return site


async def _get_config(config_id: Optional[str]) -> Optional[HarvestingConfig]:
    if not config_id:
        return None
    configs = app_state.get("configs")
    config = await configs.get(config_id) if configs is not None else None
    if config is None:
        raise NotFoundError("harvesting config not found", detail=config_id)
    return config


def _serialize_event(payload: dict) -> bytes:
    return f"data: {json.dumps(payload, ensure_ascii=False)}\n\n".encode("utf-8")


async def _stream_import(
    importer: HarvestDataImporter,
    run: Callable[[], Awaitable[ImportResult]],
) -> AsyncIterator[bytes]:
    """Relay progress snapshots as SSE, then the final result, then ``[DONE]``."""
    queue: asyncio.Queue[Optional[ImportProgress]] = asyncio.Queue()
    importer.set_progress_callback(queue.put_nowait)

    async def runner() -> ImportResult:
        try:
            return await run()
        finally:
            queue.put_nowait(None)

    task = asyncio.create_task(runner())
    try:
        while True:
            snapshot = await queue.get()
            if snapshot is None:
                break
            yield _serialize_event(snapshot.to_dict())
        result = await task
        yield _serialize_event(result.to_dict())
    except Exception as exc:
        logger.error("import_stream_failed", error=str(exc))
        yield _serialize_event({"type": "error", "error": str(exc), "isComplete": True})
    yield b"data: [DONE]\n\n"


@app.get("/healthz")
async def healthz():
    return {"status": "ok"}


@app.post("/api/v1/imports/validate")
async def validate_import(payload: ValidateRequest, format: str = Query(default="json")):
    settings = get_settings()
    report = validate_import_json(
        payload.content,
        duplicate_policy=DuplicatePolicy(settings.duplicate_url_policy),
        large_batch_threshold=settings.import_large_batch_threshold,
    )
    if format == "text":
        return PlainTextResponse(generate_validation_report(report))
    return report.to_dict()


@app.post("/api/v1/sites/{site_id}/imports/stream")
async def import_stream(site_id: str, payload: ImportRequest) -> StreamingResponse:
    site = await _get_site(site_id)
    config = await _get_config(payload.config_id)
    importer = _new_importer()

    async def run() -> ImportResult:
        return await importer.import_batch(payload.content, site, config, source_batch_id=payload.source_batch_id)

    return StreamingResponse(_stream_import(importer, run), media_type="text/event-stream", headers=_SSE_HEADERS)


@app.post("/api/v1/harvest-results/{result_id}/import/stream")
async def import_harvest_result_stream(result_id: str) -> StreamingResponse:
    importer = _new_importer()
    # Not-found and already-imported are answered before streaming starts
    content, record = await importer.load_harvest_payload(result_id)
    site = await _get_site(record.data_source_id)
    config = await _get_config(record.config_id) if app_state.get("configs") is not None else None

    async def run() -> ImportResult:
        return await importer.import_batch(content, site, config, source_batch_id=result_id)

    return StreamingResponse(_stream_import(importer, run), media_type="text/event-stream", headers=_SSE_HEADERS)


@app.post("/api/v1/sites/{site_id}/harvest")
async def harvest_site(site_id: str):
    service = _require("harvesting_service")
    site = await _get_site(site_id)
    outcome = await service.harvest_site(site)
    body = asdict(outcome)
    return JSONResponse(status_code=200 if outcome.success else 502, content=body)


@app.post("/api/v1/harvest")
async def harvest_active_sites():
    service = _require("harvesting_service")
    sites = await _require("sources").list_active()
    outcomes = await service.harvest_sites(sites)
    return {
        "total": len(outcomes),
        "succeeded": sum(1 for o in outcomes if o.success),
        "outcomes": [asdict(o) for o in outcomes],
    }
