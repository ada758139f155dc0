"""LLM harvesting: ask the model to crawl a site, store the raw envelope.

The answer is stored as one ``harvest_results`` row; importing it into
documents is a separate step (see ``HarvestDataImporter``).
"""

from __future__ import annotations

import asyncio
import json
import re
import time
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional, Sequence

from ..config.settings import HarvesterSettings, get_settings
from ..domain.errors import InvalidInputError, LLMRequestError, NetworkTimeoutError
from ..domain.models import HarvestOutcome
from ..llm.runtime import LLMRequest, LLMRuntime
from ..models.database import DataSource, HarvestingConfig
from ..observability.logger import get_logger
from ..processing.extractor import OBSTACLES_KEY
from ..storage.repositories import HarvestLogRepository, HarvestResultRepository
from ..utils.best_effort import BestEffort
from ..utils.cache import TTLCache
from ..utils.time import current_time_ms, elapsed_ms, utc_now_iso
from .prompts import DEFAULT_SYSTEM_PROMPT, SPECIAL_INSTRUCTIONS_HEADER

logger = get_logger(__name__)

_JSON_OBJECT_RE = re.compile(r"\{.*\}", re.DOTALL)

# Answers longer than this are logged as suspicious but still parsed
LONG_RESPONSE_CHARS = 50_000


def extract_json_object(raw: str) -> dict[str, Any]:
    """Parse the LLM answer as a JSON object.

    Tries the whole text first, then the outermost ``{...}`` span for answers
    wrapped in prose or code fences.
    """
    text = raw.strip() if isinstance(raw, str) else ""
    if not text:
        raise LLMRequestError("empty LLM response")

    try:
        parsed = json.loads(text)
    except ValueError:
        match = _JSON_OBJECT_RE.search(text)
        if match is None:
            raise LLMRequestError("no JSON object found in LLM response", detail=text[:500]) from None
        try:
            parsed = json.loads(match.group(0))
        except ValueError as e:
            raise LLMRequestError("could not parse JSON in LLM response", detail=str(e)) from e

    if not isinstance(parsed, dict):
        raise LLMRequestError("LLM response is not a JSON object")
    return parsed


def harvest_envelope(parsed: dict[str, Any]) -> dict[str, Any]:
    """Keep the three import sections, with wrong types replaced by empties."""
    documents = parsed.get("documents")
    obstacles = parsed.get(OBSTACLES_KEY)
    recommendations = parsed.get("recommandations")
    return {
        "documents": documents if isinstance(documents, list) else [],
        OBSTACLES_KEY: obstacles if isinstance(obstacles, list) else [],
        "recommandations": recommendations if isinstance(recommendations, str) else "",
    }


def build_user_prompt(site: DataSource) -> str:
    prompt = site.generated_prompt or ""
    special = site.special_instructions or ""
    if special.strip():
        prompt += f"\n\n{SPECIAL_INSTRUCTIONS_HEADER}\n{special}"
    return prompt


class HarvestingService:
    """Harvest sites through the configured LLM runtime.

    The system prompt is cached per service instance for
    ``system_prompt_cache_ttl_seconds``. Each LLM call gets
    ``llm_timeout_seconds`` and up to ``llm_max_attempts`` tries, pausing
    ``llm_retry_delays_ms`` between them.
    """

    def __init__(
        self,
        llm: LLMRuntime,
        results: HarvestResultRepository,
        logs: HarvestLogRepository,
        settings: HarvesterSettings | None = None,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        system_prompt_loader: Optional[Callable[[], Awaitable[str]]] = None,
    ):
        self._llm = llm
        self._results = results
        self._logs = logs
        self._settings = settings or get_settings()
        self._sleep = sleep
        self._system_prompt_loader = system_prompt_loader
        self._prompt_cache: TTLCache[str] = TTLCache(self._settings.system_prompt_cache_ttl_seconds, clock=clock)

    @property
    def model(self) -> str:
        if self._settings.llm_provider == "ollama":
            return self._settings.ollama_default_model
        return self._settings.openai_default_model

    async def get_system_prompt(self) -> str:
        return await self._prompt_cache.get_or_load(self._load_system_prompt)

    async def _load_system_prompt(self) -> str:
        if self._system_prompt_loader is not None:
            prompt = await self._system_prompt_loader()
        elif self._settings.system_prompt_file:
            path = Path(self._settings.system_prompt_file)
            try:
                prompt = await asyncio.to_thread(path.read_text, encoding="utf-8")
            except OSError as e:
                raise InvalidInputError("system prompt file unreadable", detail=str(e)) from e
        else:
            prompt = DEFAULT_SYSTEM_PROMPT

        if not prompt.strip():
            raise InvalidInputError("system prompt is empty")
        logger.info("system_prompt_loaded", chars=len(prompt))
        return prompt.strip()

    def _retry_delay_s(self, attempt: int) -> float:
        delays = self._settings.llm_retry_delays_ms
        if not delays:
            return 0.0
        return delays[min(attempt, len(delays) - 1)] / 1000.0

    async def _complete_with_retry(self, site: DataSource, req: LLMRequest) -> tuple[str, int]:
        """Return ``(answer, attempts used)``; raise LLMRequestError once attempts run out."""
        max_attempts = self._settings.llm_max_attempts
        timeout_s = self._settings.llm_timeout_seconds
        last_error: Exception | None = None

        for attempt in range(max_attempts):
            start_ms = current_time_ms()
            try:
                text = await asyncio.wait_for(self._llm.complete(req), timeout=timeout_s)
                logger.info(
                    "llm_call_succeeded",
                    site_id=site.id,
                    attempt=attempt + 1,
                    duration_ms=elapsed_ms(start_ms),
                    chars=len(text),
                )
                return text, attempt + 1
            except asyncio.TimeoutError:
                last_error = NetworkTimeoutError(f"LLM call timed out after {timeout_s}s")
            except Exception as e:
                last_error = e

            logger.warning(
                "llm_call_failed",
                site_id=site.id,
                attempt=attempt + 1,
                max_attempts=max_attempts,
                error_type=type(last_error).__name__,
                error=str(last_error),
            )
            await BestEffort().run(
                "harvest_log",
                self._logs.log_error(
                    site.id,
                    f"LLM call failed (attempt {attempt + 1}): {last_error}",
                    attempt=attempt + 1,
                    max_attempts=max_attempts,
                    error=str(last_error),
                ),
            )
            if attempt < max_attempts - 1:
                await self._sleep(self._retry_delay_s(attempt))

        raise LLMRequestError(f"LLM call failed after {max_attempts} attempts", detail=str(last_error))

    async def harvest_site(self, site: DataSource, config: HarvestingConfig | None = None) -> HarvestOutcome:
        """Harvest one site. Never raises: failures come back as an unsuccessful outcome."""
        attempts = 0
        try:
            if not (site.generated_prompt or "").strip():
                raise InvalidInputError("no generated prompt for this site; configure the site first")

            await BestEffort().run(
                "harvest_log",
                self._logs.log_info(site.id, f"LLM harvest started for {site.name}", url=site.url, type=site.type),
            )

            req = LLMRequest(
                system_prompt=await self.get_system_prompt(),
                prompt=build_user_prompt(site),
                provider=self._settings.llm_provider,
                model=self.model,
                temperature=self._settings.llm_temperature,
                max_tokens=self._settings.llm_max_tokens,
                timeout_seconds=self._settings.llm_timeout_seconds,
            )
            # reported as-is if every attempt fails
            attempts = self._settings.llm_max_attempts
            text, attempts = await self._complete_with_retry(site, req)
            if len(text) > LONG_RESPONSE_CHARS:
                logger.warning("llm_response_very_long", site_id=site.id, chars=len(text))

            envelope = harvest_envelope(extract_json_object(text))
            if not envelope["documents"] and not envelope[OBSTACLES_KEY] and not envelope["recommandations"]:
                logger.warning("harvest_envelope_empty", site_id=site.id)

            result_id = await self._results.create_result(
                data_source_id=site.id,
                config_id=config.id if config is not None else None,
                data=envelope,
                metadata={
                    "saved_method": "database",
                    "kind": "llm_harvest",
                    "provider": req.provider,
                    "model": req.model,
                    "attempts": attempts,
                    "timestamp": utc_now_iso(),
                },
            )
            documents_found = len(envelope["documents"])
            await BestEffort().run(
                "harvest_log",
                self._logs.log_info(
                    site.id,
                    f"LLM harvest finished for {site.name}",
                    harvest_result_id=result_id,
                    documents_found=documents_found,
                ),
            )
            logger.info("harvest_site_completed", site_id=site.id, harvest_result_id=result_id, documents_found=documents_found)
            return HarvestOutcome(
                site_id=site.id,
                success=True,
                harvest_result_id=result_id,
                attempts=attempts,
                documents_found=documents_found,
            )
        except Exception as e:
            logger.error("harvest_site_failed", site_id=site.id, error_type=type(e).__name__, error=str(e))
            await BestEffort().run(
                "harvest_log",
                self._logs.log_error(site.id, f"LLM harvest failed for {site.name}: {e}", attempts=attempts),
            )
            return HarvestOutcome(site_id=site.id, success=False, error=str(e), attempts=attempts)

    async def harvest_sites(self, sites: Sequence[DataSource]) -> list[HarvestOutcome]:
        """Harvest sites one after another with a fixed pause in between."""
        outcomes: list[HarvestOutcome] = []
        for i, site in enumerate(sites):
            logger.info("harvest_sites_progress", index=i + 1, total=len(sites), site_id=site.id)
            outcomes.append(await self.harvest_site(site))
            if i < len(sites) - 1:
                await self._sleep(self._settings.harvest_site_delay_seconds)
        logger.info("harvest_sites_completed", total=len(sites), succeeded=sum(1 for o in outcomes if o.success))
        return outcomes
