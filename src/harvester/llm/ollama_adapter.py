"""Ollama adapter for self-hosted harvesting models (``POST /api/generate``)."""

from __future__ import annotations

import asyncio
from typing import Any

import aiohttp

from ..domain.errors import LLMRequestError, NetworkTimeoutError
from ..observability.logger import get_logger
from .runtime import LLMRequest, LLMRuntime

logger = get_logger(__name__)


def build_generate_payload(req: LLMRequest) -> dict[str, Any]:
    return {
        "model": req.model,
        "system": req.system_prompt,
        "prompt": req.prompt,
        "stream": False,
        # constrains the answer to a JSON document
        "format": "json",
        "options": {
            "temperature": float(req.temperature),
            "num_predict": int(req.max_tokens),
        },
    }


class OllamaAdapter(LLMRuntime):
    def __init__(self, *, host: str, port: int):
        self._generate_url = f"http://{host}:{port}/api/generate"

    async def complete(self, req: LLMRequest) -> str:
        timeout = aiohttp.ClientTimeout(total=max(1, int(req.timeout_seconds)))
        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.post(self._generate_url, json=build_generate_payload(req)) as resp:
                    if resp.status >= 400:
                        body = await resp.text()
                        raise LLMRequestError(
                            "ollama_request_failed",
                            detail=f"model={req.model} status={resp.status} body={body[:500]}",
                        )
                    data = await resp.json()
        except (asyncio.TimeoutError, aiohttp.ClientError) as e:
            raise NetworkTimeoutError("ollama_timeout_or_network_error", detail=str(e)) from e

        return self._answer_text(data, req.model)

    @staticmethod
    def _answer_text(data: Any, model: str) -> str:
        if not isinstance(data, dict):
            raise LLMRequestError("ollama_response_invalid", detail=f"model={model}")
        if data.get("error"):
            raise LLMRequestError("ollama_error", detail=str(data["error"]))
        text = data.get("response")
        if not isinstance(text, str) or not text.strip():
            raise LLMRequestError("ollama_response_empty", detail=f"model={model}")
        logger.debug("ollama_completion_received", model=model, chars=len(text))
        return text
