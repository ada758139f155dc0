"""OpenAI adapter.

Chat completions through the official async client. Works with any
OpenAI-compatible endpoint via ``base_url``.
"""

from __future__ import annotations

import asyncio
import os

import openai
from openai import AsyncOpenAI

from ..domain.errors import LLMRequestError, NetworkTimeoutError
from ..observability.logger import get_logger
from .runtime import LLMRequest, LLMRuntime

logger = get_logger(__name__)


class OpenAIAdapter(LLMRuntime):
    def __init__(self, *, api_key: str | None = None, base_url: str | None = None):
        """
        Args:
            api_key: OpenAI API key. If None, reads from OPENAI_API_KEY env var.
            base_url: Custom base URL (for OpenAI-compatible APIs). If None, uses OpenAI default.
        """
        self._api_key = api_key or os.getenv("OPENAI_API_KEY", "")
        if not self._api_key:
            raise ValueError("OpenAI API key required. Set OPENAI_API_KEY env var or pass api_key parameter.")

        self._base_url = base_url or "https://api.openai.com/v1"
        # Retries are owned by the harvesting service
        self._client = AsyncOpenAI(api_key=self._api_key, base_url=self._base_url, max_retries=0)

    async def complete(self, req: LLMRequest) -> str:
        try:
            response = await self._client.chat.completions.create(
                model=req.model,
                messages=[
                    {"role": "system", "content": req.system_prompt},
                    {"role": "user", "content": req.prompt},
                ],
                temperature=float(req.temperature),
                max_tokens=int(req.max_tokens),
                timeout=max(1, int(req.timeout_seconds)),
            )
        except (asyncio.TimeoutError, openai.APITimeoutError, openai.APIConnectionError) as e:
            raise NetworkTimeoutError("openai_timeout_or_network_error", detail=str(e)) from e
        except openai.APIError as e:
            raise LLMRequestError("openai_request_failed", detail=str(e)) from e

        if not response.choices:
            raise LLMRequestError("openai_response_invalid", detail="no choices in response")
        text = response.choices[0].message.content
        if not isinstance(text, str) or not text.strip():
            raise LLMRequestError("openai_response_empty")
        logger.debug("openai_completion_received", model=req.model, chars=len(text))
        return text
