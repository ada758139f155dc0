"""Completion contract shared by the OpenAI and Ollama adapters."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class LLMRequest:
    """One harvesting prompt.

    ``system_prompt`` describes the import envelope the model must answer
    with; ``prompt`` is the site's generated prompt plus its special
    instructions.
    """

    system_prompt: str
    prompt: str
    provider: str
    model: str
    temperature: float
    max_tokens: int
    timeout_seconds: int


class LLMRuntime:
    """Turns an ``LLMRequest`` into the model's raw answer text.

    Implementations make a single attempt: retries and the outer timeout
    belong to ``HarvestingService``. Transport failures raise
    ``NetworkTimeoutError``; error payloads and empty answers raise
    ``LLMRequestError``.
    """

    async def complete(self, req: LLMRequest) -> str:  # pragma: no cover - interface
        raise NotImplementedError
