from __future__ import annotations

import asyncio
import json

import pytest

from harvester.domain.errors import LLMRequestError
from harvester.llm.runtime import LLMRequest, LLMRuntime
from harvester.models.database import DataSource
from harvester.services.harvesting_service import HarvestingService, build_user_prompt, extract_json_object
from harvester.services.prompts import DEFAULT_SYSTEM_PROMPT

ENVELOPE = {
    "documents": [{"url_doc": "https://ex.com/a.pdf", "document_name": "A"}],
    "obstacles-globaux": ["login wall"],
    "recommandations": "Use the sitemap",
}


class ScriptedLLM(LLMRuntime):
    """Answers from a script; Exception items are raised instead of returned."""

    def __init__(self, *answers) -> None:
        self._answers = list(answers)
        self.requests: list[LLMRequest] = []

    async def complete(self, req: LLMRequest) -> str:
        self.requests.append(req)
        answer = self._answers.pop(0)
        if isinstance(answer, BaseException):
            raise answer
        return answer


class FakeSleep:
    def __init__(self) -> None:
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def _service(llm, results, logs, settings, **kwargs) -> tuple[HarvestingService, FakeSleep]:
    sleep = FakeSleep()
    return HarvestingService(llm=llm, results=results, logs=logs, settings=settings, sleep=sleep, **kwargs), sleep


@pytest.mark.asyncio
async def test_harvest_site_stores_envelope(results, logs, settings, site) -> None:
    llm = ScriptedLLM(json.dumps(ENVELOPE))
    service, sleep = _service(llm, results, logs, settings)

    outcome = await service.harvest_site(site)

    assert outcome.success is True
    assert outcome.attempts == 1
    assert outcome.documents_found == 1
    assert outcome.harvest_result_id == "result-1"
    assert results.created[0]["data"] == ENVELOPE
    assert results.created[0]["metadata"]["kind"] == "llm_harvest"
    assert llm.requests[0].system_prompt == DEFAULT_SYSTEM_PROMPT
    assert llm.requests[0].prompt == site.generated_prompt
    assert llm.requests[0].model == settings.openai_default_model
    assert sleep.calls == []


@pytest.mark.asyncio
async def test_retries_with_fixed_delays(results, logs, settings, site) -> None:
    llm = ScriptedLLM(LLMRequestError("rate limited"), asyncio.TimeoutError(), json.dumps(ENVELOPE))
    service, sleep = _service(llm, results, logs, settings)

    outcome = await service.harvest_site(site)

    assert outcome.success is True
    assert outcome.attempts == 3
    assert sleep.calls == [2.0, 5.0]
    failures = [log for log in logs.created if log["level"] == "error"]
    assert len(failures) == 2
    assert "timed out" in failures[1]["message"]


@pytest.mark.asyncio
async def test_gives_up_after_max_attempts(results, logs, settings, site) -> None:
    llm = ScriptedLLM(*(LLMRequestError("down") for _ in range(3)))
    service, sleep = _service(llm, results, logs, settings)

    outcome = await service.harvest_site(site)

    assert outcome.success is False
    assert outcome.attempts == 3
    assert "after 3 attempts" in outcome.error
    assert sleep.calls == [2.0, 5.0]
    assert results.created == []


@pytest.mark.asyncio
async def test_site_without_prompt_is_rejected(results, logs, settings) -> None:
    llm = ScriptedLLM()
    service, _ = _service(llm, results, logs, settings)
    bare = DataSource(id="site-2", name="Bare", url="https://bare.example", type="website", generated_prompt="")

    outcome = await service.harvest_site(bare)

    assert outcome.success is False
    assert outcome.attempts == 0
    assert llm.requests == []


@pytest.mark.asyncio
async def test_unparseable_answer_fails_the_harvest(results, logs, settings, site) -> None:
    service, _ = _service(ScriptedLLM("I could not access the site."), results, logs, settings)

    outcome = await service.harvest_site(site)

    assert outcome.success is False
    assert "no JSON object" in outcome.error


@pytest.mark.asyncio
async def test_system_prompt_is_cached(results, logs, settings, site) -> None:
    clock = FakeClock()
    loads: list[float] = []

    async def loader() -> str:
        loads.append(clock.now)
        return "Custom harvesting prompt"

    llm = ScriptedLLM(*(json.dumps(ENVELOPE) for _ in range(3)))
    service, _ = _service(llm, results, logs, settings, clock=clock, system_prompt_loader=loader)

    await service.harvest_site(site)
    clock.now += 100
    await service.harvest_site(site)
    clock.now += settings.system_prompt_cache_ttl_seconds
    await service.harvest_site(site)

    assert loads == [0.0, 100.0 + settings.system_prompt_cache_ttl_seconds]
    assert {r.system_prompt for r in llm.requests} == {"Custom harvesting prompt"}


@pytest.mark.asyncio
async def test_harvest_sites_pauses_between_sites(results, logs, settings, site) -> None:
    llm = ScriptedLLM(*(json.dumps(ENVELOPE) for _ in range(3)))
    service, sleep = _service(llm, results, logs, settings)

    outcomes = await service.harvest_sites([site, site, site])

    assert [o.success for o in outcomes] == [True, True, True]
    assert sleep.calls == [settings.harvest_site_delay_seconds] * 2


def test_special_instructions_are_appended(site) -> None:
    site.special_instructions = "Skip the press section"
    prompt = build_user_prompt(site)
    assert prompt.startswith(site.generated_prompt)
    assert prompt.endswith("SPECIAL INSTRUCTIONS:\nSkip the press section")


def test_extract_json_object_handles_wrapped_answers() -> None:
    wrapped = "Here is the result:\n```json\n" + json.dumps(ENVELOPE) + "\n```\nGood luck!"
    assert extract_json_object(wrapped) == ENVELOPE

    with pytest.raises(LLMRequestError):
        extract_json_object("[1, 2]")
    with pytest.raises(LLMRequestError):
        extract_json_object("   ")
