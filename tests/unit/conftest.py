from __future__ import annotations

from typing import Any

import pytest

from harvester.config.settings import HarvesterSettings, reset_settings
from harvester.domain.errors import DuplicateImportError, PersistenceError
from harvester.models.database import DataSource, HarvestResult


class FakeResults:
    """In-memory stand-in for HarvestResultRepository."""

    def __init__(self) -> None:
        self.created: list[dict[str, Any]] = []
        self.records: dict[str, HarvestResult] = {}
        self.fail_indices: set[int] = set()
        self.duplicate_batches: set[str] = set()
        self.list_error: Exception | None = None

    async def create_result(self, **fields: Any) -> str:
        if fields.get("source_batch_id") in self.duplicate_batches:
            raise DuplicateImportError("create_harvest_result: constraint violation", detail="uq_harvest_results_batch_doc")
        if fields.get("document_index") in self.fail_indices:
            raise PersistenceError("create_harvest_result failed", detail="insert rejected")
        self.created.append(fields)
        result_id = f"result-{len(self.created)}"
        self.records[result_id] = HarvestResult(
            id=result_id,
            data_source_id=fields["data_source_id"],
            config_id=fields.get("config_id"),
            data=fields["data"],
            meta=fields["metadata"],
        )
        return result_id

    async def get(self, result_id: str) -> HarvestResult | None:
        return self.records.get(result_id)

    async def list_recent(self, limit: int = 100) -> list[HarvestResult]:
        if self.list_error is not None:
            raise self.list_error
        return list(reversed(list(self.records.values())))[:limit]


class FakeSources:
    def __init__(self, *sites: DataSource) -> None:
        self.sites = {s.id: s for s in sites}
        self.updates: list[tuple[str, dict[str, Any]]] = []
        self.fail_updates = False

    async def get(self, source_id: str) -> DataSource | None:
        return self.sites.get(source_id)

    async def list_active(self) -> list[DataSource]:
        return [s for s in self.sites.values() if s.status == "active"]

    async def update_fields(self, source_id: str, fields: dict[str, Any]) -> None:
        if self.fail_updates:
            raise PersistenceError("update_data_source failed")
        self.updates.append((source_id, fields))


class FakeLogs:
    def __init__(self) -> None:
        self.created: list[dict[str, Any]] = []
        self.fail = False

    async def create_log(self, **fields: Any) -> str:
        if self.fail:
            raise PersistenceError("create_harvest_log failed")
        self.created.append(fields)
        return f"log-{len(self.created)}"

    async def log_info(self, data_source_id: str | None, message: str, **details: Any) -> str:
        return await self.create_log(data_source_id=data_source_id, level="info", message=message, details=details)

    async def log_error(self, data_source_id: str | None, message: str, **details: Any) -> str:
        return await self.create_log(data_source_id=data_source_id, level="error", message=message, details=details)


@pytest.fixture(autouse=True)
def _fresh_settings():
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def settings() -> HarvesterSettings:
    return HarvesterSettings(_env_file=None)


@pytest.fixture
def site() -> DataSource:
    return DataSource(
        id="site-1",
        name="Example site",
        url="https://ex.com",
        type="website",
        status="active",
        generated_prompt="Find every PDF report published on https://ex.com",
        special_instructions="",
    )


@pytest.fixture
def results() -> FakeResults:
    return FakeResults()


@pytest.fixture
def sources(site: DataSource) -> FakeSources:
    return FakeSources(site)


@pytest.fixture
def logs() -> FakeLogs:
    return FakeLogs()
