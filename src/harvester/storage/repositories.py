"""Repository pattern for database access (sites, configs, results, logs).

Every method opens its own session. SQLAlchemy failures are re-raised as
``PersistenceError`` (``DuplicateImportError`` for unique-constraint
violations) so callers never see driver exceptions.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..domain.errors import DuplicateImportError, PersistenceError
from ..domain.models import LogLevel, ResultStatus
from ..models.database import DataSource, HarvestingConfig, HarvestLog, HarvestResult
from ..observability.logger import get_logger
from ..utils.time import utc_now

logger = get_logger(__name__)


class _Repository:
    def __init__(self, session_factory):
        self._session_factory = session_factory

    @asynccontextmanager
    async def _session(self, operation: str) -> AsyncIterator[AsyncSession]:
        try:
            async with self._session_factory() as session:
                yield session
        except IntegrityError as e:
            logger.warning("db_integrity_error", operation=operation, error=str(e.orig))
            raise DuplicateImportError(f"{operation}: constraint violation", detail=str(e.orig)) from e
        except SQLAlchemyError as e:
            logger.error("db_operation_failed", operation=operation, error=str(e))
            raise PersistenceError(f"{operation} failed", detail=str(e)) from e


class DataSourceRepository(_Repository):
    """Repository for harvested sites."""

    async def get(self, source_id: str) -> Optional[DataSource]:
        async with self._session("get_data_source") as session:
            result = await session.execute(select(DataSource).where(DataSource.id == source_id))
            return result.scalar_one_or_none()

    async def list_active(self) -> list[DataSource]:
        async with self._session("list_data_sources") as session:
            result = await session.execute(
                select(DataSource).where(DataSource.status == "active").order_by(DataSource.created_at)
            )
            return list(result.scalars().all())

    async def update_fields(self, source_id: str, fields: dict[str, Any]) -> None:
        async with self._session("update_data_source") as session:
            await session.execute(
                update(DataSource)
                .where(DataSource.id == source_id)
                .values(**fields, updated_at=utc_now())
            )
            await session.commit()


class HarvestingConfigRepository(_Repository):
    async def get(self, config_id: str) -> Optional[HarvestingConfig]:
        async with self._session("get_harvesting_config") as session:
            result = await session.execute(select(HarvestingConfig).where(HarvestingConfig.id == config_id))
            return result.scalar_one_or_none()


class HarvestResultRepository(_Repository):
    """Repository for raw harvests and imported documents."""

    async def create_result(
        self,
        *,
        data_source_id: str,
        data: dict[str, Any],
        metadata: dict[str, Any],
        config_id: str | None = None,
        status: ResultStatus = ResultStatus.SUCCESS,
        error_message: str | None = None,
        source_batch_id: str | None = None,
        document_index: int | None = None,
    ) -> str:
        async with self._session("create_harvest_result") as session:
            record = HarvestResult(
                data_source_id=data_source_id,
                config_id=config_id,
                data=data,
                meta=metadata,
                status=status.value,
                error_message=error_message,
                source_batch_id=source_batch_id,
                document_index=document_index,
                harvested_at=utc_now(),
            )
            session.add(record)
            await session.commit()
            return record.id

    async def get(self, result_id: str) -> Optional[HarvestResult]:
        async with self._session("get_harvest_result") as session:
            result = await session.execute(select(HarvestResult).where(HarvestResult.id == result_id))
            return result.scalar_one_or_none()

    async def list_recent(self, limit: int = 100) -> list[HarvestResult]:
        async with self._session("list_harvest_results") as session:
            result = await session.execute(
                select(HarvestResult).order_by(HarvestResult.harvested_at.desc()).limit(limit)
            )
            return list(result.scalars().all())


class HarvestLogRepository(_Repository):
    async def create_log(
        self,
        *,
        data_source_id: str | None,
        level: LogLevel,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> str:
        async with self._session("create_harvest_log") as session:
            record = HarvestLog(
                data_source_id=data_source_id,
                level=level.value,
                message=message,
                details=details or {},
                created_at=utc_now(),
            )
            session.add(record)
            await session.commit()
            return record.id

    async def log_info(self, data_source_id: str | None, message: str, **details: Any) -> str:
        return await self.create_log(data_source_id=data_source_id, level=LogLevel.INFO, message=message, details=details)

    async def log_error(self, data_source_id: str | None, message: str, **details: Any) -> str:
        return await self.create_log(data_source_id=data_source_id, level=LogLevel.ERROR, message=message, details=details)
