"""Ingestion orchestrator: import JSON envelope -> documents, site fields, logs."""

from __future__ import annotations

import json
from typing import Any, Callable, Optional

from ..config.settings import HarvesterSettings, get_settings
from ..domain.errors import DuplicateImportError, NotFoundError
from ..domain.models import DuplicatePolicy, ImportPhase, ImportProgress, ImportResult, IngestionBatch, LogLevel
from ..models.database import DataSource, HarvestingConfig, HarvestResult
from ..observability.logger import get_logger
from ..processing.batch_validator import validate_import_json
from ..processing.extractor import extract_valid_data
from ..storage.repositories import (
    DataSourceRepository,
    HarvestingConfigRepository,
    HarvestLogRepository,
    HarvestResultRepository,
)
from ..utils.best_effort import BestEffort
from ..utils.time import utc_now_iso

logger = get_logger(__name__)

ProgressCallback = Callable[[ImportProgress], None]

# Progress bands per phase, in percent
PARSING_PROGRESS = 10.0
DOCUMENTS_START = 30.0
DOCUMENTS_SPAN = 40.0
SITE_UPDATE_PROGRESS = 75.0
LOGS_PROGRESS = 90.0
COMPLETED_PROGRESS = 100.0


class HarvestDataImporter:
    """Drive one import through ``parsing -> documents -> site_update -> logs -> completed``.

    ``import_batch`` never raises: validation failures and unexpected errors
    end in the ``error`` phase and a well-formed ``ImportResult``.

    Progress is reported to at most one observer; registering a new callback
    replaces the previous one. Create one importer per concurrent import.
    """

    def __init__(
        self,
        results: HarvestResultRepository,
        sources: DataSourceRepository,
        logs: HarvestLogRepository,
        settings: HarvesterSettings | None = None,
        configs: HarvestingConfigRepository | None = None,
    ):
        self._results = results
        self._sources = sources
        self._logs = logs
        self._configs = configs
        self._settings = settings or get_settings()
        self._progress_callback: Optional[ProgressCallback] = None

    def set_progress_callback(self, callback: Optional[ProgressCallback]) -> None:
        self._progress_callback = callback

    def _notify(
        self,
        phase: ImportPhase,
        message: str,
        progress: float,
        result: ImportResult,
        *,
        processed: int = 0,
        total: int = 0,
    ) -> None:
        if self._progress_callback is None:
            return
        snapshot = ImportProgress(
            phase=phase,
            message=message,
            progress_percent=progress,
            documents_processed=processed,
            total_documents=total,
            errors=tuple(result.errors),
            warnings=tuple(result.warnings),
        )
        try:
            self._progress_callback(snapshot)
        except Exception as e:
            logger.warning("progress_callback_failed", phase=phase.value, error=str(e))

    async def import_batch(
        self,
        source_payload: str,
        site: DataSource,
        config: HarvestingConfig | None = None,
        *,
        source_batch_id: str | None = None,
    ) -> ImportResult:
        result = ImportResult()
        total = 0
        log = logger.bind(source_batch_id=source_batch_id)

        try:
            log = log.bind(site_id=site.id)
            log.info("import_started")
            self._notify(ImportPhase.PARSING, "Validating import data...", PARSING_PROGRESS, result)

            report = validate_import_json(
                source_payload,
                duplicate_policy=DuplicatePolicy(self._settings.duplicate_url_policy),
                large_batch_threshold=self._settings.import_large_batch_threshold,
            )
            result.warnings.extend(f.message for f in report.warnings)
            if not report.is_valid:
                result.errors.extend(f.message for f in report.errors)
                log.warning("import_validation_failed", errors=len(report.errors))
                self._notify(ImportPhase.ERROR, f"Validation failed: {result.errors[0]}", 0.0, result)
                return result

            batch = extract_valid_data(source_payload)
            total = len(batch.documents)

            for i, doc in enumerate(batch.documents):
                try:
                    await self._results.create_result(
                        data_source_id=site.id,
                        config_id=config.id if config is not None else None,
                        data={"document": doc.to_record(), "source_harvest_id": source_batch_id},
                        metadata=self._document_metadata(doc.url_doc, doc.display_name, i, source_batch_id),
                        source_batch_id=source_batch_id,
                        document_index=i,
                    )
                    result.documents_imported += 1
                except DuplicateImportError as e:
                    result.documents_with_errors += 1
                    result.errors.append(f"Batch {source_batch_id} was already imported: {e}")
                    log.warning("import_duplicate_batch", document_index=i, error=str(e))
                    self._notify(
                        ImportPhase.ERROR, f"Import failed: {result.errors[-1]}", 0.0, result, processed=i, total=total
                    )
                    return result
                except Exception as e:
                    result.documents_with_errors += 1
                    result.errors.append(f"Document {i + 1} ({doc.display_name}): {e}")
                    log.error("document_import_failed", document_index=i, url_doc=doc.url_doc, error=str(e))

                self._notify(
                    ImportPhase.DOCUMENTS,
                    f"Imported document: {doc.display_name}",
                    DOCUMENTS_START + ((i + 1) / total) * DOCUMENTS_SPAN,
                    result,
                    processed=i + 1,
                    total=total,
                )

            self._notify(
                ImportPhase.SITE_UPDATE,
                "Updating site information...",
                SITE_UPDATE_PROGRESS,
                result,
                processed=total,
                total=total,
            )
            await self._update_site(site, batch, result)

            self._notify(ImportPhase.LOGS, "Importing logs...", LOGS_PROGRESS, result, processed=total, total=total)
            log_writes = BestEffort()
            for j, entry in enumerate(batch.logs):
                failures_before = len(log_writes.failures)
                await log_writes.run(
                    "create_log",
                    self._logs.create_log(
                        data_source_id=site.id,
                        level=entry.level,
                        message=entry.message,
                        details={
                            **entry.details,
                            "timestamp": entry.timestamp,
                            "url": entry.url,
                            "import_source": "json_import",
                            "original_harvest_id": source_batch_id,
                            "import_timestamp": utc_now_iso(),
                        },
                    ),
                    log_index=j,
                )
                if len(log_writes.failures) == failures_before:
                    result.logs_imported += 1
                self._notify(
                    ImportPhase.LOGS,
                    f"Imported log {j + 1}/{len(batch.logs)}",
                    LOGS_PROGRESS,
                    result,
                    processed=total,
                    total=total,
                )

            await BestEffort().run(
                "import_summary_log",
                self._logs.create_log(
                    data_source_id=site.id,
                    level=LogLevel.INFO,
                    message=f"Harvest data import finished: {result.documents_imported} documents imported",
                    details={
                        "original_harvest_id": source_batch_id,
                        "documents_imported": result.documents_imported,
                        "documents_with_errors": result.documents_with_errors,
                        "obstacles_updated": result.obstacles_updated,
                        "recommendations_updated": result.recommendations_updated,
                        "logs_imported": result.logs_imported,
                        "warnings_count": len(result.warnings),
                        "errors_count": len(result.errors),
                    },
                ),
            )

            result.success = self._is_success(result)
            self._notify(
                ImportPhase.COMPLETED,
                f"Import finished: {result.documents_imported} documents imported",
                COMPLETED_PROGRESS,
                result,
                processed=total,
                total=total,
            )
            log.info(
                "import_completed",
                success=result.success,
                documents_imported=result.documents_imported,
                documents_with_errors=result.documents_with_errors,
                logs_imported=result.logs_imported,
            )
            return result

        except Exception as e:
            log.exception("import_failed")
            result.success = False
            result.errors.append(str(e) or type(e).__name__)
            self._notify(ImportPhase.ERROR, f"Import failed: {result.errors[-1]}", 0.0, result, total=total)
            return result

    async def _update_site(self, site: DataSource, batch: IngestionBatch, result: ImportResult) -> None:
        if not batch.has_site_fields:
            return
        fields: dict[str, Any] = {}
        if batch.obstacles_global:
            fields["obstacles_globaux"] = list(batch.obstacles_global)
        if batch.recommendations is not None:
            fields["recommandations"] = batch.recommendations

        site_write = BestEffort()
        await site_write.run("site_update", self._sources.update_fields(site.id, fields), site_id=site.id)
        if site_write.failed:
            result.warnings.extend(f"Site update failed: {f.error}" for f in site_write.failures)
            return
        result.obstacles_updated = "obstacles_globaux" in fields
        result.recommendations_updated = "recommandations" in fields

    def _is_success(self, result: ImportResult) -> bool:
        if self._settings.import_strict_success:
            return not result.errors
        return not result.errors or result.documents_imported > 0

    @staticmethod
    def _document_metadata(url_doc: str, name: str, index: int, source_batch_id: str | None) -> dict[str, Any]:
        metadata: dict[str, Any] = {
            "import_timestamp": utc_now_iso(),
            "document_index": index,
            "import_method": "json_import" if source_batch_id is None else "parsed_from_harvest",
            "document_url": url_doc,
            "document_name": name,
        }
        if source_batch_id is not None:
            metadata["original_harvest_id"] = source_batch_id
        return metadata

    async def was_already_imported(self, source_batch_id: str) -> bool:
        """True if a recent harvest result records ``source_batch_id`` as its origin.

        Any lookup failure answers False: a missed duplicate is caught by the
        unique constraint, a false positive would block a legitimate import.
        """
        try:
            recent = await self._results.list_recent(self._settings.idempotency_scan_limit)
            return any((r.meta or {}).get("original_harvest_id") == source_batch_id for r in recent)
        except Exception as e:
            logger.warning("idempotency_check_failed", source_batch_id=source_batch_id, error=str(e))
            return False

    async def load_harvest_payload(self, harvest_result_id: str) -> tuple[str, HarvestResult]:
        """Return ``(import JSON text, record)`` for a stored raw harvest.

        Raises NotFoundError for an unknown id and DuplicateImportError when
        the harvest was already imported.
        """
        record = await self._results.get(harvest_result_id)
        if record is None:
            raise NotFoundError("harvest result not found", detail=harvest_result_id)
        if await self.was_already_imported(harvest_result_id):
            raise DuplicateImportError("harvest result already imported", detail=harvest_result_id)
        payload = record.data if isinstance(record.data, str) else json.dumps(record.data, ensure_ascii=False)
        return payload, record

    async def import_harvest_result(
        self,
        harvest_result_id: str,
        site: DataSource,
        config: HarvestingConfig | None = None,
    ) -> ImportResult:
        payload, record = await self.load_harvest_payload(harvest_result_id)
        if config is None and record.config_id and self._configs is not None:
            config = await self._configs.get(record.config_id)
        return await self.import_batch(payload, site, config, source_batch_id=harvest_result_id)
