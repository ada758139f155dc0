"""Framework-agnostic domain models."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Generic, Optional, TypeVar

T = TypeVar("T")


class Severity(str, Enum):
    ERROR = "error"
    WARNING = "warning"


class FindingKind(str, Enum):
    STRUCTURAL = "structural"
    FIELD = "field"
    DUPLICATE = "duplicate"


class LogLevel(str, Enum):
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


class DuplicatePolicy(str, Enum):
    REJECT = "reject"
    DROP = "drop"


class ImportPhase(str, Enum):
    PARSING = "parsing"
    DOCUMENTS = "documents"
    SITE_UPDATE = "site_update"
    LOGS = "logs"
    COMPLETED = "completed"
    ERROR = "error"


class ResultStatus(str, Enum):
    SUCCESS = "success"
    ERROR = "error"


@dataclass(frozen=True)
class ValidationFinding:
    severity: Severity
    field: str
    message: str
    recommendation: str
    kind: FindingKind = FindingKind.FIELD
    document_index: Optional[int] = None
    log_index: Optional[int] = None
    context: Optional[str] = None

    @property
    def is_error(self) -> bool:
        return self.severity is Severity.ERROR

    def to_dict(self) -> dict[str, Any]:
        out = asdict(self)
        out["severity"] = self.severity.value
        out["kind"] = self.kind.value
        return out


@dataclass(frozen=True)
class ValidationSummary:
    total_documents: int = 0
    valid_documents: int = 0
    total_logs: int = 0
    valid_logs: int = 0


@dataclass(frozen=True)
class ValidationReport:
    errors: tuple[ValidationFinding, ...]
    warnings: tuple[ValidationFinding, ...]
    summary: ValidationSummary

    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "isValid": self.is_valid,
            "errors": [f.to_dict() for f in self.errors],
            "warnings": [f.to_dict() for f in self.warnings],
            "summary": asdict(self.summary),
        }


@dataclass(frozen=True)
class DecodeResult(Generic[T]):
    """Outcome of decoding one loosely-typed JSON entry."""

    value: Optional[T] = None
    findings: tuple[ValidationFinding, ...] = ()

    @property
    def ok(self) -> bool:
        return self.value is not None

    @classmethod
    def success(cls, value: T, findings: tuple[ValidationFinding, ...] = ()) -> "DecodeResult[T]":
        return cls(value=value, findings=findings)

    @classmethod
    def failure(cls, findings: tuple[ValidationFinding, ...]) -> "DecodeResult[T]":
        return cls(value=None, findings=findings)


@dataclass(frozen=True)
class NormalizedDocument:
    url_doc: str
    document_name: str = ""
    filename: str = ""
    date_edition: str = ""
    auteurs: str = ""
    langue: str = ""
    resume: str = ""
    statut: str = ""
    issue_number: str = ""
    annee: int = 0
    format: str = ""
    type_document: str = ""
    contient_texte: str = ""
    pattern_verified: bool = False
    notes: str = ""
    obstacles: str = ""
    source_page: str = ""

    @property
    def display_name(self) -> str:
        return self.document_name or self.filename or self.url_doc

    def to_record(self) -> dict[str, Any]:
        """Stored shape, keyed by the external field names."""
        return asdict(self)


@dataclass(frozen=True)
class NormalizedLog:
    level: LogLevel
    message: str
    timestamp: str
    url: str = ""
    details: dict[str, Any] = field(default_factory=dict)

    def to_record(self) -> dict[str, Any]:
        return {
            "level": self.level.value,
            "message": self.message,
            "timestamp": self.timestamp,
            "url": self.url,
            "details": dict(self.details),
        }


@dataclass(frozen=True)
class IngestionBatch:
    documents: tuple[NormalizedDocument, ...] = ()
    logs: tuple[NormalizedLog, ...] = ()
    obstacles_global: tuple[str, ...] = ()
    recommendations: Optional[str] = None

    @classmethod
    def empty(cls) -> "IngestionBatch":
        return cls()

    @property
    def has_site_fields(self) -> bool:
        return bool(self.obstacles_global) or self.recommendations is not None


@dataclass(frozen=True)
class ImportProgress:
    phase: ImportPhase
    message: str
    progress_percent: float
    documents_processed: int = 0
    total_documents: int = 0
    errors: tuple[str, ...] = ()
    warnings: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": "progress",
            "phase": self.phase.value,
            "message": self.message,
            "progress": self.progress_percent,
            "documentsProcessed": self.documents_processed,
            "totalDocuments": self.total_documents,
            "errors": list(self.errors),
            "warnings": list(self.warnings),
        }


@dataclass
class ImportResult:
    success: bool = False
    documents_imported: int = 0
    documents_with_errors: int = 0
    logs_imported: int = 0
    obstacles_updated: bool = False
    recommendations_updated: bool = False
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": "result",
            "success": self.success,
            "documentsImported": self.documents_imported,
            "documentsWithErrors": self.documents_with_errors,
            "logsImported": self.logs_imported,
            "obstaclesUpdated": self.obstacles_updated,
            "recommendationsUpdated": self.recommendations_updated,
            "errors": list(self.errors),
            "warnings": list(self.warnings),
        }


@dataclass(frozen=True)
class HarvestOutcome:
    site_id: str
    success: bool
    harvest_result_id: Optional[str] = None
    error: str = ""
    attempts: int = 0
    documents_found: int = 0
