"""Domain-specific errors.

Validation problems are never raised: they are collected as findings
(see ``domain.models.ValidationFinding``). The errors below cover the
I/O boundaries and are mapped to HTTP status codes in ``http_app``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


class HarvesterDomainError(Exception):
    """Base class for all domain errors."""


@dataclass(frozen=True)
class DomainErrorInfo:
    code: str
    message: str
    detail: Optional[str] = None


class InvalidInputError(HarvesterDomainError):
    """Raised when request/config validation fails."""

    def __init__(self, message: str, detail: str | None = None):
        super().__init__(message)
        self.info = DomainErrorInfo(code="INVALID_INPUT", message=message, detail=detail)


class NotFoundError(HarvesterDomainError):
    def __init__(self, message: str, detail: str | None = None):
        super().__init__(message)
        self.info = DomainErrorInfo(code="NOT_FOUND", message=message, detail=detail)


class PersistenceError(HarvesterDomainError):
    """A single create/update/query against the database failed."""

    def __init__(self, message: str, detail: str | None = None):
        super().__init__(message)
        self.info = DomainErrorInfo(code="PERSISTENCE_ERROR", message=message, detail=detail)


class DuplicateImportError(PersistenceError):
    """The (source_batch_id, document_index) unique constraint was violated."""

    def __init__(self, message: str, detail: str | None = None):
        super().__init__(message, detail=detail)
        self.info = DomainErrorInfo(code="DUPLICATE_IMPORT", message=message, detail=detail)


class NetworkTimeoutError(HarvesterDomainError):
    def __init__(self, message: str, detail: str | None = None):
        super().__init__(message)
        self.info = DomainErrorInfo(code="NETWORK_TIMEOUT", message=message, detail=detail)


class LLMRequestError(HarvesterDomainError):
    """The LLM answered, but the answer was unusable (HTTP error, empty, no JSON)."""

    def __init__(self, message: str, detail: str | None = None):
        super().__init__(message)
        self.info = DomainErrorInfo(code="LLM_REQUEST_ERROR", message=message, detail=detail)
