"""Per-entry validation of documents and logs from an import envelope.

Processing layer component (pure, no I/O). Findings are returned as data and
never raised: only ``url_doc`` problems and non-object entries are errors,
everything else is an advisory warning.
"""

from __future__ import annotations

import json
from typing import Any, Mapping, Optional

from ..domain.models import FindingKind, LogLevel, Severity, ValidationFinding
from ..utils.validators import is_absolute_url, is_loose_date, is_plausible_year, max_plausible_year

LOG_LEVELS = frozenset(level.value for level in LogLevel)

# Optional document fields that deserve a nudge when missing.
_RECOMMENDED_DOCUMENT_FIELDS: dict[str, tuple[str, str]] = {
    "document_name": (
        "missing - a name will be generated automatically",
        'Add a descriptive name: "document_name": "Annual report 2024"',
    ),
    "filename": (
        "missing - it will be derived from the URL",
        'Specify the file name: "filename": "annual_report_2024.pdf"',
    ),
}


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    return False


def _json_type(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, (list, tuple)):
        return "array"
    if isinstance(value, Mapping):
        return "object"
    return "string" if isinstance(value, str) else type(value).__name__


def _doc_finding(index: int, severity: Severity, field: str, message: str, recommendation: str, context: str) -> ValidationFinding:
    return ValidationFinding(
        severity=severity,
        field=field,
        message=f"Document {index + 1}: {message}",
        recommendation=recommendation,
        kind=FindingKind.FIELD,
        document_index=index,
        context=context,
    )


def _log_finding(index: int, severity: Severity, field: str, message: str, recommendation: str, context: str) -> ValidationFinding:
    return ValidationFinding(
        severity=severity,
        field=field,
        message=f"Log {index + 1}: {message}",
        recommendation=recommendation,
        kind=FindingKind.FIELD,
        log_index=index,
        context=context,
    )


def check_url_doc(raw: Mapping[str, Any], index: int) -> Optional[ValidationFinding]:
    """Return the first ``url_doc`` failure (missing, type, blank, unparseable)."""
    url = raw.get("url_doc")
    if url is None or url == "":
        return _doc_finding(
            index,
            Severity.ERROR,
            "url_doc",
            '"url_doc" is missing - this field is required to download the document',
            'Add the download URL: "url_doc": "https://example.com/document.pdf"',
            f"Document at index {index}",
        )
    if not isinstance(url, str):
        return _doc_finding(
            index,
            Severity.ERROR,
            "url_doc",
            f'"url_doc" must be a string, not {_json_type(url)}',
            f'Use a string: "url_doc": "https://..." instead of "url_doc": {json.dumps(url, default=str)}',
            "Wrong data type",
        )
    if url.strip() == "":
        return _doc_finding(
            index,
            Severity.ERROR,
            "url_doc",
            '"url_doc" cannot be empty',
            'Provide a valid URL: "url_doc": "https://example.com/document.pdf"',
            "Empty value",
        )
    if not is_absolute_url(url):
        return _doc_finding(
            index,
            Severity.ERROR,
            "url_doc",
            f'invalid URL "{url}"',
            f'Use a complete URL with a scheme: "https://example.com/file.pdf" instead of "{url}"',
            "Malformed URL",
        )
    return None


def validate_document(raw: Any, index: int) -> list[ValidationFinding]:
    """Validate one raw document entry. Never raises."""
    if not isinstance(raw, Mapping):
        return [
            _doc_finding(
                index,
                Severity.ERROR,
                "document",
                "invalid structure - must be a JSON object",
                'Replace with an object: {"url_doc": "https://...", "document_name": "..."}',
                f"Array position: index {index}",
            )
        ]

    findings: list[ValidationFinding] = []
    url_finding = check_url_doc(raw, index)
    if url_finding is not None:
        findings.append(url_finding)

    for field_name, (message, recommendation) in _RECOMMENDED_DOCUMENT_FIELDS.items():
        if _is_blank(raw.get(field_name)):
            findings.append(
                _doc_finding(
                    index,
                    Severity.WARNING,
                    field_name,
                    f'"{field_name}" {message}',
                    recommendation,
                    "Optional metadata",
                )
            )

    date_edition = raw.get("date_edition")
    if not _is_blank(date_edition) and not is_loose_date(date_edition):
        findings.append(
            _doc_finding(
                index,
                Severity.WARNING,
                "date_edition",
                f'invalid date format "{date_edition}"',
                'Use ISO format: "date_edition": "2024-01-15" or "2024-01-15T10:30:00Z"',
                "Wrong date format",
            )
        )

    annee = raw.get("annee")
    if annee not in (None, "", 0) and not is_plausible_year(annee):
        findings.append(
            _doc_finding(
                index,
                Severity.WARNING,
                "annee",
                f'invalid year "{annee}"',
                f'Use an integer year between 1900 and {max_plausible_year()}: "annee": {max_plausible_year() - 1}',
                "Wrong numeric value",
            )
        )

    return findings


def validate_log(raw: Any, index: int) -> list[ValidationFinding]:
    """Validate one raw log entry. Never raises."""
    if not isinstance(raw, Mapping):
        return [
            _log_finding(
                index,
                Severity.ERROR,
                "log",
                "invalid structure - must be a JSON object",
                'Replace with an object: {"level": "error", "message": "What went wrong"}',
                f"Array position: index {index}",
            )
        ]

    findings: list[ValidationFinding] = []

    level = raw.get("level")
    if _is_blank(level):
        findings.append(
            _log_finding(
                index,
                Severity.WARNING,
                "level",
                '"level" is missing - it will default to "info"',
                'Specify the level: "level": "error", "warning" or "info"',
                "Default log level",
            )
        )
    elif not isinstance(level, str) or level not in LOG_LEVELS:
        findings.append(
            _log_finding(
                index,
                Severity.WARNING,
                "level",
                f'unknown level "{level}" - it will default to "info"',
                'Use a valid level: "level": "error", "warning" or "info"',
                "Invalid log level",
            )
        )

    message = raw.get("message")
    if _is_blank(message):
        findings.append(
            _log_finding(
                index,
                Severity.WARNING,
                "message",
                '"message" is missing - the log will get a default message',
                'Add a description: "message": "Detailed description of the incident"',
                "Missing log message",
            )
        )
    elif not isinstance(message, str):
        findings.append(
            _log_finding(
                index,
                Severity.WARNING,
                "message",
                '"message" must be a string',
                'Use a string: "message": "Your message here"',
                "Wrong message type",
            )
        )

    timestamp = raw.get("timestamp")
    if not _is_blank(timestamp) and not is_loose_date(timestamp):
        findings.append(
            _log_finding(
                index,
                Severity.WARNING,
                "timestamp",
                f'invalid timestamp format "{timestamp}"',
                'Use ISO format: "timestamp": "2024-01-15T10:30:00Z"',
                "Wrong timestamp format",
            )
        )

    url = raw.get("url")
    if isinstance(url, str) and url.strip() and not is_absolute_url(url):
        findings.append(
            _log_finding(
                index,
                Severity.WARNING,
                "url",
                f'invalid URL "{url}"',
                'Use a complete URL: "url": "https://example.com/page"',
                "Malformed URL",
            )
        )

    return findings


def has_error(findings: list[ValidationFinding]) -> bool:
    return any(f.is_error for f in findings)
