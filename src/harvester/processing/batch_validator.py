"""Envelope-level validation of an import JSON document.

Runs structural checks on the envelope, batch-level duplicate detection and
the per-entry field validator, and returns a ``ValidationReport``. Nothing
here raises: a caller always gets a complete report to render.
"""

from __future__ import annotations

import json
from typing import Any

from ..domain.models import (
    DuplicatePolicy,
    FindingKind,
    Severity,
    ValidationFinding,
    ValidationReport,
    ValidationSummary,
)
from .field_validator import has_error, validate_document, validate_log

DEFAULT_LARGE_BATCH_THRESHOLD = 1000


def _structural(severity: Severity, field: str, message: str, recommendation: str, context: str) -> ValidationFinding:
    return ValidationFinding(
        severity=severity,
        field=field,
        message=message,
        recommendation=recommendation,
        kind=FindingKind.STRUCTURAL,
        context=context,
    )


def find_duplicate_urls(documents: list[Any]) -> dict[str, list[int]]:
    """Map each trimmed ``url_doc`` shared by 2+ entries to their 0-based indices."""
    positions: dict[str, list[int]] = {}
    for index, doc in enumerate(documents):
        if not isinstance(doc, dict):
            continue
        url = doc.get("url_doc")
        if not isinstance(url, str) or not url.strip():
            continue
        positions.setdefault(url.strip(), []).append(index)
    return {url: idx for url, idx in positions.items() if len(idx) > 1}


def _duplicate_finding(url: str, indices: list[int], policy: DuplicatePolicy) -> ValidationFinding:
    positions = ", ".join(str(i + 1) for i in indices)
    if policy is DuplicatePolicy.REJECT:
        severity = Severity.ERROR
        recommendation = (
            "Remove the duplicates or make the URLs unique. Keep only the most recent or most complete document."
        )
    else:
        severity = Severity.WARNING
        recommendation = "Only the first occurrence will be imported; remove the other entries to silence this warning."
    return ValidationFinding(
        severity=severity,
        field="url_doc",
        message=f'Duplicate URL "{url}" found in documents {positions}',
        recommendation=recommendation,
        kind=FindingKind.DUPLICATE,
        context=f"Duplicate documents: positions {positions}",
    )


def validate_import_json(
    json_content: str,
    *,
    duplicate_policy: DuplicatePolicy = DuplicatePolicy.REJECT,
    large_batch_threshold: int = DEFAULT_LARGE_BATCH_THRESHOLD,
) -> ValidationReport:
    errors: list[ValidationFinding] = []
    warnings: list[ValidationFinding] = []
    total_documents = valid_documents = total_logs = valid_logs = 0

    def add(finding: ValidationFinding) -> None:
        (errors if finding.is_error else warnings).append(finding)

    def report() -> ValidationReport:
        return ValidationReport(
            errors=tuple(errors),
            warnings=tuple(warnings),
            summary=ValidationSummary(
                total_documents=total_documents,
                valid_documents=valid_documents,
                total_logs=total_logs,
                valid_logs=valid_logs,
            ),
        )

    try:
        data = json.loads(json_content)
    except (TypeError, ValueError) as e:
        add(
            _structural(
                Severity.ERROR,
                "json",
                f"JSON syntax error: {e}",
                "Check the JSON syntax with a validator. Common mistakes: missing commas, unclosed quotes, "
                "unbalanced braces",
                "JSON parsing",
            )
        )
        return report()

    if not isinstance(data, dict):
        add(
            _structural(
                Severity.ERROR,
                "root",
                "Invalid JSON structure: the file must contain a top-level object",
                'Make sure the file starts with { and ends with }. Example: {"documents": [], "logs": []}',
                "JSON root",
            )
        )
        return report()

    documents = data.get("documents")
    if documents is None:
        add(
            _structural(
                Severity.ERROR,
                "documents",
                'Missing "documents" array: this field is required for the import',
                'Add the documents array: "documents": [{"url_doc": "https://example.com/file.pdf", '
                '"document_name": "My document"}]',
                "Envelope structure",
            )
        )
    elif not isinstance(documents, list):
        add(
            _structural(
                Severity.ERROR,
                "documents",
                'Wrong type: "documents" must be an array, not an object or a string',
                'Use an array: "documents": [...] instead of "documents": "..." or "documents": {...}',
                "Data type",
            )
        )
    else:
        total_documents = len(documents)
        if total_documents == 0:
            add(
                _structural(
                    Severity.WARNING,
                    "documents",
                    'Empty "documents" array: no document will be imported',
                    'Add at least one document with a valid "url_doc" field',
                    "Array content",
                )
            )

        for url, indices in find_duplicate_urls(documents).items():
            add(_duplicate_finding(url, indices, duplicate_policy))

        for index, doc in enumerate(documents):
            findings = validate_document(doc, index)
            for f in findings:
                add(f)
            if not has_error(findings):
                valid_documents += 1

    logs = data.get("logs")
    if logs is None:
        add(
            _structural(
                Severity.WARNING,
                "logs",
                'Missing "logs" array: no incident log will be imported',
                'Add the logs array (optional): "logs": [{"level": "info", "message": "Log message"}]',
                "Optional structure",
            )
        )
    elif not isinstance(logs, list):
        add(
            _structural(
                Severity.ERROR,
                "logs",
                'Wrong type: "logs" must be an array',
                'Use an array: "logs": [...] instead of "logs": "..." or "logs": {...}',
                "Data type",
            )
        )
    else:
        total_logs = len(logs)
        for index, log in enumerate(logs):
            findings = validate_log(log, index)
            for f in findings:
                add(f)
            if not has_error(findings):
                valid_logs += 1

    if total_documents > large_batch_threshold:
        add(
            _structural(
                Severity.WARNING,
                "documents",
                f"Large number of documents ({total_documents}): the import may take a while",
                "Consider splitting the import into several smaller files (at most 500 documents per file)",
                "Performance",
            )
        )

    return report()


def generate_validation_report(result: ValidationReport) -> str:
    """Render a validation report as plain text for display."""
    lines = ["JSON VALIDATION REPORT", "=" * 50, ""]

    s = result.summary
    lines += [
        "SUMMARY:",
        f"- Documents found: {s.total_documents}",
        f"- Valid documents: {s.valid_documents}",
        f"- Logs found: {s.total_logs}",
        f"- Valid logs: {s.valid_logs}",
        f"- Overall status: {'VALID' if result.is_valid else 'ERRORS DETECTED'}",
        "",
    ]

    def section(title: str, label: str, findings: tuple[ValidationFinding, ...]) -> None:
        if not findings:
            return
        lines.append(f"{title} ({len(findings)}):")
        for i, f in enumerate(findings, start=1):
            lines.append(f"{i}. {f.message}")
            lines.append(f"   {label}: {f.recommendation}")
            if f.context:
                lines.append(f"   Context: {f.context}")
            lines.append("")

    section("CRITICAL ERRORS", "Fix", result.errors)
    section("WARNINGS", "Recommendation", result.warnings)

    if result.is_valid:
        lines.append("The JSON file is ready to be imported.")
    else:
        lines.append("Fix the critical errors before importing.")
    return "\n".join(lines)
