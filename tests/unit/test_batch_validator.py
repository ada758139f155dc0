from __future__ import annotations

import json

from harvester.domain.models import DuplicatePolicy, FindingKind
from harvester.processing.batch_validator import generate_validation_report, validate_import_json

ROUND_TRIP = json.dumps(
    {
        "documents": [
            {"url_doc": "https://ex.com/a.pdf"},
            {"url_doc": "https://ex.com/a.pdf", "document_name": "dup"},
            {"url_doc": "not-a-url"},
            {"document_name": "no url"},
        ],
        "logs": [],
        "obstacles-globaux": ["x"],
        "recommandations": "y",
    }
)


def test_round_trip_scenario_is_invalid() -> None:
    report = validate_import_json(ROUND_TRIP)

    assert report.is_valid is False
    assert report.summary.total_documents == 4
    # the duplicate pair still counts as individually valid
    assert report.summary.valid_documents == 2

    duplicate = [f for f in report.errors if f.kind is FindingKind.DUPLICATE]
    assert len(duplicate) == 1
    assert "1, 2" in duplicate[0].message
    assert any(f.document_index == 2 and f.field == "url_doc" for f in report.errors)
    assert any(f.document_index == 3 and "missing" in f.message for f in report.errors)


def test_invalid_json_short_circuits() -> None:
    report = validate_import_json("{not json")
    assert report.is_valid is False
    assert [f.field for f in report.errors] == ["json"]
    assert report.warnings == ()


def test_root_must_be_an_object() -> None:
    report = validate_import_json("[1, 2]")
    assert [f.field for f in report.errors] == ["root"]


def test_missing_and_wrong_type_documents_are_distinct_errors() -> None:
    missing = validate_import_json('{"logs": []}')
    wrong = validate_import_json('{"documents": {"url_doc": "https://ex.com"}, "logs": []}')
    assert [f.field for f in missing.errors] == ["documents"]
    assert [f.field for f in wrong.errors] == ["documents"]
    assert missing.errors[0].message != wrong.errors[0].message


def test_empty_batch_is_valid_with_warning() -> None:
    report = validate_import_json('{"documents": []}')
    assert report.is_valid is True
    fields = [f.field for f in report.warnings]
    assert "documents" in fields
    assert "logs" in fields


def test_logs_must_be_an_array_when_present() -> None:
    report = validate_import_json('{"documents": [], "logs": "oops"}')
    assert report.is_valid is False
    assert [f.field for f in report.errors] == ["logs"]


def test_large_batch_warns_but_stays_valid() -> None:
    docs = [{"url_doc": f"https://ex.com/{i}.pdf", "document_name": "d", "filename": "d.pdf"} for i in range(1001)]
    report = validate_import_json(json.dumps({"documents": docs, "logs": []}))
    assert report.is_valid is True
    assert any("Large number of documents" in f.message for f in report.warnings)

    small = validate_import_json(json.dumps({"documents": docs[:5], "logs": []}), large_batch_threshold=3)
    assert any("Large number of documents" in f.message for f in small.warnings)


def test_warnings_never_flip_validity() -> None:
    entries = [{"url_doc": f"https://ex.com/{i}.pdf", "annee": 1200, "date_edition": "bad"} for i in range(5)]
    logs = [{"level": "loud"} for _ in range(5)]
    report = validate_import_json(json.dumps({"documents": entries, "logs": logs}))
    assert len(report.warnings) > 10
    assert report.is_valid is True
    assert report.summary.valid_documents == 5
    assert report.summary.valid_logs == 5


def test_drop_policy_reports_duplicates_as_warnings() -> None:
    payload = json.dumps(
        {
            "documents": [
                {"url_doc": "https://ex.com/a.pdf"},
                {"url_doc": " https://ex.com/a.pdf "},
            ],
            "logs": [],
        }
    )
    rejected = validate_import_json(payload)
    dropped = validate_import_json(payload, duplicate_policy=DuplicatePolicy.DROP)

    assert rejected.is_valid is False
    assert dropped.is_valid is True
    assert [f.kind for f in dropped.warnings if f.kind is FindingKind.DUPLICATE] == [FindingKind.DUPLICATE]


def test_text_report_lists_findings_and_verdict() -> None:
    text = generate_validation_report(validate_import_json(ROUND_TRIP))
    assert "JSON VALIDATION REPORT" in text
    assert "- Documents found: 4" in text
    assert "CRITICAL ERRORS" in text
    assert "Fix the critical errors before importing." in text

    ok = generate_validation_report(validate_import_json('{"documents": [], "logs": []}'))
    assert "ready to be imported" in ok
    assert "CRITICAL ERRORS" not in ok
